import json
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import requests
from google.api_core import exceptions as google_exceptions

from nlsh.api import GeminiClient, TranslationRequest, ZaiClient, build_request, get_client
from nlsh.config import Provider, Settings
from nlsh.errors import ExitCode, ProviderError, ProviderErrorKind


def _gemini_response(text, finish_reason="STOP"):
    part = SimpleNamespace(text=text)
    candidate = SimpleNamespace(content=SimpleNamespace(parts=[part]), finish_reason=finish_reason)
    return SimpleNamespace(
        candidates=[candidate],
        usage_metadata=SimpleNamespace(total_token_count=42),
        prompt_feedback=None,
    )


def _http_response(status_code, body, reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.text = body if isinstance(body, str) else json.dumps(body)
    response.reason = reason
    return response


class TestBuildRequest(unittest.TestCase):
    """Test cases for the translation request."""

    def test_request_contents(self):
        request = build_request("  list all python files ", cwd="/home/me/project", shell="/usr/bin/zsh")

        self.assertEqual(request.user_prompt, "list all python files")
        self.assertIn("Current directory: /home/me/project", request.system_instructions)
        self.assertIn("/zsh", request.system_instructions)
        self.assertIn("Output ONLY the command", request.system_instructions)

    def test_request_is_immutable(self):
        request = build_request("show disk usage", cwd="/tmp", shell="bash")
        with self.assertRaises(Exception):
            request.user_prompt = "something else"


class TestGetClient(unittest.TestCase):

    def test_clients_follow_settings(self):
        settings = MagicMock(spec=Settings)
        settings.gemini_model = "gemini-x"
        settings.zai_model = "glm-x"
        settings.zai_api_url = "https://example.test/chat"
        settings.timeout = 7.0

        gemini = get_client(Provider.GEMINI, settings)
        zai = get_client(Provider.ZAI, settings)

        self.assertIsInstance(gemini, GeminiClient)
        self.assertEqual(gemini.model_name, "gemini-x")
        self.assertIsInstance(zai, ZaiClient)
        self.assertEqual(zai.api_url, "https://example.test/chat")
        self.assertEqual(zai.timeout, 7.0)


class TestGeminiClient(unittest.TestCase):
    """Test cases for the GeminiClient class."""

    def setUp(self):
        self.request = TranslationRequest(user_prompt="list all python files", system_instructions="Only commands")
        self.client = GeminiClient(model="gemini-2.5-flash", timeout=15)
        patcher = patch("nlsh.api.genai")
        self.genai = patcher.start()
        self.addCleanup(patcher.stop)
        self.model = self.genai.GenerativeModel.return_value

    def test_translate_success(self):
        """Test the first candidate's text is returned with the request built correctly."""
        self.model.generate_content.return_value = _gemini_response('```bash\nfind . -name "*.py"\n```')

        response = self.client.translate(self.request, "gem-key")

        self.assertEqual(response.raw_text, '```bash\nfind . -name "*.py"\n```')
        self.assertEqual(response.provider_metadata["provider"], "gemini")
        self.assertEqual(response.provider_metadata["total_tokens"], 42)
        self.genai.configure.assert_called_once_with(api_key="gem-key")
        self.genai.GenerativeModel.assert_called_once_with("gemini-2.5-flash", system_instruction="Only commands")
        self.model.generate_content.assert_called_once_with(
            "list all python files", request_options={"timeout": 15, "retry": None}
        )

    def test_unauthenticated_maps_to_auth(self):
        self.model.generate_content.side_effect = google_exceptions.Unauthenticated("invalid credentials")

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "bad")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.AUTH)
        self.assertEqual(ctx.exception.status, 401)
        self.assertIn("invalid credentials", str(ctx.exception))

    def test_invalid_api_key_maps_to_auth(self):
        self.model.generate_content.side_effect = google_exceptions.InvalidArgument(
            "API key not valid. Please pass a valid API key."
        )

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "bad")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.AUTH)
        self.assertEqual(ctx.exception.status, 400)

    def test_other_bad_request_is_unknown(self):
        self.model.generate_content.side_effect = google_exceptions.InvalidArgument("model not found")

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "key")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.UNKNOWN)

    def test_quota_maps_to_rate_limited(self):
        self.model.generate_content.side_effect = google_exceptions.ResourceExhausted("quota exceeded")

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "key")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.RATE_LIMITED)
        self.assertEqual(ctx.exception.status, 429)

    def test_deadline_maps_to_network_timeout(self):
        self.model.generate_content.side_effect = google_exceptions.DeadlineExceeded("deadline")

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "key")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.NETWORK)
        self.assertTrue(ctx.exception.timeout)

    def test_unavailable_maps_to_network(self):
        self.model.generate_content.side_effect = google_exceptions.ServiceUnavailable("unreachable")

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "key")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.NETWORK)
        self.assertFalse(ctx.exception.timeout)

    def test_library_retry_is_disabled(self):
        """Test an outage is reported after a single call instead of being retried."""
        self.model.generate_content.side_effect = google_exceptions.ServiceUnavailable("unreachable")

        with self.assertRaises(ProviderError):
            self.client.translate(self.request, "key")

        self.assertEqual(self.model.generate_content.call_count, 1)
        request_options = self.model.generate_content.call_args[1]["request_options"]
        self.assertIsNone(request_options["retry"])
        self.assertEqual(request_options["timeout"], 15)

    def test_unexpected_exception_is_unknown(self):
        self.model.generate_content.side_effect = RuntimeError("boom")

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "key")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.UNKNOWN)
        self.assertEqual(ctx.exception.exit_code, ExitCode.PROVIDER)

    def test_no_candidates_is_empty_response(self):
        self.model.generate_content.return_value = SimpleNamespace(
            candidates=[], prompt_feedback=SimpleNamespace(block_reason="SAFETY")
        )

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "key")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.EMPTY_RESPONSE)
        self.assertIn("SAFETY", ctx.exception.message)

    def test_blank_text_is_empty_response(self):
        self.model.generate_content.return_value = _gemini_response("   ")

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "key")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.EMPTY_RESPONSE)


class TestZaiClient(unittest.TestCase):
    """Test cases for the ZaiClient class."""

    def setUp(self):
        self.request = TranslationRequest(user_prompt="show disk usage", system_instructions="Only commands")
        self.client = ZaiClient(model="glm-4.5", timeout=10, api_url="https://api.z.ai/test/chat/completions")

    @patch("nlsh.api.requests.post")
    def test_translate_success(self, mock_post):
        """Test the first choice's message is returned and the request is well formed."""
        mock_post.return_value = _http_response(200, {
            "model": "glm-4.5",
            "choices": [{"message": {"role": "assistant", "content": "df -h"}}],
            "usage": {"total_tokens": 17},
        })

        response = self.client.translate(self.request, "zai-key")

        self.assertEqual(response.raw_text, "df -h")
        self.assertEqual(response.provider_metadata["total_tokens"], 17)
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "https://api.z.ai/test/chat/completions")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer zai-key")
        self.assertEqual(kwargs["timeout"], 10)
        self.assertEqual(kwargs["json"]["model"], "glm-4.5")
        self.assertEqual(kwargs["json"]["messages"], [
            {"role": "system", "content": "Only commands"},
            {"role": "user", "content": "show disk usage"},
        ])

    @patch("nlsh.api.requests.post")
    def test_text_choice_fallback(self, mock_post):
        mock_post.return_value = _http_response(200, {"choices": [{"text": "uptime"}]})

        self.assertEqual(self.client.translate(self.request, "k").raw_text, "uptime")

    @patch("nlsh.api.requests.post")
    def test_401_maps_to_auth(self, mock_post):
        mock_post.return_value = _http_response(
            401, {"error": {"code": "1000", "message": "Authorization Failure"}}, reason="Unauthorized"
        )

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "bad")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.AUTH)
        self.assertEqual(ctx.exception.status, 401)
        self.assertEqual(ctx.exception.message, "Authorization Failure")
        self.assertIn("Auth", str(ctx.exception))

    @patch("nlsh.api.requests.post")
    def test_429_maps_to_rate_limited(self, mock_post):
        mock_post.return_value = _http_response(429, "Too many requests", reason="Too Many Requests")

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "k")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.RATE_LIMITED)
        self.assertEqual(ctx.exception.message, "Too many requests")

    @patch("nlsh.api.requests.post")
    def test_server_error_is_unknown(self, mock_post):
        mock_post.return_value = _http_response(500, "", reason="Internal Server Error")

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "k")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.UNKNOWN)
        self.assertEqual(ctx.exception.message, "Internal Server Error")

    @patch("nlsh.api.requests.post")
    def test_timeout_maps_to_network(self, mock_post):
        mock_post.side_effect = requests.exceptions.ReadTimeout("read timed out")

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "k")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.NETWORK)
        self.assertTrue(ctx.exception.timeout)

    @patch("nlsh.api.requests.post")
    def test_connection_error_maps_to_network(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("name or service not known")

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "k")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.NETWORK)
        self.assertFalse(ctx.exception.timeout)

    @patch("nlsh.api.requests.post")
    def test_empty_body_is_empty_response(self, mock_post):
        mock_post.return_value = _http_response(200, "")

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "k")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.EMPTY_RESPONSE)

    @patch("nlsh.api.requests.post")
    def test_missing_choices_is_empty_response(self, mock_post):
        mock_post.return_value = _http_response(200, {"choices": []})

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "k")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.EMPTY_RESPONSE)

    @patch("nlsh.api.requests.post")
    def test_non_json_body_is_unknown_with_raw_text(self, mock_post):
        mock_post.return_value = _http_response(200, "<html>gateway</html>")

        with self.assertRaises(ProviderError) as ctx:
            self.client.translate(self.request, "k")

        self.assertIs(ctx.exception.kind, ProviderErrorKind.UNKNOWN)
        self.assertEqual(ctx.exception.message, "<html>gateway</html>")


if __name__ == "__main__":
    unittest.main()
