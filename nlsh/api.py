import json
import logging
import os
import platform
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import google.generativeai as genai
import requests
from google.api_core import exceptions as google_exceptions

from .config import Provider, Settings
from .errors import ProviderError, ProviderErrorKind

# Configure logging
logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a shell command translator. Convert the user's request into a single shell command for {os_name}/{shell}.
Current directory: {cwd}

Rules:
- Output ONLY the command, nothing else
- No explanations, no markdown, no backticks
- If unclear, make a reasonable assumption
- Prefer simple, common commands"""


@dataclass(frozen=True)
class TranslationRequest:
    """A natural-language request and the instructions sent along with it."""

    user_prompt: str
    system_instructions: str


@dataclass
class TranslationResponse:
    """The provider's raw reply, before any command extraction."""

    raw_text: str
    provider_metadata: Dict[str, Any] = field(default_factory=dict)


def build_request(user_prompt: str, cwd: Optional[str] = None, shell: Optional[str] = None) -> TranslationRequest:
    """
    Build the translation request for one invocation.

    Args:
        user_prompt: The user's request in plain language.
        cwd: Working directory to mention to the model. Defaults to os.getcwd().
        shell: Path or name of the user's shell. Defaults to $SHELL.

    Returns:
        An immutable TranslationRequest.
    """
    shell = shell or os.environ.get("SHELL") or "sh"
    system_instructions = SYSTEM_PROMPT.format(
        os_name=platform.system() or "Unix",
        shell=os.path.basename(shell),
        cwd=cwd or os.getcwd(),
    )
    return TranslationRequest(user_prompt=user_prompt.strip(), system_instructions=system_instructions)


def _status(error: google_exceptions.GoogleAPICallError) -> Optional[int]:
    return int(error.code) if error.code is not None else None


def _kind_for_status(status: Optional[int]) -> ProviderErrorKind:
    if status in (401, 403):
        return ProviderErrorKind.AUTH
    if status == 429:
        return ProviderErrorKind.RATE_LIMITED
    return ProviderErrorKind.UNKNOWN


class ProviderClient:
    """Turns a TranslationRequest into the provider's raw text reply."""

    provider: Provider

    def __init__(self, model: str, timeout: float):
        self.model_name = model
        self.timeout = timeout

    @property
    def name(self) -> str:
        return self.provider.value

    def translate(self, request: TranslationRequest, api_key: str) -> TranslationResponse:
        raise NotImplementedError


class GeminiClient(ProviderClient):
    """A client for the Google Gemini API."""

    provider = Provider.GEMINI

    def translate(self, request: TranslationRequest, api_key: str) -> TranslationResponse:
        """
        Ask Gemini for a shell command.

        The system instructions go in as the model's system instruction and
        the user prompt as the single-turn content.

        Raises:
            ProviderError: On auth, quota, transport or response-shape failures.
        """
        genai.configure(api_key=api_key)
        model = genai.GenerativeModel(self.model_name, system_instruction=request.system_instructions)
        logger.info(f"Requesting translation from Gemini model {self.model_name}")

        try:
            response = model.generate_content(
                request.user_prompt,
                request_options={"timeout": self.timeout, "retry": None},
            )
        except google_exceptions.DeadlineExceeded as e:
            raise ProviderError(
                ProviderErrorKind.NETWORK, self.name,
                f"no response within {self.timeout:g}s", status=_status(e), timeout=True,
            ) from e
        except google_exceptions.ServiceUnavailable as e:
            raise ProviderError(ProviderErrorKind.NETWORK, self.name, e.message, status=_status(e)) from e
        except google_exceptions.InvalidArgument as e:
            # An invalid key is reported as a 400 rather than a 401
            kind = ProviderErrorKind.AUTH if "api key" in str(e.message).lower() else ProviderErrorKind.UNKNOWN
            raise ProviderError(kind, self.name, e.message, status=_status(e)) from e
        except google_exceptions.GoogleAPICallError as e:
            raise ProviderError(_kind_for_status(_status(e)), self.name, e.message, status=_status(e)) from e
        except google_exceptions.RetryError as e:
            raise ProviderError(ProviderErrorKind.NETWORK, self.name, str(e)) from e
        except Exception as e:
            logger.info("Unexpected error calling Gemini", exc_info=True)
            raise ProviderError(ProviderErrorKind.UNKNOWN, self.name, str(e)) from e

        return TranslationResponse(raw_text=self._first_text(response), provider_metadata=self._metadata(response))

    def _first_text(self, response: Any) -> str:
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            feedback = getattr(response, "prompt_feedback", None)
            reason = getattr(feedback, "block_reason", None) if feedback else None
            message = f"no candidates returned (block reason: {reason})" if reason else "no candidates returned"
            raise ProviderError(ProviderErrorKind.EMPTY_RESPONSE, self.name, message)

        content = getattr(candidates[0], "content", None)
        parts = getattr(content, "parts", None) or []
        texts = [getattr(part, "text", "") or "" for part in parts]
        text = "".join(texts)
        if not text.strip():
            raise ProviderError(ProviderErrorKind.EMPTY_RESPONSE, self.name, "first candidate has no text")
        return text

    def _metadata(self, response: Any) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {"provider": self.name, "model": self.model_name}
        finish_reason = getattr(response.candidates[0], "finish_reason", None)
        if finish_reason is not None:
            metadata["finish_reason"] = str(finish_reason)
        usage = getattr(response, "usage_metadata", None)
        if usage is not None:
            metadata["total_tokens"] = getattr(usage, "total_token_count", None)
        return metadata


class ZaiClient(ProviderClient):
    """A client for the z.ai OpenAI-compatible coding endpoint."""

    provider = Provider.ZAI

    def __init__(self, model: str, timeout: float, api_url: str):
        super().__init__(model, timeout)
        self.api_url = api_url

    def translate(self, request: TranslationRequest, api_key: str) -> TranslationResponse:
        """
        Ask z.ai for a shell command via chat completions.

        Raises:
            ProviderError: On auth, quota, transport or response-shape failures.
        """
        payload = {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": request.system_instructions},
                {"role": "user", "content": request.user_prompt},
            ],
        }
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        logger.info(f"Requesting translation from z.ai model {self.model_name}")

        try:
            response = requests.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise ProviderError(
                ProviderErrorKind.NETWORK, self.name, f"no response within {self.timeout:g}s", timeout=True
            ) from e
        except requests.exceptions.RequestException as e:
            raise ProviderError(ProviderErrorKind.NETWORK, self.name, str(e)) from e

        body = response.text or ""
        if response.status_code >= 400:
            raise ProviderError(
                _kind_for_status(response.status_code),
                self.name,
                self._error_message(body) or response.reason or "request failed",
                status=response.status_code,
            )

        if not body.strip():
            raise ProviderError(ProviderErrorKind.EMPTY_RESPONSE, self.name, "empty response body",
                                status=response.status_code)
        try:
            data = json.loads(body)
        except ValueError:
            raise ProviderError(ProviderErrorKind.UNKNOWN, self.name, body, status=response.status_code)
        if not isinstance(data, dict):
            raise ProviderError(ProviderErrorKind.UNKNOWN, self.name, body, status=response.status_code)

        text = self._first_choice_text(data)
        if not text or not text.strip():
            raise ProviderError(ProviderErrorKind.EMPTY_RESPONSE, self.name,
                                "response has no choice content", status=response.status_code)

        metadata = {
            "provider": self.name,
            "model": data.get("model", self.model_name),
            "status": response.status_code,
        }
        if isinstance(data.get("usage"), dict):
            metadata["total_tokens"] = data["usage"].get("total_tokens")
        return TranslationResponse(raw_text=text, provider_metadata=metadata)

    @staticmethod
    def _first_choice_text(data: Dict[str, Any]) -> Optional[str]:
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return None
        choice = choices[0]
        message = choice.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        for key in ("text", "content"):
            if isinstance(choice.get(key), str):
                return choice[key]
        return None

    @staticmethod
    def _error_message(body: str) -> str:
        """Pull the upstream message out of an error body, or return it raw."""
        try:
            data = json.loads(body)
        except ValueError:
            return body.strip()
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str):
                return error
            if data.get("message"):
                return str(data["message"])
        return body.strip()


def get_client(provider: Provider, settings: Settings) -> ProviderClient:
    """Returns the client for the given provider."""
    if provider is Provider.GEMINI:
        return GeminiClient(model=settings.gemini_model, timeout=settings.timeout)
    return ZaiClient(model=settings.zai_model, timeout=settings.timeout, api_url=settings.zai_api_url)
