import logging
from enum import Enum
from typing import Callable, Optional, Sequence

from . import ui
from .api import ProviderClient, build_request, get_client
from .config import ConfigStore, Provider, Settings, get_settings, get_store, mask_secret
from .errors import ConfigError, ExecError, ExitCode, ExtractError, ProviderError
from .executor import CommandExecutor
from .parser import extract_command

logger = logging.getLogger(__name__)


class State(Enum):
    IDLE = "idle"
    CONFIGURED = "configured"
    TRANSLATING = "translating"
    EXTRACTED = "extracted"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    EXECUTING = "executing"
    DONE = "done"
    ERROR = "error"


class Controller:
    """
    Drives one request from natural language to an executed command.

    The run goes IDLE -> CONFIGURED -> TRANSLATING -> EXTRACTED ->
    AWAITING_CONFIRMATION -> EXECUTING -> DONE. Any failure ends in ERROR.
    Nothing is retried; every failure is reported once.
    """

    def __init__(
        self,
        store: Optional[ConfigStore] = None,
        settings: Optional[Settings] = None,
        executor: Optional[CommandExecutor] = None,
        confirm: Callable[[], bool] = ui.confirm_execution,
        client_factory: Callable[[Provider, Settings], ProviderClient] = get_client,
    ):
        self.store = store or get_store()
        self.settings = settings or get_settings()
        self.executor = executor or CommandExecutor()
        self.confirm = confirm
        self.client_factory = client_factory
        self.state = State.IDLE

    def _enter(self, state: State) -> None:
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state

    def run(self, words: Sequence[str]) -> int:
        """
        Translate, confirm and execute one request.

        Args:
            words: The user's request, as separate command-line words.

        Returns:
            The executed command's exit code, or an ExitCode for
            configuration, provider, extraction, spawn failures and
            cancellation.
        """
        try:
            provider_config = self.store.require()
        except ConfigError as e:
            self._enter(State.ERROR)
            ui.display_setup_help(e.message)
            return e.exit_code
        self._enter(State.CONFIGURED)
        logger.info(f"Using provider {provider_config.provider.value} "
                    f"with key {mask_secret(provider_config.api_key)}")

        request = build_request(" ".join(words))
        client = self.client_factory(provider_config.provider, self.settings)
        self._enter(State.TRANSLATING)
        response = None
        try:
            response = client.translate(request, provider_config.api_key)
            logger.debug(f"Provider metadata: {response.provider_metadata}")
            command = extract_command(response.raw_text)
        except ProviderError as e:
            self._enter(State.ERROR)
            ui.display_error(str(e))
            return e.exit_code
        except ExtractError as e:
            self._enter(State.ERROR)
            ui.display_error(str(e), raw_response=response.raw_text if response else None)
            return e.exit_code
        self._enter(State.EXTRACTED)

        ui.display_command(command.text)
        self._enter(State.AWAITING_CONFIRMATION)
        if not self.confirm():
            self._enter(State.DONE)
            ui.display_cancelled()
            return ExitCode.CANCELLED

        self._enter(State.EXECUTING)
        try:
            result = self.executor.run(command)
        except ExecError as e:
            self._enter(State.ERROR)
            ui.display_error(str(e))
            return e.exit_code
        self._enter(State.DONE)

        ui.display_exit_status(result.exit_code)
        return result.exit_code


def handle_translate(words: Sequence[str]) -> int:
    """Handler for the default 'nlsh <request...>' path."""
    return Controller().run(words)


def handle_set_provider(provider: Provider, store: Optional[ConfigStore] = None) -> int:
    """Handler for '--set-provider'."""
    store = store or get_store()
    store.set_provider(provider)
    ui.display_saved(f"Default provider set to {provider.value}")
    return ExitCode.OK


def handle_set_api_key(api_key: str, store: Optional[ConfigStore] = None) -> int:
    """
    Handler for '--set-api-key'.

    The key belongs to the configured provider, or to Gemini when no
    provider has been chosen yet.
    """
    store = store or get_store()
    provider = store.get_provider() or Provider.GEMINI
    try:
        store.set_api_key(provider, api_key)
    except ConfigError as e:
        ui.display_error(e.message)
        return e.exit_code
    ui.display_saved(f"API key saved for {provider.value}")
    return ExitCode.OK
