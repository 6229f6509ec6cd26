"""
Error types and process exit codes for nlsh.

Every failure in the translate-confirm-execute pipeline is raised as one of
the exceptions below and turned into a stable exit code by the controller.
"""
from enum import Enum, IntEnum
from typing import Optional


class ExitCode(IntEnum):
    """Exit codes that scripts can rely on."""

    OK = 0
    USAGE = 2
    CANCELLED = 3
    EXTRACT = 65
    PROVIDER = 69
    EXEC = 71
    CONFIG = 78
    INTERRUPTED = 130  # 128 + SIGINT


class NlshError(Exception):
    """Base class for all errors surfaced to the user."""

    exit_code: int = 1


class ConfigErrorKind(Enum):
    MISSING = "Missing"
    INVALID = "Invalid"


class ConfigError(NlshError):
    """A configuration value is missing or unusable."""

    exit_code = ExitCode.CONFIG

    def __init__(self, kind: ConfigErrorKind, key: str, message: Optional[str] = None):
        self.kind = kind
        self.key = key
        self.message = message or f"{kind.value} configuration value: {key}"
        super().__init__(self.message)


class ProviderErrorKind(Enum):
    AUTH = "Auth"
    RATE_LIMITED = "RateLimited"
    NETWORK = "Network"
    EMPTY_RESPONSE = "EmptyResponse"
    UNKNOWN = "Unknown"


class ProviderError(NlshError):
    """The language model provider could not produce a translation."""

    exit_code = ExitCode.PROVIDER

    def __init__(
        self,
        kind: ProviderErrorKind,
        provider: str,
        message: str,
        status: Optional[int] = None,
        timeout: bool = False,
    ):
        self.kind = kind
        self.provider = provider
        self.message = message
        self.status = status
        self.timeout = timeout
        super().__init__(str(self))

    def __str__(self) -> str:
        status = f" (HTTP {self.status})" if self.status is not None else ""
        label = "Network timeout" if self.timeout else self.kind.value
        return f"{label} error from {self.provider}{status}: {self.message}"


class ExtractErrorKind(Enum):
    EMPTY = "Empty"
    AMBIGUOUS = "Ambiguous"


class ExtractError(NlshError):
    """No single shell command could be isolated from the model's reply."""

    exit_code = ExitCode.EXTRACT

    def __init__(self, kind: ExtractErrorKind, raw_text: str = ""):
        self.kind = kind
        self.raw_text = raw_text
        if kind is ExtractErrorKind.EMPTY:
            message = "Empty: the model returned no command"
        else:
            message = "Ambiguous: the model returned more than one command"
        super().__init__(message)


class ExecErrorKind(Enum):
    SPAWN_FAILED = "SpawnFailed"


class ExecError(NlshError):
    """The shell could not be launched."""

    exit_code = ExitCode.EXEC

    def __init__(self, kind: ExecErrorKind, command: str, reason: str):
        self.kind = kind
        self.command = command
        self.reason = reason
        super().__init__(f"{kind.value}: could not run '{command}': {reason}")
