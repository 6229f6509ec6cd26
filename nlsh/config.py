import os
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import toml
from dotenv import dotenv_values, set_key

from .errors import ConfigError, ConfigErrorKind

logger = logging.getLogger(__name__)

PROVIDER_KEY = "NLSH_PROVIDER"


def nlsh_home() -> str:
    """Directory holding the persisted store, settings file and logs."""
    return os.environ.get("NLSH_HOME") or os.path.expanduser("~/.nlsh")


def mask_secret(value: Optional[str]) -> str:
    """Render an API key safe for logs and terminal output."""
    if not value:
        return "<unset>"
    return f"{value[:4]}...{value[-4:]}" if len(value) > 8 else "****"


class Provider(Enum):
    """Language model providers nlsh can translate with."""

    GEMINI = "gemini"
    ZAI = "zai"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Provider"]:
        """Parse a provider name, accepting the usual aliases."""
        if not value:
            return None
        aliases = {
            "gemini": cls.GEMINI,
            "google": cls.GEMINI,
            "zai": cls.ZAI,
            "z.ai": cls.ZAI,
            "z-ai": cls.ZAI,
        }
        return aliases.get(value.strip().lower())

    @property
    def env_key(self) -> str:
        return "GEMINI_API_KEY" if self is Provider.GEMINI else "ZAI_API_KEY"


@dataclass(frozen=True)
class ProviderConfig:
    """The provider selected for this invocation and its API key."""

    provider: Provider
    api_key: str


class ConfigStore:
    """
    Persisted key-value store for the active provider and API keys.

    Values live in a dotenv file (``~/.nlsh/.env`` by default). A value in
    the file wins over an environment variable of the same name; the
    environment is only consulted when the file does not define the key.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path or os.path.join(nlsh_home(), ".env")

    def _read(self, key: str) -> Optional[str]:
        values: Dict[str, Optional[str]] = {}
        if os.path.exists(self.path):
            values = dotenv_values(self.path, interpolate=False)
        value = values.get(key)
        if value is None:
            value = os.environ.get(key)
        if value is None or not value.strip():
            return None
        return value.strip()

    def _write(self, key: str, value: str) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        if not os.path.exists(self.path):
            with open(self.path, "a"):
                pass
        set_key(self.path, key, value, quote_mode="never")
        os.chmod(self.path, 0o600)
        logger.debug(f"Saved {key} to {self.path}")

    def get_provider(self) -> Optional[Provider]:
        raw = self._read(PROVIDER_KEY)
        provider = Provider.parse(raw)
        if raw and provider is None:
            logger.warning(f"Ignoring unknown provider '{raw}' in {self.path}")
        return provider

    def get_api_key(self, provider: Provider) -> Optional[str]:
        return self._read(provider.env_key)

    def set_provider(self, provider: Provider) -> None:
        self._write(PROVIDER_KEY, provider.value)

    def set_api_key(self, provider: Provider, key: str) -> None:
        key = (key or "").strip()
        if not key:
            raise ConfigError(ConfigErrorKind.INVALID, provider.env_key, "API key must not be empty")
        self._write(provider.env_key, key)

    def require(self) -> ProviderConfig:
        """
        Return the provider and key needed for a translation.

        Raises:
            ConfigError: If the provider or its API key was never set.
        """
        provider = self.get_provider()
        if provider is None:
            raise ConfigError(ConfigErrorKind.MISSING, PROVIDER_KEY, "No provider selected")
        api_key = self.get_api_key(provider)
        if api_key is None:
            raise ConfigError(
                ConfigErrorKind.MISSING,
                provider.env_key,
                f"Missing {provider.env_key} for provider {provider.value}",
            )
        return ProviderConfig(provider=provider, api_key=api_key)


@dataclass
class Settings:
    """Runtime settings: request timeout, models, endpoints and logging."""

    config_dir: str = field(default_factory=nlsh_home)
    config_file: Optional[str] = None
    timeout: float = 30.0
    gemini_model: str = "gemini-2.5-flash"
    zai_model: str = "glm-4.5"
    zai_api_url: str = "https://api.z.ai/api/coding/paas/v4/chat/completions"
    verbose: bool = False
    log_dir: str = field(init=False)
    _file_config: dict = field(init=False, repr=False)

    def __post_init__(self):
        """Resolve every setting from environment, then file, then default."""
        if self.config_file is None:
            self.config_file = os.path.join(self.config_dir, "config.toml")
        self._file_config = self._load_config_from_file()
        self.timeout = self._get_float("NLSH_TIMEOUT", self.timeout)
        self.gemini_model = str(self._get_config("NLSH_GEMINI_MODEL", self.gemini_model))
        self.zai_model = str(self._get_config("NLSH_ZAI_MODEL", self.zai_model))
        self.zai_api_url = str(self._get_config("NLSH_ZAI_API_URL", self.zai_api_url))
        self.log_dir = os.path.expanduser(
            str(self._get_config("NLSH_LOG_DIR", os.path.join(self.config_dir, "logs")))
        )
        self.verbose = self._get_bool("NLSH_VERBOSE", self.verbose)

    def _load_config_from_file(self) -> dict:
        """Loads settings from the TOML file, if there is one."""
        if not os.path.exists(self.config_file):
            return {}
        try:
            with open(self.config_file, "r") as f:
                return toml.load(f)
        except (toml.TomlDecodeError, IOError) as e:
            logger.warning(f"Could not read config file at {self.config_file}: {e}")
            return {}

    def _get_config(self, key: str, default: Optional[Any] = None) -> Any:
        """
        Get a setting, prioritizing environment variables,
        then the config file, and finally a default value.
        """
        value = os.environ.get(key)
        if value is not None:
            return value

        # Keys may sit at the top level or inside any table
        if key in self._file_config and not isinstance(self._file_config[key], dict):
            return self._file_config[key]
        for section in self._file_config.values():
            if isinstance(section, dict) and key in section:
                return section[key]

        return default

    def _get_float(self, key: str, default: float) -> float:
        value = self._get_config(key, default)
        try:
            value = float(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid value for {key}: {value!r}, using {default}")
            return default
        return value if value > 0 else default

    def _get_bool(self, key: str, default: bool) -> bool:
        value = self._get_config(key, default)
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")


# Singleton instance holders
_settings_instance: Optional[Settings] = None
_store_instance: Optional[ConfigStore] = None


def get_settings() -> Settings:
    """Returns the singleton Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def get_store() -> ConfigStore:
    """Returns the singleton ConfigStore instance."""
    global _store_instance
    if _store_instance is None:
        _store_instance = ConfigStore()
    return _store_instance
