from functools import lru_cache
from types import MappingProxyType
from typing import Mapping

from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict

from relay.errors import ConfigError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    BANK_ENDPOINTS: dict[str, str] | None = None
    BANK_TOKENS: dict[str, str] | None = None
    PORT: int = 8080
    VERBOSE: bool = False

    TOKEN_HEADER: str = "Token"
    OUTBOUND_TIMEOUT: float = 10.0
    RATE_LIMIT: str = "60/minute"
    RATE_LIMIT_ENABLED: bool = True


@lru_cache
def get_settings() -> Settings:
    return Settings()


class ConfigRegistry:
    """
    Read-only lookup from bank id to its endpoint URL and shared token.

    Built once at startup and handed to every component that needs it.
    """

    def __init__(self, endpoints: Mapping[str, str], tokens: Mapping[str, str]):
        self._endpoints = MappingProxyType(dict(endpoints))
        self._tokens = MappingProxyType(dict(tokens))

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConfigRegistry":
        """
        Build the registry from loaded settings.

        :param settings: The loaded settings

        :raises ConfigError: If either mapping is missing or empty
        """
        if not settings.BANK_ENDPOINTS:
            raise ConfigError("Could not parse bank endpoints")
        if not settings.BANK_TOKENS:
            raise ConfigError("Could not parse bank tokens")

        registry = cls(settings.BANK_ENDPOINTS, settings.BANK_TOKENS)

        half_registered = set(registry._endpoints) ^ set(registry._tokens)
        for bank_id in sorted(half_registered):
            logger.warning(f"Bank {bank_id!r} has only an endpoint or only a token and cannot take part in transfers")

        logger.info(f"Loaded {len(registry.banks())} registered banks")
        return registry

    @property
    def endpoints(self) -> Mapping[str, str]:
        return self._endpoints

    @property
    def tokens(self) -> Mapping[str, str]:
        return self._tokens

    def endpoint_for(self, bank_id: str) -> str | None:
        return self._endpoints.get(bank_id)

    def token_for(self, bank_id: str) -> str | None:
        return self._tokens.get(bank_id)

    def is_registered(self, bank_id: str) -> bool:
        """A bank takes part only when it has both a non-empty endpoint and token."""
        return bool(self.endpoint_for(bank_id)) and bool(self.token_for(bank_id))

    def banks(self) -> list[str]:
        return sorted(bank_id for bank_id in self._endpoints if self.is_registered(bank_id))
