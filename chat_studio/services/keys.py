"""API key resolution: user key, then host key, then an alternate provider."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal

from chat_studio.config import Settings, get_settings
from chat_studio.errors import MissingCredential
from chat_studio.models.ai_models import ModelConfig
from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)

KeySource = Literal["user", "host"]


@dataclass(frozen=True)
class ResolvedKey:
    """An API key together with where it came from."""

    provider: str
    api_key: str = field(repr=False)
    source: KeySource


class KeyResolver:
    """Pure lookup of the credential to use for a provider. No retries, no side effects beyond logging."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def resolve(self, provider: str, user_supplied_key: str | None = None) -> ResolvedKey:
        """Pick the API key for a provider.

        A non-empty user key always wins. Otherwise the host key configured for the
        provider is used.

        Args:
            provider: Provider identifier
            user_supplied_key: Key sent by the caller, if any

        Returns:
            The resolved key and its source

        Raises:
            MissingCredential: If neither a user key nor a host key exists
        """
        if user_supplied_key and user_supplied_key.strip():
            logger.info(f"Using user API key for {provider}")
            return ResolvedKey(provider=provider, api_key=user_supplied_key.strip(), source="user")

        host_key = self.settings.get_host_key(provider)
        if host_key:
            logger.info(f"Using host API key for {provider}")
            return ResolvedKey(provider=provider, api_key=host_key, source="host")

        logger.warning(f"No API key available for {provider}")
        raise MissingCredential(provider)

    def has_key(self, provider: str, user_keys: Mapping[str, str | None]) -> bool:
        """Check whether ``resolve`` would succeed for a provider."""
        user_key = user_keys.get(provider)
        return bool((user_key and user_key.strip()) or self.settings.get_host_key(provider))

    def resolve_route(
        self, config: ModelConfig, user_keys: Mapping[str, str | None]
    ) -> tuple[ModelConfig, ResolvedKey]:
        """Resolve the effective model configuration and its key.

        When the model's own provider has no key at all but OpenRouter does and the
        model has an OpenRouter equivalent, the request is rerouted to OpenRouter.

        Args:
            config: Model configuration as selected by the caller
            user_keys: Caller-supplied keys by provider

        Returns:
            The effective configuration and the key to use with it

        Raises:
            MissingCredential: If no route has a usable key
        """
        if (
            config.provider != "openrouter"
            and config.open_router_model_id
            and not self.has_key(config.provider, user_keys)
            and self.has_key("openrouter", user_keys)
        ):
            logger.info(f"No key for {config.provider}, routing {config.model_id} through OpenRouter")
            config = config.via_openrouter()

        return config, self.resolve(config.provider, user_keys.get(config.provider))
