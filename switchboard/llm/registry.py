from typing import Optional

from pydantic import BaseModel

from switchboard.errors import ConfigurationError, ProviderError
from switchboard.llm.base import CompletionOptions, ProviderReply, Transport
from switchboard.llm.catalog import Catalog, ModelConfig, ProviderConfig
from switchboard.observability.logger import get_logger

log = get_logger("llm.registry")


class ActiveConfig(BaseModel):
    provider: str
    model: Optional[str]
    base_url: str
    timeout_seconds: float


class ProviderRegistry:
    """Holds the provider catalog and the single active-provider marker."""

    def __init__(self, catalog: Catalog, transports: dict[str, Transport]):
        self.catalog = catalog
        self.providers = catalog.providers
        self.transports = dict(transports)
        self._model_owner = {m.name: p.name for p in self.providers for m in p.models}
        self._models = {m.name: m for m in catalog.all_models()}
        self._active_index = catalog.provider_names.index(catalog.active_provider)

        missing = [p.name for p in self.providers if p.name not in self.transports]
        if missing:
            raise ConfigurationError(f"No transport configured for providers: {missing}")

    @property
    def active_provider(self) -> ProviderConfig:
        return self.providers[self._active_index]

    def get_current_config(self) -> ActiveConfig:
        provider = self.active_provider
        return ActiveConfig(
            provider=provider.name,
            model=provider.default_model,
            base_url=provider.base_url,
            timeout_seconds=provider.timeout_seconds,
        )

    def switch_provider(self, target: Optional[str] = None) -> str:
        """Advance to the next provider in catalog order, or jump to `target`."""
        previous = self.active_provider.name
        if target is None:
            self._active_index = (self._active_index + 1) % len(self.providers)
        else:
            names = self.catalog.provider_names
            if target not in names:
                raise ConfigurationError(f"Unknown provider: {target}")
            self._active_index = names.index(target)

        current = self.active_provider.name
        log.info("provider_switched", previous=previous, current=current)
        return current

    def get_model_config(self, name: str) -> Optional[ModelConfig]:
        return self._models.get(name)

    def get_provider_config(self, name: str) -> Optional[ProviderConfig]:
        return self.catalog.get_provider(name)

    def provider_for_model(self, name: str) -> Optional[str]:
        return self._model_owner.get(name)

    def list_providers(self) -> list[str]:
        return self.catalog.provider_names

    def list_models(self) -> list[ModelConfig]:
        return list(self._models.values())

    def get_available_providers(self) -> list[str]:
        return [name for name, t in self.transports.items() if t.is_available()]

    async def handle_request(
        self,
        prompt: str,
        options: Optional[CompletionOptions] = None,
        model: Optional[str] = None,
        provider_name: Optional[str] = None,
    ) -> ProviderReply:
        """Send one completion to `provider_name`, or to the active provider when omitted."""
        if provider_name is None:
            provider = self.active_provider
        else:
            provider = self.catalog.get_provider(provider_name)
            if provider is None:
                raise ConfigurationError(f"Unknown provider: {provider_name}")
        options = options or CompletionOptions()

        # Only honour the requested model if the active provider serves it
        if model is None or self._model_owner.get(model) != provider.name:
            model = provider.default_model
        if model is None:
            raise ProviderError("No model configured", provider=provider.name)

        log.info("llm_request", provider=provider.name, model=model)
        reply = await self.transports[provider.name].complete(prompt, model, options)
        log.info("llm_response", provider=provider.name, model=model, tokens=reply.usage.total_tokens)
        return reply
