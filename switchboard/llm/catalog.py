"""
Provider/model catalog.

The catalog is loaded once at startup and never changes afterwards. Providers
keep their declaration order: round-robin rotation and every tie-break in the
quota tracker and model selector follow it.
"""
import json
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from switchboard.errors import ConfigurationError


def _first_name(entries, model_cls):
    # Malformed entries are left for field validation to report
    if not isinstance(entries, (list, tuple)) or not entries:
        return None
    first = entries[0]
    if isinstance(first, dict):
        return first.get("name")
    if isinstance(first, model_cls):
        return first.name
    return None


class QuotaProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    daily_limit: int
    monthly_limit: int
    cost_per_token: float = 0.0


class ModelConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    context_window: int
    capabilities: tuple[str, ...] = ("general",)
    cost_per_1k_tokens: float = 0.0


class ProviderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    base_url: str
    api_key: Optional[str] = None
    api_style: Literal["openai", "http"] = "openai"
    timeout_seconds: float = 30.0
    default_model: Optional[str] = None
    models: tuple[ModelConfig, ...] = ()
    quota: Optional[QuotaProfile] = None

    @model_validator(mode="before")
    @classmethod
    def _fill_default_model(cls, data):
        if isinstance(data, dict) and not data.get("default_model"):
            name = _first_name(data.get("models"), ModelConfig)
            if name:
                data = {**data, "default_model": name}
        return data

    @model_validator(mode="after")
    def _check_default_model(self):
        names = [m.name for m in self.models]
        if self.default_model is not None and self.default_model not in names:
            raise ValueError(
                f"default_model '{self.default_model}' is not offered by provider '{self.name}'"
            )
        return self


class Catalog(BaseModel):
    model_config = ConfigDict(frozen=True)

    providers: tuple[ProviderConfig, ...] = Field(min_length=1)
    active_provider: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _fill_active_provider(cls, data):
        if isinstance(data, dict) and not data.get("active_provider"):
            name = _first_name(data.get("providers"), ProviderConfig)
            if name:
                data = {**data, "active_provider": name}
        return data

    @model_validator(mode="after")
    def _check_consistency(self):
        provider_names = [p.name for p in self.providers]
        if len(set(provider_names)) != len(provider_names):
            raise ValueError(f"duplicate provider names in {provider_names}")

        seen: dict[str, str] = {}
        for provider in self.providers:
            for model in provider.models:
                owner = seen.get(model.name)
                if owner is not None:
                    raise ValueError(
                        f"model '{model.name}' declared by both '{owner}' and '{provider.name}'"
                    )
                seen[model.name] = provider.name

        if self.active_provider not in provider_names:
            raise ValueError(f"active provider '{self.active_provider}' is not configured")
        return self

    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self.providers]

    def all_models(self) -> list[ModelConfig]:
        return [m for p in self.providers for m in p.models]

    def get_provider(self, name: str) -> Optional[ProviderConfig]:
        for provider in self.providers:
            if provider.name == name:
                return provider
        return None


# Limits and prices from the production deployment (token units).
DEFAULT_CATALOG = {
    "active_provider": "deepseek",
    "providers": [
        {
            "name": "deepseek",
            "base_url": "https://api.deepseek.com/v1",
            "api_style": "openai",
            "quota": {"daily_limit": 1_000_000, "monthly_limit": 10_000_000, "cost_per_token": 0.0015},
            "models": [
                {
                    "name": "deepseek-r1-distill-llama-70b",
                    "context_window": 131_072,
                    "capabilities": ["code", "math", "analysis"],
                    "cost_per_1k_tokens": 0.0015,
                },
            ],
        },
        {
            "name": "openrouter",
            "base_url": "https://openrouter.ai/api/v1",
            "api_style": "openai",
            "default_model": "o3-mini",
            "quota": {"daily_limit": 500_000, "monthly_limit": 5_000_000, "cost_per_token": 0.0010},
            "models": [
                {
                    "name": "o3-mini",
                    "context_window": 200_000,
                    "capabilities": ["code", "math", "general"],
                    "cost_per_1k_tokens": 0.0011,
                },
                {
                    "name": "o3-mini-high",
                    "context_window": 200_000,
                    "capabilities": ["code", "math", "analysis"],
                    "cost_per_1k_tokens": 0.0044,
                },
            ],
        },
        {
            "name": "anthropic",
            "base_url": "https://api.anthropic.com/v1",
            "api_style": "http",
            "quota": {"daily_limit": 1_000_000, "monthly_limit": 15_000_000, "cost_per_token": 0.0030},
            "models": [
                {
                    "name": "claude-3-7-sonnet",
                    "context_window": 200_000,
                    "capabilities": ["code", "analysis", "general"],
                    "cost_per_1k_tokens": 0.003,
                },
            ],
        },
        {
            "name": "google",
            "base_url": "https://generativelanguage.googleapis.com/v1beta/openai",
            "api_style": "http",
            "quota": {"daily_limit": 800_000, "monthly_limit": 8_000_000, "cost_per_token": 0.0008},
            "models": [
                {
                    "name": "gemini-2.0-flash-thinking",
                    "context_window": 1_000_000,
                    "capabilities": ["general", "analysis", "math"],
                    "cost_per_1k_tokens": 0.0005,
                },
            ],
        },
    ],
}


def build_catalog(data: dict, active_provider: Optional[str] = None) -> Catalog:
    """Validate raw catalog data, optionally overriding the active provider."""
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Invalid provider catalog: expected an object, got {type(data).__name__}"
        )
    if active_provider:
        data = {**data, "active_provider": active_provider}
    try:
        return Catalog.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid provider catalog: {e}") from e


def load_catalog(path: Optional[str] = None, active_provider: Optional[str] = None) -> Catalog:
    """Load the catalog from a JSON file, or the built-in one when no path is given."""
    if path is None:
        return build_catalog(DEFAULT_CATALOG, active_provider)

    catalog_file = Path(path)
    try:
        data = json.loads(catalog_file.read_text())
    except FileNotFoundError as e:
        raise ConfigurationError(f"Catalog file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Catalog file is not valid JSON: {path}: {e}") from e
    return build_catalog(data, active_provider)
