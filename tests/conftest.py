import copy
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from switchboard.budget.tracker import QuotaTracker
from switchboard.llm.base import ProviderReply, TokenUsage
from switchboard.llm.catalog import build_catalog
from switchboard.llm.registry import ProviderRegistry
from switchboard.llm.selector import ModelSelector


class FakeClock:
    """Controllable replacement for datetime.now(timezone.utc)."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def build_reply(provider: str, model: str, text: str = "hello", tokens: int = 42) -> ProviderReply:
    return ProviderReply(
        text=text,
        provider=provider,
        model=model,
        usage=TokenUsage(prompt_tokens=tokens // 2, completion_tokens=tokens - tokens // 2, total_tokens=tokens),
    )


def build_transport_mock(name: str, reply: ProviderReply = None, side_effect=None):
    transport = MagicMock()
    transport.name = name
    transport.is_available.return_value = True
    transport.complete = AsyncMock(return_value=reply, side_effect=side_effect)
    return transport


TWO_PROVIDER_CATALOG = {
    "providers": [
        {
            "name": "alpha",
            "base_url": "https://alpha.example/v1",
            "quota": {"daily_limit": 100, "monthly_limit": 1000, "cost_per_token": 0.01},
            "models": [
                {
                    "name": "alpha-large",
                    "context_window": 200_000,
                    "capabilities": ["code", "analysis"],
                    "cost_per_1k_tokens": 0.004,
                },
                {
                    "name": "alpha-small",
                    "context_window": 16_000,
                    "capabilities": ["general"],
                    "cost_per_1k_tokens": 0.0005,
                },
            ],
        },
        {
            "name": "beta",
            "base_url": "https://beta.example/v1",
            "api_style": "http",
            "quota": {"daily_limit": 100, "monthly_limit": 1000, "cost_per_token": 0.02},
            "models": [
                {
                    "name": "beta-general",
                    "context_window": 128_000,
                    "capabilities": ["general", "math"],
                    "cost_per_1k_tokens": 0.001,
                },
            ],
        },
    ],
}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog_data():
    """A fresh, mutable copy of the two-provider catalog."""
    return copy.deepcopy(TWO_PROVIDER_CATALOG)


@pytest.fixture
def catalog():
    return build_catalog(TWO_PROVIDER_CATALOG)


@pytest.fixture
def make_reply():
    return build_reply


@pytest.fixture
def make_transport():
    return build_transport_mock


@pytest.fixture
def tracker(catalog, clock):
    return QuotaTracker(catalog, clock=clock)


@pytest.fixture
def selector(catalog):
    return ModelSelector(catalog.all_models())


@pytest.fixture
def transports():
    return {
        "alpha": build_transport_mock("alpha", build_reply("alpha", "alpha-small")),
        "beta": build_transport_mock("beta", build_reply("beta", "beta-general")),
    }


@pytest.fixture
def registry(catalog, transports):
    return ProviderRegistry(catalog, transports)
