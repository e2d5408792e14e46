from typing import Optional

from switchboard.llm.base import Transport
from switchboard.llm.catalog import ProviderConfig
from switchboard.llm.providers.http import HttpTransport
from switchboard.llm.providers.openai import OpenAITransport


def build_transport(provider: ProviderConfig, api_key: Optional[str] = None) -> Transport:
    key = provider.api_key or api_key
    if provider.api_style == "http":
        return HttpTransport(provider.name, provider.base_url, key, timeout=provider.timeout_seconds)
    return OpenAITransport(provider.name, provider.base_url, key, timeout=provider.timeout_seconds)
