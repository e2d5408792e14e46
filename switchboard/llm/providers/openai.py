"""
OpenAI-compatible provider transport built on the official SDK.
Works for any endpoint speaking the chat completions API (DeepSeek, OpenRouter, ...)
by pointing base_url at it.
"""
import httpx
import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from switchboard.errors import ProviderError, TransportError
from switchboard.llm.base import CompletionOptions, ProviderReply, TokenUsage, Transport
from switchboard.observability.logger import get_logger

log = get_logger("llm.openai")


class OpenAITransport(Transport):
    def __init__(
        self,
        name: str,
        base_url: str,
        api_key: str = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient = None,
    ):
        self.name = name
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self._http_client = http_client
        self._client = None

    def _get_client(self) -> AsyncOpenAI | None:
        if self._client is None and self.api_key:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,  # the orchestrator owns retries
                http_client=self._http_client,
            )
        return self._client

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def complete(
        self,
        prompt: str,
        model: str,
        options: CompletionOptions,
    ) -> ProviderReply:
        client = self._get_client()
        if not client:
            raise ProviderError("API key not configured", provider=self.name)

        kwargs = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": options.temperature,
            "top_p": options.top_p,
            "frequency_penalty": options.frequency_penalty,
            "presence_penalty": options.presence_penalty,
        }
        if options.max_tokens is not None:
            kwargs["max_tokens"] = options.max_tokens
        if options.stop_sequences:
            kwargs["stop"] = options.stop_sequences

        try:
            response = await client.chat.completions.create(**kwargs)
        except openai.APIConnectionError as e:
            # Includes APITimeoutError
            log.error("openai_transport_error", provider=self.name, error=str(e), model=model)
            raise TransportError(str(e), provider=self.name) from e
        except openai.APIStatusError as e:
            log.error("openai_error", provider=self.name, status=e.status_code, error=e.message, model=model)
            raise ProviderError(e.message, status_code=e.status_code, provider=self.name) from e
        except openai.APIError as e:
            # Response arrived but could not be parsed (APIResponseValidationError and friends)
            log.error("openai_malformed_response", provider=self.name, error=e.message, model=model)
            raise ProviderError(f"Malformed response: {e.message}", provider=self.name) from e

        try:
            if not response.choices:
                raise ProviderError("Malformed response: no choices", provider=self.name)
            choice = response.choices[0]
            usage = response.usage
            return ProviderReply(
                text=choice.message.content or "",
                provider=self.name,
                model=model,
                usage=TokenUsage(
                    prompt_tokens=usage.prompt_tokens if usage else 0,
                    completion_tokens=usage.completion_tokens if usage else 0,
                    total_tokens=usage.total_tokens if usage else 0,
                ),
                finish_reason=choice.finish_reason,
            )
        except (AttributeError, TypeError, ValidationError) as e:
            log.error("openai_malformed_response", provider=self.name, error=str(e), model=model)
            raise ProviderError(f"Malformed response: {e}", provider=self.name) from e
