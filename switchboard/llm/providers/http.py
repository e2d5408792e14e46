import httpx
from pydantic import ValidationError

from switchboard.errors import ProviderError, TransportError
from switchboard.llm.base import CompletionOptions, ProviderReply, TokenUsage, Transport
from switchboard.observability.logger import get_logger

log = get_logger("llm.http")


def extract_text(payload: dict) -> str:
    """Pull the completion text out of the response shapes providers actually return.

    Supports OpenAI-style `choices`, Gemini-style `candidates` and bare
    `text`/`content` fields. Raises ProviderError for anything else.
    """
    choices = payload.get("choices")
    if choices:
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise ProviderError("Malformed response: choices[0] is not an object")
        choice = choices[0]
        message = choice.get("message") or {}
        if not isinstance(message, dict):
            raise ProviderError("Malformed response: message is not an object")
        if "content" in message:
            return _as_text(message["content"], "message.content")
        if "text" in choice:
            return _as_text(choice["text"], "choices[0].text")

    candidates = payload.get("candidates")
    if candidates:
        if not isinstance(candidates, list) or not isinstance(candidates[0], dict):
            raise ProviderError("Malformed response: candidates[0] is not an object")
        content = candidates[0].get("content") or {}
        if not isinstance(content, dict):
            raise ProviderError("Malformed response: candidate content is not an object")
        parts = content.get("parts") or []
        if not isinstance(parts, list) or not all(isinstance(part, dict) for part in parts):
            raise ProviderError("Malformed response: candidate parts are not objects")
        return "".join(_as_text(part.get("text"), "parts[].text") for part in parts)

    for key in ("text", "content"):
        if isinstance(payload.get(key), str):
            return payload[key]

    raise ProviderError("Malformed response: no completion text in payload")


def _as_text(value, field: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ProviderError(f"Malformed response: {field} is {type(value).__name__}, not a string")
    return value


def extract_usage(payload: dict) -> TokenUsage:
    usage = payload.get("usage") or {}
    if not isinstance(usage, dict):
        raise ProviderError("Malformed response: usage is not an object")
    prompt = usage.get("prompt_tokens", 0) or 0
    completion = usage.get("completion_tokens", 0) or 0
    try:
        total = usage.get("total_tokens") or prompt + completion
        return TokenUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)
    except (TypeError, ValidationError) as e:
        raise ProviderError(f"Malformed response: invalid usage counts: {usage}") from e


class HttpTransport(Transport):
    """Plain chat-completions POST over httpx, for endpoints where the SDK is not a fit."""

    def __init__(
        self,
        name: str,
        base_url: str,
        api_key: str = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport = None,
    ):
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport  # injectable for tests

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _build_body(self, prompt: str, model: str, options: CompletionOptions) -> dict:
        body = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": options.temperature,
            "top_p": options.top_p,
            "frequency_penalty": options.frequency_penalty,
            "presence_penalty": options.presence_penalty,
        }
        if options.max_tokens is not None:
            body["max_tokens"] = options.max_tokens
        if options.stop_sequences:
            body["stop"] = options.stop_sequences
        return body

    async def complete(
        self,
        prompt: str,
        model: str,
        options: CompletionOptions,
    ) -> ProviderReply:
        if not self.api_key:
            raise ProviderError("API key not configured", provider=self.name)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=self._build_body(prompt, model, options),
                )
            except httpx.TransportError as e:
                log.error("http_transport_error", provider=self.name, error=str(e), model=model)
                raise TransportError(str(e) or type(e).__name__, provider=self.name) from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            message = response.reason_phrase
            if isinstance(payload, dict):
                error = payload.get("error")
                if isinstance(error, dict) and error.get("message"):
                    message = error["message"]
                elif isinstance(error, str):
                    message = error
            log.error("http_provider_error", provider=self.name, status=response.status_code, error=message)
            raise ProviderError(message, status_code=response.status_code, provider=self.name)

        if not isinstance(payload, dict):
            raise ProviderError(
                "Malformed response: body is not a JSON object",
                status_code=response.status_code,
                provider=self.name,
            )

        try:
            text = extract_text(payload)
            usage = extract_usage(payload)
        except ProviderError as e:
            e.provider = self.name
            e.status_code = response.status_code
            log.error("http_malformed_response", provider=self.name, error=e.message, model=model)
            raise

        return ProviderReply(text=text, provider=self.name, model=model, usage=usage)
