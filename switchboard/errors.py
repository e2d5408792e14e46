from typing import Optional


class OrchestrationError(Exception):
    """Base class for every error raised by the routing layer."""


class ConfigurationError(OrchestrationError):
    """Invalid catalog or a reference to a provider that is not configured."""


class SelectionError(OrchestrationError):
    """No model could be selected. Retrying cannot fix an empty catalog."""


class ProviderError(OrchestrationError):
    """Upstream returned a non-success response or a payload we cannot read."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.provider = provider

    def __str__(self) -> str:
        prefix = f"[{self.provider}] " if self.provider else ""
        status = f" (status {self.status_code})" if self.status_code is not None else ""
        return f"{prefix}{self.message}{status}"


class TransportError(ProviderError):
    """Connection failure or timeout. Retried exactly like ProviderError."""


class CompletionFailedError(OrchestrationError):
    """Every attempt for a single request failed."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts
