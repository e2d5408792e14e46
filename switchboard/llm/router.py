import asyncio
import math
import time
from typing import Optional

from switchboard.budget.tracker import QuotaTracker
from switchboard.errors import (
    CompletionFailedError,
    OrchestrationError,
    SelectionError,
    TransportError,
)
from switchboard.llm.base import (
    CompletionRequest,
    CompletionResult,
    ProviderReply,
    RequestMetrics,
    RotationResult,
    SystemMetrics,
    TaskRequirements,
)
from switchboard.llm.registry import ProviderRegistry
from switchboard.llm.selector import ModelSelector
from switchboard.observability.logger import get_logger

log = get_logger("llm_router")


def estimate_tokens(prompt: str) -> int:
    """Rough token count for providers that do not report usage."""
    return math.ceil(len(prompt) * 0.75)


class RequestOrchestrator:
    """Routes a completion through model selection, quota rotation and dispatch with retries.

    Every read-modify-write on the tracker, selector and registry happens under
    a single asyncio.Lock. The upstream call itself runs outside the lock.
    """

    def __init__(
        self,
        selector: ModelSelector,
        registry: ProviderRegistry,
        tracker: QuotaTracker,
        max_retries: int = 3,
        success_latency_seconds: float = 30.0,
        request_timeout_seconds: Optional[float] = 30.0,
        maintenance_interval_seconds: float = 3600,
        rotate_on_failure: bool = False,
    ):
        self.selector = selector
        self.registry = registry
        self.tracker = tracker
        self.max_retries = max_retries
        self.success_latency_seconds = success_latency_seconds
        self.request_timeout_seconds = request_timeout_seconds
        self.maintenance_interval_seconds = maintenance_interval_seconds
        self.rotate_on_failure = rotate_on_failure
        self._lock = asyncio.Lock()
        self._maintenance_task: Optional[asyncio.Task] = None

    async def get_completion(self, request: CompletionRequest) -> CompletionResult:
        retries = 0
        while True:
            try:
                return await self._attempt(request)
            except SelectionError:
                raise
            except OrchestrationError as e:
                if retries >= self.max_retries:
                    log.error("completion_failed", attempts=retries + 1, error=str(e))
                    raise CompletionFailedError(
                        f"All {retries + 1} attempts failed", attempts=retries + 1
                    ) from e

                retries += 1
                log.warning(
                    "completion_attempt_failed",
                    attempt=retries,
                    max_retries=self.max_retries,
                    error=str(e),
                )
                if self.rotate_on_failure:
                    await self.force_provider_rotation()

    async def _attempt(self, request: CompletionRequest) -> CompletionResult:
        requirements = request.requirements or TaskRequirements()

        async with self._lock:
            model = self.selector.select_best_model(requirements)
            provider = self.registry.get_current_config().provider
            if self.tracker.should_rotate(provider):
                provider = self._rotate_from(provider, reason="quota")

        start = time.monotonic()
        reply = await self._dispatch(request, model, provider)
        latency = time.monotonic() - start

        tokens = reply.usage.total_tokens or estimate_tokens(request.prompt)
        success = bool(reply.text) and latency < self.success_latency_seconds

        async with self._lock:
            self.tracker.record_usage(reply.provider, tokens)
            self.selector.record_success(model, success)

        return CompletionResult(
            text=reply.text,
            provider=reply.provider,
            model=reply.model,
            metrics=RequestMetrics(
                latency_ms=round(latency * 1000, 2),
                tokens=tokens,
                provider=reply.provider,
            ),
        )

    async def _dispatch(self, request: CompletionRequest, model: str, provider: str) -> ProviderReply:
        call = self.registry.handle_request(
            request.prompt, request.options, model=model, provider_name=provider
        )
        try:
            if self.request_timeout_seconds is None:
                return await call
            return await asyncio.wait_for(call, timeout=self.request_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Request timed out after {self.request_timeout_seconds}s", provider=provider
            ) from e

    def _rotate_from(self, provider: str, reason: str) -> str:
        """Switch the registry to the tracker's fallback. Caller must hold the lock."""
        fallback = self.tracker.fallback_for(provider)
        if fallback == provider:
            return provider

        current = self.registry.switch_provider(fallback)
        self.tracker.record_rotation(provider)
        log.info("provider_rotated", previous=provider, current=current, reason=reason)
        return current

    async def force_provider_rotation(self) -> RotationResult:
        async with self._lock:
            previous = self.registry.get_current_config().provider
            current = self._rotate_from(previous, reason="forced")
            metrics = self.get_system_metrics()

        return RotationResult(previous_provider=previous, new_provider=current, metrics=metrics)

    def get_system_metrics(self) -> SystemMetrics:
        return SystemMetrics(
            total_tokens=self.tracker.total_tokens(),
            provider=self.registry.get_current_config().provider,
            providers=self.tracker.get_all_metrics(),
        )

    def get_provider_metrics(self) -> dict:
        return self.tracker.get_all_metrics()

    def get_model_metrics(self) -> dict:
        return self.selector.get_model_metrics()

    async def prune_usage(self) -> int:
        async with self._lock:
            return self.tracker.prune()

    async def _maintenance_loop(self):
        log.info("usage_maintenance_started", interval=self.maintenance_interval_seconds)
        while True:
            await asyncio.sleep(self.maintenance_interval_seconds)
            try:
                await self.prune_usage()
            except Exception as e:
                log.error("usage_maintenance_error", error=str(e))

    def start(self):
        if self._maintenance_task is None or self._maintenance_task.done():
            self._maintenance_task = asyncio.create_task(self._maintenance_loop())

    async def stop(self):
        task, self._maintenance_task = self._maintenance_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, *exc):
        await self.stop()
