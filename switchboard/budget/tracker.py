from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from switchboard.budget.models import QuotaMetrics, UsageRecord
from switchboard.llm.catalog import Catalog
from switchboard.observability.logger import get_logger

log = get_logger("budget")

DAY = timedelta(hours=24)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QuotaTracker:
    """Rolling per-provider token accounting against daily/monthly quotas.

    History is kept in memory only. Records are appended in clock order, so each
    provider's list stays chronological and `prune` can drop a prefix.
    """

    def __init__(
        self,
        catalog: Catalog,
        clock: Callable[[], datetime] = utc_now,
        rotation_threshold: float = 0.9,
        retention_days: int = 30,
    ):
        self.clock = clock
        self.rotation_threshold = rotation_threshold
        self.retention = timedelta(days=retention_days)
        self.providers = catalog.provider_names
        self.quotas = {p.name: p.quota for p in catalog.providers if p.quota is not None}
        self.usage: dict[str, list[UsageRecord]] = {name: [] for name in self.providers}
        self.last_rotation: dict[str, datetime] = {}
        self._warned_no_quota: set[str] = set()

    def record_usage(self, provider: str, tokens: int) -> float:
        quota = self.quotas.get(provider)
        cost = tokens * quota.cost_per_token if quota else 0.0

        self.usage.setdefault(provider, []).append(
            UsageRecord(provider=provider, tokens=tokens, cost=cost, timestamp=self.clock())
        )
        log.info("token_usage", provider=provider, tokens=tokens, cost=round(cost, 6))
        return cost

    def get_metrics(self, provider: str) -> QuotaMetrics:
        quota = self.quotas.get(provider)
        if quota is None:
            if provider in self._warned_no_quota:
                log.debug("quota_profile_missing", provider=provider)
            else:
                self._warned_no_quota.add(provider)
                log.warning("quota_profile_missing", provider=provider)
            return QuotaMetrics(last_rotation=self.last_rotation.get(provider))

        now = self.clock()
        day_start = now - DAY
        window_start = now - self.retention

        daily = 0
        monthly = 0
        for record in self.usage.get(provider, []):
            if record.timestamp > window_start:
                monthly += record.tokens
                if record.timestamp > day_start:
                    daily += record.tokens

        return QuotaMetrics(
            daily_usage=daily,
            monthly_usage=monthly,
            remaining_daily=max(0, quota.daily_limit - daily),
            remaining_monthly=max(0, quota.monthly_limit - monthly),
            last_rotation=self.last_rotation.get(provider),
        )

    def get_all_metrics(self) -> dict[str, QuotaMetrics]:
        return {name: self.get_metrics(name) for name in self.providers}

    def should_rotate(self, provider: str) -> bool:
        quota = self.quotas.get(provider)
        # Unknown quota counts as exhausted so callers look elsewhere
        if quota is None:
            return True

        metrics = self.get_metrics(provider)
        return (
            metrics.daily_usage >= quota.daily_limit * self.rotation_threshold
            or metrics.monthly_usage >= quota.monthly_limit * self.rotation_threshold
        )

    def pick_provider_with_most_headroom(self, exclude: Optional[str] = None) -> str:
        candidates = [p for p in self.providers if p != exclude] or list(self.providers)

        best = candidates[0]
        best_headroom = self.get_metrics(best).headroom
        for provider in candidates[1:]:
            headroom = self.get_metrics(provider).headroom
            if headroom > best_headroom:
                best, best_headroom = provider, headroom
        return best

    def fallback_for(self, current: str) -> str:
        """Next provider round-robin, or the one with most headroom if that is also near its limit."""
        try:
            index = self.providers.index(current)
        except ValueError:
            index = -1

        candidate = self.providers[(index + 1) % len(self.providers)]
        if candidate != current and not self.should_rotate(candidate):
            return candidate

        fallback = self.pick_provider_with_most_headroom(exclude=current)
        log.info("quota_fallback", current=current, round_robin=candidate, chosen=fallback)
        return fallback

    def record_rotation(self, provider: str):
        self.last_rotation[provider] = self.clock()

    def prune(self) -> int:
        cutoff = self.clock() - self.retention
        removed = 0
        for provider, records in self.usage.items():
            kept = [r for r in records if r.timestamp > cutoff]
            removed += len(records) - len(kept)
            self.usage[provider] = kept

        if removed:
            log.info("usage_pruned", removed=removed)
        return removed

    def total_tokens(self) -> int:
        return sum(r.tokens for records in self.usage.values() for r in records)
