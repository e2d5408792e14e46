from typing import Optional, Sequence

from pydantic import BaseModel, Field

from switchboard.errors import SelectionError
from switchboard.llm.base import TaskRequirements
from switchboard.llm.catalog import ModelConfig
from switchboard.observability.logger import get_logger

log = get_logger("llm.selector")

CATEGORY_KEYWORDS = {
    "code": ("code", "programming", "development"),
    "math": ("math", "calculation", "numeric"),
    "analysis": ("analysis", "review", "evaluate"),
}

LARGE_CONTEXT = 100_000
LONG_RESPONSE_CONTEXT = 150_000
CHEAP_COST_PER_1K = 0.002


class ModelScore(BaseModel):
    model_name: str
    score: float
    reasons: list[str] = Field(default_factory=list)


class SuccessStat(BaseModel):
    success: int = 0
    total: int = 0

    @property
    def rate(self) -> float:
        return self.success / self.total if self.total else 0.0


def classify(task_type: str) -> list[str]:
    """Map a free-text task type onto scoring categories."""
    text = (task_type or "").lower()
    categories = [
        category
        for category, keywords in CATEGORY_KEYWORDS.items()
        if any(k in text for k in keywords)
    ]
    if "general" in text or not categories:
        categories.append("general")
    return categories


class ModelSelector:
    """Picks a model for a task by capability fit, context size, cost and past success."""

    def __init__(self, models: Sequence[ModelConfig]):
        self.models = list(models)
        self.last_selected: Optional[str] = None
        self.usage_count = {m.name: 0 for m in self.models}
        self.stats = {m.name: SuccessStat() for m in self.models}

    def score_models(self, requirements: TaskRequirements) -> list[ModelScore]:
        categories = classify(requirements.type)
        scores = []

        for model in self.models:
            score = 0.0
            reasons = []

            if requirements.complexity == "high" and model.context_window > LARGE_CONTEXT:
                score += 3
                reasons.append("large context window")

            for category in categories:
                if category in model.capabilities:
                    score += 2
                    reasons.append(f"specialised in {category}")

            if requirements.expected_response_size == "long" and model.context_window > LONG_RESPONSE_CONTEXT:
                score += 2
                reasons.append("suited to long responses")

            if requirements.urgency == "high" and model.cost_per_1k_tokens < CHEAP_COST_PER_1K:
                score += 2
                reasons.append("fast and cheap")

            stat = self.stats[model.name]
            if stat.total > 0:
                score += stat.rate * 2
                reasons.append(f"success rate {stat.rate * 100:.1f}%")

            if model.name == self.last_selected:
                score -= 1
                reasons.append("recently used")

            scores.append(ModelScore(model_name=model.name, score=score, reasons=reasons))

        return scores

    def select_best_model(self, requirements: TaskRequirements) -> str:
        if not self.models:
            raise SelectionError("Model catalog is empty")

        scores = self.score_models(requirements)
        # max() keeps the first of equal scores, so ties go to catalog order
        best = max(scores, key=lambda s: s.score)

        self.last_selected = best.model_name
        self.usage_count[best.model_name] += 1

        log.debug(
            "model_scores",
            categories=classify(requirements.type),
            scores=[s.model_dump() for s in scores],
        )
        log.info("model_selected", model=best.model_name, score=round(best.score, 3), reasons=best.reasons)
        return best.model_name

    def record_success(self, model: str, success: bool):
        stat = self.stats.get(model)
        if stat is None:
            log.warning("success_for_unknown_model", model=model)
            return
        stat.total += 1
        if success:
            stat.success += 1

    def get_success_rate(self, model: str) -> float:
        stat = self.stats.get(model)
        return stat.rate if stat else 0.0

    def get_model_metrics(self) -> dict:
        metrics = {}
        for model in self.models:
            metrics[model.name] = {
                "usage_count": self.usage_count[model.name],
                "success_rate": round(self.stats[model.name].rate * 100, 2),
                "capabilities": list(model.capabilities),
            }
        return metrics
