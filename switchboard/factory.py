from typing import Optional

from switchboard.budget.tracker import QuotaTracker
from switchboard.config import Settings, settings as default_settings
from switchboard.llm.base import Transport
from switchboard.llm.catalog import Catalog, load_catalog
from switchboard.llm.providers import build_transport
from switchboard.llm.registry import ProviderRegistry
from switchboard.llm.router import RequestOrchestrator
from switchboard.llm.selector import ModelSelector
from switchboard.observability.logger import get_logger, setup_logging

log = get_logger("factory")


def create_orchestrator(
    settings: Optional[Settings] = None,
    catalog: Optional[Catalog] = None,
    transports: Optional[dict[str, Transport]] = None,
    tracker: Optional[QuotaTracker] = None,
) -> RequestOrchestrator:
    """Build the tracker, selector, registry and orchestrator for one process."""
    settings = settings or default_settings
    setup_logging(settings.log_level)
    catalog = catalog or load_catalog(settings.catalog_path, settings.active_provider)

    if transports is None:
        transports = {
            p.name: build_transport(p, settings.api_key_for(p.name))
            for p in catalog.providers
        }
    for name, transport in transports.items():
        if transport.is_available():
            log.info("provider_available", provider=name)
        else:
            log.warning("provider_unavailable", provider=name)

    tracker = tracker or QuotaTracker(
        catalog,
        rotation_threshold=settings.rotation_threshold,
        retention_days=settings.usage_retention_days,
    )
    return RequestOrchestrator(
        selector=ModelSelector(catalog.all_models()),
        registry=ProviderRegistry(catalog, transports),
        tracker=tracker,
        max_retries=settings.max_retries,
        success_latency_seconds=settings.success_latency_seconds,
        request_timeout_seconds=settings.request_timeout_seconds,
        maintenance_interval_seconds=settings.maintenance_interval_seconds,
        rotate_on_failure=settings.rotate_on_failure,
    )
