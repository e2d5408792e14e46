from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # API Keys
    deepseek_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None

    # Catalog
    catalog_path: Optional[str] = None  # JSON file; built-in catalog when unset
    active_provider: Optional[str] = None  # Falls back to the catalog's choice

    # Dispatch
    request_timeout_seconds: float = 30.0
    max_retries: int = 3
    success_latency_seconds: float = 30.0
    rotate_on_failure: bool = False

    # Quota
    rotation_threshold: float = 0.9
    usage_retention_days: int = 30
    maintenance_interval_seconds: int = 3600  # 1 hour

    # Logging
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}

    def api_key_for(self, provider: str) -> Optional[str]:
        return getattr(self, f"{provider}_api_key", None)


settings = Settings()
