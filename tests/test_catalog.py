import json

import pytest
from switchboard.config import Settings
from switchboard.errors import ConfigurationError
from switchboard.llm.catalog import DEFAULT_CATALOG, build_catalog, load_catalog


class TestCatalogValidation:
    def test_default_catalog_is_valid(self):
        catalog = load_catalog()
        assert catalog.provider_names == ["deepseek", "openrouter", "anthropic", "google"]
        assert catalog.active_provider == "deepseek"
        assert catalog.get_provider("openrouter").default_model == "o3-mini"
        assert len(catalog.all_models()) == 5

    def test_default_model_is_first_model(self, catalog):
        assert catalog.get_provider("alpha").default_model == "alpha-large"

    def test_active_provider_defaults_to_first(self, catalog):
        assert catalog.active_provider == "alpha"

    def test_active_provider_override(self):
        catalog = load_catalog(active_provider="google")
        assert catalog.active_provider == "google"

    def test_unknown_active_provider(self, catalog_data):
        with pytest.raises(ConfigurationError):
            build_catalog(catalog_data, active_provider="ghost")

    def test_model_belongs_to_one_provider(self, catalog_data):
        catalog_data["providers"][1]["models"].append({"name": "alpha-small", "context_window": 1})
        with pytest.raises(ConfigurationError, match="alpha-small"):
            build_catalog(catalog_data)

    def test_duplicate_provider_names(self):
        data = {"providers": [{"name": "x", "base_url": "u"}, {"name": "x", "base_url": "v"}]}
        with pytest.raises(ConfigurationError):
            build_catalog(data)

    def test_default_model_must_be_offered(self, catalog_data):
        catalog_data["providers"][0]["default_model"] = "beta-general"
        with pytest.raises(ConfigurationError):
            build_catalog(catalog_data)

    def test_empty_catalog_rejected(self):
        with pytest.raises(ConfigurationError):
            build_catalog({"providers": []})

    @pytest.mark.parametrize(
        "data",
        [
            {"providers": ["x"]},
            {"providers": "x"},
            {"providers": [{"name": "a", "base_url": "u", "models": ["x"]}]},
            {"providers": [{"name": "a", "base_url": "u", "models": {"name": "m"}}]},
        ],
    )
    def test_malformed_entries_are_configuration_errors(self, data):
        with pytest.raises(ConfigurationError, match="Invalid provider catalog"):
            build_catalog(data)

    @pytest.mark.parametrize("data", [["x"], "catalog", None])
    def test_non_object_catalog_rejected(self, data):
        with pytest.raises(ConfigurationError, match="expected an object"):
            build_catalog(data, active_provider="alpha")

    def test_catalog_file_holding_a_list(self, tmp_path, catalog_data):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps([catalog_data]))
        with pytest.raises(ConfigurationError):
            load_catalog(str(path))

    def test_catalog_is_immutable(self, catalog):
        with pytest.raises(Exception):
            catalog.active_provider = "beta"


class TestLoadCatalog:
    def test_load_from_file(self, tmp_path, catalog_data):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps(catalog_data))
        catalog = load_catalog(str(path))
        assert catalog.provider_names == ["alpha", "beta"]
        assert catalog.get_provider("beta").api_style == "http"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_catalog(str(tmp_path / "nope.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_catalog(str(path))

    def test_default_quotas(self):
        quota = build_catalog(DEFAULT_CATALOG).get_provider("openrouter").quota
        assert quota.daily_limit == 500_000
        assert quota.monthly_limit == 5_000_000
        assert quota.cost_per_token == 0.0010


class TestSettings:
    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.max_retries == 3
        assert s.rotation_threshold == 0.9
        assert s.usage_retention_days == 30
        assert s.maintenance_interval_seconds == 3600
        assert s.success_latency_seconds == 30.0

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("MAX_RETRIES", "5")
        monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-test")
        s = Settings(_env_file=None)
        assert s.max_retries == 5
        assert s.api_key_for("deepseek") == "sk-test"
        assert s.api_key_for("unknown") is None
