import pytest
from switchboard.errors import ConfigurationError, ProviderError
from switchboard.llm.base import CompletionOptions
from switchboard.llm.catalog import build_catalog
from switchboard.llm.registry import ProviderRegistry


class TestRegistryCatalog:
    def test_current_config_is_first_provider(self, registry):
        config = registry.get_current_config()
        assert config.provider == "alpha"
        assert config.model == "alpha-large"
        assert config.base_url == "https://alpha.example/v1"

    def test_switch_cycles_in_catalog_order(self, registry):
        assert registry.switch_provider() == "beta"
        assert registry.switch_provider() == "alpha"
        assert registry.get_current_config().provider == "alpha"

    def test_switch_n_times_visits_n_providers(self, registry):
        seen = [registry.switch_provider() for _ in range(4)]
        assert seen == ["beta", "alpha", "beta", "alpha"]

    def test_switch_to_target(self, registry):
        assert registry.switch_provider("beta") == "beta"
        assert registry.get_current_config().model == "beta-general"

    def test_switch_to_unknown_target_raises(self, registry):
        with pytest.raises(ConfigurationError):
            registry.switch_provider("ghost")
        assert registry.get_current_config().provider == "alpha"

    def test_model_lookup(self, registry):
        assert registry.get_model_config("beta-general").context_window == 128_000
        assert registry.get_model_config("ghost") is None
        assert registry.provider_for_model("alpha-small") == "alpha"

    def test_lists(self, registry):
        assert registry.list_providers() == ["alpha", "beta"]
        assert [m.name for m in registry.list_models()] == ["alpha-large", "alpha-small", "beta-general"]
        assert registry.get_available_providers() == ["alpha", "beta"]

    def test_missing_transport_is_a_configuration_error(self, catalog, make_transport):
        with pytest.raises(ConfigurationError):
            ProviderRegistry(catalog, {"alpha": make_transport("alpha")})

    def test_active_provider_from_catalog(self, transports, catalog_data):
        catalog = build_catalog(catalog_data, active_provider="beta")
        registry = ProviderRegistry(catalog, transports)
        assert registry.get_current_config().provider == "beta"


@pytest.mark.asyncio
class TestHandleRequest:
    async def test_dispatches_to_active_provider(self, registry, transports):
        reply = await registry.handle_request("hi")
        assert reply.provider == "alpha"
        assert reply.text == "hello"

        prompt, model, options = transports["alpha"].complete.call_args.args
        assert prompt == "hi"
        assert model == "alpha-large"
        assert options == CompletionOptions()
        transports["beta"].complete.assert_not_called()

    async def test_default_options(self, registry, transports):
        await registry.handle_request("hi")
        options = transports["alpha"].complete.call_args.args[2]
        assert options.temperature == 0.7
        assert options.top_p == 1.0
        assert options.max_tokens is None
        assert options.frequency_penalty == 0
        assert options.presence_penalty == 0
        assert options.stop_sequences is None

    async def test_requested_model_used_when_served_by_active(self, registry, transports):
        await registry.handle_request("hi", model="alpha-small")
        assert transports["alpha"].complete.call_args.args[1] == "alpha-small"

    async def test_foreign_model_falls_back_to_default(self, registry, transports):
        await registry.handle_request("hi", model="beta-general")
        assert transports["alpha"].complete.call_args.args[1] == "alpha-large"

    async def test_follows_switch(self, registry, transports):
        registry.switch_provider()
        reply = await registry.handle_request("hi")
        assert reply.provider == "beta"

    async def test_named_provider_overrides_active(self, registry, transports):
        reply = await registry.handle_request("hi", model="beta-general", provider_name="beta")
        assert reply.provider == "beta"
        assert transports["beta"].complete.call_args.args[1] == "beta-general"
        transports["alpha"].complete.assert_not_called()
        assert registry.get_current_config().provider == "alpha"

    async def test_unknown_named_provider(self, registry):
        with pytest.raises(ConfigurationError):
            await registry.handle_request("hi", provider_name="ghost")

    async def test_provider_error_propagates(self, registry, transports):
        transports["alpha"].complete.side_effect = ProviderError("rate limited", status_code=429, provider="alpha")
        with pytest.raises(ProviderError) as exc:
            await registry.handle_request("hi")
        assert exc.value.status_code == 429

    async def test_provider_without_models_raises(self, make_reply, make_transport):
        catalog = build_catalog({"providers": [{"name": "empty", "base_url": "https://e"}]})
        registry = ProviderRegistry(catalog, {"empty": make_transport("empty", make_reply("empty", "x"))})
        with pytest.raises(ProviderError):
            await registry.handle_request("hi")
