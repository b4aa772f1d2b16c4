"""Tests for the discovery orchestrator and strategy registry."""

import asyncio
import logging

import pytest
from conftest import GROQ_KEY, FakeModelSource, make_model

from nexuscat.core.cache import CacheState, TTLCache
from nexuscat.credentials.resolver import CredentialResolver
from nexuscat.credentials.store import MemorySecretStore
from nexuscat.discovery.orchestrator import DiscoveryOrchestrator
from nexuscat.discovery.registry import StrategyRegistry, default_registry
from nexuscat.exceptions import DiscoveryConnectionError


@pytest.fixture
def resolver(clock) -> CredentialResolver:
    return CredentialResolver(
        MemorySecretStore(environ={"AI_KEY_GROQ": GROQ_KEY}),
        availability_cache=TTLCache(600, clock),
        resolved_cache=TTLCache(600, clock),
        clock=clock,
    )


def make_orchestrator(sources, resolver, clock, ttl=600.0) -> DiscoveryOrchestrator:
    return DiscoveryOrchestrator(
        StrategyRegistry(sources), resolver, cache=TTLCache(ttl, clock)
    )


# ============================================================================
# Registry
# ============================================================================


class TestStrategyRegistry:
    """Tests for provider name lookup."""

    def test_lookup_is_case_insensitive(self):
        """Test strategies are found regardless of name casing."""
        source = FakeModelSource("OpenRouter")
        registry = StrategyRegistry([source])

        assert registry.get("openrouter") is source
        assert registry.get(" OPENROUTER ") is source
        assert "openRouter" in registry
        assert registry.names() == ["OpenRouter"]

    def test_unknown_provider(self):
        """Test unknown providers have no strategy."""
        registry = StrategyRegistry()

        assert registry.get("Nope") is None
        assert registry.get("") is None

    def test_register_replaces(self):
        """Test a second registration under the same name wins."""
        first, second = FakeModelSource("Groq"), FakeModelSource("groq")
        registry = StrategyRegistry([first, second])

        assert registry.get("Groq") is second
        assert len(registry) == 1

    def test_unregister(self):
        registry = StrategyRegistry([FakeModelSource("Groq")])

        assert registry.unregister("GROQ") is True
        assert registry.unregister("Groq") is False
        assert len(registry) == 0

    def test_default_registry(self):
        """Test the built-in registry covers the shipped providers."""
        from nexuscat.core.config import Settings
        from nexuscat.core.security import SecretEncryption

        settings = Settings(encryption_key=SecretEncryption.generate_key())
        registry = default_registry(settings)

        assert registry.names() == ["OpenAI", "Groq", "OpenRouter", "Anthropic"]
        assert registry.get("anthropic").supports_discovery() is False
        assert registry.get("groq").supports_discovery() is True


# ============================================================================
# Orchestrator
# ============================================================================


class TestDiscoverProvider:
    """Tests for single-provider discovery and its cache."""

    @pytest.mark.asyncio
    async def test_unknown_provider_returns_empty(self, resolver, clock):
        orchestrator = make_orchestrator([], resolver, clock)

        assert await orchestrator.discover_provider("Unknown") == []

    @pytest.mark.asyncio
    async def test_fresh_cache_avoids_refetch(self, resolver, clock):
        """Test a fresh entry is served without calling the strategy."""
        source = FakeModelSource("Groq", [make_model("Groq", "llama3")])
        orchestrator = make_orchestrator([source], resolver, clock)

        first = await orchestrator.discover_provider("Groq")
        clock.advance(599)
        second = await orchestrator.discover_provider("groq")

        assert source.calls == 1
        assert [m.model_name for m in first] == ["llama3"]
        assert first == second
        assert orchestrator.cache_state("Groq") == CacheState.FRESH

    @pytest.mark.asyncio
    async def test_expired_entry_refetches(self, resolver, clock):
        """Test an entry older than the TTL triggers a new strategy call."""
        source = FakeModelSource("Groq", [make_model("Groq", "llama3")])
        orchestrator = make_orchestrator([source], resolver, clock)

        await orchestrator.discover_provider("Groq")
        clock.advance(601)
        assert orchestrator.cache_state("Groq") == CacheState.STALE
        await orchestrator.discover_provider("Groq")

        assert source.calls == 2

    @pytest.mark.asyncio
    async def test_cached_results_are_copies(self, resolver, clock):
        """Test callers cannot mutate the cached list."""
        source = FakeModelSource("Groq", [make_model("Groq", "llama3")])
        orchestrator = make_orchestrator([source], resolver, clock)

        first = await orchestrator.discover_provider("Groq")
        first[0].is_favorite = True
        first.clear()

        second = await orchestrator.discover_provider("Groq")
        assert len(second) == 1
        assert second[0].is_favorite is False

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self, resolver, clock, caplog):
        """Test a failing strategy yields [] and is retried next time."""
        source = FakeModelSource(
            "Groq", error=DiscoveryConnectionError("down", provider="Groq")
        )
        orchestrator = make_orchestrator([source], resolver, clock)

        with caplog.at_level(logging.ERROR):
            assert await orchestrator.discover_provider("Groq") == []
        assert await orchestrator.discover_provider("Groq") == []

        assert source.calls == 2
        assert orchestrator.cache_state("Groq") == CacheState.NO_ENTRY
        assert "Discovery failed for Groq" in caplog.text

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_fetch(self, resolver, clock):
        """Test concurrent discover_provider calls make a single strategy call."""
        gate = asyncio.Event()
        source = FakeModelSource("Groq", [make_model("Groq", "llama3")], gate=gate)
        orchestrator = make_orchestrator([source], resolver, clock)

        waiters = [asyncio.create_task(orchestrator.discover_provider("Groq")) for _ in range(5)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*waiters)

        assert source.calls == 1
        assert all([m.model_name for m in r] == ["llama3"] for r in results)

    @pytest.mark.asyncio
    async def test_invalidate_and_clear(self, resolver, clock):
        """Test invalidate() drops one provider and clear_cache() drops all."""
        groq = FakeModelSource("Groq", [make_model("Groq", "llama3")])
        openai = FakeModelSource("OpenAI", [make_model("OpenAI", "gpt-4o")])
        orchestrator = make_orchestrator([groq, openai], resolver, clock)
        await orchestrator.discover_all()

        assert orchestrator.invalidate("GROQ") is True
        assert orchestrator.cache_state("Groq") == CacheState.NO_ENTRY
        assert orchestrator.cache_state("OpenAI") == CacheState.FRESH

        orchestrator.clear_cache()
        assert orchestrator.cache_state("OpenAI") == CacheState.NO_ENTRY


class TestDiscoverAll:
    """Tests for fan-out discovery."""

    @pytest.mark.asyncio
    async def test_merges_and_dedupes(self, resolver, clock):
        """Test results are concatenated and de-duplicated by natural key."""
        groq = FakeModelSource(
            "Groq",
            [make_model("Groq", "Llama3"), make_model("groq", " llama3 "), make_model("Groq", "mixtral")],
        )
        openai = FakeModelSource("OpenAI", [make_model("OpenAI", "gpt-4o")])
        orchestrator = make_orchestrator([groq, openai], resolver, clock)

        models = await orchestrator.discover_all()

        assert sorted(m.key for m in models) == [
            ("groq", "llama3"),
            ("groq", "mixtral"),
            ("openai", "gpt-4o"),
        ]

    @pytest.mark.asyncio
    async def test_all_strategies_fail(self, resolver, clock):
        """Test discover_all returns [] without raising when every strategy fails."""
        sources = [
            FakeModelSource("Groq", error=DiscoveryConnectionError("down", provider="Groq")),
            FakeModelSource("OpenAI", error=RuntimeError("boom")),
        ]
        orchestrator = make_orchestrator(sources, resolver, clock)

        assert await orchestrator.discover_all() == []

    @pytest.mark.asyncio
    async def test_one_failure_isolated(self, resolver, clock):
        """Test one failing provider does not hide the others."""
        sources = [
            FakeModelSource("Groq", error=RuntimeError("boom")),
            FakeModelSource("OpenAI", [make_model("OpenAI", "gpt-4o")]),
        ]
        orchestrator = make_orchestrator(sources, resolver, clock)

        models = await orchestrator.discover_all()

        assert [m.model_name for m in models] == ["gpt-4o"]

    @pytest.mark.asyncio
    async def test_discover_for_providers_subset(self, resolver, clock):
        """Test subset discovery only calls the named strategies."""
        groq = FakeModelSource("Groq", [make_model("Groq", "llama3")])
        openai = FakeModelSource("OpenAI", [make_model("OpenAI", "gpt-4o")])
        orchestrator = make_orchestrator([groq, openai], resolver, clock)

        models = await orchestrator.discover_for_providers(["groq", "Missing"])

        assert [m.model_name for m in models] == ["llama3"]
        assert openai.calls == 0

    @pytest.mark.asyncio
    async def test_concurrent_discover_all_calls_each_strategy_once(self, resolver, clock):
        """Test overlapping full discoveries share strategy calls."""
        gate = asyncio.Event()
        groq = FakeModelSource("Groq", [make_model("Groq", "llama3")], gate=gate)
        orchestrator = make_orchestrator([groq], resolver, clock)

        first = asyncio.create_task(orchestrator.discover_all())
        second = asyncio.create_task(orchestrator.discover_all())
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(first, second)

        assert groq.calls == 1
        assert results[0] == results[1]

    def test_contended_discovery_on_separate_event_loops(self, resolver, clock):
        """Test one orchestrator can serve overlapping discoveries on two loops."""
        groq = FakeModelSource("Groq", [make_model("Groq", "llama3")])
        orchestrator = make_orchestrator([groq], resolver, clock, ttl=0.001)

        async def overlapping_runs():
            return await asyncio.gather(orchestrator.discover_all(), orchestrator.discover_all())

        first = asyncio.run(overlapping_runs())
        clock.advance(1)
        second = asyncio.run(overlapping_runs())

        assert [m.model_name for m in first[0]] == ["llama3"]
        assert [m.model_name for m in second[1]] == ["llama3"]
        assert groq.calls == 2
