"""
Unit tests for handle resolution in social.graze.atpi.resolve.handle

Tests cover strategy ordering, failure aggregation, the direct-XRPC suffix shortcut and result caching. Strategies
are replaced with AsyncMock stand-ins so that only the orchestration is exercised.
"""

import pytest
from unittest.mock import AsyncMock, Mock, patch

from conftest import FakeClientSession, FakeResponse
from social.graze.atpi.resolve.errors import (
    HandleResolutionError,
    ResolutionTimeout,
    StrategyError,
)
from social.graze.atpi.resolve.handle import HandleResolver, create_handle_resolver
from social.graze.atpi.resolve.strategy import ResolutionMethod, ResolutionResult


def make_strategy(method: ResolutionMethod, result=None, error=None) -> Mock:
    strategy = Mock()
    strategy.method = method
    if error is not None:
        strategy.resolve = AsyncMock(side_effect=error)
    else:
        strategy.resolve = AsyncMock(
            return_value=ResolutionResult(did=result, method=method)
        )
    return strategy


class TestHandleResolver:
    """Test suite for HandleResolver orchestration."""

    @pytest.mark.asyncio
    async def test_first_success_wins(self):
        """Later strategies are not consulted once one succeeds."""
        dns = make_strategy(ResolutionMethod.dns, error=StrategyError("no record"))
        wellknown = make_strategy(ResolutionMethod.wellknown, result="did:plc:abc123")
        xrpc = make_strategy(ResolutionMethod.xrpc, result="did:plc:other")
        resolver = HandleResolver([dns, wellknown, xrpc])

        result = await resolver.resolve("alice.test")

        assert result.did == "did:plc:abc123"
        assert result.method == ResolutionMethod.wellknown
        dns.resolve.assert_awaited_once_with("alice.test")
        xrpc.resolve.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_all_strategies_fail(self):
        """The aggregated error lists every failure in strategy order."""
        resolver = HandleResolver(
            [
                make_strategy(ResolutionMethod.dns, error=StrategyError("r1")),
                make_strategy(ResolutionMethod.wellknown, error=ResolutionTimeout("r2")),
                make_strategy(ResolutionMethod.xrpc, error=StrategyError("r3")),
            ]
        )

        with pytest.raises(HandleResolutionError) as exc_info:
            await resolver.resolve("bob.example")

        error = exc_info.value
        assert error.reason == 'Failed to resolve handle "bob.example" - dns: r1, wellknown: r2, xrpc: r3'
        assert [f.method for f in error.failures] == ["dns", "wellknown", "xrpc"]
        assert error.handle == "bob.example"

    @pytest.mark.asyncio
    async def test_direct_suffix_skips_dns_and_wellknown(self):
        """Handles under a direct suffix only use the XRPC strategy."""
        dns = make_strategy(ResolutionMethod.dns, result="did:plc:dns")
        wellknown = make_strategy(ResolutionMethod.wellknown, result="did:plc:wk")
        xrpc = make_strategy(ResolutionMethod.xrpc, result="did:plc:abc123")
        resolver = HandleResolver([dns, wellknown, xrpc])

        result = await resolver.resolve("alice.bsky.social")

        assert result.method == ResolutionMethod.xrpc
        dns.resolve.assert_not_awaited()
        wellknown.resolve.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_direct_suffix_failure_lists_only_xrpc(self):
        resolver = HandleResolver(
            [
                make_strategy(ResolutionMethod.dns, result="did:plc:dns"),
                make_strategy(ResolutionMethod.xrpc, error=StrategyError("down")),
            ]
        )

        with pytest.raises(HandleResolutionError) as exc_info:
            await resolver.resolve("alice.bsky.social")
        assert exc_info.value.reason == 'Failed to resolve handle "alice.bsky.social" - xrpc: down'

    @pytest.mark.asyncio
    async def test_direct_suffixes_configurable(self):
        """An empty suffix list disables the shortcut."""
        dns = make_strategy(ResolutionMethod.dns, result="did:plc:abc123")
        xrpc = make_strategy(ResolutionMethod.xrpc, result="did:plc:other")
        resolver = HandleResolver([dns, xrpc], direct_xrpc_suffixes=[])

        result = await resolver.resolve("alice.bsky.social")

        assert result.method == ResolutionMethod.dns

    @pytest.mark.asyncio
    async def test_cache_hit_makes_no_calls(self):
        dns = make_strategy(ResolutionMethod.dns, result="did:plc:abc123")
        metrics = Mock()
        resolver = HandleResolver([dns], metrics=metrics)

        first = await resolver.resolve("alice.test")
        second = await resolver.resolve("alice.test")

        assert first == second
        dns.resolve.assert_awaited_once()
        metrics.increment.assert_any_call("atpi.handle.cache_hit", 1)

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self):
        dns = make_strategy(ResolutionMethod.dns, error=StrategyError("no record"))
        resolver = HandleResolver([dns])

        for _ in range(2):
            with pytest.raises(HandleResolutionError):
                await resolver.resolve("alice.test")
        assert dns.resolve.await_count == 2

    @pytest.mark.asyncio
    async def test_clear_cache(self):
        dns = make_strategy(ResolutionMethod.dns, result="did:plc:abc123")
        resolver = HandleResolver([dns])

        await resolver.resolve("alice.test")
        resolver.clear_cache()
        await resolver.resolve("alice.test")

        assert dns.resolve.await_count == 2

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_reported_and_recorded(self):
        """A bug in one strategy is reported and the next strategy still runs."""
        boom = RuntimeError("boom")
        dns = make_strategy(ResolutionMethod.dns, error=boom)
        xrpc = make_strategy(ResolutionMethod.xrpc, result="did:plc:abc123")
        resolver = HandleResolver([dns, xrpc])

        with patch("social.graze.atpi.resolve.handle.sentry_sdk") as mock_sentry:
            result = await resolver.resolve("alice.test")

        assert result.did == "did:plc:abc123"
        mock_sentry.capture_exception.assert_called_once_with(boom)


class TestCreateHandleResolver:
    """Test the default strategy wiring against a fake network."""

    @pytest.mark.asyncio
    async def test_strategy_order(self):
        session = FakeClientSession()
        resolver = create_handle_resolver(session)

        assert [s.method for s in resolver.strategies] == [
            ResolutionMethod.dns,
            ResolutionMethod.wellknown,
            ResolutionMethod.xrpc,
        ]

    @pytest.mark.asyncio
    async def test_falls_through_to_wellknown(self):
        session = FakeClientSession(
            {
                "https://dns.google/resolve": FakeResponse.json({"Status": 3}),
                "https://cloudflare-dns.com/dns-query": FakeResponse.json({"Status": 3}),
                "https://alice.test/.well-known/atproto-did": FakeResponse(body="did:plc:abc123"),
            }
        )
        resolver = create_handle_resolver(session)

        result = await resolver.resolve("alice.test")

        assert result.did == "did:plc:abc123"
        assert result.method == ResolutionMethod.wellknown
        assert not any("resolveHandle" in url for url in session.urls)
