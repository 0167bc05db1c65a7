"""AT Protocol handle resolution.

Resolves handles to DIDs by trying DNS TXT records (over HTTPS), then the HTTPS well-known endpoint, then the
com.atproto.identity.resolveHandle XRPC method on a directory host. Results are cached per handle.
"""

import logging
from time import monotonic
from typing import List, Optional, Sequence

import sentry_sdk
from aiohttp import ClientSession

from social.graze.atpi.metrics import MetricsClient, NoOpMetricsClient
from social.graze.atpi.resolve.cache import (
    DEFAULT_CACHE_TTL,
    DEFAULT_MAX_ENTRIES,
    TimedCache,
)
from social.graze.atpi.resolve.dns import DnsHandleResolver, DohProvider
from social.graze.atpi.resolve.endpoints import DEFAULT_PDS_ENDPOINTS, PdsEndpointPool
from social.graze.atpi.resolve.errors import (
    AtpiError,
    HandleResolutionError,
    StrategyFailure,
)
from social.graze.atpi.resolve.strategy import (
    HandleStrategy,
    ResolutionMethod,
    ResolutionResult,
)
from social.graze.atpi.resolve.wellknown import WellKnownHandleResolver
from social.graze.atpi.resolve.xrpc import XrpcHandleResolver

logger = logging.getLogger(__name__)

DEFAULT_DIRECT_XRPC_SUFFIXES = (".bsky.social",)


class HandleResolver:
    """Resolve handles with an ordered list of strategies and a shared result cache.

    Strategies are tried in list order and the first success wins. Each failure is kept as a
    ``StrategyFailure`` so that, when every strategy fails, the raised ``HandleResolutionError`` explains what
    went wrong with each of them.

    Handles under one of ``direct_xrpc_suffixes`` are hosted by a large provider whose directory answers
    faster than DNS or well-known lookups do, so only the XRPC strategy is used for them.
    """

    def __init__(
        self,
        strategies: Sequence[HandleStrategy],
        cache: Optional[TimedCache[ResolutionResult]] = None,
        direct_xrpc_suffixes: Sequence[str] = DEFAULT_DIRECT_XRPC_SUFFIXES,
        metrics: Optional[MetricsClient] = None,
    ) -> None:
        self.strategies = list(strategies)
        self.cache: TimedCache[ResolutionResult] = cache or TimedCache()
        self.direct_xrpc_suffixes = tuple(direct_xrpc_suffixes)
        self.metrics = metrics or NoOpMetricsClient()

    def strategies_for(self, handle: str) -> List[HandleStrategy]:
        if any(handle.endswith(suffix) for suffix in self.direct_xrpc_suffixes):
            return [s for s in self.strategies if s.method == ResolutionMethod.xrpc]
        return list(self.strategies)

    async def resolve(self, handle: str) -> ResolutionResult:
        """Resolve a handle to a DID.

        Args:
            handle: AT Protocol handle to resolve

        Returns:
            ResolutionResult from the cache or from the first strategy that succeeded

        Raises:
            HandleResolutionError: If every eligible strategy failed
        """
        cached = self.cache.get(handle)
        if cached is not None:
            logger.debug("Handle resolved from cache: %s -> %s", handle, cached.did)
            self.metrics.increment("atpi.handle.cache_hit", 1)
            return cached

        failures: List[StrategyFailure] = []
        start_time = monotonic()

        for strategy in self.strategies_for(handle):
            attempt_start = monotonic()
            try:
                result = await strategy.resolve(handle)
            except AtpiError as e:
                logger.debug(
                    "%s resolution failed after %.3fs: %s",
                    strategy.method.value,
                    monotonic() - start_time,
                    e.reason,
                )
                failures.append(StrategyFailure(method=strategy.method.value, reason=e.reason))
                continue
            except Exception as e:
                logger.exception("Unexpected error in %s resolution", strategy.method.value)
                sentry_sdk.capture_exception(e)
                failures.append(
                    StrategyFailure(method=strategy.method.value, reason=str(e) or type(e).__name__)
                )
                continue

            logger.info(
                "Handle resolved via %s: %s -> %s (%.3fs)",
                result.method.value,
                handle,
                result.did,
                monotonic() - attempt_start,
            )
            self.metrics.increment(
                "atpi.handle.resolved", 1, tag_dict={"method": result.method.value}
            )
            self.cache.set(handle, result)
            return result

        self.metrics.increment("atpi.handle.failed", 1)
        raise HandleResolutionError(handle, failures)

    def clear_cache(self) -> None:
        self.cache.clear()


def create_handle_resolver(
    session: ClientSession,
    dns_timeout: float = 3.0,
    wellknown_timeout: float = 3.0,
    xrpc_timeout: float = 5.0,
    cache_ttl: float = DEFAULT_CACHE_TTL,
    cache_max_entries: int = DEFAULT_MAX_ENTRIES,
    direct_xrpc_suffixes: Sequence[str] = DEFAULT_DIRECT_XRPC_SUFFIXES,
    doh_providers: Optional[Sequence[DohProvider]] = None,
    pds_endpoints: PdsEndpointPool = DEFAULT_PDS_ENDPOINTS,
    metrics: Optional[MetricsClient] = None,
) -> HandleResolver:
    """Build a HandleResolver with the DNS, well-known and XRPC strategies in priority order."""
    return HandleResolver(
        strategies=[
            DnsHandleResolver(session, timeout=dns_timeout, providers=doh_providers),
            WellKnownHandleResolver(session, timeout=wellknown_timeout),
            XrpcHandleResolver(session, timeout=xrpc_timeout, pool=pds_endpoints),
        ],
        cache=TimedCache(ttl=cache_ttl, max_entries=cache_max_entries),
        direct_xrpc_suffixes=direct_xrpc_suffixes,
        metrics=metrics,
    )
