"""Resolution façade.

``AtpiResolver.resolve`` is the single entry point used by the CLI and the web service. It either walks the three
local steps itself (handle to DID, DID to service endpoint, record fetch) or hands the whole URL to a remote ATPI
aggregation service, depending on the resolution mode.
"""

import asyncio
import logging
from enum import Enum
from time import monotonic
from typing import Any, Optional, Sequence

from aiohttp import ClientSession

from social.graze.atpi.metrics import MetricsClient, NoOpMetricsClient
from social.graze.atpi.resolve.aturl import (
    AT_URL_PREFIX,
    AtUrl,
    IdentifierType,
    parse_at_url,
)
from social.graze.atpi.resolve.cache import (
    DEFAULT_CACHE_TTL,
    DEFAULT_MAX_ENTRIES,
    TimedCache,
)
from social.graze.atpi.resolve.did import DidResolver
from social.graze.atpi.resolve.dns import DohProvider
from social.graze.atpi.resolve.endpoints import DEFAULT_PDS_ENDPOINTS, PdsEndpointPool
from social.graze.atpi.resolve.errors import ResolutionTimeout
from social.graze.atpi.resolve.handle import (
    DEFAULT_DIRECT_XRPC_SUFFIXES,
    HandleResolver,
    create_handle_resolver,
)
from social.graze.atpi.resolve.http import fetch
from social.graze.atpi.resolve.record import RecordFetcher, decode_json_body

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_BASE_URL = "https://atpi.at"
REMOTE_SERVER_ERROR = "ATPI service error - please try again later"


class ResolutionMode(str, Enum):
    local = "local"
    remote = "remote"
    auto = "auto"

    @classmethod
    def parse(cls, value: Optional[str], default: "ResolutionMode") -> "ResolutionMode":
        """Return the mode named by value, or default when value is absent or unrecognised."""
        try:
            return cls(value)
        except ValueError:
            return default


class AtpiResolver:
    """
    Resolve AT-URLs to the JSON documents they address.

    Modes:
    - local: resolve everything from this process; never contacts the remote service.
    - remote: delegate the whole URL to the remote aggregation service.
    - auto: try local first and fall back to remote on any local failure. When both fail, the remote error is
      the one raised.

    The local chain as a whole is bounded by ``resolve_timeout`` on top of the per-request timeouts of each step,
    so a resolution that exercises every fallback still finishes in bounded time.
    """

    def __init__(
        self,
        session: ClientSession,
        handle_resolver: HandleResolver,
        did_resolver: DidResolver,
        record_fetcher: RecordFetcher,
        remote_base_url: str = DEFAULT_REMOTE_BASE_URL,
        request_timeout: float = 10.0,
        resolve_timeout: float = 30.0,
        metrics: Optional[MetricsClient] = None,
    ) -> None:
        self.session = session
        self.handle_resolver = handle_resolver
        self.did_resolver = did_resolver
        self.record_fetcher = record_fetcher
        self.remote_base_url = remote_base_url.rstrip("/")
        self.request_timeout = request_timeout
        self.resolve_timeout = resolve_timeout
        self.metrics = metrics or NoOpMetricsClient()

    async def resolve(self, url: str, mode: ResolutionMode = ResolutionMode.local) -> Any:
        """Resolve an AT-URL.

        Args:
            url: AT-URL to resolve
            mode: Resolution mode

        Returns:
            The JSON body returned by the addressed server, unmodified

        Raises:
            InvalidUrlFormat: Before any network activity, if the URL is malformed
            AtpiError: The final failure of the selected mode
        """
        at_url = parse_at_url(url)

        start_time = monotonic()
        outcome = "success"
        try:
            if mode == ResolutionMode.remote:
                return await self.resolve_remote(at_url)
            elif mode == ResolutionMode.local:
                return await self.resolve_local(at_url)

            try:
                return await self.resolve_local(at_url)
            except Exception as e:
                logger.info("Local resolution of %s failed, trying remote: %s", url, e)
                self.metrics.increment("atpi.resolve.fallback", 1)
                return await self.resolve_remote(at_url)
        except Exception as e:
            outcome = type(e).__name__
            raise
        finally:
            self.metrics.timer(
                "atpi.resolve.time", monotonic() - start_time, tag_dict={"mode": mode.value}
            )
            self.metrics.increment(
                "atpi.resolve.count", 1, tag_dict={"mode": mode.value, "outcome": outcome}
            )

    async def resolve_local(self, at_url: AtUrl) -> Any:
        try:
            async with asyncio.timeout(self.resolve_timeout):
                did = await self.resolve_identifier(at_url)
                service_endpoint = await self.did_resolver.resolve(did)
                return await self.record_fetcher.fetch(service_endpoint, did, at_url)
        except TimeoutError:
            raise ResolutionTimeout(f"Resolution timed out after {self.resolve_timeout}s")

    async def resolve_identifier(self, at_url: AtUrl) -> str:
        identifier = at_url.parsed_identifier
        if identifier.identifier_type == IdentifierType.handle:
            result = await self.handle_resolver.resolve(identifier.value)
            return result.did
        return identifier.value

    def remote_url(self, at_url: AtUrl) -> str:
        return f"{self.remote_base_url}/{str(at_url).removeprefix(AT_URL_PREFIX)}"

    async def resolve_remote(self, at_url: AtUrl) -> Any:
        response = await fetch(
            self.session,
            self.remote_url(at_url),
            timeout=self.request_timeout,
            headers={"Accept": "application/json"},
            label="Remote resolution",
        )
        return decode_json_body(response, REMOTE_SERVER_ERROR)

    def clear_caches(self) -> None:
        self.handle_resolver.clear_cache()
        self.did_resolver.clear_cache()
        logger.info("Resolution caches cleared")


def create_resolver(
    session: ClientSession,
    plc_hostname: str = "plc.directory",
    remote_base_url: str = DEFAULT_REMOTE_BASE_URL,
    dns_timeout: float = 3.0,
    wellknown_timeout: float = 3.0,
    xrpc_timeout: float = 5.0,
    request_timeout: float = 10.0,
    resolve_timeout: float = 30.0,
    cache_ttl: float = DEFAULT_CACHE_TTL,
    cache_max_entries: int = DEFAULT_MAX_ENTRIES,
    direct_xrpc_suffixes: Sequence[str] = DEFAULT_DIRECT_XRPC_SUFFIXES,
    doh_providers: Optional[Sequence[DohProvider]] = None,
    pds_endpoints: PdsEndpointPool = DEFAULT_PDS_ENDPOINTS,
    metrics: Optional[MetricsClient] = None,
) -> AtpiResolver:
    """Wire an AtpiResolver and its components from plain configuration values."""
    handle_resolver = create_handle_resolver(
        session,
        dns_timeout=dns_timeout,
        wellknown_timeout=wellknown_timeout,
        xrpc_timeout=xrpc_timeout,
        cache_ttl=cache_ttl,
        cache_max_entries=cache_max_entries,
        direct_xrpc_suffixes=direct_xrpc_suffixes,
        doh_providers=doh_providers,
        pds_endpoints=pds_endpoints,
        metrics=metrics,
    )
    did_resolver = DidResolver(
        session,
        plc_hostname=plc_hostname,
        timeout=request_timeout,
        cache=TimedCache(ttl=cache_ttl, max_entries=cache_max_entries),
    )
    return AtpiResolver(
        session,
        handle_resolver=handle_resolver,
        did_resolver=did_resolver,
        record_fetcher=RecordFetcher(session, timeout=request_timeout),
        remote_base_url=remote_base_url,
        request_timeout=request_timeout,
        resolve_timeout=resolve_timeout,
        metrics=metrics,
    )
