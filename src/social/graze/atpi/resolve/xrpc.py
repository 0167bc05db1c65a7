import logging
import random
from typing import List, Optional
from urllib.parse import urlencode

from aiohttp import ClientSession

from social.graze.atpi.resolve.aturl import is_supported_did
from social.graze.atpi.resolve.endpoints import DEFAULT_PDS_ENDPOINTS, PdsEndpointPool
from social.graze.atpi.resolve.errors import (
    AtpiError,
    InvalidHandleError,
    StrategyError,
)
from social.graze.atpi.resolve.http import fetch
from social.graze.atpi.resolve.strategy import ResolutionMethod, ResolutionResult

logger = logging.getLogger(__name__)

RESOLVE_HANDLE_PATH = "/xrpc/com.atproto.identity.resolveHandle"
MAX_FALLBACK_ATTEMPTS = 5


class XrpcHandleResolver:
    """
    Resolve handles with com.atproto.identity.resolveHandle.

    The pool's primary endpoint is asked first. If it fails, up to ``max_fallback_attempts`` regional hosts are drawn
    at random from the whole pool, without replacement, and asked one after another. A 400 ``InvalidHandle`` answer
    stops the search immediately because no other host will accept the handle either.
    """

    method = ResolutionMethod.xrpc

    def __init__(
        self,
        session: ClientSession,
        timeout: float = 5.0,
        pool: PdsEndpointPool = DEFAULT_PDS_ENDPOINTS,
        max_fallback_attempts: int = MAX_FALLBACK_ATTEMPTS,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.session = session
        self.timeout = timeout
        self.pool = pool
        self.max_fallback_attempts = max_fallback_attempts
        self.rng = rng or random.Random()

    async def resolve(self, handle: str) -> ResolutionResult:
        try:
            return await self.query_endpoint(self.pool.primary, handle)
        except InvalidHandleError:
            raise
        except AtpiError as e:
            logger.debug("Primary endpoint %s failed: %s", self.pool.primary, e.reason)

        hosts = self.pool.draw(self.max_fallback_attempts, self.rng)
        if len(hosts) == 0:
            raise StrategyError("No PDS servers available")

        reasons: List[str] = []
        for host in hosts:
            try:
                return await self.query_endpoint(f"https://{host}", handle)
            except InvalidHandleError:
                raise
            except AtpiError as e:
                logger.debug("Server %s failed: %s", host, e.reason)
                reasons.append(e.reason)

        raise StrategyError(
            f"XRPC resolution failed for handle: {handle} "
            f"(tried {len(hosts) + 1} endpoints, last error: {reasons[-1]})"
        )

    async def query_endpoint(self, base_url: str, handle: str) -> ResolutionResult:
        query = urlencode({"handle": handle})
        response = await fetch(
            self.session,
            f"{base_url}{RESOLVE_HANDLE_PATH}?{query}",
            timeout=self.timeout,
            headers={"Accept": "application/json"},
            label="XRPC query",
        )

        if not response.ok:
            if response.status == 400:
                error = response.json()
                if isinstance(error, dict) and error.get("error") == "InvalidHandle":
                    raise InvalidHandleError(f"Invalid handle format: {handle}")
                raise StrategyError(f"Handle not found: {handle}")
            raise StrategyError(f"HTTP {response.status}: XRPC query failed")

        data = response.json()
        if not isinstance(data, dict):
            raise StrategyError(f"Invalid XRPC response for handle: {handle}")

        did = data.get("did")
        if not isinstance(did, str) or not did:
            raise StrategyError(f"No DID in XRPC response for handle: {handle}")
        if not is_supported_did(did):
            raise StrategyError(f"Invalid DID in XRPC response: {did}")

        return ResolutionResult(did=did, method=self.method, endpoint=base_url)
