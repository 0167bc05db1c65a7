import logging
from typing import Any, Dict, Optional

from aiohttp import ClientSession

from social.graze.atpi.resolve.aturl import did_method, is_supported_did
from social.graze.atpi.resolve.cache import TimedCache
from social.graze.atpi.resolve.errors import (
    DidFailure,
    DidResolutionError,
    UnsupportedDidMethod,
)
from social.graze.atpi.resolve.http import fetch

logger = logging.getLogger(__name__)

PDS_SERVICE_TYPE = "AtprotoPersonalDataServer"


def pds_predicate(value: Optional[Dict[str, Any]]) -> bool:
    """Check if service entry is an AT Protocol PDS.

    Args:
        value: Service dictionary from DID document

    Returns:
        True if service is AtprotoPersonalDataServer with endpoint
    """
    return (
        isinstance(value, dict)
        and value.get("type", None) == PDS_SERVICE_TYPE
        and isinstance(value.get("serviceEndpoint"), str)
        and len(value["serviceEndpoint"]) > 0
    )


def did_web_endpoint(did: str) -> str:
    """Derive the service endpoint of a did:web DID without any network call.

    ``did:web:example.com:user:alice`` becomes ``https://example.com/user/alice``.
    """
    return "https://" + did.removeprefix("did:web:").replace(":", "/")


class DidResolver:
    """Resolve DIDs to the service endpoint of their personal data server.

    did:plc DIDs are looked up in the PLC directory and the result is cached. did:web endpoints are derived from
    the DID itself and are not cached.
    """

    def __init__(
        self,
        session: ClientSession,
        plc_hostname: str = "plc.directory",
        timeout: float = 10.0,
        cache: Optional[TimedCache[str]] = None,
    ) -> None:
        self.session = session
        self.plc_hostname = plc_hostname
        self.timeout = timeout
        self.cache: TimedCache[str] = cache or TimedCache()

    async def resolve(self, did: str) -> str:
        """Resolve a DID to its service endpoint URL.

        Raises:
            UnsupportedDidMethod: For any method other than plc and web, or an empty method-specific identifier
            DidResolutionError: If the directory has no document or no PDS service for the DID
        """
        cached = self.cache.get(did)
        if cached is not None:
            return cached

        # did:plc: and did:web: with nothing after the method are rejected too
        if not is_supported_did(did):
            raise UnsupportedDidMethod(did)

        method = did_method(did)
        if method == "plc":
            endpoint = await self.resolve_did_method_plc(did)
            self.cache.set(did, endpoint)
            return endpoint
        elif method == "web":
            return did_web_endpoint(did)

        raise UnsupportedDidMethod(did)

    async def resolve_did_method_plc(self, did: str) -> str:
        response = await fetch(
            self.session,
            f"https://{self.plc_hostname}/{did}",
            timeout=self.timeout,
            headers={"Accept": "application/json"},
            label="DID lookup",
        )
        if not response.ok:
            raise DidResolutionError(
                did, DidFailure.not_found, f'DID "{did}" not found or inaccessible'
            )

        body = response.json()
        services = body.get("service") if isinstance(body, dict) else None
        if not isinstance(services, list):
            services = []
        pds = next(filter(pds_predicate, services), None)
        if pds is None:
            raise DidResolutionError(
                did, DidFailure.no_service, "No AT Protocol server found for this DID"
            )

        logger.debug("Resolved %s to %s", did, pds["serviceEndpoint"])
        return pds["serviceEndpoint"]

    def clear_cache(self) -> None:
        self.cache.clear()
