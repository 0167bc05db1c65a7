import logging

from aiohttp import ClientSession

from social.graze.atpi.resolve.aturl import is_supported_did
from social.graze.atpi.resolve.errors import StrategyError
from social.graze.atpi.resolve.http import fetch
from social.graze.atpi.resolve.strategy import ResolutionMethod, ResolutionResult

logger = logging.getLogger(__name__)


def parse_wellknown_body(text: str, handle: str) -> str:
    """Return the DID on the first line of a well-known response body."""
    lines = text.strip().splitlines()
    did = lines[0].strip() if lines else ""

    if not did:
        raise StrategyError(f"Empty well-known response for handle: {handle}")

    if not is_supported_did(did):
        raise StrategyError(f"Invalid DID in well-known response: {did}")

    return did


class WellKnownHandleResolver:
    """Resolve AT Protocol handle to DID using HTTPS well-known endpoint.

    Fetches the DID from https://{handle}/.well-known/atproto-did. Redirects are never followed: the answer has to
    come from the handle's own host, so any 3xx response fails the lookup.
    """

    method = ResolutionMethod.wellknown

    def __init__(self, session: ClientSession, timeout: float = 3.0) -> None:
        self.session = session
        self.timeout = timeout

    async def resolve(self, handle: str) -> ResolutionResult:
        response = await fetch(
            self.session,
            f"https://{handle}/.well-known/atproto-did",
            timeout=self.timeout,
            headers={"Accept": "text/plain"},
            allow_redirects=False,
            label="Well-known fetch",
        )

        if response.is_redirect:
            logger.debug(
                "Refusing well-known redirect for %s to %s", handle, response.location
            )
            raise StrategyError("Redirects not allowed for well-known resolution")

        if not response.ok:
            if response.status == 404:
                raise StrategyError(f"No well-known record found for handle: {handle}")
            raise StrategyError(f"HTTP {response.status}: Failed to fetch well-known")

        did = parse_wellknown_body(response.body, handle)
        return ResolutionResult(did=did, method=self.method)
