import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from aiohttp import ClientError, ClientSession

from social.graze.atpi.resolve.errors import NoResponse, ResolutionTimeout

logger = logging.getLogger(__name__)


@dataclass
class FetchResponse:
    status: int
    content: bytes
    location: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status < 400

    @property
    def body(self) -> str:
        """The body as UTF-8 text, with undecodable bytes replaced."""
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON, returning None when it is not valid JSON or not valid UTF-8."""
        try:
            return json.loads(self.content)
        except ValueError:
            return None


async def fetch(
    session: ClientSession,
    url: str,
    *,
    timeout: float,
    headers: Optional[Dict[str, str]] = None,
    allow_redirects: bool = True,
    label: str = "Request",
) -> FetchResponse:
    """Issue a GET and read the whole body within a single time budget.

    The body is read as raw bytes so that callers decide how to decode it. DNS-over-HTTPS providers answer with
    ``application/dns-json`` which aiohttp refuses to decode as JSON. Bytes that are not valid UTF-8 are replaced
    in ``body`` and make ``json()`` return None.

    Args:
        session: HTTP client session
        url: Fully built request URL
        timeout: Seconds allowed for the request and body read together
        headers: Optional request headers
        allow_redirects: Whether aiohttp should follow 3xx responses
        label: Prefix used in the timeout reason, e.g. "DNS query"

    Returns:
        FetchResponse with status, body bytes and Location header

    Raises:
        ResolutionTimeout: If the budget is exceeded
        NoResponse: If the connection failed before a status was received
    """
    try:
        async with asyncio.timeout(timeout):
            async with session.get(
                url, headers=headers, allow_redirects=allow_redirects
            ) as resp:
                content = await resp.read()
                return FetchResponse(
                    status=resp.status,
                    content=content or b"",
                    location=resp.headers.get("Location"),
                )
    except TimeoutError:
        logger.debug("%s to %s timed out after %ss", label, url, timeout)
        raise ResolutionTimeout(f"{label} timeout")
    except ClientError as e:
        logger.debug("%s to %s failed: %s", label, url, e)
        raise NoResponse(f"{label} failed: {type(e).__name__}")
