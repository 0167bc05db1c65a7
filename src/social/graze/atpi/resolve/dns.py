"""Resolve AT Protocol handles through DNS-over-HTTPS.

Queries the ``_atproto.{handle}`` TXT record against several public DoH providers at once and takes the first usable
answer. Using DoH instead of the system resolver keeps resolution working where only HTTPS egress is available.
"""

import asyncio
import logging
from typing import List, Optional, Sequence
from urllib.parse import urlencode

import sentry_sdk
from aiohttp import ClientSession
from pydantic import BaseModel

from social.graze.atpi.resolve.aturl import is_supported_did
from social.graze.atpi.resolve.errors import (
    AtpiError,
    NoResponse,
    ResolutionTimeout,
    StrategyError,
)
from social.graze.atpi.resolve.http import fetch
from social.graze.atpi.resolve.strategy import ResolutionMethod, ResolutionResult

logger = logging.getLogger(__name__)

ATPROTO_PREFIX = "_atproto."
DID_PREFIX = "did="
TXT_RECORD_TYPE = 16
DNS_STATUS_NOERROR = 0
DNS_STATUS_NXDOMAIN = 3


class DohProvider(BaseModel):
    name: str
    url: str
    accept: str = "application/dns-json"


DEFAULT_DOH_PROVIDERS = (
    DohProvider(name="Google", url="https://dns.google/resolve"),
    DohProvider(name="Cloudflare", url="https://cloudflare-dns.com/dns-query"),
)


def parse_doh_answer(data: object, handle: str) -> str:
    """Extract the DID from a DoH JSON answer.

    Args:
        data: Decoded JSON body with ``Status`` and ``Answer`` fields
        handle: Handle being resolved, used in failure reasons

    Returns:
        The DID from the first TXT answer carrying a supported ``did=`` value

    Raises:
        StrategyError: If the status is not NOERROR or no answer holds a supported DID
    """
    if not isinstance(data, dict):
        raise StrategyError(f"Invalid DNS response for handle: {handle}")

    status = data.get("Status")
    if status != DNS_STATUS_NOERROR:
        if status == DNS_STATUS_NXDOMAIN:
            raise StrategyError(f"No DNS record found for handle: {handle}")
        raise StrategyError(f"DNS error: {status}")

    answers = data.get("Answer") or []
    if not isinstance(answers, list):
        raise StrategyError(f"Invalid DNS response for handle: {handle}")

    for answer in answers:
        if not isinstance(answer, dict) or answer.get("type") != TXT_RECORD_TYPE:
            continue
        txt_data = str(answer.get("data", ""))
        if len(txt_data) >= 2 and txt_data.startswith('"') and txt_data.endswith('"'):
            txt_data = txt_data[1:-1]
        if not txt_data.startswith(DID_PREFIX):
            continue
        did = txt_data.removeprefix(DID_PREFIX)
        if is_supported_did(did):
            return did

    raise StrategyError(f"No valid DID found in DNS records for handle: {handle}")


class DnsHandleResolver:
    method = ResolutionMethod.dns

    def __init__(
        self,
        session: ClientSession,
        timeout: float = 3.0,
        providers: Optional[Sequence[DohProvider]] = None,
    ) -> None:
        self.session = session
        self.timeout = timeout
        self.providers = list(providers or DEFAULT_DOH_PROVIDERS)

    async def resolve(self, handle: str) -> ResolutionResult:
        """Race every provider and return the first valid answer.

        Losing queries are cancelled and awaited before this returns, so no request outlives the call.
        """
        tasks = [
            asyncio.create_task(self.query_provider(provider, handle))
            for provider in self.providers
        ]
        reasons: List[str] = []
        try:
            for next_done in asyncio.as_completed(tasks):
                try:
                    return await next_done
                except AtpiError as e:
                    reasons.append(e.reason)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        details = "; ".join(reasons) or "no providers configured"
        raise StrategyError(f"DNS resolution failed for handle: {handle} ({details})")

    async def query_provider(self, provider: DohProvider, handle: str) -> ResolutionResult:
        """Query one provider. Every failure, expected or not, is a StrategyError for that provider only."""
        try:
            return await self.ask_provider(provider, handle)
        except AtpiError:
            raise
        except Exception as e:
            logger.exception("Unexpected error from DNS provider %s for %s", provider.name, handle)
            sentry_sdk.capture_exception(e)
            raise StrategyError(f"{provider.name}: Unexpected error: {type(e).__name__}")

    async def ask_provider(self, provider: DohProvider, handle: str) -> ResolutionResult:
        query = urlencode({"name": f"{ATPROTO_PREFIX}{handle}", "type": "TXT"})
        try:
            response = await fetch(
                self.session,
                f"{provider.url}?{query}",
                timeout=self.timeout,
                headers={"Accept": provider.accept},
                label="DNS query",
            )
        except ResolutionTimeout as e:
            raise ResolutionTimeout(f"{provider.name}: {e.reason}")
        except NoResponse as e:
            raise NoResponse(f"{provider.name}: {e.reason}")

        if not response.ok:
            raise StrategyError(f"{provider.name}: DNS query failed: {response.status}")

        try:
            did = parse_doh_answer(response.json(), handle)
        except StrategyError as e:
            raise StrategyError(f"{provider.name}: {e.reason}")

        logger.debug("DNS provider %s resolved %s to %s", provider.name, handle, did)
        return ResolutionResult(did=did, method=self.method, provider=provider.name)
