import logging
from typing import Any, Dict, Tuple
from urllib.parse import urlencode

from aiohttp import ClientSession

from social.graze.atpi.resolve.aturl import AtUrl
from social.graze.atpi.resolve.errors import RecordFetchError
from social.graze.atpi.resolve.http import FetchResponse, fetch

logger = logging.getLogger(__name__)

LIST_RECORDS_LIMIT = 50
UPSTREAM_UNAVAILABLE = "Server error - the AT Protocol service is unavailable"


def status_reason(status: int, server_error: str = UPSTREAM_UNAVAILABLE) -> str:
    """Map an HTTP error status to the reason shown to users."""
    if status == 400:
        return "Invalid AT Protocol URL or record not found"
    elif status == 404:
        return "Record not found at this AT Protocol URL"
    elif status in (401, 403):
        return "Access denied - this record may be private"
    elif status >= 500:
        return server_error
    return f"Failed to resolve URL (HTTP {status})"


def decode_json_body(response: FetchResponse, server_error: str = UPSTREAM_UNAVAILABLE) -> Any:
    """Return the parsed JSON body of a successful response.

    Raises:
        RecordFetchError: On a non-2xx status or a body that is not JSON
    """
    if not response.ok:
        raise RecordFetchError(status_reason(response.status, server_error), response.status)

    data = response.json()
    if data is None and response.body.strip() != "null":
        raise RecordFetchError("Invalid JSON in response", response.status)
    return data


def build_record_request(at_url: AtUrl, did: str) -> Tuple[str, Dict[str, Any]]:
    """Choose the XRPC method and query parameters for the parts present in the URL."""
    if at_url.collection is not None and at_url.record_key is not None:
        return "com.atproto.repo.getRecord", {
            "repo": did,
            "collection": at_url.collection,
            "rkey": at_url.record_key,
        }
    elif at_url.collection is not None:
        return "com.atproto.repo.listRecords", {
            "repo": did,
            "collection": at_url.collection,
            "limit": LIST_RECORDS_LIMIT,
        }
    return "com.atproto.repo.describeRepo", {"repo": did}


class RecordFetcher:
    """Fetch the record, record listing or repository description an AT-URL addresses.

    The JSON body is returned as-is; record schemas are not interpreted.
    """

    def __init__(self, session: ClientSession, timeout: float = 10.0) -> None:
        self.session = session
        self.timeout = timeout

    def record_url(self, service_endpoint: str, did: str, at_url: AtUrl) -> str:
        method, params = build_record_request(at_url, did)
        return f"{service_endpoint.rstrip('/')}/xrpc/{method}?{urlencode(params)}"

    async def fetch(self, service_endpoint: str, did: str, at_url: AtUrl) -> Any:
        url = self.record_url(service_endpoint, did, at_url)
        logger.debug("Fetching %s from %s", at_url, url)
        response = await fetch(
            self.session,
            url,
            timeout=self.timeout,
            headers={"Accept": "application/json"},
            label="Record fetch",
        )
        return decode_json_body(response)
