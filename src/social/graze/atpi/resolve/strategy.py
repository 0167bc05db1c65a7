from enum import Enum
from typing import Optional, Protocol

from pydantic import BaseModel


class ResolutionMethod(str, Enum):
    """How a handle was resolved to a DID, in the order the methods are tried."""

    dns = "dns"
    wellknown = "wellknown"
    xrpc = "xrpc"


class ResolutionResult(BaseModel):
    """Successful handle to DID resolution.

    ``endpoint`` is the directory host that answered an XRPC lookup and ``provider`` the DNS-over-HTTPS provider
    that answered a DNS lookup.
    """

    did: str
    method: ResolutionMethod
    endpoint: Optional[str] = None
    provider: Optional[str] = None


class HandleStrategy(Protocol):
    method: ResolutionMethod

    async def resolve(self, handle: str) -> ResolutionResult: ...
