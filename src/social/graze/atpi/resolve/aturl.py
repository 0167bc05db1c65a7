"""AT-URL parsing and identifier classification.

An AT-URL addresses a repository, a collection within it, or a single record:
``at://<identifier>[/<collection>[/<record-key>]]``. The identifier is either a
DID or a handle that still needs resolving.
"""

import re
from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

from social.graze.atpi.resolve.errors import InvalidUrlFormat

AT_URL_PREFIX = "at://"

SUPPORTED_DID_PREFIXES = ("did:plc:", "did:web:")

AT_URL_PATTERN = re.compile(
    r"(?P<identifier>[A-Za-z0-9._:%-]+)"
    r"(?:/(?P<collection>[A-Za-z0-9._-]+)"
    r"(?:/(?P<record_key>[A-Za-z0-9._~:@!$&'()*+,;=-]+))?)?"
    r"/?"
)


class IdentifierType(IntEnum):
    """Whether an AT-URL identifier is already a DID or a handle."""

    did = 1
    handle = 2


class Identifier(BaseModel):
    model_config = ConfigDict(frozen=True)

    identifier_type: IdentifierType
    value: str


class AtUrl(BaseModel):
    """Parsed AT-URL.

    A record key is only meaningful inside a collection, so ``record_key`` set
    without ``collection`` is rejected.
    """

    model_config = ConfigDict(frozen=True)

    identifier: str
    collection: Optional[str] = None
    record_key: Optional[str] = None

    @model_validator(mode="after")
    def check_record_key_has_collection(self) -> "AtUrl":
        if self.record_key is not None and self.collection is None:
            raise ValueError("record_key requires collection")
        return self

    @property
    def parsed_identifier(self) -> Identifier:
        return classify_identifier(self.identifier)

    def __str__(self) -> str:
        parts = [self.identifier, self.collection, self.record_key]
        return AT_URL_PREFIX + "/".join(part for part in parts if part is not None)


def classify_identifier(identifier: str) -> Identifier:
    if identifier.startswith("did:"):
        return Identifier(identifier_type=IdentifierType.did, value=identifier)
    return Identifier(identifier_type=IdentifierType.handle, value=identifier)


def did_method(value: str) -> Optional[str]:
    """Return the method name of a DID ("plc" for did:plc:abc123), or None if value is not a DID."""
    parts = value.split(":", 2)
    if len(parts) < 3 or parts[0] != "did" or not parts[1]:
        return None
    return parts[1]


def is_supported_did(value: Optional[str]) -> bool:
    """Check that value is a did:plc or did:web DID with a non-empty identifier."""
    if not value:
        return False
    return any(
        value.startswith(prefix) and len(value) > len(prefix)
        for prefix in SUPPORTED_DID_PREFIXES
    )


def parse_at_url(url: str) -> AtUrl:
    """Parse an AT-URL string.

    Args:
        url: String of the form at://identifier[/collection[/record-key]]

    Returns:
        AtUrl with the optional parts set to None when absent

    Raises:
        InvalidUrlFormat: If the prefix is missing or the path does not match
    """
    if not url.startswith(AT_URL_PREFIX):
        raise InvalidUrlFormat("URL must start with at://")

    match = AT_URL_PATTERN.fullmatch(url[len(AT_URL_PREFIX):])
    if match is None:
        raise InvalidUrlFormat("Invalid AT URL format")

    return AtUrl(
        identifier=match.group("identifier"),
        collection=match.group("collection"),
        record_key=match.group("record_key"),
    )
