"""
Unit tests for DID resolution in social.graze.atpi.resolve.did
"""

import pytest

from conftest import FakeClientSession, FakeResponse, hang
from social.graze.atpi.resolve.did import DidResolver, did_web_endpoint, pds_predicate
from social.graze.atpi.resolve.errors import (
    DidFailure,
    DidResolutionError,
    ResolutionTimeout,
    UnsupportedDidMethod,
)

PLC_URL = "https://plc.directory/did:plc:abc123"

DID_DOCUMENT = {
    "id": "did:plc:abc123",
    "alsoKnownAs": ["at://alice.test"],
    "service": [
        {"id": "#atproto_labeler", "type": "AtprotoLabeler", "serviceEndpoint": "https://labeler.test"},
        {"id": "#atproto_pds", "type": "AtprotoPersonalDataServer", "serviceEndpoint": "https://pds.test"},
    ],
}


class TestPdsPredicate:
    def test_valid(self):
        assert pds_predicate(DID_DOCUMENT["service"][1]) is True

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "AtprotoPersonalDataServer",
            {"type": "AtprotoLabeler", "serviceEndpoint": "https://labeler.test"},
            {"type": "AtprotoPersonalDataServer"},
            {"type": "AtprotoPersonalDataServer", "serviceEndpoint": ""},
            {"type": "AtprotoPersonalDataServer", "serviceEndpoint": 42},
        ],
    )
    def test_invalid(self, value):
        assert pds_predicate(value) is False


class TestDidWebEndpoint:
    def test_host(self):
        assert did_web_endpoint("did:web:example.com") == "https://example.com"

    def test_path(self):
        assert did_web_endpoint("did:web:example.com:user:alice") == "https://example.com/user/alice"


class TestDidResolver:
    @pytest.mark.asyncio
    async def test_plc(self):
        session = FakeClientSession({PLC_URL: FakeResponse.json(DID_DOCUMENT)})
        resolver = DidResolver(session)

        assert await resolver.resolve("did:plc:abc123") == "https://pds.test"
        assert session.urls == [PLC_URL]

    @pytest.mark.asyncio
    async def test_plc_hostname_configurable(self):
        session = FakeClientSession(
            {"https://plc.example/did:plc:abc123": FakeResponse.json(DID_DOCUMENT)}
        )
        resolver = DidResolver(session, plc_hostname="plc.example")

        assert await resolver.resolve("did:plc:abc123") == "https://pds.test"

    @pytest.mark.asyncio
    async def test_plc_is_cached(self):
        session = FakeClientSession({PLC_URL: FakeResponse.json(DID_DOCUMENT)})
        resolver = DidResolver(session)

        await resolver.resolve("did:plc:abc123")
        await resolver.resolve("did:plc:abc123")
        assert len(session.calls) == 1

        resolver.clear_cache()
        await resolver.resolve("did:plc:abc123")
        assert len(session.calls) == 2

    @pytest.mark.asyncio
    async def test_plc_not_found(self):
        session = FakeClientSession({PLC_URL: FakeResponse(status=404)})
        resolver = DidResolver(session)

        with pytest.raises(DidResolutionError) as exc_info:
            await resolver.resolve("did:plc:abc123")

        assert exc_info.value.failure == DidFailure.not_found
        assert exc_info.value.reason == 'DID "did:plc:abc123" not found or inaccessible'

    @pytest.mark.asyncio
    async def test_plc_without_pds_service(self):
        document = {"id": "did:plc:abc123", "service": [DID_DOCUMENT["service"][0]]}
        session = FakeClientSession({PLC_URL: FakeResponse.json(document)})
        resolver = DidResolver(session)

        with pytest.raises(DidResolutionError) as exc_info:
            await resolver.resolve("did:plc:abc123")

        assert exc_info.value.failure == DidFailure.no_service
        assert exc_info.value.reason == "No AT Protocol server found for this DID"

    @pytest.mark.asyncio
    async def test_plc_without_service_list(self):
        session = FakeClientSession({PLC_URL: FakeResponse.json({"id": "did:plc:abc123"})})
        resolver = DidResolver(session)

        with pytest.raises(DidResolutionError) as exc_info:
            await resolver.resolve("did:plc:abc123")
        assert exc_info.value.failure == DidFailure.no_service

    @pytest.mark.asyncio
    async def test_plc_timeout(self):
        session = FakeClientSession({PLC_URL: hang()})
        resolver = DidResolver(session, timeout=0.05)

        with pytest.raises(ResolutionTimeout):
            await resolver.resolve("did:plc:abc123")

    @pytest.mark.asyncio
    async def test_web_makes_no_network_calls(self):
        session = FakeClientSession()
        resolver = DidResolver(session)

        assert await resolver.resolve("did:web:example.com") == "https://example.com"
        assert session.calls == []
        assert "did:web:example.com" not in resolver.cache

    @pytest.mark.asyncio
    async def test_unsupported_method(self):
        session = FakeClientSession()
        resolver = DidResolver(session)

        with pytest.raises(UnsupportedDidMethod) as exc_info:
            await resolver.resolve("did:key:z6Mk")

        assert exc_info.value.failure == DidFailure.unsupported_method
        assert isinstance(exc_info.value, DidResolutionError)
        assert session.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("did", ["did:plc:", "did:web:"])
    async def test_empty_identifier(self, did):
        session = FakeClientSession()
        resolver = DidResolver(session)

        with pytest.raises(UnsupportedDidMethod) as exc_info:
            await resolver.resolve(did)

        assert exc_info.value.failure == DidFailure.unsupported_method
        assert session.calls == []
