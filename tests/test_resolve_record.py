"""
Unit tests for record fetching in social.graze.atpi.resolve.record
"""

import aiohttp
import pytest
from aiohttp import test_utils, web

from conftest import FakeClientSession, FakeResponse
from social.graze.atpi.resolve.aturl import parse_at_url
from social.graze.atpi.resolve.errors import RecordFetchError
from social.graze.atpi.resolve.http import FetchResponse
from social.graze.atpi.resolve.record import (
    RecordFetcher,
    build_record_request,
    decode_json_body,
    status_reason,
)

DID = "did:plc:abc123"


class TestBuildRecordRequest:
    def test_get_record(self):
        method, params = build_record_request(parse_at_url("at://alice.test/app.bsky.feed.post/xyz"), DID)
        assert method == "com.atproto.repo.getRecord"
        assert params == {"repo": DID, "collection": "app.bsky.feed.post", "rkey": "xyz"}

    def test_list_records(self):
        method, params = build_record_request(parse_at_url("at://alice.test/app.bsky.feed.post"), DID)
        assert method == "com.atproto.repo.listRecords"
        assert params == {"repo": DID, "collection": "app.bsky.feed.post", "limit": 50}

    def test_describe_repo(self):
        method, params = build_record_request(parse_at_url("at://alice.test"), DID)
        assert method == "com.atproto.repo.describeRepo"
        assert params == {"repo": DID}

    def test_repo_is_the_resolved_did(self):
        _, params = build_record_request(parse_at_url("at://alice.test"), DID)
        assert params["repo"] != "alice.test"


class TestStatusReason:
    @pytest.mark.parametrize(
        "status,reason",
        [
            (400, "Invalid AT Protocol URL or record not found"),
            (404, "Record not found at this AT Protocol URL"),
            (401, "Access denied - this record may be private"),
            (403, "Access denied - this record may be private"),
            (500, "Server error - the AT Protocol service is unavailable"),
            (503, "Server error - the AT Protocol service is unavailable"),
            (418, "Failed to resolve URL (HTTP 418)"),
        ],
    )
    def test_mapping(self, status, reason):
        assert status_reason(status) == reason

    def test_custom_server_error(self):
        assert status_reason(502, "try later") == "try later"


class TestDecodeJsonBody:
    def test_error_status_carries_status(self):
        with pytest.raises(RecordFetchError) as exc_info:
            decode_json_body(FetchResponse(status=404, content=b"{}"))
        assert exc_info.value.status == 404

    def test_invalid_json(self):
        with pytest.raises(RecordFetchError) as exc_info:
            decode_json_body(FetchResponse(status=200, content=b"<html>"))
        assert exc_info.value.reason == "Invalid JSON in response"

    def test_literal_null(self):
        assert decode_json_body(FetchResponse(status=200, content=b"null")) is None


class TestRecordFetcher:
    @pytest.mark.asyncio
    async def test_fetch_passes_body_through(self):
        record = {
            "uri": "at://did:plc:abc123/app.bsky.feed.post/xyz",
            "cid": "bafyrei",
            "value": {"$type": "app.bsky.feed.post", "text": "hello", "unknownField": [1, 2]},
        }
        url = (
            "https://pds.test/xrpc/com.atproto.repo.getRecord"
            "?repo=did%3Aplc%3Aabc123&collection=app.bsky.feed.post&rkey=xyz"
        )
        session = FakeClientSession({url: FakeResponse.json(record)})
        fetcher = RecordFetcher(session)

        result = await fetcher.fetch("https://pds.test/", DID, parse_at_url("at://alice.test/app.bsky.feed.post/xyz"))

        assert result == record
        assert session.urls == [url]

    @pytest.mark.asyncio
    async def test_fetch_private_record(self):
        session = FakeClientSession({"https://pds.test/": FakeResponse(status=401)})
        fetcher = RecordFetcher(session)

        with pytest.raises(RecordFetchError) as exc_info:
            await fetcher.fetch("https://pds.test", DID, parse_at_url("at://alice.test"))

        assert exc_info.value.reason == "Access denied - this record may be private"
        assert exc_info.value.status == 401


class TestUndecodableBodies:
    """Bodies that are not valid UTF-8 fail as RecordFetchError, never as a raw decoding error."""

    def test_decode_json_body(self):
        with pytest.raises(RecordFetchError) as exc_info:
            decode_json_body(FetchResponse(status=200, content=b'{"a": "\xff"}'))
        assert exc_info.value.reason == "Invalid JSON in response"

    def test_body_text_replaces_bad_bytes(self):
        assert FetchResponse(status=200, content=b"did:plc:\xff").body == "did:plc:\ufffd"

    @pytest.mark.asyncio
    async def test_fetch_from_fake_session(self):
        session = FakeClientSession({"https://pds.test/": FakeResponse(body=b'{"a": "\xff"}')})
        fetcher = RecordFetcher(session)

        with pytest.raises(RecordFetchError) as exc_info:
            await fetcher.fetch("https://pds.test", DID, parse_at_url("at://alice.test"))
        assert exc_info.value.reason == "Invalid JSON in response"

    @pytest.mark.asyncio
    async def test_fetch_from_real_server(self):
        async def describe_repo(request: web.Request) -> web.Response:
            return web.Response(body=b'{"a": "\xff"}', content_type="application/json")

        app = web.Application()
        app.router.add_get("/xrpc/com.atproto.repo.describeRepo", describe_repo)

        async with test_utils.TestServer(app) as server:
            async with aiohttp.ClientSession() as session:
                fetcher = RecordFetcher(session)
                with pytest.raises(RecordFetchError) as exc_info:
                    await fetcher.fetch(
                        str(server.make_url("/")), DID, parse_at_url("at://alice.test")
                    )

        assert exc_info.value.reason == "Invalid JSON in response"
