"""Unit tests for kadisync.sync.kadi, against httpx.MockTransport."""

import json

import httpx
import pytest

from kadisync.errors import RemoteError
from kadisync.settings import Settings
from kadisync.sync.kadi import KadiClient, Record, User, build_client

HOST = "https://kadi.example.org"


def make_client(handler) -> KadiClient:
    return KadiClient(HOST, "secret-token", transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class TestRecords:
    @pytest.mark.asyncio
    async def test_create_record(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": 5, "identifier": "run-1", "title": "Run", "state": "active"})

        async with make_client(handler) as client:
            record = await client.create_record({"title": "Run", "identifier": "run-1"})

        assert seen["method"] == "POST"
        assert seen["url"] == f"{HOST}/api/records"
        assert seen["auth"] == "Bearer secret-token"
        assert seen["body"] == {"title": "Run", "identifier": "run-1"}
        assert record.id == 5
        assert record.identifier == "run-1"
        assert record.state == "active"

    @pytest.mark.asyncio
    async def test_update_record(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "PATCH"
            assert request.url.path == "/api/records/7"
            return httpx.Response(
                200,
                json={"id": 7, "identifier": "run-7", "last_modified": "2024-05-01T10:00:00.000000+00:00"},
            )

        async with make_client(handler) as client:
            record = await client.update_record(7, {"title": "Run"})
        assert record.last_modified == "2024-05-01T10:00:00.000000+00:00"

    @pytest.mark.asyncio
    async def test_get_record(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            return httpx.Response(200, json={"id": 3, "identifier": "x"})

        async with make_client(handler) as client:
            assert (await client.get_record(3)).identifier == "x"

    def test_record_url(self):
        client = KadiClient(f"{HOST}/", "t")
        assert client.record_url(12) == f"{HOST}/records/12"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    @pytest.mark.asyncio
    async def test_json_error_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"code": 400, "description": "Invalid identifier."})

        async with make_client(handler) as client:
            with pytest.raises(RemoteError) as info:
                await client.create_record({"title": "x"})

        assert info.value.status_code == 400
        assert info.value.response == {"code": 400, "description": "Invalid identifier."}
        assert str(info.value) == "Invalid identifier. (HTTP 400)"

    @pytest.mark.asyncio
    async def test_text_error_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        async with make_client(handler) as client:
            with pytest.raises(RemoteError) as info:
                await client.update_record(5, {"title": "x"})

        assert info.value.status_code == 502
        assert info.value.response == "Bad Gateway"
        assert str(info.value) == "PATCH /records/5 failed (HTTP 502)"

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("name resolution failed", request=request)

        async with make_client(handler) as client:
            with pytest.raises(RemoteError, match="Network error") as info:
                await client.get_current_user()
        assert info.value.status_code is None


# ---------------------------------------------------------------------------
# Users and factory
# ---------------------------------------------------------------------------


class TestUsersAndFactory:
    @pytest.mark.asyncio
    async def test_current_user(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/users/me"
            return httpx.Response(200, json={"id": 2, "displayname": "Ada", "identity": {"username": "ada"}})

        async with make_client(handler) as client:
            user = await client.get_current_user()
        assert user == User(id=2, username="ada", displayname="Ada")

    def test_build_client_requires_configuration(self):
        assert build_client(Settings()) is None

    def test_build_client(self):
        client = build_client(Settings(host=HOST, pat="tok", timeout=5000))
        assert isinstance(client, KadiClient)
        assert client.host == HOST

    def test_record_from_json_nested_fields(self):
        record = Record.from_json(
            {
                "id": "4",
                "identifier": "x",
                "license": {"name": "MIT", "title": "MIT License"},
                "tags": [{"name": "lab"}, "run"],
            }
        )
        assert record.id == 4
        assert record.license == "MIT"
        assert record.tags == ["lab", "run"]
