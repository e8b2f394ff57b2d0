"""Tests for the HTTP note store client."""

import json

import httpx
import pytest

from notes_bot.models import ErrorKind, Failure, Note, Success
from notes_bot.note_store import NoteStoreClient

BASE_URL = "https://notes.example.test/v1"


def make_client(handler):
    transport = httpx.MockTransport(handler)
    return NoteStoreClient(
        api_key="secret",
        base_url=BASE_URL + "/",
        client=httpx.AsyncClient(transport=transport),
    )


class TestConstruction:
    def test_missing_api_key_is_a_configuration_error(self, monkeypatch):
        monkeypatch.setattr("notes_bot.note_store.NOTES_API_KEY", None)

        with pytest.raises(RuntimeError, match="NOTES_API_KEY"):
            NoteStoreClient(api_key=None)

    def test_base_url_is_normalized(self):
        client = NoteStoreClient(api_key="k", base_url=BASE_URL + "/")
        assert client.base_url == BASE_URL


class TestRequests:
    @pytest.mark.asyncio
    async def test_list_sends_owner_and_auth(self):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(
                200,
                json={
                    "notes": [
                        {"id": "1", "owner_id": "u1", "text": "A"},
                        {"$id": "2", "user_id": "u1", "text": "B"},
                    ]
                },
            )

        client = make_client(handler)
        result = await client.list_notes("u1")

        assert result == Success(
            [Note(id="1", owner_id="u1", text="A"), Note(id="2", owner_id="u1", text="B")]
        )
        assert seen["url"].path == "/v1/notes"
        assert seen["url"].params["owner_id"] == "u1"
        assert seen["auth"] == "Bearer secret"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_list_accepts_bare_array(self):
        client = make_client(lambda request: httpx.Response(200, json=[]))

        assert await client.list_notes("u1") == Success([])

    @pytest.mark.asyncio
    async def test_create_posts_owner_and_text(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "n1", "owner_id": "u1", "text": "hello"})

        client = make_client(handler)
        result = await client.create_note("u1", "hello")

        assert result == Success(Note(id="n1", owner_id="u1", text="hello"))
        assert seen == {"method": "POST", "body": {"owner_id": "u1", "text": "hello"}}

    @pytest.mark.asyncio
    async def test_update_patches_note(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "n1", "owner_id": "u1", "text": "new"})

        client = make_client(handler)
        result = await client.update_note("n1", "new")

        assert result.ok
        assert result.value.text == "new"
        assert seen == {"method": "PATCH", "path": "/v1/notes/n1", "body": {"text": "new"}}

    @pytest.mark.asyncio
    async def test_delete_returns_unit(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            return httpx.Response(204)

        client = make_client(handler)

        assert await client.delete_note("n1") == Success(None)
        assert seen == {"method": "DELETE", "path": "/v1/notes/n1"}


class TestFailures:
    @pytest.mark.asyncio
    async def test_not_found(self):
        client = make_client(lambda request: httpx.Response(404, json={"message": "Note not found"}))

        result = await client.delete_note("missing")

        assert result == Failure("Note not found", ErrorKind.NOT_FOUND)

    @pytest.mark.asyncio
    async def test_server_error_uses_error_field(self):
        client = make_client(lambda request: httpx.Response(500, json={"error": "database offline"}))

        result = await client.list_notes("u1")

        assert result == Failure("database offline", ErrorKind.REMOTE)

    @pytest.mark.asyncio
    async def test_server_error_without_body(self):
        client = make_client(lambda request: httpx.Response(502, text="<html>bad gateway</html>"))

        result = await client.create_note("u1", "x")

        assert result == Failure("HTTP 502", ErrorKind.REMOTE)

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(handler)
        result = await client.update_note("n1", "x")

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        result = await client.list_notes("u1")

        assert result == Failure("connection refused", ErrorKind.REMOTE)

    @pytest.mark.asyncio
    async def test_malformed_record(self):
        client = make_client(lambda request: httpx.Response(200, json={"id": "n1"}))

        result = await client.create_note("u1", "x")

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.REMOTE
        assert "Malformed" in result.message

    @pytest.mark.asyncio
    async def test_malformed_list(self):
        client = make_client(lambda request: httpx.Response(200, json={"notes": "nope"}))

        result = await client.list_notes("u1")

        assert isinstance(result, Failure)
        assert "Malformed" in result.message

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, text="not json"))

        result = await client.list_notes("u1")

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.REMOTE
