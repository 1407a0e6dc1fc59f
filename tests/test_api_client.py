"""
Unit tests for the authenticated REST client.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from adapters.http_client import ApiClient
from core.errors import ConflictError, CredentialsMissingError, FetchError, UnknownError, user_message
from core.services.token_manager import TokenManager


def _client(settings, transport, clock, *, login: bool = True) -> ApiClient:
    http = httpx.AsyncClient(transport=transport)
    tokens = TokenManager(settings, client=http, clock=clock)
    if login:
        tokens.set_credentials("admin@comunidad.pro", "pw")
    return ApiClient(settings, tokens, client=http)


class TestRead:
    def test_list_unwraps_data(self, settings, transport, backend, clock) -> None:
        api = _client(settings, transport, clock)
        items = asyncio.run(api.list("/ministries"))
        assert items == backend.collections["ministries"]
        request = backend.api_calls("GET", "/ministries")[0]
        assert request.headers["authorization"] == "Bearer token-1"

    def test_list_accepts_bare_array(self, settings, clock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "identity.test":
                return httpx.Response(200, json={"idToken": "t", "expiresIn": "3600"})
            return httpx.Response(200, json=[{"_id": "1", "name": "A"}, "junk"])

        api = _client(settings, httpx.MockTransport(handler), clock)
        assert asyncio.run(api.list("/ministries")) == [{"_id": "1", "name": "A"}]

    def test_list_failure_is_fetch_error(self, settings, transport, backend, clock) -> None:
        backend.failing.add("persons")
        api = _client(settings, transport, clock)
        with pytest.raises(FetchError) as info:
            asyncio.run(api.list("/persons"))
        assert info.value.status_code == 500
        assert "boom" in info.value.message

    def test_get_missing_is_none(self, settings, transport, clock) -> None:
        api = _client(settings, transport, clock)
        assert asyncio.run(api.get("/users/email/nobody@x.co")) is None

    def test_no_credentials_no_request(self, settings, transport, backend, clock) -> None:
        api = _client(settings, transport, clock, login=False)
        with pytest.raises(CredentialsMissingError):
            asyncio.run(api.list("/ministries"))
        assert backend.requests == []


class TestWrite:
    def test_create_returns_server_record(self, settings, transport, clock) -> None:
        api = _client(settings, transport, clock)
        created = asyncio.run(api.create("/ministries", {"name": "Jóvenes"}, entity_name="Ministerio"))
        assert created == {"name": "Jóvenes", "_id": "srv-2"}

    def test_duplicate_key_becomes_conflict(self, settings, transport, backend, clock) -> None:
        backend.conflict = True
        api = _client(settings, transport, clock)
        with pytest.raises(ConflictError) as info:
            asyncio.run(api.create("/ministries", {"name": "Alabanza"}, entity_name="Ministerio"))
        assert info.value.message == "Ministerio already exists"
        assert "E11000" in (info.value.server_message or "")
        assert user_message(info.value) == "Ministerio ya existe."

    def test_update_and_delete_address_item(self, settings, transport, backend, clock) -> None:
        async def scenario() -> None:
            api = _client(settings, transport, clock)
            await api.update("/ministries", "m1", {"name": "Alabanza 2"})
            await api.delete("/ministries", "m1")

        asyncio.run(scenario())
        assert len(backend.api_calls("PUT", "/ministries/m1")) == 1
        assert len(backend.api_calls("DELETE", "/ministries/m1")) == 1

    def test_server_error_carries_message(self, settings, clock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "identity.test":
                return httpx.Response(200, json={"idToken": "t", "expiresIn": "3600"})
            return httpx.Response(422, json={"message": "El nombre es obligatorio"})

        api = _client(settings, httpx.MockTransport(handler), clock)
        with pytest.raises(UnknownError) as info:
            asyncio.run(api.update("/ministries", "m1", {"name": ""}))
        assert info.value.status_code == 422
        assert user_message(info.value) == "El nombre es obligatorio"

    def test_upload_is_multipart(self, settings, transport, backend, clock) -> None:
        api = _client(settings, transport, clock)
        uploaded = asyncio.run(api.upload_file("soporte.pdf", b"%PDF-1.4", "application/pdf"))

        assert uploaded.url == "https://files.test/soporte.pdf"
        assert uploaded.name == "soporte.pdf"
        request = backend.api_calls("POST", "/files")[0]
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert request.headers["authorization"] == "Bearer token-1"
        assert b"%PDF-1.4" in request.content
