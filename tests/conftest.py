"""Shared pytest fixtures for the test suite.

Fixture overview
----------------
clock      : controllable time source for token expiry
backend    : in-process fake of the identity provider + REST API, served
             through `httpx.MockTransport`
settings   : `AppSettings` pointing at the fake hosts, no .env files read
store      : empty `MemoryStore`
open_context : factory for an `AppContext` wired to all of the above

Async code is driven with `asyncio.run` from plain sync tests.
"""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any

import httpx
import pytest

from adapters.local_store import MemoryStore
from core.config import AppSettings
from core.services.app_context import AppContext
from core.services.session_loader import SessionHooks

IDENTITY_HOST = "identity.test"
API_HOST = "api.test"


class FakeClock:
    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend:
    """Identity provider + REST API in one handler.

    Collections are keyed by API path segment (`persons`, not `people`).
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_counter = 0
        self.expires_in = "3600"
        self.auth_error: str | None = None
        self.auth_delay = 0.0
        self.api_delay = 0.0
        self.failing: set[str] = set()
        self.conflict = False
        self.collections: dict[str, list[dict[str, Any]]] = {
            "ministries": [{"_id": "m1", "name": "Alabanza", "status": "Activo"}],
            "persons": [
                {
                    "_id": "p1",
                    "identification": "1020",
                    "fullName": "Ana Gómez",
                    "birthDate": "1990-05-17",
                    "ministryId": "m1",
                    "isBaptized": True,
                    "populationGroup": "Adulto",
                }
            ],
            "categories": [{"_id": "c1", "name": "Diezmos", "type": "Ingreso"}],
            "transactions": [
                {
                    "_id": "t1",
                    "type": "Ingreso",
                    "paymentMethod": "Efectivo",
                    "categoryId": "c1",
                    "date": "2024-03-01",
                    "value": 150000,
                }
            ],
            "users": [
                {
                    "_id": "u1",
                    "email": "admin@comunidad.pro",
                    "name": "Admin",
                    "role": "admin",
                    "permissions": [],
                }
            ],
        }

    # -- helpers ---------------------------------------------------------

    def api_calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.url.host == API_HOST and r.method == method and r.url.path == f"/api{path}"
        ]

    @property
    def exchanges(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == IDENTITY_HOST]

    # -- handler ---------------------------------------------------------

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == IDENTITY_HOST:
            return await self._identity(request)
        if self.api_delay:
            await asyncio.sleep(self.api_delay)
        return self._api(request)

    async def _identity(self, request: httpx.Request) -> httpx.Response:
        if self.auth_delay:
            await asyncio.sleep(self.auth_delay)
        if self.auth_error:
            return httpx.Response(400, json={"error": {"code": 400, "message": self.auth_error}})
        self.token_counter += 1
        return httpx.Response(
            200,
            json={"idToken": f"token-{self.token_counter}", "expiresIn": self.expires_in},
        )

    def _api(self, request: httpx.Request) -> httpx.Response:
        if not request.headers.get("authorization", "").startswith("Bearer token-"):
            return httpx.Response(401, json={"message": "Unauthorized"})

        parts = request.url.path.removeprefix("/api/").split("/")
        name = parts[0]

        if request.method == "POST" and name == "files":
            return httpx.Response(200, json={"data": {"url": "https://files.test/soporte.pdf"}})

        if name == "users" and len(parts) == 3 and parts[1] == "email":
            email = parts[2]
            for user in self.collections["users"]:
                if user["email"] == email:
                    return httpx.Response(200, json={"data": user})
            return httpx.Response(404, json={"message": "User not found"})

        if request.method == "GET":
            if name in self.failing:
                return httpx.Response(500, json={"message": "boom"})
            return httpx.Response(200, json={"data": self.collections.get(name, [])})

        if request.method == "POST":
            if self.conflict:
                return httpx.Response(
                    500,
                    json={"message": "E11000 duplicate key error collection: ministries index: name_1"},
                )
            body = json.loads(request.content)
            body.pop("id", None)
            body["_id"] = f"srv-{len(self.collections.get(name, [])) + 1}"
            self.collections.setdefault(name, []).append(body)
            return httpx.Response(201, json={"data": body})

        if request.method == "PUT":
            body = json.loads(request.content)
            return httpx.Response(200, json={"data": body})

        if request.method == "DELETE":
            return httpx.Response(200, json={"data": {}})

        return httpx.Response(405)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def transport(backend: FakeBackend) -> httpx.MockTransport:
    return httpx.MockTransport(backend)


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch) -> AppSettings:
    for key in list(os.environ):
        if key.upper().startswith("COMUNIDAD_PRO_"):
            monkeypatch.delenv(key)
    return AppSettings(
        _env_file=None,
        identity_api_key="test-key",
        identity_base_url=f"https://{IDENTITY_HOST}/v1",
        api_base_url=f"https://{API_HOST}/api",
        local_only_collections=["site_params"],
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def open_context(settings: AppSettings, store: MemoryStore, transport: httpx.MockTransport, clock: FakeClock):
    """Return a coroutine factory: `async with await open_context() as ctx`."""

    async def factory(
        *,
        hooks: SessionHooks | None = None,
        app_settings: AppSettings | None = None,
    ) -> AppContext:
        return await AppContext.open(
            app_settings or settings,
            store=store,
            transport=transport,
            clock=clock,
            hooks=hooks,
        )

    return factory
