"""Composition root: one object per running session.

Owns the shared `httpx.AsyncClient` and wires token manager, API client,
local store, repositories and session loader together. Nothing here is module
state, so two contexts (or two tests) never share a token or a snapshot.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

import httpx

from adapters.http_client import ApiClient, build_async_client
from adapters.local_store import JsonFileStore
from adapters.repositories import Repositories, build_repositories
from core.config import AppSettings
from core.interfaces.repository import KeyValueStore
from core.services.session_loader import SessionHooks, SessionLoader
from core.services.token_manager import TokenManager


@dataclass
class AppContext:
    settings: AppSettings
    http: httpx.AsyncClient
    tokens: TokenManager
    api: ApiClient
    store: KeyValueStore
    repositories: Repositories
    session: SessionLoader

    @classmethod
    async def open(
        cls,
        settings: AppSettings | None = None,
        *,
        store: KeyValueStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
        hooks: SessionHooks | None = None,
    ) -> "AppContext":
        settings = settings or AppSettings()
        http = build_async_client(settings, transport=transport)
        tokens = await TokenManager(settings, client=http, clock=clock).init()
        api = await ApiClient(settings, tokens, client=http).init()
        store = store if store is not None else JsonFileStore(settings.resolved_local_store_path)
        repositories = build_repositories(settings, store, api)
        session = SessionLoader(settings, tokens, repositories, hooks=hooks)
        return cls(
            settings=settings,
            http=http,
            tokens=tokens,
            api=api,
            store=store,
            repositories=repositories,
            session=session,
        )

    async def close(self) -> None:
        self.session.logout()
        await self.tokens.dispose()
        await self.api.dispose()
        await self.http.aclose()

    async def __aenter__(self) -> "AppContext":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
