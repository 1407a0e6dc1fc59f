"""Credential/Token manager.

Holds the e-mail/password typed at login, exchanges them for a bearer token
against the identity provider (`accounts:signInWithPassword`) and caches the
token until shortly before it expires. Every authenticated API call asks this
object for headers, so the common path is a cache hit with no I/O.

State lives on the instance (one per session context), never at module level,
so tests and parallel sessions do not interfere.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from adapters.http_client import build_async_client
from core.config import AppSettings
from core.errors import AuthExchangeError, CredentialsMissingError

logger = logging.getLogger(__name__)


@dataclass
class Credential:
    """E-mail/password pair. Replaced wholesale on every login; never persisted."""

    email: str
    password: str

    @property
    def is_complete(self) -> bool:
        return bool(self.email) and bool(self.password)


@dataclass(frozen=True)
class CachedToken:
    token: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return bool(self.token) and now < self.expires_at


def _token_preview(token: str) -> str:
    return token[:12] + "..." if len(token) > 12 else "***"


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class TokenManager:
    """Obtain and cache the bearer token for authenticated API calls.

    Concurrent `get_token()` callers with no valid cache share a single
    in-flight exchange. Changing or clearing credentials bumps a generation
    counter; an exchange started under an older generation still answers its
    callers but does not populate the cache.
    """

    def __init__(
        self,
        settings: AppSettings,
        *,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._client = client
        self._owns_client = False
        self._clock = clock

        self._credential: Credential | None = None
        self._cached: CachedToken | None = None
        self._pending: asyncio.Future[str] | None = None
        self._generation = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self) -> "TokenManager":
        if self._client is None:
            self._client = build_async_client(self._settings)
            self._owns_client = True
        return self

    async def dispose(self) -> None:
        self.clear_credentials()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    async def __aenter__(self) -> "TokenManager":
        return await self.init()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.dispose()

    # ------------------------------------------------------------------
    # Credentials / cache
    # ------------------------------------------------------------------

    @property
    def has_credentials(self) -> bool:
        return self._credential is not None and self._credential.is_complete

    @property
    def has_valid_token(self) -> bool:
        return self._cached is not None and self._cached.is_valid(self._clock())

    @property
    def email(self) -> str | None:
        return self._credential.email if self._credential else None

    def set_credentials(self, email: str, password: str) -> None:
        """Store a new pair and force re-authentication on the next token request."""

        self._credential = Credential(email=email.strip(), password=password)
        self._invalidate()

    def clear_credentials(self) -> None:
        self._credential = None
        self._invalidate()

    def clear_token(self) -> None:
        """Discard the cached token only (credentials stay)."""

        self._invalidate()

    def _invalidate(self) -> None:
        self._cached = None
        self._pending = None
        self._generation += 1

    # ------------------------------------------------------------------
    # Token
    # ------------------------------------------------------------------

    async def get_token(self) -> str:
        cached = self._cached
        if cached is not None and cached.is_valid(self._clock()):
            logger.debug("Token served from cache")
            return cached.token

        credential = self._credential
        if credential is None or not credential.is_complete:
            raise CredentialsMissingError()

        pending = self._pending
        if pending is None:
            pending = asyncio.ensure_future(self._exchange(credential, self._generation))
            pending.add_done_callback(self._forget_pending)
            self._pending = pending
        return await asyncio.shield(pending)

    async def auth_headers(self, *, json: bool = True) -> dict[str, str]:
        """Headers for an authenticated call; multipart uploads pass `json=False`."""

        token = await self.get_token()
        headers = {"Authorization": f"Bearer {token}"}
        if json:
            headers["Content-Type"] = "application/json"
        return headers

    def _forget_pending(self, future: asyncio.Future[str]) -> None:
        if self._pending is future:
            self._pending = None
        if not future.cancelled():
            # Marks the exception as retrieved when every waiter went away.
            future.exception()

    async def _exchange(self, credential: Credential, generation: int) -> str:
        api_key = self._settings.identity_api_key
        if not api_key:
            raise AuthExchangeError("MISSING_API_KEY", "identity API key is not configured")

        if self._client is None:
            await self.init()
        assert self._client is not None

        url = f"{self._settings.identity_base_url.rstrip('/')}/accounts:signInWithPassword"
        logger.info("Requesting new token for %s", credential.email)
        try:
            response = await self._client.post(
                url,
                params={"key": api_key},
                json={
                    "email": credential.email,
                    "password": credential.password,
                    "returnSecureToken": True,
                },
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            self._drop_cache(generation)
            logger.warning("Identity provider unreachable: %s", exc)
            raise AuthExchangeError("NETWORK_ERROR", str(exc) or type(exc).__name__) from exc

        payload = _json_or_empty(response)
        if not response.is_success:
            self._drop_cache(generation)
            error = payload.get("error") if isinstance(payload.get("error"), dict) else {}
            code = str(error.get("message") or response.reason_phrase or "UNKNOWN")
            logger.warning("Token exchange rejected (%s): %s", response.status_code, code)
            raise AuthExchangeError(code, code, status_code=response.status_code)

        token = payload.get("idToken")
        try:
            lifetime = float(payload.get("expiresIn", ""))
        except (TypeError, ValueError):
            lifetime = -1.0
        if not isinstance(token, str) or not token or lifetime <= 0:
            self._drop_cache(generation)
            raise AuthExchangeError(
                "MALFORMED_RESPONSE",
                "identity response lacks idToken/expiresIn",
                status_code=response.status_code,
            )

        expires_at = self._clock() + lifetime - self._settings.token_safety_margin_seconds
        if generation == self._generation:
            self._cached = CachedToken(token=token, expires_at=expires_at)
            logger.info("Token %s obtained, valid for %.0fs", _token_preview(token), lifetime)
        else:
            logger.info("Credentials changed during exchange; token not cached")
        return token

    def _drop_cache(self, generation: int) -> None:
        if generation == self._generation:
            self._cached = None
