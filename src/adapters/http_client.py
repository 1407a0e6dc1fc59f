"""Wrapper de httpx.

Por qué un wrapper:
- Estandariza timeouts, headers y la traducción de errores de la API REST.
- Facilita testeo: se puede inyectar un `httpx.MockTransport`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from core.config import AppSettings
from core.domain.models import UploadedFile
from core.errors import ConflictError, FetchError, UnknownError, is_duplicate_message

if TYPE_CHECKING:
    from core.services.token_manager import TokenManager

logger = logging.getLogger(__name__)


def build_async_client(
    settings: AppSettings | None = None,
    *,
    extra_headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Crea un `httpx.AsyncClient` con defaults seguros.

    Por qué un builder:
    - Centraliza timeouts/headers para que identidad y API se comporten igual.
    - Permite inyectar un transport falso en tests.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "Accept": "application/json",
        "User-Agent": "comunidad-pro/0.1",
    }
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )


def _payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _server_message(response: httpx.Response) -> str:
    """Mensaje de error del backend (`{message}` o `{error: {message}}`)."""

    data = _payload(response)
    if isinstance(data, dict):
        message = data.get("message")
        if isinstance(message, str) and message:
            return message
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str) and error:
            return error
    text = (response.text or "").strip()
    return text[:500] or f"HTTP {response.status_code}"


def _unwrap(data: Any) -> Any:
    if isinstance(data, dict) and "data" in data:
        return data["data"]
    return data


class ApiClient:
    """Cliente autenticado de la API REST.

    Cada llamada adjunta `Authorization: Bearer <token>` obtenido del
    `TokenManager`. Las respuestas vienen envueltas como `{data: ...}`.
    """

    def __init__(
        self,
        settings: AppSettings,
        tokens: "TokenManager",
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._tokens = tokens
        self._client = client
        self._owns_client = False

    async def init(self) -> "ApiClient":
        if self._client is None:
            self._client = build_async_client(self._settings)
            self._owns_client = True
        return self

    async def dispose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    async def __aenter__(self) -> "ApiClient":
        return await self.init()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.dispose()

    def _url(self, path: str) -> str:
        return f"{self._settings.api_base_url.rstrip('/')}/{path.lstrip('/')}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if self._client is None:
            await self.init()
        assert self._client is not None
        headers = await self._tokens.auth_headers(json="files" not in kwargs)
        return await self._client.request(method, self._url(path), headers=headers, **kwargs)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def list(self, path: str) -> list[dict[str, Any]]:
        collection = path.strip("/")
        try:
            response = await self._request("GET", path)
        except httpx.HTTPError as exc:
            raise FetchError(collection, str(exc) or type(exc).__name__) from exc
        if not response.is_success:
            raise FetchError(collection, _server_message(response), response.status_code)

        items = _unwrap(_payload(response))
        if not isinstance(items, list):
            raise FetchError(collection, "unexpected list payload", response.status_code)
        return [item for item in items if isinstance(item, dict)]

    async def get(self, path: str) -> dict[str, Any] | None:
        """GET de un recurso único; 404 => None."""

        try:
            response = await self._request("GET", path)
        except httpx.HTTPError as exc:
            raise FetchError(path.strip("/"), str(exc) or type(exc).__name__) from exc
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise FetchError(path.strip("/"), _server_message(response), response.status_code)
        item = _unwrap(_payload(response))
        return item if isinstance(item, dict) else None

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def create(self, path: str, payload: dict[str, Any], *, entity_name: str) -> dict[str, Any]:
        response = await self._mutate("POST", path, json=payload)
        if not response.is_success:
            message = _server_message(response)
            if response.status_code == 409 or is_duplicate_message(message):
                raise ConflictError(entity_name, message)
            raise UnknownError(message, response.status_code)
        return self._single(response, fallback=payload)

    async def update(self, path: str, item_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._mutate("PUT", f"{path.rstrip('/')}/{item_id}", json=payload)
        if not response.is_success:
            raise UnknownError(_server_message(response), response.status_code)
        return self._single(response, fallback=payload)

    async def delete(self, path: str, item_id: str) -> None:
        response = await self._mutate("DELETE", f"{path.rstrip('/')}/{item_id}")
        if not response.is_success:
            raise UnknownError(_server_message(response), response.status_code)

    async def upload_file(
        self,
        filename: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> UploadedFile:
        """Sube un adjunto a `/files` (multipart, solo header Authorization)."""

        response = await self._mutate("POST", "/files", files={"file": (filename, content, content_type)})
        if not response.is_success:
            raise UnknownError(_server_message(response), response.status_code)
        data = _unwrap(_payload(response))
        if not isinstance(data, dict):
            raise UnknownError("unexpected upload payload", response.status_code)
        data.setdefault("name", filename)
        return UploadedFile.model_validate(data)

    async def _mutate(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise UnknownError(str(exc) or type(exc).__name__) from exc

    @staticmethod
    def _single(response: httpx.Response, *, fallback: dict[str, Any]) -> dict[str, Any]:
        data = _unwrap(_payload(response))
        return data if isinstance(data, dict) else dict(fallback)
