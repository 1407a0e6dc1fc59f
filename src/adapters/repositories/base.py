"""Repositorio de dos niveles: API remota primero, almacén local de respaldo.

Política:
- Lectura: si la API responde, su lista reemplaza la instantánea local; si
  falla, se devuelve la instantánea local (o los valores por defecto, o una
  lista vacía) junto con el error, sin lanzar.
- Escritura: primero la API; la instantánea local solo se actualiza si la API
  aceptó el cambio. Los errores se propagan al llamador.
- Colecciones sin endpoint (modo local) leen y escriben solo el almacén.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Generic, Iterable, TypeVar

from pydantic import ValidationError

from adapters.http_client import ApiClient
from adapters.local_store import collection_key
from core.domain.models import Record
from core.errors import ComunidadError, FetchError, UnknownError
from core.interfaces.repository import KeyValueStore

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Record)


class FetchSource(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"
    CACHE = "cache"
    DEFAULT = "default"


@dataclass
class FetchOutcome:
    """Resultado de leer una colección, con su procedencia."""

    collection: str
    value: Any
    source: FetchSource
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_records(model: type[ModelT], raw: object, *, collection: str) -> list[ModelT]:
    """Valida una lista JSON descartando (y registrando) los elementos inválidos."""

    if not isinstance(raw, list):
        return []
    out: list[ModelT] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            out.append(model.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping invalid %s record: %s", collection, exc.errors()[:1])
    return out


def _merge(payload: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
    """Respuesta del servidor sobre lo enviado; el `_id` de Mongo manda sobre el UUID local."""

    merged = {**payload, **data}
    if "_id" in data and "id" not in data:
        merged.pop("id", None)
    return merged


class CollectionRepository(Generic[ModelT]):
    """CRUD de una colección con respaldo local."""

    collection: ClassVar[str]
    path: ClassVar[str]
    model: ClassVar[type[Record]]
    display_name: ClassVar[str]

    def __init__(
        self,
        store: KeyValueStore,
        api: ApiClient | None = None,
        *,
        local_only: bool = False,
    ) -> None:
        self._store = store
        self._api = api
        self._local_only = local_only or api is None

    @property
    def is_remote(self) -> bool:
        return not self._local_only

    @property
    def key(self) -> str:
        return collection_key(self.collection)

    def defaults(self) -> list[ModelT]:
        """Contenido inicial cuando no hay nada en caché."""

        return []

    # ------------------------------------------------------------------
    # Local snapshot
    # ------------------------------------------------------------------

    def cached(self) -> list[ModelT] | None:
        raw = self._store.get(self.key)
        if raw is None:
            return None
        return parse_records(self.model, raw, collection=self.collection)

    def _write_cache(self, items: Iterable[ModelT]) -> None:
        self._store.set(self.key, [item.model_dump(mode="json", by_alias=True) for item in items])

    def _snapshot(self) -> list[ModelT]:
        cached = self.cached()
        return cached if cached is not None else self.defaults()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def fetch_all(self) -> FetchOutcome:
        if not self.is_remote:
            cached = self.cached()
            if cached is None:
                return FetchOutcome(self.collection, self.defaults(), FetchSource.DEFAULT)
            return FetchOutcome(self.collection, cached, FetchSource.LOCAL)

        assert self._api is not None
        try:
            raw = await self._api.list(self.path)
        except ComunidadError as exc:
            # Named after the collection, not the API path (`people`, not `persons`).
            if isinstance(exc, FetchError):
                error = FetchError(self.collection, exc.detail, exc.status_code)
            else:
                error = FetchError(self.collection, exc.message, getattr(exc, "status_code", None))
            cached = self.cached()
            source = FetchSource.CACHE if cached is not None else FetchSource.DEFAULT
            items = cached if cached is not None else self.defaults()
            logger.warning(
                "Fetch of %s failed (%s); using %s data (%d items)",
                self.collection,
                exc.message,
                source.value,
                len(items),
            )
            return FetchOutcome(self.collection, items, source, error)

        items = parse_records(self.model, raw, collection=self.collection)
        self._write_cache(items)
        return FetchOutcome(self.collection, items, FetchSource.REMOTE)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def create(self, item: ModelT) -> ModelT:
        if not item.id:
            item = item.model_copy(update={"id": str(uuid.uuid4())})

        if self.is_remote:
            assert self._api is not None
            payload = item.to_api()
            data = await self._api.create(self.path, payload, entity_name=self.display_name)
            created = self.model.model_validate(_merge(payload, data))
        else:
            created = item

        items = [existing for existing in self._snapshot() if existing.id != created.id]
        items.append(created)
        self._write_cache(items)
        return created

    async def update(self, item: ModelT) -> ModelT:
        item_id = item.id
        if not item_id:
            raise UnknownError(f"{self.display_name}: missing id for update")

        if self.is_remote:
            assert self._api is not None
            payload = item.to_api()
            data = await self._api.update(self.path, item_id, payload)
            updated = self.model.model_validate(_merge(payload, data))
        else:
            updated = item

        items = [updated if existing.id == item_id else existing for existing in self._snapshot()]
        if not any(existing.id == item_id for existing in items):
            items.append(updated)
        self._write_cache(items)
        return updated

    async def delete(self, item_id: str) -> None:
        if self.is_remote:
            assert self._api is not None
            await self._api.delete(self.path, item_id)
        self._write_cache([existing for existing in self._snapshot() if existing.id != item_id])
