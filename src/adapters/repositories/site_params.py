"""Repositorio: parámetros del sitio público.

No hay endpoint en el servidor: vive solo en el almacén local, con los valores
por defecto de una instalación nueva.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from adapters.local_store import collection_key
from adapters.repositories.base import FetchOutcome, FetchSource
from core.domain.models import SiteParameters
from core.errors import FetchError
from core.interfaces.repository import KeyValueStore

logger = logging.getLogger(__name__)


class SiteParametersRepository:
    collection = "site_params"
    display_name = "Parámetros del sitio"

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    @property
    def key(self) -> str:
        return collection_key(self.collection)

    async def fetch_all(self) -> FetchOutcome:
        raw = self._store.get(self.key)
        if raw is None:
            return FetchOutcome(self.collection, SiteParameters(), FetchSource.DEFAULT)
        try:
            params = SiteParameters.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Stored site parameters are invalid; using defaults")
            return FetchOutcome(
                self.collection,
                SiteParameters(),
                FetchSource.DEFAULT,
                FetchError(self.collection, str(exc.errors()[:1])),
            )
        return FetchOutcome(self.collection, params, FetchSource.LOCAL)

    async def save(self, params: SiteParameters) -> SiteParameters:
        self._store.set(self.key, params.to_api())
        return params
