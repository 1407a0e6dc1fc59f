"""Almacén local clave/valor (respaldo de la API).

Por qué JSON:
- Equivale al `localStorage` del navegador: un diccionario de documentos JSON
  con claves por colección (`cp_people`, `cp_site_params`...).
- Interoperable y fácil de inspeccionar a mano.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable

logger = logging.getLogger(__name__)

KEY_PREFIX = "cp_"


def collection_key(collection: str) -> str:
    """Clave namespaced de una colección (`people` -> `cp_people`)."""

    return f"{KEY_PREFIX}{collection}"


class MemoryStore:
    """Almacén en memoria (tests, ejecuciones efímeras)."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterable[str]:
        return list(self._data.keys())


class JsonFileStore:
    """Almacén persistido en un único archivo JSON UTF-8.

    Cada `set`/`delete` reescribe el archivo completo mediante un archivo
    temporal + `os.replace`, así un corte a mitad de escritura no lo corrompe.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._data: dict[str, Any] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data
        data: dict[str, Any] = {}
        if self._path.exists():
            try:
                raw = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Local store %s unreadable, starting empty: %s", self._path, exc)
            else:
                if isinstance(raw, dict):
                    data = raw
        self._data = data
        return data

    def _flush(self) -> None:
        data = self._load()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".store-", suffix=".json", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False, indent=2, sort_keys=True)
                fh.write("\n")
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        data = self._load()
        if key not in data:
            return default
        return copy.deepcopy(data[key])

    def set(self, key: str, value: Any) -> None:
        self._load()[key] = copy.deepcopy(value)
        self._flush()

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._flush()

    def keys(self) -> Iterable[str]:
        return list(self._load().keys())
