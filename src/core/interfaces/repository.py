"""Contratos de almacenamiento y repositorios.

Por qué Protocol:
- Define un contrato estructural (duck typing) sin herencia rígida.
- Permite que el Core (cargador de sesión) trabaje con repositorios remotos,
  locales o falsos en tests sin acoplarse a implementaciones concretas.
"""

from __future__ import annotations

from typing import Any, Iterable, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Almacén clave/valor persistente usado como caché y respaldo local.

    Los valores son JSON (dict/list/escalares); las claves van con prefijo por
    colección (`cp_people`, `cp_site_params`...).
    """

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self) -> Iterable[str]:
        ...


@runtime_checkable
class CollectionSource(Protocol):
    """Contrato mínimo que necesita el cargador de sesión.

    Reglas de diseño:
    - `fetch_all` es asíncrono porque típicamente hará I/O (HTTP).
    - Nunca lanza por fallos de red: devuelve el respaldo local junto al error.
    """

    collection: str

    async def fetch_all(self) -> Any:
        """Devuelve un `FetchOutcome` con los datos frescos o de respaldo."""

        ...
