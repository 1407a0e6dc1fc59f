"""Contratos del Core (Protocol).

El cargador de sesión y los repositorios dependen de estas abstracciones, no
del archivo JSON ni de la API concreta.
"""

from core.interfaces.repository import CollectionSource, KeyValueStore

__all__ = ["CollectionSource", "KeyValueStore"]
