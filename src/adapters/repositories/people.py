"""Repositorio: personas del directorio (`/persons`).

La colección se llama `people` en el estado y en el almacén local, pero el
endpoint del backend es `/persons`.
"""

from __future__ import annotations

from adapters.repositories.base import CollectionRepository
from core.domain.models import Person


class PersonRepository(CollectionRepository[Person]):
    collection = "people"
    path = "/persons"
    model = Person
    display_name = "Persona"
