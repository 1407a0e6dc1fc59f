"""Repositorios por entidad (API remota + respaldo local).

Por qué un paquete:
- Un módulo por colección, todos sobre `CollectionRepository`.
- `build_repositories` arma el conjunto según la configuración (qué
  colecciones son solo locales en cada despliegue).
"""

from __future__ import annotations

from dataclasses import dataclass

from adapters.http_client import ApiClient
from adapters.repositories.base import CollectionRepository, FetchOutcome, FetchSource
from adapters.repositories.categories import CategoryRepository
from adapters.repositories.ministries import MinistryRepository
from adapters.repositories.people import PersonRepository
from adapters.repositories.site_params import SiteParametersRepository
from adapters.repositories.transactions import TransactionRepository
from adapters.repositories.users import UserRepository
from core.config import AppSettings
from core.interfaces.repository import CollectionSource, KeyValueStore

COLLECTIONS: tuple[str, ...] = (
    "ministries",
    "people",
    "categories",
    "transactions",
    "users",
    "site_params",
)


@dataclass
class Repositories:
    ministries: MinistryRepository
    people: PersonRepository
    categories: CategoryRepository
    transactions: TransactionRepository
    users: UserRepository
    site_params: SiteParametersRepository

    def collection(self, name: str) -> CollectionRepository:
        """Repositorio CRUD por nombre de colección (`people`, `users`...)."""

        repo = getattr(self, name, None)
        if not isinstance(repo, CollectionRepository):
            raise KeyError(name)
        return repo

    def sources(self) -> list[CollectionSource]:
        return [getattr(self, name) for name in COLLECTIONS]


def build_repositories(
    settings: AppSettings,
    store: KeyValueStore,
    api: ApiClient | None = None,
) -> Repositories:
    def local(name: str) -> bool:
        return settings.is_local_only(name)

    return Repositories(
        ministries=MinistryRepository(store, api, local_only=local("ministries")),
        people=PersonRepository(store, api, local_only=local("people")),
        categories=CategoryRepository(store, api, local_only=local("categories")),
        transactions=TransactionRepository(store, api, local_only=local("transactions")),
        users=UserRepository(store, api, local_only=local("users")),
        site_params=SiteParametersRepository(store),
    )


__all__ = [
    "COLLECTIONS",
    "CategoryRepository",
    "CollectionRepository",
    "FetchOutcome",
    "FetchSource",
    "MinistryRepository",
    "PersonRepository",
    "Repositories",
    "SiteParametersRepository",
    "TransactionRepository",
    "UserRepository",
    "build_repositories",
]
