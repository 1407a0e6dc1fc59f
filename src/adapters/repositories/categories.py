"""Repositorio: categorías contables (`/categories`)."""

from __future__ import annotations

from adapters.repositories.base import CollectionRepository
from core.domain.models import Category, TransactionType


class CategoryRepository(CollectionRepository[Category]):
    collection = "categories"
    path = "/categories"
    model = Category
    display_name = "Categoría"

    def defaults(self) -> list[Category]:
        return [
            Category(id="1", name="Diezmos", type=TransactionType.INCOME),
            Category(id="2", name="Ofrendas", type=TransactionType.INCOME),
            Category(id="3", name="Servicios", type=TransactionType.EXPENSE),
        ]
