"""Repositorio: ministerios (`/ministries`)."""

from __future__ import annotations

from adapters.repositories.base import CollectionRepository
from core.domain.models import Ministry


class MinistryRepository(CollectionRepository[Ministry]):
    collection = "ministries"
    path = "/ministries"
    model = Ministry
    display_name = "Ministerio"

