"""Repositorio: usuarios del back-office (`/users`, `/users/email/:email`)."""

from __future__ import annotations

import logging
from urllib.parse import quote

from pydantic import ValidationError

from adapters.repositories.base import CollectionRepository
from core.domain.models import PermissionModule, User, UserRole
from core.errors import FetchError, UnknownError

logger = logging.getLogger(__name__)


class UserRepository(CollectionRepository[User]):
    collection = "users"
    path = "/users"
    model = User
    display_name = "Usuario"

    def defaults(self) -> list[User]:
        return [
            User(
                id="admin-1",
                email="admin@comunidad.pro",
                name="Administrador Sistema",
                role=UserRole.ADMIN,
                permissions=list(PermissionModule),
                avatar="https://picsum.photos/seed/admin/200",
            )
        ]

    def _find_local(self, email: str) -> User | None:
        wanted = email.strip().lower()
        for user in self._snapshot():
            if user.email.strip().lower() == wanted:
                return user
        return None

    async def find_by_email(self, email: str) -> User | None:
        """Usuario registrado con ese correo, o None.

        Si la API no responde se busca en la instantánea local.
        """

        if not self.is_remote:
            return self._find_local(email)

        assert self._api is not None
        try:
            data = await self._api.get(f"{self.path}/email/{quote(email.strip(), safe='@')}")
        except FetchError as exc:
            logger.warning("User lookup failed (%s); searching local snapshot", exc.message)
            return self._find_local(email)
        if data is None:
            return None
        try:
            return User.model_validate(data)
        except ValidationError as exc:
            logger.warning("Invalid user record for %s: %s", email, exc.errors()[:1])
            raise UnknownError(f"Invalid user record for {email}") from exc
