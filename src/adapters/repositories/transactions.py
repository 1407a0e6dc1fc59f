"""Repositorio: ingresos y gastos (`/transactions`)."""

from __future__ import annotations

from adapters.repositories.base import CollectionRepository
from core.domain.models import Transaction, UploadedFile
from core.errors import UnknownError


class TransactionRepository(CollectionRepository[Transaction]):
    collection = "transactions"
    path = "/transactions"
    model = Transaction
    display_name = "Transacción"

    async def attach(
        self,
        transaction: Transaction,
        *,
        filename: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> Transaction:
        """Sube un soporte a `/files` y lo enlaza a la transacción.

        Requiere la API: en modo local no hay dónde guardar el archivo.
        """

        if self._api is None:
            raise UnknownError("attachments require the REST API")
        uploaded: UploadedFile = await self._api.upload_file(filename, content, content_type)
        linked = transaction.model_copy(
            update={"attachment_url": uploaded.url, "attachment_name": uploaded.name or filename}
        )
        if linked.id:
            return await self.update(linked)
        return await self.create(linked)
