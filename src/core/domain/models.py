"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Validación estricta en el borde: la API REST y el almacén local devuelven
  JSON heterogéneo (camelCase, `_id` de Mongo, campos faltantes).
- Serialización estable hacia la API (`by_alias=True` => camelCase).

Nota:
- Estos modelos describen *qué* es la información, no *cómo* se obtiene.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict


class IdType(str, Enum):
    CC = "CC"
    TI = "TI"
    PAS = "PAS"
    CE = "CE"


class Gender(str, Enum):
    MALE = "Masculino"
    FEMALE = "Femenino"


class CivilStatus(str, Enum):
    SINGLE = "Soltero"
    MARRIED = "Casado"
    FREE_UNION = "Unión libre"


class MembershipType(str, Enum):
    PASTORAL = "Cuerpo pastoral"
    LEADER = "Líder"
    ASSISTANT = "Asistente"
    NEW = "Nuevo"


class Occupation(str, Enum):
    EMPLOYEE = "Empleado"
    STUDENT = "Estudiante"
    INDEPENDENT = "Independiente"
    HOME = "Hogar"


class PersonStatus(str, Enum):
    ACTIVE = "Activo"
    INACTIVE = "Inactivo"


class Population(str, Enum):
    CHILD = "Niño"
    ADOLESCENT = "Adolescente"
    YOUTH = "Joven"
    ADULT = "Adulto"
    SENIOR = "Adulto Mayor"


class MinistryStatus(str, Enum):
    ACTIVE = "Activo"
    INACTIVE = "Inactivo"


class TransactionType(str, Enum):
    INCOME = "Ingreso"
    EXPENSE = "Gasto"


class PaymentMethod(str, Enum):
    CASH = "Efectivo"
    TRANSFER = "Transferencia"


class PermissionModule(str, Enum):
    """Módulos del back-office; cada usuario no-admin tiene una lista de ellos."""

    MINISTRIES = "Ministerios"
    PEOPLE = "Personas"
    CATEGORIES = "Categorías"
    TRANSACTIONS = "Transacciones"
    REPORTS = "Reportes"
    ADMIN = "Administración"
    SITE_PARAMS = "Parámetros sitio"


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class Record(BaseModel):
    """Base de los registros que viajan por la API.

    - camelCase en el cable, snake_case en Python.
    - `id` acepta también `_id` (documentos Mongo).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: str = Field(
        default="",
        validation_alias=AliasChoices("id", "_id"),
        description="Identificador asignado por el servidor (o UUID local).",
    )

    def to_api(self) -> dict[str, Any]:
        """Payload JSON para la API (camelCase)."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Ministry(Record):
    name: str = Field(..., min_length=1, max_length=200)
    status: MinistryStatus = MinistryStatus.ACTIVE


class Person(Record):
    """Miembro del directorio de la comunidad."""

    identification: str = Field(default="", max_length=64)
    id_type: IdType = IdType.CC
    full_name: str = Field(..., min_length=1, max_length=256)
    email: str = ""
    sex: Gender = Gender.MALE
    civil_status: CivilStatus = CivilStatus.SINGLE
    birth_date: str = Field(default="", description="Fecha ISO YYYY-MM-DD (puede venir vacía).")
    phone: str = ""
    address: str = ""
    neighborhood: str = ""
    ministry_id: str = ""
    membership_type: MembershipType = MembershipType.ASSISTANT
    membership_date: str = ""
    status: PersonStatus = PersonStatus.ACTIVE
    occupation: Occupation = Occupation.EMPLOYEE
    photo_url: str | None = None
    is_baptized: bool = False
    population_group: Population = Population.ADULT


class Category(Record):
    name: str = Field(..., min_length=1, max_length=200)
    type: TransactionType


class Transaction(Record):
    """Movimiento contable (ingreso o gasto)."""

    type: TransactionType
    payment_method: PaymentMethod = Field(
        default=PaymentMethod.CASH,
        validation_alias=AliasChoices("paymentMethod", "payment_method", "medioTrx"),
        serialization_alias="paymentMethod",
        description="Medio de pago; algunos backends lo llaman `medioTrx`.",
    )
    category_id: str = ""
    date: str = Field(default="", description="Fecha ISO YYYY-MM-DD.")
    value: float = Field(default=0.0, ge=0)
    person_id: str | None = None
    observations: str = ""
    attachment_url: str | None = None
    attachment_name: str | None = None


class User(Record):
    """Usuario del back-office con sus permisos por módulo."""

    email: str = Field(..., min_length=3)
    name: str = ""
    role: UserRole = UserRole.USER
    permissions: list[PermissionModule] = Field(default_factory=list)
    avatar: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN

    def has_access(self, module: PermissionModule) -> bool:
        """Los administradores ven todo; el resto, solo sus módulos."""

        return self.is_admin or module in self.permissions


class SiteEvent(Record):
    title: str = ""
    date: str = ""
    image_url: str = ""


class SiteContact(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    address: str = "Calle Principal #123, Ciudad"
    phone: str = "+57 300 000 0000"
    email: str = "contacto@comunidad.pro"
    facebook: str = "https://facebook.com"
    instagram: str = "https://instagram.com"
    youtube: str = "https://youtube.com"


class SiteParameters(BaseModel):
    """Parámetros del sitio público (landing).

    Los valores por defecto son los que ve una instalación nueva.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    hero_images: list[str] = Field(
        default_factory=lambda: [
            "https://images.unsplash.com/photo-1438232992991-995b7058bbb3?auto=format&fit=crop&q=80&w=1200",
            "https://images.unsplash.com/photo-1511795409834-ef04bbd61622?auto=format&fit=crop&q=80&w=1200",
        ]
    )
    about_us: str = "Somos una comunidad comprometida con el crecimiento espiritual y el servicio social."
    mission: str = "Nuestra misión es transformar vidas a través del amor y el servicio."
    vision: str = "Ser una comunidad referente en impacto social y espiritual para el año 2030."
    events: list[SiteEvent] = Field(
        default_factory=lambda: [
            SiteEvent(
                id="1",
                title="Reunión General",
                date="Todos los Domingos",
                image_url="https://images.unsplash.com/photo-1523580494863-6f3031224c94?auto=format&fit=crop&q=80&w=800",
            )
        ]
    )
    contact: SiteContact = Field(default_factory=SiteContact)

    def to_api(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class UploadedFile(BaseModel):
    """Respuesta de `/files` tras subir un adjunto o foto."""

    model_config = ConfigDict(extra="ignore")

    url: str = Field(..., min_length=1)
    name: str = ""


class InsightReport(BaseModel):
    """Texto producido por la capa de IA (análisis o respuesta del asistente).

    Por qué es un modelo separado:
    - Permite saber si el texto viene del modelo o es el mensaje de respaldo.
    """

    text: str = Field(..., min_length=1, max_length=50_000)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    model: str | None = Field(default=None, description="Modelo IA utilizado (si aplica).")
    fallback: bool = Field(default=False, description="True si es el mensaje de respaldo.")
