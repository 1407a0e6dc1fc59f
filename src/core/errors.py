"""Application-level exceptions and user-facing messages."""

from __future__ import annotations

from core.domain.language import Language

# Provider codes that mean "wrong e-mail or password".
INVALID_CREDENTIAL_CODES = frozenset(
    {
        "INVALID_LOGIN_CREDENTIALS",
        "INVALID_PASSWORD",
        "EMAIL_NOT_FOUND",
        "INVALID_EMAIL",
    }
)

_DUPLICATE_MARKERS = ("E11000", "duplicate")


class ComunidadError(Exception):
    """Base application exception."""

    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class CredentialsMissingError(ComunidadError):
    def __init__(self, message: str = "Credentials not set; log in first"):
        super().__init__(message, code="CREDENTIALS_MISSING")


class AuthExchangeError(ComunidadError):
    """The identity provider rejected the credentials or was unreachable."""

    def __init__(self, provider_code: str, message: str | None = None, status_code: int | None = None):
        self.provider_code = provider_code
        self.status_code = status_code
        detail = message or provider_code
        prefix = f"Auth error {status_code}" if status_code else "Auth error"
        super().__init__(f"{prefix}: {detail}", code="AUTH_EXCHANGE_FAILED")

    @property
    def is_invalid_credentials(self) -> bool:
        return self.provider_code.split(":", 1)[0].strip() in INVALID_CREDENTIAL_CODES


class FetchError(ComunidadError):
    """A collection (or single resource) could not be fetched."""

    def __init__(self, collection: str, message: str, status_code: int | None = None):
        self.collection = collection
        self.detail = message
        self.status_code = status_code
        super().__init__(f"{collection}: {message}", code="FETCH_FAILED")


class ConflictError(ComunidadError):
    """Duplicate-key response on create."""

    def __init__(self, entity_name: str, server_message: str | None = None):
        self.entity_name = entity_name
        self.server_message = server_message
        super().__init__(f"{entity_name} already exists", code="CONFLICT")


class UnknownError(ComunidadError):
    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message or "", code="UNKNOWN")


class UserNotRegisteredError(ComunidadError):
    def __init__(self, email: str):
        self.email = email
        super().__init__(f"No user record for {email}", code="USER_NOT_REGISTERED")


class SessionNotReadyError(ComunidadError):
    def __init__(self, message: str = "No authenticated session"):
        super().__init__(message, code="SESSION_NOT_READY")


def is_duplicate_message(message: str | None) -> bool:
    """True when a backend error message reports a duplicate key."""

    if not message:
        return False
    lowered = message.lower()
    return any(marker.lower() in lowered for marker in _DUPLICATE_MARKERS)


def user_message(exc: BaseException, language: Language = Language.SPANISH) -> str:
    """Message to show to the end user for any failure."""

    if isinstance(exc, CredentialsMissingError):
        return language.pick(
            es="Tu sesión expiró. Inicia sesión nuevamente.",
            en="Your session expired. Please log in again.",
        )
    if isinstance(exc, AuthExchangeError):
        if exc.is_invalid_credentials:
            return language.pick(
                es="Correo o contraseña incorrectos.",
                en="Incorrect e-mail or password.",
            )
        return language.pick(
            es=f"No fue posible iniciar sesión ({exc.provider_code}).",
            en=f"Could not log in ({exc.provider_code}).",
        )
    if isinstance(exc, ConflictError):
        return language.pick(
            es=f"{exc.entity_name} ya existe.",
            en=f"{exc.entity_name} already exists.",
        )
    if isinstance(exc, UserNotRegisteredError):
        return language.pick(
            es=f"El usuario {exc.email} no está registrado en la plataforma.",
            en=f"User {exc.email} is not registered.",
        )
    if isinstance(exc, SessionNotReadyError):
        return language.pick(
            es="Inicia sesión para continuar.",
            en="Log in to continue.",
        )
    if isinstance(exc, FetchError):
        return language.pick(
            es=f"No se pudieron cargar los datos ({exc.collection}).",
            en=f"Could not load data ({exc.collection}).",
        )

    raw = exc.message if isinstance(exc, ComunidadError) else str(exc)
    if raw and raw.strip():
        return raw.strip()
    return language.pick(
        es="Error desconocido. Intenta de nuevo.",
        en="Unknown error. Please try again.",
    )
