"""Configuración de ComunidadPro.

Todo se lee de variables `COMUNIDAD_PRO_*` (o de un `.env`) con
pydantic-settings y se pasa explícitamente a cada componente: token manager,
cliente REST, repositorios y asistente IA. No hay configuración global.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Annotated, Any

from dotenv import dotenv_values, set_key
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from core.domain.language import Language

_APP_DIR_NAME = "comunidad-pro"


def get_user_config_dir() -> Path:
    """Carpeta de configuración del usuario (`%APPDATA%`, `~/Library/...`, XDG)."""

    home = Path.home()
    if sys.platform.startswith("win"):
        return Path(os.environ.get("APPDATA") or home) / _APP_DIR_NAME
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / _APP_DIR_NAME
    return Path(os.environ.get("XDG_CONFIG_HOME") or home / ".config") / _APP_DIR_NAME


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def read_user_env_vars(env_path: Path | None = None) -> dict[str, str]:
    env_path = env_path or get_user_env_file()
    if not env_path.exists():
        return {}
    return {key: value for key, value in dotenv_values(env_path).items() if value is not None}


def write_user_env_vars(values: dict[str, str], env_path: Path | None = None) -> Path:
    """Guarda claves en el .env del usuario (lo usa `doctor setup`).

    Las claves existentes se reemplazan en su línea; las nuevas se agregan al final.
    """

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)
    env_path.touch(exist_ok=True)
    for key, value in values.items():
        if value is not None:
            set_key(str(env_path), key, value, quote_mode="never")
    return env_path


class AppSettings(BaseSettings):
    """Configuración de una ejecución (CLI o tests).

    Prioridad: argumentos explícitos, variables de entorno y luego los `.env`
    (el del usuario pisa al del proyecto).
    """

    model_config = SettingsConfigDict(
        env_prefix="COMUNIDAD_PRO_",
        extra="ignore",
        case_sensitive=False,
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    identity_api_key: str | None = Field(
        default=None,
        description="API key del proveedor de identidad (Identity Toolkit).",
    )
    identity_base_url: str = Field(
        default="https://identitytoolkit.googleapis.com/v1",
        min_length=8,
        description="Base URL del endpoint accounts:signInWithPassword.",
    )
    token_safety_margin_seconds: float = Field(
        default=60.0,
        ge=0,
        description="Margen restado a la vida del token para renovarlo antes de expirar.",
    )

    api_base_url: str = Field(
        default="http://localhost:3001/api",
        min_length=8,
        description="Base URL de la API REST (ministries, persons, users...).",
    )
    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Timeout por request (segundos).",
    )

    local_store_path: Path | None = Field(
        default=None,
        description="Archivo JSON del almacén local de respaldo.",
    )
    local_only_collections: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["site_params"],
        description="Colecciones sin endpoint en el servidor (solo almacén local): lista JSON o separada por comas.",
    )

    ai_api_key: str | None = Field(
        default=None,
        description="API key para el proveedor IA (compatible OpenAI).",
    )
    ai_base_url: str = Field(
        default="https://api.openai.com/v1",
        min_length=8,
        description="Base URL compatible OpenAI.",
    )
    ai_model: str = Field(
        default="gpt-4o-mini",
        min_length=1,
        description="Modelo por defecto para análisis y asistente.",
    )
    ai_timeout_seconds: float = Field(
        default=45.0,
        gt=0,
        description="Timeout para llamadas al proveedor IA (segundos).",
    )
    ai_max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Reintentos máximos ante fallos transitorios (rate limit, red).",
    )

    default_language: Language = Field(
        default=Language.SPANISH,
        description="Idioma por defecto para mensajes y prompts (es/en).",
    )

    @field_validator("local_only_collections", mode="before")
    @classmethod
    def _split_collections(cls, value: Any) -> Any:
        """Acepta `["site_params", "transactions"]` o `site_params, transactions`."""

        if not isinstance(value, str):
            return value
        text = value.strip()
        if text.startswith("["):
            return json.loads(text)
        return [name.strip() for name in text.split(",") if name.strip()]

    @property
    def resolved_local_store_path(self) -> Path:
        return self.local_store_path or (get_user_config_dir() / "local_store.json")

    @property
    def ai_enabled(self) -> bool:
        return bool(self.ai_api_key)

    def is_local_only(self, collection: str) -> bool:
        return collection in set(self.local_only_collections)
