"""Entidades del dominio de ComunidadPro.

Por qué:
- Miembros, ministerios, categorías, transacciones y usuarios son modelos
  Pydantic v2 que aceptan el JSON camelCase de la API tal cual llega.
- El dominio no conoce HTTP, CLI, ni SDKs: solo conceptos de la comunidad.
"""
