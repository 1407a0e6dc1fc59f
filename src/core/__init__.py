"""Núcleo: configuración, dominio, errores y servicios de sesión."""
