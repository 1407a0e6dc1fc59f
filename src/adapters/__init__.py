"""Adaptadores de infraestructura: HTTP, almacenamiento local, repositorios e IA."""
