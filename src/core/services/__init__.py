"""Servicios de aplicación: tokens, carga de sesión y reportes."""
