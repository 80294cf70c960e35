"""Core module - Núcleo del crawler.

Estructura:
- domain/      → Registros de provisioning, errores y contrato del backend
"""
