"""
Módulo de Servicios

Este paquete contiene la lógica de negocio y las interacciones
con la base de datos para las diferentes entidades de la aplicación.

Cada módulo define un servicio (una instancia de una clase) que encapsula
las operaciones CRUD y específicas de su modelo ORM. Ningún servicio hace
commit salvo la propagación masiva, que confirma fila por fila.
"""

from .audit_log import audit_log_service
from .modulo import modulo_service
from .submodulo import submodulo_service
from .permiso import permiso_service
from .usuario_permiso import usuario_permiso_service
from .autorizacion import autorizacion_service
from .permisos_por_defecto import permisos_por_defecto_service
from .usuario import usuario_service
from .propagacion import propagacion_service

__all__ = [
    "audit_log_service",
    "modulo_service",
    "submodulo_service",
    "permiso_service",
    "usuario_permiso_service",
    "autorizacion_service",
    "permisos_por_defecto_service",
    "usuario_service",
    "propagacion_service",
]
