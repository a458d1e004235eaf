from .common import Msg

# Token & Auth
from .token import Token, TokenPayload

# Catálogo
from .submodulo import Submodulo, SubmoduloCreate, SubmoduloUpdate
from .modulo import Modulo, ModuloCreate, ModuloUpdate, ModuloSimple
from .permiso import Permiso, PermisoCreate, PermisoUpdate, PermisoSimple

# Asignaciones
from .usuario_permiso import (
    UsuarioPermiso,
    AsignacionPermisoUpdate,
    AsignacionPermisoItem,
    AsignacionesUsuarioReplace,
    CambioRolPermiso,
    BulkUpdateRequest,
    FalloFila,
    ResultadoPropagacion,
    PermisoCheckRequest,
    PermisoCheckResponse,
    PermisoEfectivo,
    PermisosUsuarioResponse,
    PermisoRolResumen,
    RolPermisosResumen,
)

# Usuario
from .usuario import Usuario, UsuarioCreate, UsuarioRegistro, UsuarioSimple

# Auditoría
from .audit_log import AuditLog

__all__ = [
    "Msg", "Token", "TokenPayload",
    "Submodulo", "SubmoduloCreate", "SubmoduloUpdate",
    "Modulo", "ModuloCreate", "ModuloUpdate", "ModuloSimple",
    "Permiso", "PermisoCreate", "PermisoUpdate", "PermisoSimple",
    "UsuarioPermiso", "AsignacionPermisoUpdate", "AsignacionPermisoItem", "AsignacionesUsuarioReplace",
    "CambioRolPermiso", "BulkUpdateRequest", "FalloFila", "ResultadoPropagacion",
    "PermisoCheckRequest", "PermisoCheckResponse", "PermisoEfectivo", "PermisosUsuarioResponse",
    "PermisoRolResumen", "RolPermisosResumen",
    "Usuario", "UsuarioCreate", "UsuarioRegistro", "UsuarioSimple",
    "AuditLog",
]
