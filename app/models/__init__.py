from .audit_log import AuditLog
from .modulo import Modulo
from .permiso import Permiso
from .submodulo import Submodulo
from .usuario import Usuario
from .usuario_permiso import UsuarioPermiso


__all__ = [
    "AuditLog",
    "Modulo",
    "Permiso",
    "Submodulo",
    "Usuario",
    "UsuarioPermiso",
]
