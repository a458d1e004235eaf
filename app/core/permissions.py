from typing import Dict, List

from pydantic import BaseModel, Field

from app.schemas.enums import AccionPermisoEnum as A, RolUsuarioEnum

# =================================================================
# Códigos de Permiso del Portal
# =================================================================
# Códigos con puntos usados por las rutas del propio portal.
# =================================================================

PERM_DASHBOARD = "dashboard.access"
PERM_SETTINGS = "settings.access"
PERM_USERS = "users.access"
PERM_ROLES = "roles.access"
PERM_MODULES = "modules.access"
PERM_AUDIT = "audit.access"
PERM_CONSTANCIAS = "constancias.access"
PERM_RESOLUCIONES = "resoluciones.access"
PERM_ARTICLES = "articles.access"
# Permiso de administración del sistema; nunca se otorga por defecto
PERM_SYSTEM_ADMIN = "system.admin"

TODAS_LAS_ACCIONES = [A.CREATE, A.READ, A.UPDATE, A.DELETE, A.EXPORT]
ACCIONES_CRUD = [A.CREATE, A.READ, A.UPDATE, A.DELETE]


# =================================================================
# Catálogo Base
# =================================================================
# Módulos, submódulos y permisos que carga scripts/seed_catalogo.py.
# =================================================================

CATALOGO_BASE: List[dict] = [
    {
        "nombre": "Dashboard", "slug": "dashboard", "icono": "layout-dashboard", "orden": 1,
        "submodulos": [],
        "permisos": [
            {"codigo": PERM_DASHBOARD, "nombre": "Acceso al dashboard", "acciones": [A.READ, A.EXPORT]},
        ],
    },
    {
        "nombre": "Documentos", "slug": "documentos", "icono": "file-text", "orden": 2,
        "submodulos": [
            {"nombre": "Constancias", "slug": "constancias", "orden": 1},
            {"nombre": "Resoluciones", "slug": "resoluciones", "orden": 2},
        ],
        "permisos": [
            {"codigo": PERM_CONSTANCIAS, "nombre": "Gestión de constancias", "submodulo": "constancias",
             "acciones": TODAS_LAS_ACCIONES},
            {"codigo": PERM_RESOLUCIONES, "nombre": "Gestión de resoluciones", "submodulo": "resoluciones",
             "acciones": TODAS_LAS_ACCIONES},
        ],
    },
    {
        "nombre": "Artículos", "slug": "articulos", "icono": "newspaper", "orden": 3,
        "submodulos": [],
        "permisos": [
            {"codigo": PERM_ARTICLES, "nombre": "Gestión de artículos", "acciones": TODAS_LAS_ACCIONES},
        ],
    },
    {
        "nombre": "Usuarios", "slug": "usuarios", "icono": "users", "orden": 4,
        "submodulos": [],
        "permisos": [
            {"codigo": PERM_USERS, "nombre": "Gestión de usuarios", "acciones": TODAS_LAS_ACCIONES},
        ],
    },
    {
        "nombre": "Roles y Permisos", "slug": "roles", "icono": "shield", "orden": 5,
        "submodulos": [],
        "permisos": [
            {"codigo": PERM_ROLES, "nombre": "Gestión de permisos por rol", "acciones": ACCIONES_CRUD},
            {"codigo": PERM_MODULES, "nombre": "Gestión del catálogo de módulos", "acciones": ACCIONES_CRUD},
        ],
    },
    {
        "nombre": "Auditoría", "slug": "auditoria", "icono": "history", "orden": 6,
        "submodulos": [],
        "permisos": [
            {"codigo": PERM_AUDIT, "nombre": "Consulta de auditoría", "acciones": [A.READ, A.EXPORT]},
        ],
    },
    {
        "nombre": "Configuración", "slug": "configuracion", "icono": "settings", "orden": 7,
        "submodulos": [],
        "permisos": [
            {"codigo": PERM_SETTINGS, "nombre": "Configuración personal", "acciones": [A.READ, A.UPDATE]},
            {"codigo": PERM_SYSTEM_ADMIN, "nombre": "Administración del sistema", "acciones": TODAS_LAS_ACCIONES},
        ],
    },
]


# =================================================================
# Permisos por Defecto según Rol
# =================================================================

class PoliticaRol(BaseModel):
    """
    Permisos que recibe una cuenta nueva de un rol.

    Con `todos_los_permisos` se otorga cada permiso del catálogo (salvo los de
    `excluir`) con todas sus acciones admitidas.
    """
    permisos: Dict[str, List[A]] = Field(default_factory=dict)
    todos_los_permisos: bool = False
    excluir: List[str] = Field(default_factory=list)


DEFAULT_GRANT_POLICY_VERSION = 1

DEFAULT_GRANT_POLICY: Dict[RolUsuarioEnum, PoliticaRol] = {
    RolUsuarioEnum.USER: PoliticaRol(
        permisos={
            PERM_DASHBOARD: [A.READ],
            PERM_SETTINGS: [A.READ, A.UPDATE],
        },
    ),
    RolUsuarioEnum.MODERATOR: PoliticaRol(
        permisos={
            PERM_DASHBOARD: [A.READ, A.EXPORT],
            PERM_CONSTANCIAS: [A.CREATE, A.READ, A.UPDATE, A.EXPORT],
            PERM_RESOLUCIONES: [A.CREATE, A.READ, A.UPDATE, A.EXPORT],
            PERM_ARTICLES: [A.CREATE, A.READ, A.UPDATE, A.EXPORT],
        },
    ),
    RolUsuarioEnum.ADMIN: PoliticaRol(todos_los_permisos=True, excluir=[PERM_SYSTEM_ADMIN]),
    # Acceso total implícito: no se siembra nada
    RolUsuarioEnum.SUPER_ADMIN: PoliticaRol(),
}
