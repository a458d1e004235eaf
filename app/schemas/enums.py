from enum import Enum


class AccionPermisoEnum(str, Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    EXPORT = "EXPORT"


class RolUsuarioEnum(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"
    USER = "USER"


class ProveedorAuthEnum(str, Enum):
    CREDENTIALS = "credentials"
    GOOGLE = "google"
