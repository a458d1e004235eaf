import uuid
from typing import Optional, List
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict, field_validator

from .enums import AccionPermisoEnum, RolUsuarioEnum
from .permiso import PermisoSimple, ordenar_acciones

# ===============================================================
# Asignaciones individuales
# ===============================================================
class UsuarioPermiso(BaseModel):
    """Permiso otorgado a un usuario."""
    id: uuid.UUID
    usuario_id: uuid.UUID
    permiso_id: uuid.UUID
    acciones: List[AccionPermisoEnum]
    otorgado_por: Optional[uuid.UUID] = None
    otorgado_en: datetime
    expira_en: Optional[datetime] = None
    permiso: PermisoSimple

    model_config = ConfigDict(from_attributes=True)


class AsignacionPermisoUpdate(BaseModel):
    """
    Cuerpo para otorgar o editar un permiso de un usuario.
    Una lista vacía de acciones revoca el permiso.
    """
    acciones: List[AccionPermisoEnum] = Field(default_factory=list)
    expira_en: Optional[datetime] = Field(None, description="Fecha a partir de la cual el permiso deja de valer")

    @field_validator("acciones")
    @classmethod
    def normalizar_acciones(cls, v: List[AccionPermisoEnum]) -> List[AccionPermisoEnum]:
        return ordenar_acciones(v)


class AsignacionPermisoItem(AsignacionPermisoUpdate):
    permiso_id: uuid.UUID


class AsignacionesUsuarioReplace(BaseModel):
    """Conjunto completo de permisos de un usuario (reemplaza el existente)."""
    permisos: List[AsignacionPermisoItem] = Field(default_factory=list)

# ===============================================================
# Propagación masiva por rol
# ===============================================================
class CambioRolPermiso(BaseModel):
    rol: RolUsuarioEnum
    permiso_id: uuid.UUID
    acciones: List[AccionPermisoEnum] = Field(default_factory=list)

    @field_validator("rol")
    @classmethod
    def rechazar_super_admin(cls, v: RolUsuarioEnum) -> RolUsuarioEnum:
        if v == RolUsuarioEnum.SUPER_ADMIN:
            raise ValueError("El rol SUPER_ADMIN tiene acceso total y no admite cambios de permisos.")
        return v

    @field_validator("acciones")
    @classmethod
    def normalizar_acciones(cls, v: List[AccionPermisoEnum]) -> List[AccionPermisoEnum]:
        return ordenar_acciones(v)


class BulkUpdateRequest(BaseModel):
    cambios: List[CambioRolPermiso] = Field(..., min_length=1)


class FalloFila(BaseModel):
    usuario_id: uuid.UUID
    permiso_id: uuid.UUID
    rol: RolUsuarioEnum
    error: str


class ResultadoPropagacion(BaseModel):
    """Resultado de una propagación masiva; `fallos` no vacío indica éxito parcial."""
    cambios_procesados: int = 0
    filas_afectadas: int = 0
    fallos: List[FalloFila] = Field(default_factory=list)

    @property
    def parcial(self) -> bool:
        return bool(self.fallos)

# ===============================================================
# Consultas
# ===============================================================
class PermisoCheckRequest(BaseModel):
    codigo: str = Field(..., min_length=1, max_length=150)
    # Texto libre: una acción desconocida simplemente no está permitida
    accion: Optional[str] = None


class PermisoCheckResponse(BaseModel):
    codigo: str
    accion: Optional[str] = None
    tiene_permiso: bool


class PermisoEfectivo(BaseModel):
    permiso_id: uuid.UUID
    codigo: str
    nombre: str
    modulo_id: uuid.UUID
    acciones: List[AccionPermisoEnum]
    expira_en: Optional[datetime] = None


class PermisosUsuarioResponse(BaseModel):
    usuario_id: uuid.UUID
    rol: RolUsuarioEnum
    acceso_total: bool
    permisos: List[PermisoEfectivo] = Field(default_factory=list)


class PermisoRolResumen(BaseModel):
    permiso_id: uuid.UUID
    codigo: str
    acciones: List[AccionPermisoEnum]
    usuarios_con_permiso: int


class RolPermisosResumen(BaseModel):
    rol: RolUsuarioEnum
    total_usuarios: int
    permisos: List[PermisoRolResumen] = Field(default_factory=list)
