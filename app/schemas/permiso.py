import uuid
from typing import Optional, List
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict, field_validator

from .common import no_nulo
from .enums import AccionPermisoEnum

CODIGO_PATTERN = r"^[a-z0-9_-]+(\.[a-z0-9_-]+)+$"


def ordenar_acciones(acciones: List[AccionPermisoEnum]) -> List[AccionPermisoEnum]:
    # Conserva el orden de AccionPermisoEnum
    presentes = set(acciones)
    return [a for a in AccionPermisoEnum if a in presentes]

# ===============================================================
# Schema Base
# ===============================================================
class PermisoBase(BaseModel):
    """Campos base que definen un permiso del catálogo."""
    nombre: str = Field(..., min_length=3, max_length=100, description="Nombre legible del permiso")
    descripcion: Optional[str] = Field(None, description="Qué autoriza este permiso")

# ===============================================================
# Schema para Creación
# ===============================================================
class PermisoCreate(PermisoBase):
    codigo: str = Field(
        ...,
        max_length=150,
        pattern=CODIGO_PATTERN,
        description="Código con puntos, ej: dashboard.access"
    )
    modulo_id: uuid.UUID
    submodulo_id: Optional[uuid.UUID] = None
    acciones: List[AccionPermisoEnum] = Field(
        ...,
        min_length=1,
        description="Acciones que admite el permiso; no se pueden cambiar después"
    )

    @field_validator("acciones")
    @classmethod
    def normalizar_acciones(cls, v: List[AccionPermisoEnum]) -> List[AccionPermisoEnum]:
        return ordenar_acciones(v)

# ===============================================================
# Schema para Actualización
# ===============================================================
class PermisoUpdate(BaseModel):
    """
    Actualización parcial. El código y las acciones admitidas son inmutables.
    """
    nombre: Optional[str] = Field(None, min_length=3, max_length=100)
    descripcion: Optional[str] = None
    submodulo_id: Optional[uuid.UUID] = None

    validar_no_nulos = field_validator("nombre")(no_nulo)

# ===============================================================
# Schema para Respuesta API
# ===============================================================
class Permiso(PermisoBase):
    id: uuid.UUID
    codigo: str
    modulo_id: uuid.UUID
    submodulo_id: Optional[uuid.UUID] = None
    acciones: List[AccionPermisoEnum]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PermisoSimple(BaseModel):
    id: uuid.UUID
    codigo: str
    nombre: str
    acciones: List[AccionPermisoEnum]

    model_config = ConfigDict(from_attributes=True)
