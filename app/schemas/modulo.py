import uuid
from typing import Optional, List
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict, field_validator

from .common import no_nulo
from .submodulo import Submodulo, SLUG_PATTERN


# ===============================================================
# Schema Base
# ===============================================================
class ModuloBase(BaseModel):
    """Campos base que definen un módulo del portal."""
    nombre: str = Field(..., min_length=1, max_length=100, description="Nombre visible del módulo")
    slug: str = Field(
        ...,
        min_length=1,
        max_length=100,
        pattern=SLUG_PATTERN,
        description="Identificador en minúsculas, dígitos y guiones; único en todo el portal"
    )
    descripcion: Optional[str] = Field(None, description="Descripción del módulo")
    icono: Optional[str] = Field(None, max_length=50, description="Nombre del icono en el menú")
    activo: bool = Field(True, description="Si el módulo aparece en la navegación")
    orden: int = Field(0, ge=0, description="Posición en el menú; 0 asigna la siguiente libre")

# ===============================================================
# Schema para Creación
# ===============================================================
class ModuloCreate(ModuloBase):
    pass

# ===============================================================
# Schema para Actualización
# ===============================================================
class ModuloUpdate(BaseModel):
    """Actualización parcial (PATCH) de un módulo."""
    nombre: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    descripcion: Optional[str] = None
    icono: Optional[str] = Field(None, max_length=50)
    activo: Optional[bool] = None
    orden: Optional[int] = Field(None, ge=0)

    validar_no_nulos = field_validator("nombre", "slug", "activo", "orden")(no_nulo)

# ===============================================================
# Schema para Respuesta API
# ===============================================================
class Modulo(ModuloBase):
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    submodulos: List[Submodulo] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class ModuloSimple(BaseModel):
    id: uuid.UUID
    nombre: str
    slug: str

    model_config = ConfigDict(from_attributes=True)
