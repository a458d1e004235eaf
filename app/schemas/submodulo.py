import uuid
from typing import Optional
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict, field_validator

from .common import no_nulo

SLUG_PATTERN = r"^[a-z0-9-]+$"


class SubmoduloBase(BaseModel):
    """Campos base de un submódulo; el slug es único dentro de su módulo."""
    nombre: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(..., min_length=1, max_length=100, pattern=SLUG_PATTERN)
    descripcion: Optional[str] = None
    icono: Optional[str] = Field(None, max_length=50)
    activo: bool = True
    orden: int = Field(0, ge=0, description="Posición dentro del módulo; 0 asigna la siguiente libre")


class SubmoduloCreate(SubmoduloBase):
    modulo_id: uuid.UUID = Field(..., description="Módulo al que pertenece")


class SubmoduloUpdate(BaseModel):
    """El módulo padre no se puede cambiar."""
    nombre: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    descripcion: Optional[str] = None
    icono: Optional[str] = Field(None, max_length=50)
    activo: Optional[bool] = None
    orden: Optional[int] = Field(None, ge=0)

    validar_no_nulos = field_validator("nombre", "slug", "activo", "orden")(no_nulo)


class Submodulo(SubmoduloBase):
    id: uuid.UUID
    modulo_id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
