import uuid
from pydantic import BaseModel, EmailStr, Field, ConfigDict
from datetime import datetime
from typing import Optional, List

from .enums import RolUsuarioEnum, ProveedorAuthEnum


class UsuarioBase(BaseModel):
    """Campos base que comparte un usuario."""
    nombre: str = Field(..., min_length=2, max_length=150, description="Nombre completo")
    email: EmailStr = Field(..., description="Correo electrónico, único")


class UsuarioRegistro(UsuarioBase):
    """Auto-registro público; la cuenta nace con rol USER."""
    password: str = Field(..., min_length=8)


class UsuarioCreate(UsuarioBase):
    """
    Alta hecha por un administrador. `permiso_ids` se suma a los permisos
    por defecto del rol.
    """
    password: str = Field(..., min_length=8)
    rol: RolUsuarioEnum = RolUsuarioEnum.USER
    permiso_ids: List[uuid.UUID] = Field(default_factory=list, description="Permisos adicionales a otorgar")


class Usuario(UsuarioBase):
    """Schema para devolver al cliente; excluye la contraseña."""
    id: uuid.UUID
    rol: RolUsuarioEnum
    proveedor_auth: ProveedorAuthEnum
    activo: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UsuarioSimple(BaseModel):
    id: uuid.UUID
    nombre: str
    email: EmailStr

    model_config = ConfigDict(from_attributes=True)
