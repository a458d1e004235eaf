import datetime
import uuid
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, Boolean, String, Enum as SAEnum, Uuid
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base
from app.schemas.enums import RolUsuarioEnum, ProveedorAuthEnum

if TYPE_CHECKING:
    from .usuario_permiso import UsuarioPermiso


class Usuario(Base):
    """
    Modelo ORM para la tabla 'usuarios'.
    """
    __tablename__ = "usuarios"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    nombre: Mapped[str] = mapped_column(String(150))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    # Las cuentas creadas por login social no tienen contraseña
    hashed_password: Mapped[Optional[str]] = mapped_column("contrasena", String, nullable=True)
    rol: Mapped[RolUsuarioEnum] = mapped_column(
        SAEnum(RolUsuarioEnum, name="rol_usuario"), default=RolUsuarioEnum.USER, index=True
    )
    proveedor_auth: Mapped[ProveedorAuthEnum] = mapped_column(
        SAEnum(ProveedorAuthEnum, name="proveedor_auth", values_callable=lambda e: [m.value for m in e]),
        default=ProveedorAuthEnum.CREDENTIALS
    )
    activo: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    permisos_otorgados: Mapped[List["UsuarioPermiso"]] = relationship(
        "UsuarioPermiso",
        foreign_keys="UsuarioPermiso.usuario_id",
        back_populates="usuario",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    @property
    def is_super_admin(self) -> bool:
        return self.rol == RolUsuarioEnum.SUPER_ADMIN

    def __repr__(self) -> str:
        return f"<Usuario(id={self.id}, email='{self.email}', rol={self.rol})>"
