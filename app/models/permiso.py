import uuid
from typing import TYPE_CHECKING, List, Optional
from datetime import datetime

from sqlalchemy import String, Text, DateTime, ForeignKey, Uuid, func
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db.base import Base, JSONType

if TYPE_CHECKING:
    from .modulo import Modulo
    from .submodulo import Submodulo
    from .usuario_permiso import UsuarioPermiso


class Permiso(Base):
    """
    Modelo ORM para la tabla 'permisos'.

    `acciones` es el techo de acciones que admite el permiso (lista de
    AccionPermisoEnum). Se fija al crear el permiso y no se modifica después.
    """
    __tablename__ = "permisos"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    nombre: Mapped[str] = mapped_column(String(100))
    codigo: Mapped[str] = mapped_column(String(150), unique=True, index=True)
    descripcion: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    modulo_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("modulos.id", ondelete="RESTRICT"), index=True
    )
    submodulo_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("submodulos.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    acciones: Mapped[List[str]] = mapped_column(JSONType, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    modulo: Mapped["Modulo"] = relationship("Modulo", back_populates="permisos")
    submodulo: Mapped[Optional["Submodulo"]] = relationship("Submodulo", back_populates="permisos")
    asignaciones: Mapped[List["UsuarioPermiso"]] = relationship(
        "UsuarioPermiso",
        back_populates="permiso",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Permiso(id={self.id}, codigo='{self.codigo}')>"
