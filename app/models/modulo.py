import uuid
from typing import TYPE_CHECKING, List, Optional
from datetime import datetime

from sqlalchemy import String, Text, DateTime, Boolean, Integer, Uuid, func
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db.base import Base

if TYPE_CHECKING:
    from .submodulo import Submodulo
    from .permiso import Permiso


class Modulo(Base):
    """
    Modelo ORM para la tabla 'modulos'. Agrupación de primer nivel del catálogo.
    """
    __tablename__ = "modulos"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    nombre: Mapped[str] = mapped_column(String(100))
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    descripcion: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    icono: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    activo: Mapped[bool] = mapped_column(Boolean, default=True)
    orden: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    submodulos: Mapped[List["Submodulo"]] = relationship(
        "Submodulo",
        back_populates="modulo",
        order_by="Submodulo.orden",
        lazy="selectin"
    )
    permisos: Mapped[List["Permiso"]] = relationship(
        "Permiso",
        back_populates="modulo",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Modulo(id={self.id}, slug='{self.slug}')>"
