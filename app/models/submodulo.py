import uuid
from typing import TYPE_CHECKING, List, Optional
from datetime import datetime

from sqlalchemy import String, Text, DateTime, Boolean, Integer, ForeignKey, UniqueConstraint, Uuid, func
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db.base import Base

if TYPE_CHECKING:
    from .modulo import Modulo
    from .permiso import Permiso


class Submodulo(Base):
    """
    Modelo ORM para la tabla 'submodulos'. El slug es único dentro de su módulo.
    """
    __tablename__ = "submodulos"
    __table_args__ = (
        UniqueConstraint("modulo_id", "slug", name="uq_submodulos_modulo_slug"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    modulo_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("modulos.id", ondelete="RESTRICT"), index=True
    )
    nombre: Mapped[str] = mapped_column(String(100))
    slug: Mapped[str] = mapped_column(String(100))
    descripcion: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    icono: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    activo: Mapped[bool] = mapped_column(Boolean, default=True)
    orden: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    modulo: Mapped["Modulo"] = relationship("Modulo", back_populates="submodulos")
    permisos: Mapped[List["Permiso"]] = relationship(
        "Permiso",
        back_populates="submodulo",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Submodulo(id={self.id}, modulo_id={self.modulo_id}, slug='{self.slug}')>"
