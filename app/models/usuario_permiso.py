import uuid
from typing import TYPE_CHECKING, List, Optional
from datetime import datetime, timezone

from sqlalchemy import ForeignKey, DateTime, UniqueConstraint, Uuid, func, or_
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db.base import Base, JSONType

if TYPE_CHECKING:
    from .usuario import Usuario
    from .permiso import Permiso


class UsuarioPermiso(Base):
    """
    Modelo ORM para la tabla 'usuarios_permisos': permiso otorgado a un usuario
    con su conjunto de acciones. Nunca se guarda con `acciones` vacío.
    """
    __tablename__ = "usuarios_permisos"
    __table_args__ = (
        UniqueConstraint("usuario_id", "permiso_id", name="uq_usuarios_permisos_usuario_permiso"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    usuario_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("usuarios.id", ondelete="CASCADE"), index=True
    )
    permiso_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("permisos.id", ondelete="CASCADE"), index=True
    )
    acciones: Mapped[List[str]] = mapped_column(JSONType, default=list)
    otorgado_por: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("usuarios.id", ondelete="SET NULL"), nullable=True
    )
    otorgado_en: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    expira_en: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    usuario: Mapped["Usuario"] = relationship(
        "Usuario", foreign_keys=[usuario_id], back_populates="permisos_otorgados"
    )
    permiso: Mapped["Permiso"] = relationship("Permiso", back_populates="asignaciones", lazy="joined")

    def __repr__(self) -> str:
        return f"<UsuarioPermiso(usuario_id={self.usuario_id}, permiso_id={self.permiso_id}, acciones={self.acciones})>"


def condicion_vigente(ahora: Optional[datetime] = None):
    """Condición SQL de asignación no expirada; las expiradas cuentan como inexistentes."""
    ahora = ahora or datetime.now(timezone.utc)
    return or_(UsuarioPermiso.expira_en.is_(None), UsuarioPermiso.expira_en > ahora)
