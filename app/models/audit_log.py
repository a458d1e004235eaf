import uuid
from typing import Optional, Dict, Any
from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, JSONType


class AuditLog(Base):
    """
    Modelo ORM para la tabla 'audit_log'. Solo se inserta; no hay API de
    modificación ni borrado.
    """
    __tablename__ = "audit_log"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    usuario_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("usuarios.id", ondelete="RESTRICT"), index=True
    )
    accion: Mapped[str] = mapped_column(String(100), index=True)
    entidad: Mapped[str] = mapped_column(String(100))
    entidad_id: Mapped[str] = mapped_column(String(100), index=True)
    cambios: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    metadatos: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, accion='{self.accion}', entidad='{self.entidad}', entidad_id='{self.entidad_id}')>"
