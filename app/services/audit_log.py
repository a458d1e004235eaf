import logging
from typing import Optional, List, Dict, Any, Union
from uuid import UUID
from datetime import datetime, timedelta

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session
from sqlalchemy import select

from app.models.audit_log import AuditLog as AuditLogModel

logger = logging.getLogger(__name__)


class AuditLogService:
    """
    Registro y consulta de la auditoría.

    `record` solo agrega la fila a la sesión del llamador: queda en la misma
    unidad de trabajo que el cambio que describe y se confirma con él.
    No existe API para modificar ni borrar registros.
    """
    model = AuditLogModel

    def record(
        self,
        db: Session,
        *,
        actor_id: UUID,
        accion: str,
        entidad: str,
        entidad_id: Union[UUID, str],
        cambios: Optional[Dict[str, Any]] = None,
        metadatos: Optional[Dict[str, Any]] = None,
    ) -> AuditLogModel:
        db_obj = self.model(
            usuario_id=actor_id,
            accion=accion,
            entidad=entidad,
            entidad_id=str(entidad_id),
            cambios=jsonable_encoder(cambios) if cambios is not None else None,
            metadatos=metadatos or {},
        )
        db.add(db_obj)
        logger.info(f"Auditoría preparada: {accion} sobre {entidad} '{entidad_id}' por usuario {actor_id}")
        return db_obj

    def get(self, db: Session, *, id: UUID) -> Optional[AuditLogModel]:
        return db.get(self.model, id)

    def get_multi(
        self,
        db: Session,
        *,
        skip: int = 0,
        limit: int = 100,
        usuario_id: Optional[UUID] = None,
        accion: Optional[str] = None,
        entidad: Optional[str] = None,
        entidad_id: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None
    ) -> List[AuditLogModel]:
        """
        Obtiene registros de auditoría con filtros opcionales, ordenados por fecha descendente.
        """
        logger.debug(
            f"Listando auditoría con filtros: Usuario='{usuario_id}', Accion='{accion}', Entidad='{entidad}', "
            f"EntidadID='{entidad_id}', RangoTiempo='{start_time}-{end_time}' (Skip: {skip}, Limit: {limit})"
        )
        statement = select(self.model)

        if usuario_id:
            statement = statement.where(self.model.usuario_id == usuario_id)
        if accion:
            statement = statement.where(self.model.accion == accion)
        if entidad:
            statement = statement.where(self.model.entidad == entidad)
        if entidad_id:
            statement = statement.where(self.model.entidad_id == entidad_id)
        if start_time:
            statement = statement.where(self.model.created_at >= start_time)
        if end_time:
            end_date_inclusive = end_time
            if end_time.hour == 0 and end_time.minute == 0 and end_time.second == 0:
                # Si solo se pasa la fecha, incluir todo el día
                end_date_inclusive = end_time + timedelta(days=1, microseconds=-1)
            statement = statement.where(self.model.created_at <= end_date_inclusive)

        statement = statement.order_by(self.model.created_at.desc()).offset(skip).limit(limit)
        return list(db.execute(statement).scalars().all())


audit_log_service = AuditLogService()
