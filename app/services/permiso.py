import logging
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy import select

from app.core.exceptions import ConflictError, ValidationFailedError
from app.models.permiso import Permiso
from app.models.usuario_permiso import UsuarioPermiso
from app.schemas.permiso import PermisoCreate, PermisoUpdate
from .base_service import BaseService
from .audit_log import audit_log_service
from .modulo import modulo_service
from .submodulo import submodulo_service

logger = logging.getLogger(__name__)


class PermisoService(BaseService[Permiso, PermisoCreate, PermisoUpdate]):
    """
    Servicio para el catálogo de permisos.
    """

    def get_by_codigo(self, db: Session, *, codigo: str) -> Optional[Permiso]:
        statement = select(self.model).where(self.model.codigo == codigo)
        return db.execute(statement).scalar_one_or_none()

    def get_by_codigos(self, db: Session, *, codigos: List[str]) -> List[Permiso]:
        if not codigos:
            return []
        statement = select(self.model).where(self.model.codigo.in_(codigos))
        return list(db.execute(statement).scalars().all())

    def get_multi(
        self, db: Session, *, skip: int = 0, limit: Optional[int] = 100, modulo_id: Optional[UUID] = None
    ) -> List[Permiso]:
        statement = select(self.model)
        if modulo_id:
            statement = statement.where(self.model.modulo_id == modulo_id)
        statement = statement.order_by(self.model.codigo).offset(skip).limit(limit)
        return list(db.execute(statement).scalars().all())

    def _validar_submodulo(self, db: Session, *, modulo_id: UUID, submodulo_id: Optional[UUID]) -> None:
        if submodulo_id is None:
            return
        submodulo = submodulo_service.get(db, id=submodulo_id)
        if submodulo is None or submodulo.modulo_id != modulo_id:
            logger.warning(f"Submódulo {submodulo_id} no pertenece al módulo {modulo_id}.")
            raise ValidationFailedError(
                "submodulo_id", "El submódulo indicado no existe o no pertenece al módulo del permiso."
            )

    def create(
        self,
        db: Session,
        *,
        obj_in: PermisoCreate,
        actor_id: UUID,
        metadatos: Optional[Dict[str, Any]] = None
    ) -> Permiso:
        """
        Crea un permiso. Sus acciones admitidas quedan fijas desde este momento.
        NO realiza db.commit().
        """
        logger.debug(f"Intentando crear permiso con código: {obj_in.codigo}")
        if self.get_by_codigo(db, codigo=obj_in.codigo):
            logger.warning(f"Intento de crear permiso con código duplicado: {obj_in.codigo}")
            raise ConflictError(f"Ya existe un permiso con el código '{obj_in.codigo}'.")

        modulo = modulo_service.get_or_404(db, id=obj_in.modulo_id)
        self._validar_submodulo(db, modulo_id=modulo.id, submodulo_id=obj_in.submodulo_id)

        data = obj_in.model_dump()
        data["acciones"] = [a.value for a in obj_in.acciones]
        db_obj = self.model(**data)
        db.add(db_obj)
        self.flush_unique(db, detail=f"Ya existe un permiso con el código '{obj_in.codigo}'.")

        audit_log_service.record(
            db,
            actor_id=actor_id,
            accion="permission.created",
            entidad="Permiso",
            entidad_id=db_obj.id,
            cambios={"after": self.snapshot(db_obj)},
            metadatos=metadatos,
        )
        logger.info(f"Permiso '{db_obj.codigo}' preparado para ser creado con acciones {db_obj.acciones}.")
        return db_obj

    def update(
        self,
        db: Session,
        *,
        db_obj: Permiso,
        obj_in: Union[PermisoUpdate, Dict[str, Any]],
        actor_id: UUID,
        metadatos: Optional[Dict[str, Any]] = None
    ) -> Permiso:
        update_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        # El código y el techo de acciones son inmutables
        update_data.pop("codigo", None)
        update_data.pop("acciones", None)

        if "submodulo_id" in update_data:
            self._validar_submodulo(db, modulo_id=db_obj.modulo_id, submodulo_id=update_data["submodulo_id"])

        antes = self.snapshot(db_obj)
        db_obj = super().update(db, db_obj=db_obj, obj_in=update_data)
        db.flush()

        audit_log_service.record(
            db,
            actor_id=actor_id,
            accion="permission.updated",
            entidad="Permiso",
            entidad_id=db_obj.id,
            cambios={"before": antes, "after": self.snapshot(db_obj)},
            metadatos=metadatos,
        )
        return db_obj

    def remove(
        self,
        db: Session,
        *,
        id: UUID,
        actor_id: UUID,
        metadatos: Optional[Dict[str, Any]] = None
    ) -> Permiso:
        """
        Elimina un permiso junto con sus asignaciones a usuarios.
        NO realiza db.commit().
        """
        db_obj = self.get_or_404(db, id=id)
        antes = self.snapshot(db_obj)

        asignaciones = db.execute(
            select(UsuarioPermiso).where(UsuarioPermiso.permiso_id == id)
        ).unique().scalars().all()
        total_asignaciones = len(asignaciones)
        for asignacion in asignaciones:
            db.delete(asignacion)
        db.delete(db_obj)

        audit_log_service.record(
            db,
            actor_id=actor_id,
            accion="permission.deleted",
            entidad="Permiso",
            entidad_id=id,
            cambios={"before": antes, "asignaciones_eliminadas": total_asignaciones},
            metadatos=metadatos,
        )
        logger.warning(
            f"Permiso '{antes['codigo']}' (ID: {id}) preparado para ser eliminado junto con "
            f"{total_asignaciones} asignación(es)."
        )
        return db_obj


permiso_service = PermisoService(Permiso)
