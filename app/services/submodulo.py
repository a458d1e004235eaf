import logging
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy import func, select

from app.core.exceptions import ConflictError
from app.models.submodulo import Submodulo
from app.models.permiso import Permiso
from app.schemas.submodulo import SubmoduloCreate, SubmoduloUpdate
from .base_service import BaseService
from .audit_log import audit_log_service
from .modulo import modulo_service

logger = logging.getLogger(__name__)


class SubmoduloService(BaseService[Submodulo, SubmoduloCreate, SubmoduloUpdate]):
    """
    Servicio para submódulos. El slug solo debe ser único dentro del módulo padre.
    """

    def get_by_slug(self, db: Session, *, modulo_id: UUID, slug: str) -> Optional[Submodulo]:
        statement = select(self.model).where(
            self.model.modulo_id == modulo_id,
            self.model.slug == slug
        )
        return db.execute(statement).scalar_one_or_none()

    def get_multi_by_modulo(self, db: Session, *, modulo_id: UUID) -> List[Submodulo]:
        statement = (
            select(self.model)
            .where(self.model.modulo_id == modulo_id)
            .order_by(self.model.orden, self.model.nombre)
        )
        return list(db.execute(statement).scalars().all())

    def siguiente_orden(self, db: Session, *, modulo_id: UUID) -> int:
        maximo = db.execute(
            select(func.max(self.model.orden)).where(self.model.modulo_id == modulo_id)
        ).scalar_one_or_none()
        return (maximo or 0) + 1

    def create(
        self,
        db: Session,
        *,
        obj_in: SubmoduloCreate,
        actor_id: UUID,
        metadatos: Optional[Dict[str, Any]] = None
    ) -> Submodulo:
        modulo = modulo_service.get_or_404(db, id=obj_in.modulo_id)

        if self.get_by_slug(db, modulo_id=modulo.id, slug=obj_in.slug):
            logger.warning(f"Slug de submódulo duplicado '{obj_in.slug}' en módulo '{modulo.slug}'.")
            raise ConflictError(f"Ya existe un submódulo con el slug '{obj_in.slug}' en el módulo '{modulo.slug}'.")

        data = obj_in.model_dump()
        if not data["orden"]:
            data["orden"] = self.siguiente_orden(db, modulo_id=modulo.id)

        db_obj = self.model(**data)
        db.add(db_obj)
        self.flush_unique(db, detail=f"Ya existe un submódulo con el slug '{obj_in.slug}' en el módulo.")

        audit_log_service.record(
            db,
            actor_id=actor_id,
            accion="submodule.created",
            entidad="Submodulo",
            entidad_id=db_obj.id,
            cambios={"after": self.snapshot(db_obj)},
            metadatos=metadatos,
        )
        logger.info(f"Submódulo '{db_obj.slug}' preparado para ser creado en módulo '{modulo.slug}'.")
        return db_obj

    def update(
        self,
        db: Session,
        *,
        db_obj: Submodulo,
        obj_in: Union[SubmoduloUpdate, Dict[str, Any]],
        actor_id: UUID,
        metadatos: Optional[Dict[str, Any]] = None
    ) -> Submodulo:
        update_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        nuevo_slug = update_data.get("slug")
        if nuevo_slug and nuevo_slug != db_obj.slug:
            existente = self.get_by_slug(db, modulo_id=db_obj.modulo_id, slug=nuevo_slug)
            if existente and existente.id != db_obj.id:
                raise ConflictError(f"Ya existe un submódulo con el slug '{nuevo_slug}' en el módulo.")

        antes = self.snapshot(db_obj)
        db_obj = super().update(db, db_obj=db_obj, obj_in=update_data)
        self.flush_unique(db, detail=f"Ya existe un submódulo con el slug '{nuevo_slug}' en el módulo.")

        audit_log_service.record(
            db,
            actor_id=actor_id,
            accion="submodule.updated",
            entidad="Submodulo",
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
    ) -> Submodulo:
        db_obj = self.get_or_404(db, id=id)

        total_permisos = db.execute(
            select(func.count(Permiso.id)).where(Permiso.submodulo_id == id)
        ).scalar_one()
        if total_permisos:
            logger.warning(f"Intento de eliminar submódulo '{db_obj.slug}' con {total_permisos} permiso(s).")
            raise ConflictError("No se puede eliminar un submódulo con permisos asociados.")

        antes = self.snapshot(db_obj)
        db.delete(db_obj)
        audit_log_service.record(
            db,
            actor_id=actor_id,
            accion="submodule.deleted",
            entidad="Submodulo",
            entidad_id=id,
            cambios={"before": antes},
            metadatos=metadatos,
        )
        logger.warning(f"Submódulo '{antes['slug']}' (ID: {id}) preparado para ser eliminado.")
        return db_obj


submodulo_service = SubmoduloService(Submodulo)
