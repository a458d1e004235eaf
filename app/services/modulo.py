import logging
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy import func, select

from app.core.exceptions import ConflictError
from app.models.modulo import Modulo
from app.models.submodulo import Submodulo
from app.models.permiso import Permiso
from app.models.usuario import Usuario
from app.models.usuario_permiso import UsuarioPermiso, condicion_vigente
from app.schemas.modulo import ModuloCreate, ModuloUpdate
from .base_service import BaseService
from .audit_log import audit_log_service


logger = logging.getLogger(__name__)


class ModuloService(BaseService[Modulo, ModuloCreate, ModuloUpdate]):
    """
    Servicio para el catálogo de módulos. Cada mutación deja su registro de auditoría.
    """

    def get_by_slug(self, db: Session, *, slug: str) -> Optional[Modulo]:
        statement = select(self.model).where(self.model.slug == slug)
        return db.execute(statement).scalar_one_or_none()

    def get_multi(
        self, db: Session, *, skip: int = 0, limit: Optional[int] = 100, solo_activos: bool = False
    ) -> List[Modulo]:
        statement = select(self.model)
        if solo_activos:
            statement = statement.where(self.model.activo.is_(True))
        statement = statement.order_by(self.model.orden, self.model.nombre).offset(skip).limit(limit)
        return list(db.execute(statement).scalars().all())

    def siguiente_orden(self, db: Session) -> int:
        maximo = db.execute(select(func.max(self.model.orden))).scalar_one_or_none()
        return (maximo or 0) + 1

    def create(
        self,
        db: Session,
        *,
        obj_in: ModuloCreate,
        actor_id: UUID,
        metadatos: Optional[Dict[str, Any]] = None
    ) -> Modulo:
        """
        Crea un módulo. Con `orden` 0 se coloca al final del menú.
        NO realiza db.commit().
        """
        logger.debug(f"Intentando crear módulo con slug: {obj_in.slug}")
        if self.get_by_slug(db, slug=obj_in.slug):
            logger.warning(f"Intento de crear módulo con slug duplicado: {obj_in.slug}")
            raise ConflictError(f"Ya existe un módulo con el slug '{obj_in.slug}'.")

        data = obj_in.model_dump()
        if not data["orden"]:
            data["orden"] = self.siguiente_orden(db)

        db_obj = self.model(**data)
        db.add(db_obj)
        self.flush_unique(db, detail=f"Ya existe un módulo con el slug '{obj_in.slug}'.")

        audit_log_service.record(
            db,
            actor_id=actor_id,
            accion="module.created",
            entidad="Modulo",
            entidad_id=db_obj.id,
            cambios={"after": self.snapshot(db_obj)},
            metadatos=metadatos,
        )
        logger.info(f"Módulo '{db_obj.slug}' preparado para ser creado (orden {db_obj.orden}).")
        return db_obj

    def update(
        self,
        db: Session,
        *,
        db_obj: Modulo,
        obj_in: Union[ModuloUpdate, Dict[str, Any]],
        actor_id: UUID,
        metadatos: Optional[Dict[str, Any]] = None
    ) -> Modulo:
        update_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        nuevo_slug = update_data.get("slug")
        if nuevo_slug and nuevo_slug != db_obj.slug:
            existente = self.get_by_slug(db, slug=nuevo_slug)
            if existente and existente.id != db_obj.id:
                logger.warning(f"Conflicto de slug al actualizar módulo ID {db_obj.id} a '{nuevo_slug}'.")
                raise ConflictError(f"Ya existe un módulo con el slug '{nuevo_slug}'.")

        antes = self.snapshot(db_obj)
        db_obj = super().update(db, db_obj=db_obj, obj_in=update_data)
        self.flush_unique(db, detail=f"Ya existe un módulo con el slug '{nuevo_slug}'.")

        audit_log_service.record(
            db,
            actor_id=actor_id,
            accion="module.updated",
            entidad="Modulo",
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
    ) -> Modulo:
        """
        Elimina un módulo sin submódulos ni permisos asociados.
        NO realiza db.commit().
        """
        db_obj = self.get_or_404(db, id=id)

        total_submodulos = db.execute(
            select(func.count(Submodulo.id)).where(Submodulo.modulo_id == id)
        ).scalar_one()
        total_permisos = db.execute(
            select(func.count(Permiso.id)).where(Permiso.modulo_id == id)
        ).scalar_one()
        if total_submodulos or total_permisos:
            logger.warning(
                f"Intento de eliminar módulo '{db_obj.slug}' con {total_submodulos} submódulo(s) "
                f"y {total_permisos} permiso(s) asociados."
            )
            raise ConflictError("No se puede eliminar un módulo con submódulos o permisos asociados.")

        antes = self.snapshot(db_obj)
        db.delete(db_obj)
        audit_log_service.record(
            db,
            actor_id=actor_id,
            accion="module.deleted",
            entidad="Modulo",
            entidad_id=id,
            cambios={"before": antes},
            metadatos=metadatos,
        )
        logger.warning(f"Módulo '{antes['slug']}' (ID: {id}) preparado para ser eliminado.")
        return db_obj

    def get_user_modules(self, db: Session, *, usuario: Usuario) -> List[Modulo]:
        """
        Módulos activos visibles para el usuario en la navegación: todos para
        SUPER_ADMIN; para el resto, los que tienen algún permiso vigente suyo.
        """
        if usuario.is_super_admin:
            return self.get_multi(db, limit=None, solo_activos=True)

        ids_visibles = (
            select(Permiso.modulo_id)
            .join(UsuarioPermiso, UsuarioPermiso.permiso_id == Permiso.id)
            .where(UsuarioPermiso.usuario_id == usuario.id, condicion_vigente())
        )
        statement = (
            select(self.model)
            .where(self.model.activo.is_(True), self.model.id.in_(ids_visibles))
            .order_by(self.model.orden, self.model.nombre)
        )
        return list(db.execute(statement).scalars().all())


modulo_service = ModuloService(Modulo)
