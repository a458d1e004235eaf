import logging
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID
from datetime import datetime, timezone

from sqlalchemy.orm import Session
from sqlalchemy import func, select

from app.core.exceptions import NotFoundError, ValidationFailedError
from app.models.permiso import Permiso
from app.models.usuario import Usuario
from app.models.usuario_permiso import UsuarioPermiso, condicion_vigente
from app.schemas.enums import AccionPermisoEnum, RolUsuarioEnum
from app.schemas.usuario_permiso import AsignacionPermisoItem, AsignacionPermisoUpdate
from .base_service import BaseService
from .audit_log import audit_log_service
from .permiso import permiso_service

logger = logging.getLogger(__name__)


def _a_utc(valor: Optional[datetime]) -> Optional[datetime]:
    if valor is None:
        return None
    if valor.tzinfo is None:
        return valor.replace(tzinfo=timezone.utc)
    return valor.astimezone(timezone.utc)


class UsuarioPermisoService(BaseService[UsuarioPermiso, AsignacionPermisoItem, AsignacionPermisoUpdate]):
    """
    Almacén de permisos otorgados a usuarios.

    `upsert` es la primitiva sin auditoría que usan la propagación por rol y la
    siembra de permisos por defecto; `grant`, `revoke` y `replace_user_grants`
    son las ediciones administrativas y registran su propia auditoría.
    """

    def get_by_usuario_permiso(
        self, db: Session, *, usuario_id: UUID, permiso_id: UUID
    ) -> Optional[UsuarioPermiso]:
        statement = select(self.model).where(
            self.model.usuario_id == usuario_id,
            self.model.permiso_id == permiso_id
        )
        return db.execute(statement).scalar_one_or_none()

    def get_by_usuario(
        self, db: Session, *, usuario_id: UUID, incluir_expirados: bool = False
    ) -> List[UsuarioPermiso]:
        statement = (
            select(self.model)
            .join(Permiso, Permiso.id == self.model.permiso_id)
            .where(self.model.usuario_id == usuario_id)
        )
        if not incluir_expirados:
            statement = statement.where(condicion_vigente())
        statement = statement.order_by(Permiso.codigo)
        return list(db.execute(statement).scalars().unique().all())

    def validar_acciones(self, permiso: Permiso, acciones: Iterable[Any]) -> List[str]:
        """
        Devuelve las acciones normalizadas (orden del enum) o lanza
        ValidationFailedError si alguna excede lo que admite el permiso.
        """
        solicitadas = {AccionPermisoEnum(a).value for a in acciones}
        fuera = sorted(solicitadas - set(permiso.acciones))
        if fuera:
            raise ValidationFailedError(
                "acciones",
                f"El permiso '{permiso.codigo}' no admite las acciones: {', '.join(fuera)}."
            )
        return [a.value for a in AccionPermisoEnum if a.value in solicitadas]

    def upsert(
        self,
        db: Session,
        *,
        usuario_id: UUID,
        permiso: Permiso,
        acciones: Iterable[Any],
        otorgado_por: Optional[UUID] = None,
        expira_en: Optional[datetime] = None
    ) -> Optional[UsuarioPermiso]:
        """
        Crea o reemplaza la asignación (usuario, permiso). Con `acciones` vacío
        la asignación se elimina y se devuelve None.
        NO realiza db.commit().
        """
        normalizadas = self.validar_acciones(permiso, acciones)
        existente = self.get_by_usuario_permiso(db, usuario_id=usuario_id, permiso_id=permiso.id)

        if not normalizadas:
            if existente:
                db.delete(existente)
                db.flush()
                logger.debug(f"Asignación de '{permiso.codigo}' eliminada para usuario {usuario_id}.")
            return None

        ahora = datetime.now(timezone.utc)
        if existente:
            existente.acciones = normalizadas
            existente.otorgado_por = otorgado_por
            existente.otorgado_en = ahora
            existente.expira_en = _a_utc(expira_en)
            db_obj = existente
        else:
            db_obj = self.model(
                usuario_id=usuario_id,
                permiso_id=permiso.id,
                acciones=normalizadas,
                otorgado_por=otorgado_por,
                otorgado_en=ahora,
                expira_en=_a_utc(expira_en),
            )
            db.add(db_obj)
        db.flush()
        logger.debug(f"Asignación de '{permiso.codigo}' para usuario {usuario_id}: {normalizadas}")
        return db_obj

    def _resumen(self, db_obj: Optional[UsuarioPermiso]) -> Optional[Dict[str, Any]]:
        if db_obj is None:
            return None
        return self.snapshot(db_obj, exclude=("id",))

    def grant(
        self,
        db: Session,
        *,
        usuario: Usuario,
        permiso: Permiso,
        obj_in: AsignacionPermisoUpdate,
        actor_id: UUID,
        metadatos: Optional[Dict[str, Any]] = None
    ) -> Optional[UsuarioPermiso]:
        """
        Otorga o edita un permiso de un usuario; sin acciones equivale a revocarlo.
        NO realiza db.commit().
        """
        existente = self.get_by_usuario_permiso(db, usuario_id=usuario.id, permiso_id=permiso.id)
        antes = self._resumen(existente)
        if not obj_in.acciones and existente is None:
            logger.info(f"Sin cambios: el usuario {usuario.id} no tiene '{permiso.codigo}'.")
            return None

        db_obj = self.upsert(
            db,
            usuario_id=usuario.id,
            permiso=permiso,
            acciones=obj_in.acciones,
            otorgado_por=actor_id,
            expira_en=obj_in.expira_en,
        )
        audit_log_service.record(
            db,
            actor_id=actor_id,
            accion="permissions.granted" if db_obj else "permissions.revoked",
            entidad="UsuarioPermiso",
            entidad_id=f"{usuario.id}:{permiso.id}",
            cambios={"before": antes, "after": self._resumen(db_obj)},
            metadatos=metadatos,
        )
        return db_obj

    def revoke(
        self,
        db: Session,
        *,
        usuario_id: UUID,
        permiso_id: UUID,
        actor_id: UUID,
        metadatos: Optional[Dict[str, Any]] = None
    ) -> None:
        existente = self.get_by_usuario_permiso(db, usuario_id=usuario_id, permiso_id=permiso_id)
        if existente is None:
            raise NotFoundError("El usuario no tiene asignado ese permiso.")

        antes = self._resumen(existente)
        db.delete(existente)
        audit_log_service.record(
            db,
            actor_id=actor_id,
            accion="permissions.revoked",
            entidad="UsuarioPermiso",
            entidad_id=f"{usuario_id}:{permiso_id}",
            cambios={"before": antes},
            metadatos=metadatos,
        )
        logger.warning(f"Permiso {permiso_id} preparado para ser revocado al usuario {usuario_id}.")

    def replace_user_grants(
        self,
        db: Session,
        *,
        usuario: Usuario,
        items: List[AsignacionPermisoItem],
        actor_id: UUID,
        metadatos: Optional[Dict[str, Any]] = None
    ) -> List[UsuarioPermiso]:
        """
        Reemplaza el conjunto completo de permisos de un usuario. Todo se valida
        antes de escribir; el reemplazo es una sola unidad de trabajo.
        NO realiza db.commit().
        """
        permisos: Dict[UUID, Permiso] = {}
        for item in items:
            permiso = permiso_service.get_or_404(db, id=item.permiso_id)
            self.validar_acciones(permiso, item.acciones)
            permisos[permiso.id] = permiso

        actuales = self.get_by_usuario(db, usuario_id=usuario.id, incluir_expirados=True)
        antes = [self._resumen(a) for a in actuales]

        nuevos_ids = {item.permiso_id for item in items if item.acciones}
        for asignacion in actuales:
            if asignacion.permiso_id not in nuevos_ids:
                db.delete(asignacion)
        db.flush()

        resultado: List[UsuarioPermiso] = []
        for item in items:
            db_obj = self.upsert(
                db,
                usuario_id=usuario.id,
                permiso=permisos[item.permiso_id],
                acciones=item.acciones,
                otorgado_por=actor_id,
                expira_en=item.expira_en,
            )
            if db_obj is not None:
                resultado.append(db_obj)

        audit_log_service.record(
            db,
            actor_id=actor_id,
            accion="permissions.replaced",
            entidad="Usuario",
            entidad_id=usuario.id,
            cambios={"before": antes, "after": [self._resumen(r) for r in resultado]},
            metadatos=metadatos,
        )
        logger.info(f"Permisos del usuario {usuario.id} reemplazados: {len(antes)} -> {len(resultado)}.")
        return resultado

    def resumen_por_rol(self, db: Session) -> List[Dict[str, Any]]:
        """
        Por cada rol: total de usuarios y, por permiso, la unión de acciones
        vigentes y cuántos usuarios del rol lo tienen.
        """
        totales = {rol: 0 for rol in RolUsuarioEnum}
        totales.update(dict(db.execute(
            select(Usuario.rol, func.count(Usuario.id)).group_by(Usuario.rol)
        ).all()))

        statement = (
            select(Usuario.rol, Permiso.id, Permiso.codigo, self.model.acciones)
            .join(self.model, self.model.usuario_id == Usuario.id)
            .join(Permiso, Permiso.id == self.model.permiso_id)
            .where(condicion_vigente())
        )
        por_rol: Dict[RolUsuarioEnum, Dict[UUID, Dict[str, Any]]] = {rol: {} for rol in RolUsuarioEnum}
        for rol, permiso_id, codigo, acciones in db.execute(statement).all():
            fila = por_rol[rol].setdefault(
                permiso_id, {"permiso_id": permiso_id, "codigo": codigo, "acciones": set(), "usuarios_con_permiso": 0}
            )
            fila["acciones"].update(acciones or [])
            fila["usuarios_con_permiso"] += 1

        resumen = []
        for rol in RolUsuarioEnum:
            permisos = sorted(por_rol[rol].values(), key=lambda f: f["codigo"])
            for fila in permisos:
                fila["acciones"] = [a for a in AccionPermisoEnum if a.value in fila["acciones"]]
            resumen.append({"rol": rol, "total_usuarios": totales[rol], "permisos": permisos})
        return resumen


usuario_permiso_service = UsuarioPermisoService(UsuarioPermiso)
