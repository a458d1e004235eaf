import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.permissions import DEFAULT_GRANT_POLICY, DEFAULT_GRANT_POLICY_VERSION
from app.models.permiso import Permiso
from app.models.usuario_permiso import UsuarioPermiso
from app.schemas.enums import AccionPermisoEnum, RolUsuarioEnum
from .audit_log import audit_log_service
from .permiso import permiso_service
from .usuario_permiso import usuario_permiso_service

logger = logging.getLogger(__name__)


class PermisosPorDefectoService:
    """
    Siembra los permisos iniciales de una cuenta nueva según la política por rol
    de `app.core.permissions`, más los permisos adicionales que indique un
    administrador. Nunca quita acciones existentes, así que repetirla no cambia nada.
    """

    def resolver(
        self,
        db: Session,
        *,
        rol: RolUsuarioEnum,
        permiso_ids_extra: Optional[Iterable[UUID]] = None
    ) -> Dict[UUID, Tuple[Permiso, Set[str]]]:
        """Permisos y acciones que corresponden al rol, recortados al techo de cada permiso."""
        if rol == RolUsuarioEnum.SUPER_ADMIN:
            # Acceso total implícito: ni política ni permisos adicionales
            return {}

        politica = DEFAULT_GRANT_POLICY.get(rol)
        objetivos: Dict[UUID, Tuple[Permiso, Set[str]]] = {}
        if politica is None:
            logger.warning(f"No hay política de permisos por defecto para el rol {rol}.")
            politica_permisos, todos, excluir = {}, False, []
        else:
            politica_permisos, todos, excluir = politica.permisos, politica.todos_los_permisos, politica.excluir

        if todos:
            for permiso in permiso_service.get_multi(db, limit=None):
                if permiso.codigo not in excluir:
                    objetivos[permiso.id] = (permiso, set(permiso.acciones))

        encontrados = {p.codigo: p for p in permiso_service.get_by_codigos(db, codigos=list(politica_permisos))}
        for codigo, acciones in politica_permisos.items():
            permiso = encontrados.get(codigo)
            if permiso is None:
                logger.warning(f"Permiso por defecto '{codigo}' del rol {rol.value} no existe en el catálogo; se omite.")
                continue
            admitidas = {a.value for a in acciones} & set(permiso.acciones)
            if admitidas:
                objetivos[permiso.id] = (permiso, admitidas)

        for permiso_id in permiso_ids_extra or []:
            permiso = permiso_service.get(db, id=permiso_id)
            if permiso is None:
                logger.warning(f"Permiso adicional {permiso_id} no existe; se omite.")
                continue
            objetivos[permiso.id] = (permiso, set(permiso.acciones))

        return objetivos

    def seed_defaults(
        self,
        db: Session,
        *,
        usuario_id: UUID,
        rol: RolUsuarioEnum,
        otorgado_por: Optional[UUID] = None,
        permiso_ids_extra: Optional[Iterable[UUID]] = None,
        metadatos: Optional[Dict[str, Any]] = None
    ) -> List[UsuarioPermiso]:
        """
        NO realiza db.commit(). Deja un registro de auditoría solo si algo cambió.
        """
        objetivos = self.resolver(db, rol=rol, permiso_ids_extra=permiso_ids_extra)
        asignaciones: List[UsuarioPermiso] = []
        sembrados: List[Dict[str, Any]] = []

        for permiso, acciones in objetivos.values():
            existente = usuario_permiso_service.get_by_usuario_permiso(
                db, usuario_id=usuario_id, permiso_id=permiso.id
            )
            finales = acciones | set(existente.acciones if existente else [])
            if existente and set(existente.acciones) == finales:
                asignaciones.append(existente)
                continue
            db_obj = usuario_permiso_service.upsert(
                db,
                usuario_id=usuario_id,
                permiso=permiso,
                acciones=[a for a in AccionPermisoEnum if a.value in finales],
                otorgado_por=otorgado_por,
                expira_en=existente.expira_en if existente else None,
            )
            asignaciones.append(db_obj)
            sembrados.append({"codigo": permiso.codigo, "acciones": db_obj.acciones})

        if sembrados:
            audit_log_service.record(
                db,
                actor_id=otorgado_por or usuario_id,
                accion="permissions.seeded",
                entidad="Usuario",
                entidad_id=usuario_id,
                cambios={
                    "after": sembrados,
                    "rol": rol.value,
                    "politica_version": DEFAULT_GRANT_POLICY_VERSION,
                },
                metadatos=metadatos,
            )
        logger.info(
            f"Permisos por defecto para usuario {usuario_id} (rol {rol.value}): "
            f"{len(sembrados)} nuevo(s) o ampliado(s), {len(asignaciones)} en total."
        )
        return asignaciones


permisos_por_defecto_service = PermisosPorDefectoService()
