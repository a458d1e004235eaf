import logging
from typing import Any, Dict, FrozenSet, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy import select

from app.models.permiso import Permiso
from app.models.usuario import Usuario
from app.models.usuario_permiso import UsuarioPermiso, condicion_vigente
from app.schemas.enums import AccionPermisoEnum, RolUsuarioEnum

logger = logging.getLogger(__name__)


def acciones_permiten(acciones: Any, accion: Optional[Any] = None) -> bool:
    """
    Sin `accion`, basta con tener alguna acción. Una acción desconocida
    nunca está permitida.
    """
    if not acciones:
        return False
    if accion is None:
        return True
    try:
        accion = AccionPermisoEnum(accion)
    except ValueError:
        logger.debug(f"Acción desconocida en verificación de permiso: {accion!r}")
        return False
    return accion.value in acciones


class PermisosEfectivos:
    """
    Instantánea de los permisos vigentes de un usuario, cargada con una sola
    consulta. Se guarda en `request.state` para reutilizarla en la petición.
    """

    def __init__(self, usuario_id: UUID, rol: RolUsuarioEnum, acciones_por_codigo: Dict[str, FrozenSet[str]]):
        self.usuario_id = usuario_id
        self.rol = rol
        self.acciones_por_codigo = acciones_por_codigo

    @property
    def acceso_total(self) -> bool:
        return self.rol == RolUsuarioEnum.SUPER_ADMIN

    def permite(self, codigo: str, accion: Optional[Any] = None) -> bool:
        if self.acceso_total:
            return True
        return acciones_permiten(self.acciones_por_codigo.get(codigo), accion)


class AutorizacionService:
    """
    Motor de autorización. Solo lectura: nunca modifica el almacén y falla
    cerrado ante usuarios, códigos o acciones desconocidos.
    """

    def has_permission(
        self,
        db: Session,
        usuario_id: UUID,
        codigo: str,
        accion: Optional[Any] = None
    ) -> bool:
        usuario = db.get(Usuario, usuario_id)
        if usuario is None or not usuario.activo:
            logger.debug(f"has_permission: usuario {usuario_id} inexistente o inactivo.")
            return False

        # SUPER_ADMIN no depende de ninguna asignación
        if usuario.rol == RolUsuarioEnum.SUPER_ADMIN:
            return True

        statement = (
            select(UsuarioPermiso.acciones)
            .join(Permiso, Permiso.id == UsuarioPermiso.permiso_id)
            .where(
                UsuarioPermiso.usuario_id == usuario_id,
                Permiso.codigo == codigo,
                condicion_vigente(),
            )
        )
        acciones = db.execute(statement).scalar_one_or_none()
        if acciones is None:
            logger.debug(f"has_permission: usuario {usuario_id} sin asignación vigente para '{codigo}'.")
            return False
        return acciones_permiten(acciones, accion)

    def get_asignaciones_vigentes(self, db: Session, *, usuario_id: UUID) -> List[Tuple[UsuarioPermiso, Permiso]]:
        statement = (
            select(UsuarioPermiso, Permiso)
            .join(Permiso, Permiso.id == UsuarioPermiso.permiso_id)
            .where(UsuarioPermiso.usuario_id == usuario_id, condicion_vigente())
            .order_by(Permiso.codigo)
        )
        return [(fila[0], fila[1]) for fila in db.execute(statement).unique().all()]

    def cargar_permisos(self, db: Session, *, usuario: Usuario) -> PermisosEfectivos:
        if usuario.rol == RolUsuarioEnum.SUPER_ADMIN:
            return PermisosEfectivos(usuario.id, usuario.rol, {})

        statement = (
            select(Permiso.codigo, UsuarioPermiso.acciones)
            .join(Permiso, Permiso.id == UsuarioPermiso.permiso_id)
            .where(UsuarioPermiso.usuario_id == usuario.id, condicion_vigente())
        )
        acciones_por_codigo = {
            codigo: frozenset(acciones or []) for codigo, acciones in db.execute(statement).all()
        }
        logger.debug(f"Permisos cargados para usuario {usuario.id}: {len(acciones_por_codigo)} código(s).")
        return PermisosEfectivos(usuario.id, usuario.rol, acciones_por_codigo)


autorizacion_service = AutorizacionService()
