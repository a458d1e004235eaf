import logging
from typing import Any, Dict, List, Optional, Tuple, Union
from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import ConflictError
from app.core.password import verify_password, get_password_hash
from app.models.usuario import Usuario
from app.schemas.enums import ProveedorAuthEnum, RolUsuarioEnum
from app.schemas.usuario import UsuarioCreate, UsuarioRegistro
from .base_service import BaseService
from .audit_log import audit_log_service
from .permisos_por_defecto import permisos_por_defecto_service

logger = logging.getLogger(__name__)


class UsuarioService(BaseService[Usuario, UsuarioCreate, UsuarioCreate]):
    """
    Servicio para gestionar usuarios. Toda alta de cuenta siembra los permisos
    por defecto de su rol exactamente una vez.
    """

    def get_by_email(self, db: Session, *, email: str) -> Optional[Usuario]:
        statement = select(self.model).where(func.lower(self.model.email) == email.lower())
        return db.execute(statement).scalar_one_or_none()

    def get_multi(
        self, db: Session, *, skip: int = 0, limit: Optional[int] = 100, rol: Optional[RolUsuarioEnum] = None
    ) -> List[Usuario]:
        statement = select(self.model)
        if rol:
            statement = statement.where(self.model.rol == rol)
        statement = statement.order_by(self.model.created_at, self.model.email).offset(skip).limit(limit)
        return list(db.execute(statement).scalars().all())

    def get_ids_by_rol(self, db: Session, *, rol: RolUsuarioEnum) -> List[UUID]:
        statement = select(self.model.id).where(self.model.rol == rol).order_by(self.model.id)
        return list(db.execute(statement).scalars().all())

    def count_by_rol(self, db: Session) -> Dict[RolUsuarioEnum, int]:
        statement = select(self.model.rol, func.count(self.model.id)).group_by(self.model.rol)
        conteo = {rol: 0 for rol in RolUsuarioEnum}
        conteo.update({rol: total for rol, total in db.execute(statement).all()})
        return conteo

    def create(
        self,
        db: Session,
        *,
        obj_in: Union[UsuarioCreate, UsuarioRegistro],
        actor_id: Optional[UUID] = None,
        metadatos: Optional[Dict[str, Any]] = None
    ) -> Usuario:
        """
        Crea una cuenta con contraseña. Sin `actor_id` se trata de un
        auto-registro y la cuenta es su propio actor en la auditoría.
        NO realiza db.commit().
        """
        logger.debug(f"Intentando crear usuario: {obj_in.email}")
        if self.get_by_email(db, email=obj_in.email):
            logger.warning(f"Intento de crear usuario con email duplicado: {obj_in.email}")
            raise ConflictError("Ya existe un usuario con ese correo electrónico.")

        rol = getattr(obj_in, "rol", RolUsuarioEnum.USER)
        db_obj = self.model(
            nombre=obj_in.nombre,
            email=obj_in.email,
            hashed_password=get_password_hash(obj_in.password),
            rol=rol,
            proveedor_auth=ProveedorAuthEnum.CREDENTIALS,
        )
        db.add(db_obj)
        self.flush_unique(db, detail="Ya existe un usuario con ese correo electrónico.")

        audit_log_service.record(
            db,
            actor_id=actor_id or db_obj.id,
            accion="users.created" if actor_id else "users.registered",
            entidad="Usuario",
            entidad_id=db_obj.id,
            cambios={"after": self.snapshot(db_obj, exclude=("hashed_password",))},
            metadatos=metadatos,
        )
        self._sembrar_permisos(
            db,
            usuario=db_obj,
            otorgado_por=actor_id,
            permiso_ids_extra=getattr(obj_in, "permiso_ids", None),
            metadatos=metadatos,
        )
        logger.info(f"Usuario '{db_obj.email}' preparado para ser creado con rol {rol.value}.")
        return db_obj

    def get_or_create_social(
        self,
        db: Session,
        *,
        email: str,
        nombre: str,
        proveedor: ProveedorAuthEnum = ProveedorAuthEnum.GOOGLE,
        metadatos: Optional[Dict[str, Any]] = None
    ) -> Tuple[Usuario, bool]:
        """
        Cuenta asociada a un login social. La primera vez se crea sin
        contraseña, con rol USER, y recibe los permisos por defecto.
        NO realiza db.commit().
        """
        existente = self.get_by_email(db, email=email)
        if existente:
            return existente, False

        db_obj = self.model(
            nombre=nombre,
            email=email,
            hashed_password=None,
            rol=RolUsuarioEnum.USER,
            proveedor_auth=proveedor,
        )
        db.add(db_obj)
        self.flush_unique(db, detail="Ya existe un usuario con ese correo electrónico.")
        audit_log_service.record(
            db,
            actor_id=db_obj.id,
            accion="users.registered",
            entidad="Usuario",
            entidad_id=db_obj.id,
            cambios={"after": self.snapshot(db_obj, exclude=("hashed_password",)), "proveedor": proveedor.value},
            metadatos=metadatos,
        )
        self._sembrar_permisos(db, usuario=db_obj, metadatos=metadatos)
        logger.info(f"Usuario '{email}' creado en su primer login con {proveedor.value}.")
        return db_obj, True

    def _sembrar_permisos(
        self,
        db: Session,
        *,
        usuario: Usuario,
        otorgado_por: Optional[UUID] = None,
        permiso_ids_extra: Optional[List[UUID]] = None,
        metadatos: Optional[Dict[str, Any]] = None
    ) -> None:
        # Un fallo aquí no impide el alta: se deshace solo el savepoint
        try:
            with db.begin_nested():
                permisos_por_defecto_service.seed_defaults(
                    db,
                    usuario_id=usuario.id,
                    rol=usuario.rol,
                    otorgado_por=otorgado_por,
                    permiso_ids_extra=permiso_ids_extra,
                    metadatos=metadatos,
                )
        except SQLAlchemyError as e:
            logger.error(
                f"No se pudieron sembrar los permisos por defecto del usuario {usuario.id}: {e}", exc_info=True
            )

    def authenticate(self, db: Session, *, email: str, password: str) -> Optional[Usuario]:
        user = self.get_by_email(db, email=email)
        if not user:
            logger.warning(f"Intento de login fallido: Usuario '{email}' no encontrado.")
            return None
        if not verify_password(password, user.hashed_password):
            logger.warning(f"Intento de login fallido: Contraseña incorrecta para usuario '{email}'.")
            return None
        logger.info(f"Usuario '{email}' autenticado.")
        return user


usuario_service = UsuarioService(Usuario)
