from typing import Any, Dict, Generator, Optional
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
import logging

from app.core.config import settings
from app.core import security
from app.core.exceptions import ForbiddenError, NotAuthenticatedError
from app.db.session import SessionLocal
from app.models.usuario import Usuario
from app.schemas.enums import AccionPermisoEnum
from app.services.autorizacion import autorizacion_service, PermisosEfectivos

logger = logging.getLogger(__name__)


# --- Dependencia para la Sesión de Base de Datos ---
def get_db() -> Generator[Session, None, None]:
    """Dependency para obtener la sesión de base de datos."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# --- Dependencia para Autenticación ---
reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login/access-token"
)


def get_current_user(
    db: Session = Depends(get_db), token: str = Depends(reusable_oauth2)
) -> Usuario:
    """Obtiene el usuario actual a partir del token JWT."""
    token_data = security.decode_access_token(token)
    if not token_data or not token_data.sub:
        logger.warning("Token JWT inválido o sin 'sub'.")
        raise NotAuthenticatedError()

    user = db.get(Usuario, token_data.sub)
    if not user:
        logger.warning(f"Usuario no encontrado para ID {token_data.sub} en token válido.")
        raise NotAuthenticatedError()
    return user


def get_current_active_user(
    current_user: Usuario = Depends(get_current_user),
) -> Usuario:
    """Obtiene el usuario actual y verifica que esté activo."""
    if not current_user.activo:
        logger.warning(f"Acceso denegado: Usuario inactivo {current_user.email} (ID: {current_user.id}).")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El usuario está inactivo.")
    return current_user


def get_permisos_efectivos(
    request: Request,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_active_user),
) -> PermisosEfectivos:
    """
    Permisos vigentes del usuario actual, cargados una sola vez por petición.
    """
    cache: Optional[PermisosEfectivos] = getattr(request.state, "permisos_efectivos", None)
    if cache is None or cache.usuario_id != current_user.id:
        cache = autorizacion_service.cargar_permisos(db, usuario=current_user)
        request.state.permisos_efectivos = cache
    return cache


class PermissionChecker:
    """
    Dependencia de FastAPI que exige un código de permiso y, opcionalmente,
    una acción concreta. Responde 403 con un mensaje fijo al denegar.
    """
    def __init__(self, codigo: str, accion: Optional[AccionPermisoEnum] = None):
        if not codigo:
            logger.error("PermissionChecker inicializado sin código de permiso.")
            raise ValueError("El código de permiso requerido no puede estar vacío.")
        self.codigo = codigo
        self.accion = accion

    def __call__(
        self,
        request: Request,
        current_user: Usuario = Depends(get_current_active_user),
        permisos: PermisosEfectivos = Depends(get_permisos_efectivos),
    ) -> Usuario:
        if not permisos.permite(self.codigo, self.accion):
            logger.warning(
                f"Acceso denegado a '{current_user.email}' (rol {current_user.rol.value}) en "
                f"'{request.url.path}'. Requerido: {self.codigo}:{self.accion.value if self.accion else '*'}."
            )
            raise ForbiddenError()
        logger.debug(f"PermissionChecker: Acceso concedido a '{current_user.email}' para {self.codigo}.")
        return current_user


def get_request_metadata(request: Request) -> Dict[str, Any]:
    """IP de origen y user agent de la petición, para los registros de auditoría."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    elif request.client:
        ip = request.client.host
    else:
        ip = "unknown"
    return {
        "ip": ip or "unknown",
        "user_agent": request.headers.get("user-agent", "unknown"),
    }
