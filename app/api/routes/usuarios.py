import logging
from typing import Any, List, Optional
from uuid import UUID as PyUUID

from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.api import deps
from app.core.permissions import PERM_USERS
from app.schemas import Usuario, UsuarioCreate
from app.schemas.enums import AccionPermisoEnum, RolUsuarioEnum
from app.services.usuario import usuario_service
from app.models import Usuario as UsuarioModel

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/",
    response_model=Usuario,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(deps.PermissionChecker(PERM_USERS, AccionPermisoEnum.CREATE))],
    summary="Crear un nuevo Usuario",
    response_description="El usuario creado."
)
def create_usuario(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    user_in: UsuarioCreate,
    current_user: UsuarioModel = Depends(deps.get_current_active_user)
) -> Any:
    """
    Crea un usuario con el rol indicado. Recibe los permisos por defecto de su
    rol más los de `permiso_ids`; si la siembra falla la cuenta se crea igual.
    """
    logger.info(f"Intento de creación de usuario '{user_in.email}' por admin '{current_user.email}'")

    try:
        user = usuario_service.create(
            db, obj_in=user_in, actor_id=current_user.id, metadatos=deps.get_request_metadata(request)
        )
        db.commit()
        db.refresh(user)
        logger.info(f"Usuario '{user.email}' (ID: {user.id}) creado exitosamente por '{current_user.email}'.")
        return user
    except HTTPException as http_exc:
        db.rollback()
        logger.warning(f"Error HTTP al crear usuario '{user_in.email}': {http_exc.detail}")
        raise http_exc
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error de integridad no manejado al crear usuario: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Ya existe un usuario con ese correo electrónico.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado creando usuario '{user_in.email}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al crear el usuario.")


@router.get(
    "/me",
    response_model=Usuario,
    summary="Obtener perfil del usuario actual",
    response_description="Información del usuario autenticado."
)
def read_usuario_me(
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    """Obtiene la información del usuario que realiza la petición (autenticado)."""
    return current_user


@router.get(
    "/",
    response_model=List[Usuario],
    dependencies=[Depends(deps.PermissionChecker(PERM_USERS, AccionPermisoEnum.READ))],
    summary="Listar Usuarios",
    response_description="Una lista de usuarios."
)
def read_usuarios(
    db: Session = Depends(deps.get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200),
    rol: Optional[RolUsuarioEnum] = Query(None, description="Filtrar por rol"),
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    logger.info(f"Admin '{current_user.email}' listando usuarios (rol={rol}).")
    return usuario_service.get_multi(db, skip=skip, limit=limit, rol=rol)


@router.get(
    "/{user_id}",
    response_model=Usuario,
    dependencies=[Depends(deps.PermissionChecker(PERM_USERS, AccionPermisoEnum.READ))],
    summary="Obtener Usuario por ID",
)
def read_usuario_by_id(user_id: PyUUID, db: Session = Depends(deps.get_db)) -> Any:
    return usuario_service.get_or_404(db, id=user_id)
