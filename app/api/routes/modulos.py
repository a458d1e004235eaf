import logging
from typing import Any, List
from uuid import UUID as PyUUID

from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.api import deps
from app.core.permissions import PERM_MODULES
from app.schemas.common import Msg
from app.schemas.enums import AccionPermisoEnum
from app.schemas.modulo import Modulo, ModuloCreate, ModuloSimple, ModuloUpdate
from app.services.modulo import modulo_service
from app.models.usuario import Usuario as UsuarioModel

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/",
            response_model=List[Modulo],
            dependencies=[Depends(deps.PermissionChecker(PERM_MODULES, AccionPermisoEnum.READ))],
            summary="Listar módulos del catálogo")
def read_modulos(
    db: Session = Depends(deps.get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    solo_activos: bool = Query(False),
) -> Any:
    return modulo_service.get_multi(db, skip=skip, limit=limit, solo_activos=solo_activos)


@router.get("/navegacion",
            response_model=List[ModuloSimple],
            summary="Módulos visibles para el usuario actual")
def read_navegacion(
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    """
    Módulos activos en los que el usuario tiene al menos un permiso vigente.
    SUPER_ADMIN ve todos.
    """
    return modulo_service.get_user_modules(db, usuario=current_user)


@router.get("/{modulo_id}",
            response_model=Modulo,
            dependencies=[Depends(deps.PermissionChecker(PERM_MODULES, AccionPermisoEnum.READ))],
            summary="Obtener un módulo por ID")
def read_modulo(modulo_id: PyUUID, db: Session = Depends(deps.get_db)) -> Any:
    return modulo_service.get_or_404(db, id=modulo_id)


@router.post("/",
             response_model=Modulo,
             status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(deps.PermissionChecker(PERM_MODULES, AccionPermisoEnum.CREATE))],
             summary="Crear un módulo")
def create_modulo(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    modulo_in: ModuloCreate,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    logger.info(f"Intento de creación de módulo '{modulo_in.slug}' por usuario {current_user.email}")
    try:
        modulo = modulo_service.create(
            db, obj_in=modulo_in, actor_id=current_user.id, metadatos=deps.get_request_metadata(request)
        )
        db.commit()
        db.refresh(modulo)
        logger.info(f"Módulo '{modulo.slug}' (ID: {modulo.id}) creado exitosamente por {current_user.email}.")
        return modulo
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error de integridad al crear módulo '{modulo_in.slug}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Conflicto: Ya existe un módulo con el slug '{modulo_in.slug}'.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado creando módulo '{modulo_in.slug}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al crear el módulo.")


@router.patch("/{modulo_id}",
              response_model=Modulo,
              dependencies=[Depends(deps.PermissionChecker(PERM_MODULES, AccionPermisoEnum.UPDATE))],
              summary="Actualizar un módulo")
def update_modulo(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    modulo_id: PyUUID,
    modulo_in: ModuloUpdate,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    modulo_db = modulo_service.get_or_404(db, id=modulo_id)
    try:
        modulo = modulo_service.update(
            db, db_obj=modulo_db, obj_in=modulo_in,
            actor_id=current_user.id, metadatos=deps.get_request_metadata(request)
        )
        db.commit()
        db.refresh(modulo)
        logger.info(f"Módulo '{modulo.slug}' (ID: {modulo_id}) actualizado por {current_user.email}.")
        return modulo
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error de integridad al actualizar módulo {modulo_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Conflicto: El slug indicado ya está en uso.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado actualizando módulo {modulo_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al actualizar el módulo.")


@router.delete("/{modulo_id}",
               response_model=Msg,
               dependencies=[Depends(deps.PermissionChecker(PERM_MODULES, AccionPermisoEnum.DELETE))],
               summary="Eliminar un módulo")
def delete_modulo(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    modulo_id: PyUUID,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    """
    Solo se eliminan módulos sin submódulos ni permisos; en otro caso responde 400.
    """
    try:
        modulo = modulo_service.remove(
            db, id=modulo_id, actor_id=current_user.id, metadatos=deps.get_request_metadata(request)
        )
        slug = modulo.slug
        db.commit()
        logger.info(f"Módulo '{slug}' (ID: {modulo_id}) eliminado por {current_user.email}.")
        return {"msg": f"Módulo '{slug}' eliminado correctamente."}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado eliminando módulo {modulo_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al eliminar el módulo.")
