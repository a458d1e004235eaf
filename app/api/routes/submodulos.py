import logging
from typing import Any, List
from uuid import UUID as PyUUID

from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from sqlalchemy.orm import Session

from app.api import deps
from app.core.permissions import PERM_MODULES
from app.schemas.common import Msg
from app.schemas.enums import AccionPermisoEnum
from app.schemas.submodulo import Submodulo, SubmoduloCreate, SubmoduloUpdate
from app.services.modulo import modulo_service
from app.services.submodulo import submodulo_service
from app.models.usuario import Usuario as UsuarioModel

logger = logging.getLogger(__name__)
router = APIRouter()

PermisoLectura = Depends(deps.PermissionChecker(PERM_MODULES, AccionPermisoEnum.READ))


@router.get("/",
            response_model=List[Submodulo],
            dependencies=[PermisoLectura],
            summary="Listar submódulos de un módulo")
def read_submodulos(
    db: Session = Depends(deps.get_db),
    modulo_id: PyUUID = Query(..., description="Módulo padre"),
) -> Any:
    modulo_service.get_or_404(db, id=modulo_id)
    return submodulo_service.get_multi_by_modulo(db, modulo_id=modulo_id)


@router.get("/{submodulo_id}",
            response_model=Submodulo,
            dependencies=[PermisoLectura],
            summary="Obtener un submódulo por ID")
def read_submodulo(submodulo_id: PyUUID, db: Session = Depends(deps.get_db)) -> Any:
    return submodulo_service.get_or_404(db, id=submodulo_id)


@router.post("/",
             response_model=Submodulo,
             status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(deps.PermissionChecker(PERM_MODULES, AccionPermisoEnum.CREATE))],
             summary="Crear un submódulo")
def create_submodulo(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    submodulo_in: SubmoduloCreate,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    try:
        submodulo = submodulo_service.create(
            db, obj_in=submodulo_in, actor_id=current_user.id, metadatos=deps.get_request_metadata(request)
        )
        db.commit()
        db.refresh(submodulo)
        logger.info(f"Submódulo '{submodulo.slug}' (ID: {submodulo.id}) creado por {current_user.email}.")
        return submodulo
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado creando submódulo '{submodulo_in.slug}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al crear el submódulo.")


@router.patch("/{submodulo_id}",
              response_model=Submodulo,
              dependencies=[Depends(deps.PermissionChecker(PERM_MODULES, AccionPermisoEnum.UPDATE))],
              summary="Actualizar un submódulo")
def update_submodulo(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    submodulo_id: PyUUID,
    submodulo_in: SubmoduloUpdate,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    submodulo_db = submodulo_service.get_or_404(db, id=submodulo_id)
    try:
        submodulo = submodulo_service.update(
            db, db_obj=submodulo_db, obj_in=submodulo_in,
            actor_id=current_user.id, metadatos=deps.get_request_metadata(request)
        )
        db.commit()
        db.refresh(submodulo)
        return submodulo
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado actualizando submódulo {submodulo_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al actualizar el submódulo.")


@router.delete("/{submodulo_id}",
               response_model=Msg,
               dependencies=[Depends(deps.PermissionChecker(PERM_MODULES, AccionPermisoEnum.DELETE))],
               summary="Eliminar un submódulo")
def delete_submodulo(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    submodulo_id: PyUUID,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    try:
        submodulo = submodulo_service.remove(
            db, id=submodulo_id, actor_id=current_user.id, metadatos=deps.get_request_metadata(request)
        )
        slug = submodulo.slug
        db.commit()
        logger.info(f"Submódulo '{slug}' (ID: {submodulo_id}) eliminado por {current_user.email}.")
        return {"msg": f"Submódulo '{slug}' eliminado correctamente."}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado eliminando submódulo {submodulo_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al eliminar el submódulo.")
