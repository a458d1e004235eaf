import logging
from typing import Any, List, Optional
from uuid import UUID as PyUUID

from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, OperationalError

from app.api import deps
from app.core.permissions import PERM_MODULES, PERM_ROLES
from app.schemas.common import Msg
from app.schemas.enums import AccionPermisoEnum
from app.schemas.permiso import Permiso, PermisoCreate, PermisoUpdate
from app.schemas.usuario_permiso import (
    AsignacionPermisoUpdate,
    AsignacionesUsuarioReplace,
    BulkUpdateRequest,
    PermisoCheckRequest,
    PermisoCheckResponse,
    PermisoEfectivo,
    PermisosUsuarioResponse,
    ResultadoPropagacion,
    RolPermisosResumen,
    UsuarioPermiso,
)
from app.services.autorizacion import autorizacion_service
from app.services.permiso import permiso_service
from app.services.propagacion import propagacion_service
from app.services.usuario import usuario_service
from app.services.usuario_permiso import usuario_permiso_service
from app.models.usuario import Usuario as UsuarioModel

logger = logging.getLogger(__name__)
router = APIRouter()

# ==============================================================================
# Consultas del usuario actual
# ==============================================================================

@router.get("/usuario",
            response_model=PermisosUsuarioResponse,
            summary="Permisos vigentes del usuario actual")
def read_my_permissions(
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    asignaciones = autorizacion_service.get_asignaciones_vigentes(db, usuario_id=current_user.id)
    return PermisosUsuarioResponse(
        usuario_id=current_user.id,
        rol=current_user.rol,
        acceso_total=current_user.is_super_admin,
        permisos=[
            PermisoEfectivo(
                permiso_id=permiso.id,
                codigo=permiso.codigo,
                nombre=permiso.nombre,
                modulo_id=permiso.modulo_id,
                acciones=asignacion.acciones,
                expira_en=asignacion.expira_en,
            )
            for asignacion, permiso in asignaciones
        ],
    )


@router.post("/check",
             response_model=PermisoCheckResponse,
             summary="Verificar un permiso del usuario actual")
def check_permission(
    *,
    db: Session = Depends(deps.get_db),
    check_in: PermisoCheckRequest,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    """
    Responde si el usuario actual tiene el código indicado (y la acción, si se envía).
    Un código o una acción desconocidos devuelven `false`.
    """
    permitido = autorizacion_service.has_permission(db, current_user.id, check_in.codigo, check_in.accion)
    return PermisoCheckResponse(codigo=check_in.codigo, accion=check_in.accion, tiene_permiso=permitido)

# ==============================================================================
# Gestión por rol
# ==============================================================================

@router.get("/por-rol",
            response_model=List[RolPermisosResumen],
            dependencies=[Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.READ))],
            summary="Resumen de permisos por rol")
def read_permissions_by_role(db: Session = Depends(deps.get_db)) -> Any:
    return usuario_permiso_service.resumen_por_rol(db)


@router.post("/bulk-update",
             response_model=ResultadoPropagacion,
             dependencies=[Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.UPDATE))],
             summary="Propagar cambios de permisos a todos los usuarios de un rol")
def bulk_update_permissions(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    bulk_in: BulkUpdateRequest,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    """
    Aplica cada cambio `{rol, permiso_id, acciones}` a todos los usuarios del rol.
    Cada fila se confirma por separado; las filas fallidas se informan en `fallos`.
    """
    logger.info(f"Propagación masiva de {len(bulk_in.cambios)} cambio(s) solicitada por {current_user.email}")
    try:
        resultado = propagacion_service.apply_bulk_changes(
            db,
            cambios=bulk_in.cambios,
            actor_id=current_user.id,
            metadatos=deps.get_request_metadata(request),
        )
        db.commit()
        return resultado
    except HTTPException:
        db.rollback()
        raise
    except OperationalError:
        # El almacén no responde: se aborta el lote y el manejador de BD responde 503
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado en la propagación masiva: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al propagar permisos.")

# ==============================================================================
# Asignaciones de un usuario
# ==============================================================================

@router.get("/usuarios/{usuario_id}",
            response_model=List[UsuarioPermiso],
            dependencies=[Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.READ))],
            summary="Permisos asignados a un usuario")
def read_user_grants(
    usuario_id: PyUUID,
    db: Session = Depends(deps.get_db),
    incluir_expirados: bool = Query(False),
) -> Any:
    usuario_service.get_or_404(db, id=usuario_id)
    return usuario_permiso_service.get_by_usuario(db, usuario_id=usuario_id, incluir_expirados=incluir_expirados)


@router.put("/usuarios/{usuario_id}",
            response_model=List[UsuarioPermiso],
            dependencies=[Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.UPDATE))],
            summary="Reemplazar todos los permisos de un usuario")
def replace_user_grants(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    usuario_id: PyUUID,
    grants_in: AsignacionesUsuarioReplace,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    usuario = usuario_service.get_or_404(db, id=usuario_id)
    try:
        asignaciones = usuario_permiso_service.replace_user_grants(
            db,
            usuario=usuario,
            items=grants_in.permisos,
            actor_id=current_user.id,
            metadatos=deps.get_request_metadata(request),
        )
        db.commit()
        for asignacion in asignaciones:
            db.refresh(asignacion)
        logger.info(f"Permisos del usuario {usuario_id} reemplazados por {current_user.email}.")
        return asignaciones
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error de integridad al reemplazar permisos del usuario {usuario_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Conflicto al guardar los permisos del usuario.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado reemplazando permisos del usuario {usuario_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al guardar permisos.")


@router.put("/usuarios/{usuario_id}/{permiso_id}",
            response_model=Optional[UsuarioPermiso],
            dependencies=[Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.UPDATE))],
            summary="Otorgar o editar un permiso de un usuario")
def upsert_user_grant(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    usuario_id: PyUUID,
    permiso_id: PyUUID,
    grant_in: AsignacionPermisoUpdate,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    """
    Devuelve la asignación resultante, o `null` si la lista de acciones vacía la revocó.
    """
    usuario = usuario_service.get_or_404(db, id=usuario_id)
    permiso = permiso_service.get_or_404(db, id=permiso_id)
    try:
        asignacion = usuario_permiso_service.grant(
            db,
            usuario=usuario,
            permiso=permiso,
            obj_in=grant_in,
            actor_id=current_user.id,
            metadatos=deps.get_request_metadata(request),
        )
        db.commit()
        if asignacion is not None:
            db.refresh(asignacion)
        return asignacion
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error de integridad al otorgar permiso {permiso_id} a {usuario_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Conflicto al guardar el permiso del usuario.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado otorgando permiso {permiso_id} a {usuario_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al otorgar el permiso.")


@router.delete("/usuarios/{usuario_id}/{permiso_id}",
               response_model=Msg,
               dependencies=[Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.DELETE))],
               summary="Revocar un permiso de un usuario")
def revoke_user_grant(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    usuario_id: PyUUID,
    permiso_id: PyUUID,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    try:
        usuario_permiso_service.revoke(
            db,
            usuario_id=usuario_id,
            permiso_id=permiso_id,
            actor_id=current_user.id,
            metadatos=deps.get_request_metadata(request),
        )
        db.commit()
        return {"msg": "Permiso revocado correctamente."}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado revocando permiso {permiso_id} a {usuario_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al revocar el permiso.")

# ==============================================================================
# Catálogo de permisos
# ==============================================================================

@router.get("/",
            response_model=List[Permiso],
            dependencies=[Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.READ))],
            summary="Listar permisos del catálogo")
def read_permisos(
    db: Session = Depends(deps.get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    modulo_id: Optional[PyUUID] = Query(None),
) -> Any:
    return permiso_service.get_multi(db, skip=skip, limit=limit, modulo_id=modulo_id)


@router.post("/",
             response_model=Permiso,
             status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(deps.PermissionChecker(PERM_MODULES, AccionPermisoEnum.CREATE))],
             summary="Crear un permiso")
def create_permiso(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    permiso_in: PermisoCreate,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    logger.info(f"Intento de creación de permiso '{permiso_in.codigo}' por usuario {current_user.email}")
    try:
        permiso = permiso_service.create(
            db, obj_in=permiso_in, actor_id=current_user.id, metadatos=deps.get_request_metadata(request)
        )
        db.commit()
        db.refresh(permiso)
        logger.info(f"Permiso '{permiso.codigo}' (ID: {permiso.id}) creado por {current_user.email}.")
        return permiso
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error de integridad al crear permiso '{permiso_in.codigo}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Conflicto: Ya existe un permiso con el código '{permiso_in.codigo}'.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado creando permiso '{permiso_in.codigo}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al crear el permiso.")


@router.get("/{permiso_id}",
            response_model=Permiso,
            dependencies=[Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.READ))],
            summary="Obtener un permiso por ID")
def read_permiso(permiso_id: PyUUID, db: Session = Depends(deps.get_db)) -> Any:
    return permiso_service.get_or_404(db, id=permiso_id)


@router.patch("/{permiso_id}",
              response_model=Permiso,
              dependencies=[Depends(deps.PermissionChecker(PERM_MODULES, AccionPermisoEnum.UPDATE))],
              summary="Actualizar un permiso")
def update_permiso(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    permiso_id: PyUUID,
    permiso_in: PermisoUpdate,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    permiso_db = permiso_service.get_or_404(db, id=permiso_id)
    try:
        permiso = permiso_service.update(
            db, db_obj=permiso_db, obj_in=permiso_in,
            actor_id=current_user.id, metadatos=deps.get_request_metadata(request)
        )
        db.commit()
        db.refresh(permiso)
        return permiso
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado actualizando permiso {permiso_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al actualizar el permiso.")


@router.delete("/{permiso_id}",
               response_model=Msg,
               dependencies=[Depends(deps.PermissionChecker(PERM_MODULES, AccionPermisoEnum.DELETE))],
               summary="Eliminar un permiso y sus asignaciones")
def delete_permiso(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    permiso_id: PyUUID,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    try:
        permiso = permiso_service.remove(
            db, id=permiso_id, actor_id=current_user.id, metadatos=deps.get_request_metadata(request)
        )
        codigo = permiso.codigo
        db.commit()
        logger.info(f"Permiso '{codigo}' eliminado por {current_user.email}.")
        return {"msg": f"Permiso '{codigo}' eliminado correctamente."}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado eliminando permiso {permiso_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al eliminar el permiso.")
