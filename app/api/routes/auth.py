import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from app.api import deps
from app.core import security
from app.core.exceptions import NotAuthenticatedError
from app.schemas.token import Token
from app.schemas.usuario import Usuario, UsuarioRegistro
from app.services.usuario import usuario_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login/access-token", response_model=Token)
def login_access_token(
    request: Request,
    db: Session = Depends(deps.get_db),
    form_data: OAuth2PasswordRequestForm = Depends()
) -> Any:
    """
    Login con correo y contraseña (el campo `username` del formulario es el correo).
    """
    ip_address = deps.get_request_metadata(request)["ip"]
    logger.info(f"Intento de login para '{form_data.username}' desde IP {ip_address}")

    user = usuario_service.authenticate(db, email=form_data.username, password=form_data.password)
    if not user or not user.activo:
        raise NotAuthenticatedError("Correo o contraseña incorrectos, o usuario inactivo.")

    logger.info(f"Login exitoso para usuario '{user.email}'.")
    return {"access_token": security.create_access_token(subject=user.id), "token_type": "bearer"}


@router.post("/register",
             response_model=Usuario,
             status_code=status.HTTP_201_CREATED,
             summary="Auto-registro de una cuenta con rol USER")
def register(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    user_in: UsuarioRegistro,
) -> Any:
    logger.info(f"Auto-registro solicitado para '{user_in.email}'.")
    try:
        user = usuario_service.create(db, obj_in=user_in, metadatos=deps.get_request_metadata(request))
        db.commit()
        db.refresh(user)
        return user
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado en el registro de '{user_in.email}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al registrar el usuario.")
