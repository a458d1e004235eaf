import logging
import traceback

from fastapi import FastAPI, Request, status, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, NoResultFound, OperationalError

from app.core.exceptions import ValidationFailedError

logger = logging.getLogger(__name__)

# SQLSTATE de PostgreSQL; SQLite no los expone y se compara por mensaje
PGCODE_UNIQUE_VIOLATION = "23505"
PGCODE_FOREIGN_KEY_VIOLATION = "23503"
PGCODE_NOT_NULL_VIOLATION = "23502"

UNIQUE_MESSAGES = {
    "ix_modulos_slug": "Ya existe un módulo con ese slug.",
    "uq_submodulos_modulo_slug": "Ya existe un submódulo con ese slug en el módulo.",
    "ix_permisos_codigo": "Ya existe un permiso con ese código.",
    "ix_usuarios_email": "Correo electrónico ya registrado.",
    "uq_usuarios_permisos_usuario_permiso": "El usuario ya tiene asignado ese permiso.",
}

# Columnas tal como las reporta SQLite en "UNIQUE constraint failed: tabla.columna"
SQLITE_UNIQUE_COLUMNS = {
    "modulos.slug": "ix_modulos_slug",
    "submodulos.modulo_id, submodulos.slug": "uq_submodulos_modulo_slug",
    "permisos.codigo": "ix_permisos_codigo",
    "usuarios.email": "ix_usuarios_email",
    "usuarios_permisos.usuario_id, usuarios_permisos.permiso_id": "uq_usuarios_permisos_usuario_permiso",
}


def es_violacion_unica(exc: SQLAlchemyError) -> bool:
    """True si el IntegrityError proviene de una restricción UNIQUE (PostgreSQL o SQLite)."""
    if not isinstance(exc, IntegrityError):
        return False
    original_exc = getattr(exc, 'orig', None)
    pgcode = getattr(original_exc, 'sqlstate', None) or getattr(original_exc, 'pgcode', None)
    if pgcode:
        return pgcode == PGCODE_UNIQUE_VIOLATION
    return "unique constraint" in str(original_exc if original_exc else exc).lower()


def _constraint_from_error(original_exc, message: str):
    diag = getattr(original_exc, 'diag', None)
    constraint_name = getattr(diag, 'constraint_name', None) if diag else None
    if constraint_name:
        return constraint_name
    for columns, name in SQLITE_UNIQUE_COLUMNS.items():
        if message.endswith(columns):
            return name
    return None


async def validation_exception_handler(request: Request, exc: Exception):
    """
    Manejador para errores de validación de Pydantic en las solicitudes.
    """
    if not isinstance(exc, RequestValidationError):
        return await generic_exception_handler(request, exc)

    error_details = []
    for error in exc.errors():
        field_loc = error.get("loc", ["body"])
        if field_loc and field_loc[0] == 'body' and len(field_loc) > 1:
            field = " -> ".join(map(str, field_loc[1:]))
        else:
            field = " -> ".join(map(str, field_loc))
        message = error.get("msg", "Error de validación")
        error_details.append({"field": field, "message": message})
    logger.warning(f"Error de Validación en Request: {request.method} {request.url} - Errores: {error_details}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Error de validación en los datos de entrada.", "errors": error_details},
    )


async def http_exception_handler(request: Request, exc: Exception):
    """
    Manejador para excepciones HTTP explícitas lanzadas en la aplicación.
    """
    if not isinstance(exc, HTTPException):
        return await generic_exception_handler(request, exc)

    log_message = f"HTTPException - Status: {exc.status_code}, Detail: {exc.detail}, Request: {request.method} {request.url}"
    if exc.status_code >= 500:
        logger.error(log_message, exc_info=False)
    elif exc.status_code >= 400:
        logger.warning(log_message)
    else:
        logger.info(log_message)

    content = {"detail": exc.detail}
    if isinstance(exc, ValidationFailedError):
        content["errors"] = exc.errors
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


async def database_exception_handler(request: Request, exc: Exception):
    """
    Manejador para errores de base de datos que escaparon de las rutas.
    """
    if not isinstance(exc, SQLAlchemyError):
        return await generic_exception_handler(request, exc)

    original_exc = getattr(exc, 'orig', None)
    pgcode = getattr(original_exc, 'sqlstate', None) or getattr(original_exc, 'pgcode', None)
    message = str(original_exc if original_exc else exc)
    lowered = message.lower()
    constraint_name = _constraint_from_error(original_exc, message)

    logger.error(
        f"Database Error Handler - Type: {type(original_exc).__name__ if original_exc else type(exc).__name__}, "
        f"PGCode: {pgcode}, Constraint: '{constraint_name}', Msg: '{message}', "
        f"Request: {request.method} {request.url}",
        exc_info=True
    )

    if es_violacion_unica(exc):
        user_message = UNIQUE_MESSAGES.get(
            constraint_name,
            f"Conflicto: Ya existe un registro con datos que deben ser únicos (restricción: {constraint_name or 'desconocida'})."
        )
        status_code = status.HTTP_400_BAD_REQUEST
    elif pgcode == PGCODE_FOREIGN_KEY_VIOLATION or (isinstance(exc, IntegrityError) and "foreign key constraint" in lowered):
        user_message = "Error de referencia: El registro vinculado no existe o todavía tiene dependencias."
        status_code = status.HTTP_400_BAD_REQUEST
    elif pgcode == PGCODE_NOT_NULL_VIOLATION or (isinstance(exc, IntegrityError) and "not null constraint" in lowered):
        column_name = getattr(getattr(original_exc, 'diag', None), 'column_name', None) or 'desconocido'
        user_message = f"Error de datos: El campo '{column_name}' no puede ser nulo."
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, IntegrityError):
        user_message = "Error de integridad en la base de datos. Verifique los datos."
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, NoResultFound):
        user_message = "El recurso solicitado no fue encontrado."
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, OperationalError):
        user_message = "El almacén de datos no está disponible en este momento."
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        user_message = "Ocurrió un error interno del servidor al procesar la solicitud de base de datos."
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    logger.info(f"DB Handler: Mapeando error DB a -> Status={status_code}, Detail='{user_message}'")
    return JSONResponse(status_code=status_code, content={"detail": user_message})


async def generic_exception_handler(request: Request, exc: Exception):
    """
    Manejador genérico para cualquier excepción no capturada por otros manejadores.
    """
    log_message = f"Unhandled Python Exception: {type(exc).__name__} - {exc}, Request: {request.method} {request.url}\n{traceback.format_exc()}"
    logger.critical(log_message)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Ocurrió un error interno inesperado en la aplicación."},
    )


def register_error_handlers(app: FastAPI):
    """Registra todos los manejadores de excepciones personalizados en la app FastAPI."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
    logger.info("Manejadores de errores personalizados registrados.")
