from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status

# Mensaje fijo para denegaciones: no revela qué permiso faltó
FORBIDDEN_DETAIL = "No tiene permisos suficientes para realizar esta acción."


class NotAuthenticatedError(HTTPException):
    def __init__(self, detail: str = "No se pudieron validar las credenciales"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(HTTPException):
    def __init__(self):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=FORBIDDEN_DETAIL)


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Recurso no encontrado."):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(HTTPException):
    """Duplicados de slug/código y borrados bloqueados por dependencias."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ValidationFailedError(HTTPException):
    """Error de validación de dominio con detalle por campo."""

    def __init__(self, field: str, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        self.errors = errors or [{"field": field, "message": message}]
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=message)
