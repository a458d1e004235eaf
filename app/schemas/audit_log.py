import uuid
from typing import Optional, Dict, Any
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict


class AuditLog(BaseModel):
    """Registro de auditoría tal como se exporta (solo lectura)."""
    id: uuid.UUID
    usuario_id: uuid.UUID = Field(..., description="Usuario que realizó la acción")
    accion: str = Field(..., description="Código de la acción, ej: permissions.bulk_update")
    entidad: str
    entidad_id: str
    cambios: Optional[Dict[str, Any]] = Field(None, description="Instantánea antes/después")
    metadatos: Optional[Dict[str, Any]] = Field(None, description="IP y user agent de la petición")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
