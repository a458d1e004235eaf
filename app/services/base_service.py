import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from sqlalchemy.orm import Session
from sqlalchemy import func, select, inspect as sa_inspect
from sqlalchemy.exc import IntegrityError

from app.core.error_handlers import es_violacion_unica
from app.core.exceptions import ConflictError, NotFoundError
from app.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)

logger = logging.getLogger(__name__)


class BaseService(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    def __init__(self, model: Type[ModelType]):
        """
        Servicio base con operaciones CRUD por defecto.
        Los métodos CUD (Create, Update, Delete) NO realizan commit.
        El commit debe ser manejado en la capa de la ruta (endpoint).

        **Parámetros**

        * `model`: Clase del modelo SQLAlchemy
        """
        self.model = model

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        """Obtiene un registro por ID."""
        return db.get(self.model, id)

    def get_or_404(self, db: Session, id: Any) -> ModelType:
        """Obtiene un registro por ID o lanza NotFoundError si no existe."""
        db_obj = self.get(db, id=id)
        if not db_obj:
            logger.warning(f"Registro no encontrado en {self.model.__name__} con ID: {id}")
            raise NotFoundError(f"{self.model.__name__} con ID {id} no encontrado.")
        return db_obj

    def get_multi(
        self, db: Session, *, skip: int = 0, limit: Optional[int] = 100
    ) -> List[ModelType]:
        """Obtiene múltiples registros con paginación."""
        statement = select(self.model).offset(skip).limit(limit)
        return list(db.execute(statement).scalars().all())

    def get_count(self, db: Session) -> int:
        count_query = select(func.count(self.model.id))  # type: ignore[attr-defined]
        return db.execute(count_query).scalar_one_or_none() or 0

    def create(self, db: Session, *, obj_in: CreateSchemaType) -> ModelType:
        """
        Crea un nuevo registro.
        NO realiza db.commit(). El commit debe ser manejado por el llamador.
        """
        obj_in_data = obj_in.model_dump()
        db_obj = self.model(**obj_in_data)
        db.add(db_obj)
        logger.info(f"Nuevo registro preparado para creación en {self.model.__name__} con datos: {obj_in_data}")
        return db_obj

    def update(
        self,
        db: Session,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        """
        Actualiza un objeto existente (solo los campos enviados).
        NO realiza db.commit(). El commit debe ser manejado por el llamador.
        """
        update_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        obj_id = getattr(db_obj, 'id', 'N/A')
        logger.debug(f"Actualizando {self.model.__name__} ID {obj_id} con datos: {update_data}")

        if not update_data:
            logger.info(f"No se proporcionaron datos para actualizar en {self.model.__name__} (ID: {obj_id})")
            return db_obj

        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
            else:
                logger.warning(f"Intento de actualizar campo '{field}' inexistente en modelo {self.model.__name__}")

        db.add(db_obj)
        logger.info(f"Registro preparado para actualización en {self.model.__name__} (ID: {obj_id})")
        return db_obj

    def remove(self, db: Session, *, id: Union[UUID, int]) -> ModelType:
        """
        Elimina un registro por ID.
        NO realiza db.commit(). El commit debe ser manejado por el llamador.
        """
        obj = self.get_or_404(db, id=id)
        db.delete(obj)
        logger.warning(f"Registro preparado para eliminación de {self.model.__name__} (ID: {id})")
        return obj

    def flush_unique(self, db: Session, *, detail: str) -> None:
        """
        Envía los cambios pendientes para que la restricción única de la base
        de datos decida. Solo una violación de unicidad se traduce en
        ConflictError; el resto de errores de integridad se propagan.
        """
        try:
            db.flush()
        except IntegrityError as e:
            if not es_violacion_unica(e):
                raise
            db.rollback()
            logger.warning(f"Violación de unicidad en {self.model.__name__}: {e.orig}")
            raise ConflictError(detail) from e

    @staticmethod
    def snapshot(db_obj: Base, exclude: tuple = ()) -> Dict[str, Any]:
        """Columnas del objeto serializadas a JSON, para los registros de auditoría."""
        columnas = sa_inspect(db_obj).mapper.column_attrs
        return jsonable_encoder({
            c.key: getattr(db_obj, c.key) for c in columnas if c.key not in exclude
        })
