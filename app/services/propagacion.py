import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from app.core.exceptions import NotFoundError, ValidationFailedError
from app.models.permiso import Permiso
from app.schemas.usuario_permiso import CambioRolPermiso, FalloFila, ResultadoPropagacion
from .audit_log import audit_log_service
from .permiso import permiso_service
from .usuario import usuario_service
from .usuario_permiso import usuario_permiso_service

logger = logging.getLogger(__name__)


class PropagacionService:
    """
    Propagación masiva de cambios de permisos a todos los usuarios de un rol.

    Cada fila (usuario, permiso) se confirma por separado: una fila que falla
    se deshace y se informa, sin revertir las ya confirmadas. Por eso este
    servicio sí realiza db.commit() por fila; el registro de auditoría único
    queda pendiente para que la ruta lo confirme.
    """

    def _validar_lote(self, db: Session, cambios: List[CambioRolPermiso]) -> Dict[UUID, Permiso]:
        """Un lote mal formado se rechaza completo antes de escribir nada."""
        permisos: Dict[UUID, Permiso] = {}
        errores: List[Dict[str, str]] = []
        for i, cambio in enumerate(cambios):
            permiso = permisos.get(cambio.permiso_id) or permiso_service.get(db, id=cambio.permiso_id)
            if permiso is None:
                raise NotFoundError(f"Permiso con ID {cambio.permiso_id} no encontrado.")
            permisos[permiso.id] = permiso
            fuera = {a.value for a in cambio.acciones} - set(permiso.acciones)
            if fuera:
                errores.append({
                    "field": f"cambios -> {i} -> acciones",
                    "message": f"El permiso '{permiso.codigo}' no admite: {', '.join(sorted(fuera))}."
                })
        if errores:
            logger.warning(f"Lote de propagación rechazado: {errores}")
            raise ValidationFailedError("cambios", "El lote de cambios no es válido.", errors=errores)
        return permisos

    def apply_bulk_changes(
        self,
        db: Session,
        *,
        cambios: List[CambioRolPermiso],
        actor_id: UUID,
        metadatos: Optional[Dict[str, Any]] = None
    ) -> ResultadoPropagacion:
        permisos = self._validar_lote(db, cambios)
        resultado = ResultadoPropagacion()
        antes: List[Dict[str, Any]] = []

        for cambio in cambios:
            permiso_id = cambio.permiso_id
            # Usuarios del rol al momento de procesar este cambio
            usuario_ids = usuario_service.get_ids_by_rol(db, rol=cambio.rol)
            logger.info(
                f"Propagando {[a.value for a in cambio.acciones]} del permiso {permiso_id} "
                f"a {len(usuario_ids)} usuario(s) con rol {cambio.rol.value}."
            )
            for usuario_id in usuario_ids:
                try:
                    previo = usuario_permiso_service.get_by_usuario_permiso(
                        db, usuario_id=usuario_id, permiso_id=permiso_id
                    )
                    if previo is None and not cambio.acciones:
                        continue
                    acciones_previas = list(previo.acciones) if previo else None
                    usuario_permiso_service.upsert(
                        db,
                        usuario_id=usuario_id,
                        permiso=permisos[permiso_id],
                        acciones=cambio.acciones,
                        otorgado_por=actor_id,
                    )
                    db.commit()
                except OperationalError:
                    db.rollback()
                    logger.error("Almacén no disponible durante la propagación; se aborta el lote.", exc_info=True)
                    raise
                except SQLAlchemyError as e:
                    db.rollback()
                    logger.error(
                        f"Fallo al propagar permiso {permiso_id} a usuario {usuario_id}: {e}", exc_info=True
                    )
                    resultado.fallos.append(FalloFila(
                        usuario_id=usuario_id, permiso_id=permiso_id, rol=cambio.rol, error=str(e.__class__.__name__)
                    ))
                    continue

                antes.append({"usuario_id": usuario_id, "permiso_id": permiso_id, "acciones": acciones_previas})
                resultado.filas_afectadas += 1
            resultado.cambios_procesados += 1

        if resultado.fallos:
            logger.warning(
                f"Propagación parcial: {resultado.filas_afectadas} fila(s) aplicadas, "
                f"{len(resultado.fallos)} fallida(s)."
            )

        audit_log_service.record(
            db,
            actor_id=actor_id,
            accion="permissions.bulk_update",
            entidad="UsuarioPermiso",
            entidad_id="bulk_update",
            cambios={
                "before": antes,
                "after": [c.model_dump(mode="json") for c in cambios],
                "filas_afectadas": resultado.filas_afectadas,
                "fallos": len(resultado.fallos),
            },
            metadatos=metadatos,
        )
        logger.info(
            f"Propagación completada por {actor_id}: {resultado.cambios_procesados} cambio(s), "
            f"{resultado.filas_afectadas} fila(s)."
        )
        return resultado


propagacion_service = PropagacionService()
