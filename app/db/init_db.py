import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.permissions import CATALOGO_BASE
from app.models.modulo import Modulo
from app.models.permiso import Permiso
from app.models.submodulo import Submodulo
from app.services.modulo import modulo_service
from app.services.permiso import permiso_service
from app.services.submodulo import submodulo_service

logger = logging.getLogger(__name__)


def cargar_catalogo_base(db: Session, catalogo: Optional[List[dict]] = None) -> Dict[str, int]:
    """
    Carga los módulos, submódulos y permisos base. Lo que ya existe (por slug o
    código) se deja como está, así que puede ejecutarse en cada despliegue.
    Es una carga de arranque: no deja auditoría porque puede no existir aún
    ningún usuario. NO realiza db.commit().
    """
    creados = {"modulos": 0, "submodulos": 0, "permisos": 0}

    for modulo_data in catalogo if catalogo is not None else CATALOGO_BASE:
        modulo = modulo_service.get_by_slug(db, slug=modulo_data["slug"])
        if modulo is None:
            modulo = Modulo(
                nombre=modulo_data["nombre"],
                slug=modulo_data["slug"],
                descripcion=modulo_data.get("descripcion"),
                icono=modulo_data.get("icono"),
                orden=modulo_data.get("orden", 0),
            )
            db.add(modulo)
            db.flush()
            creados["modulos"] += 1

        submodulos: Dict[str, Submodulo] = {}
        for sub_data in modulo_data.get("submodulos", []):
            submodulo = submodulo_service.get_by_slug(db, modulo_id=modulo.id, slug=sub_data["slug"])
            if submodulo is None:
                submodulo = Submodulo(
                    modulo_id=modulo.id,
                    nombre=sub_data["nombre"],
                    slug=sub_data["slug"],
                    orden=sub_data.get("orden", 0),
                )
                db.add(submodulo)
                db.flush()
                creados["submodulos"] += 1
            submodulos[submodulo.slug] = submodulo

        for permiso_data in modulo_data.get("permisos", []):
            if permiso_service.get_by_codigo(db, codigo=permiso_data["codigo"]):
                continue
            submodulo = submodulos.get(permiso_data.get("submodulo", ""))
            db.add(Permiso(
                codigo=permiso_data["codigo"],
                nombre=permiso_data["nombre"],
                modulo_id=modulo.id,
                submodulo_id=submodulo.id if submodulo else None,
                acciones=[a.value for a in permiso_data["acciones"]],
            ))
            creados["permisos"] += 1
        db.flush()

    logger.info(
        f"Catálogo base cargado: {creados['modulos']} módulo(s), {creados['submodulos']} submódulo(s), "
        f"{creados['permisos']} permiso(s) nuevos."
    )
    return creados
