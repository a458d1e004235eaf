import sys
from os.path import abspath, dirname

root_dir = dirname(dirname(abspath(__file__)))
sys.path.append(root_dir)

from sqlalchemy.orm import Session
from app.db.session import SessionLocal
from app.db.init_db import cargar_catalogo_base


def seed_catalogo():
    """
    Carga el catálogo base de módulos, submódulos y permisos.
    Puede ejecutarse varias veces: lo existente no se modifica.
    """
    db: Session = SessionLocal()

    print("--- Cargando catálogo base ---")
    try:
        creados = cargar_catalogo_base(db)
        db.commit()
        print(
            f"Módulos nuevos: {creados['modulos']}, submódulos nuevos: {creados['submodulos']}, "
            f"permisos nuevos: {creados['permisos']}"
        )
    except Exception as e:
        print(f"Ocurrió un error: {e}")
        db.rollback()
        raise
    finally:
        print("--- Script finalizado ---")
        db.close()


if __name__ == "__main__":
    seed_catalogo()
