import sys
from os.path import abspath, dirname

root_dir = dirname(dirname(abspath(__file__)))
sys.path.append(root_dir)

from sqlalchemy.orm import Session
from app.db.session import SessionLocal
from app.db.init_db import cargar_catalogo_base
from app.services.usuario import usuario_service
from app.schemas.enums import RolUsuarioEnum
from app.schemas.usuario import UsuarioCreate
from app.core.config import settings


def create_superuser():
    """
    Script síncrono para cargar el catálogo base y crear la cuenta SUPER_ADMIN
    a partir de variables de entorno.
    """
    db: Session = SessionLocal()

    print("--- Iniciando script para crear superusuario ---")

    try:
        # 1. El catálogo debe existir antes de que se siembren permisos a nadie
        cargar_catalogo_base(db)
        db.commit()

        # 2. Leer credenciales desde variables de entorno
        admin_email = settings.SUPERUSER_EMAIL
        admin_password = settings.SUPERUSER_PASSWORD

        if not all([admin_email, admin_password]):
            print("!!! ERROR: Define SUPERUSER_EMAIL y SUPERUSER_PASSWORD en tu archivo .env. Saliendo. !!!")
            return

        # 3. Verificar si el superusuario ya existe
        superuser = usuario_service.get_by_email(db, email=admin_email)

        if not superuser:
            print(f"Creando superusuario con email: {admin_email}")
            superuser_in = UsuarioCreate(
                nombre="Super Administrador",
                email=admin_email,
                password=admin_password,
                rol=RolUsuarioEnum.SUPER_ADMIN,
            )
            usuario_service.create(db, obj_in=superuser_in)
            db.commit()
            print("¡Superusuario creado exitosamente!")
        else:
            print(f"El superusuario con email '{admin_email}' ya existe (rol {superuser.rol.value}).")

    except Exception as e:
        print(f"Ocurrió un error: {e}")
        db.rollback()
    finally:
        print("--- Script finalizado ---")
        db.close()

if __name__ == "__main__":
    create_superuser()
