import sys
import argparse
from os.path import abspath, dirname
from getpass import getpass

root_dir = dirname(dirname(abspath(__file__)))
sys.path.append(root_dir)

from app.db.session import SessionLocal
from app.services import (
    autorizacion_service,
    permiso_service,
    permisos_por_defecto_service,
    usuario_permiso_service,
    usuario_service,
)
from app.schemas.enums import RolUsuarioEnum
from app.schemas.usuario import UsuarioCreate
from app.core.permissions import PERM_MODULES, PERM_ROLES, PERM_USERS

ROLES_PERMITIDOS = [rol.value for rol in RolUsuarioEnum]

# Permisos que se revisan en el reporte de verificación
PERMISOS_CLAVE = [PERM_USERS, PERM_ROLES, PERM_MODULES]

# --- Funciones de Gestión ---

def create_user(db, nombre: str, email: str, rol: str):
    """Crea un nuevo usuario con los permisos por defecto de su rol."""
    print(f"Iniciando creación de usuario para el email: {email}")
    if usuario_service.get_by_email(db, email=email):
        print(f"❌ Error: Ya existe un usuario con el email '{email}'.")
        return
    password = getpass("Introduce la contraseña para el nuevo usuario: ")
    if not password or len(password) < 8:
        print("❌ Error: La contraseña no puede estar vacía y debe tener al menos 8 caracteres.")
        return
    try:
        user_in = UsuarioCreate(nombre=nombre, email=email, password=password, rol=RolUsuarioEnum(rol))
        usuario_service.create(db, obj_in=user_in)
        db.commit()
        print(f"✅ ¡Usuario '{nombre}' con rol '{rol}' creado exitosamente!")
    except Exception as e:
        db.rollback()
        print(f"❌ Error inesperado al crear el usuario: {e}")

def set_active(db, email: str, activo: bool):
    """Activa o desactiva una cuenta. Las cuentas no se borran: su auditoría las referencia."""
    user = usuario_service.get_by_email(db, email=email)
    if not user:
        print(f"⚠️ No se encontró ningún usuario con el email '{email}'.")
        return
    try:
        user.activo = activo
        db.commit()
        print(f"✅ Usuario '{email}' {'activado' if activo else 'desactivado'}.")
    except Exception as e:
        print(f"❌ Error al actualizar el usuario: {e}")
        db.rollback()

def seed_defaults(db, email: str):
    """Vuelve a aplicar los permisos por defecto del rol; no quita acciones existentes."""
    user = usuario_service.get_by_email(db, email=email)
    if not user:
        print(f"⚠️ No se encontró ningún usuario con el email '{email}'.")
        return
    try:
        asignaciones = permisos_por_defecto_service.seed_defaults(db, usuario_id=user.id, rol=user.rol)
        db.commit()
        print(f"✅ {len(asignaciones)} permiso(s) por defecto vigentes para '{email}'.")
    except Exception as e:
        db.rollback()
        print(f"❌ Error al sembrar permisos: {e}")

def list_users(db):
    """Muestra una lista de todos los usuarios junto con su rol."""
    print("\n--- LISTA DE USUARIOS ---")
    all_users = usuario_service.get_multi(db, skip=0, limit=1000)
    if not all_users:
        print("-> No se encontraron usuarios en la base de datos.")
        return
    print(f"{'ROL':<12} | {'ACTIVO':<6} | {'NOMBRE':<25} | {'EMAIL'}")
    print("-" * 80)
    for user in all_users:
        print(f"{user.rol.value:<12} | {'sí' if user.activo else 'no':<6} | {user.nombre:<25} | {user.email}")
    print("-" * 80)
    print(f"Total: {len(all_users)} usuarios.")

def verify_permissions(db, email: str = None):
    """
    Reporte de verificación: permisos clave presentes en el catálogo y, por
    usuario, si los tiene vigentes.
    """
    print("🔍 Verificando permisos en el sistema...")
    encontrados = permiso_service.get_by_codigos(db, codigos=PERMISOS_CLAVE)
    if not encontrados:
        print("❌ No se encontraron los permisos clave. Ejecuta 'python scripts/seed_catalogo.py'.")
        return
    faltantes = set(PERMISOS_CLAVE) - {p.codigo for p in encontrados}
    for permiso in encontrados:
        print(f"   - {permiso.codigo}: {permiso.nombre}")
        print(f"     Acciones: {', '.join(permiso.acciones)}")
    for codigo in sorted(faltantes):
        print(f"⚠️  Falta en el catálogo: {codigo}")

    if email:
        user = usuario_service.get_by_email(db, email=email)
        usuarios = [user] if user else []
    else:
        usuarios = usuario_service.get_multi(db, skip=0, limit=None)

    print("\n👥 Usuarios y sus permisos:")
    for user in usuarios:
        print(f"\n   {user.email} ({user.rol.value})")
        for codigo in PERMISOS_CLAVE:
            tiene = autorizacion_service.has_permission(db, user.id, codigo)
            print(f"     - {codigo}: {'✅' if tiene else '❌'}")
        if not user.is_super_admin:
            total = len(usuario_permiso_service.get_by_usuario(db, usuario_id=user.id))
            print(f"     Permisos vigentes: {total}")

    print("\n✅ Verificación completada")

# --- Interfaz de Línea de Comandos Principal ---

def main():
    parser = argparse.ArgumentParser(description="Herramienta CLI para gestionar usuarios y permisos.")
    subparsers = parser.add_subparsers(dest="command", help="Comandos disponibles", required=True)

    parser_create = subparsers.add_parser("create", help="Crear un nuevo usuario.")
    parser_create.add_argument("--nombre", type=str, required=True, help="Nombre completo.")
    parser_create.add_argument("--email", type=str, required=True, help="Email del usuario.")
    parser_create.add_argument("--rol", type=str, required=True, choices=ROLES_PERMITIDOS, help="Rol del usuario.")

    parser_deactivate = subparsers.add_parser("deactivate", help="Desactivar un usuario.")
    parser_deactivate.add_argument("--email", type=str, required=True)

    parser_activate = subparsers.add_parser("activate", help="Reactivar un usuario.")
    parser_activate.add_argument("--email", type=str, required=True)

    parser_seed = subparsers.add_parser("seed-defaults", help="Reaplicar los permisos por defecto de un usuario.")
    parser_seed.add_argument("--email", type=str, required=True)

    subparsers.add_parser("list-users", help="Mostrar una lista de todos los usuarios y sus roles.")

    parser_verify = subparsers.add_parser("verify-permissions", help="Reporte de permisos clave por usuario.")
    parser_verify.add_argument("--email", type=str, default=None, help="Limitar el reporte a un usuario.")

    args = parser.parse_args()
    db = SessionLocal()
    try:
        if args.command == "create":
            create_user(db, nombre=args.nombre, email=args.email, rol=args.rol)
        elif args.command == "deactivate":
            set_active(db, email=args.email, activo=False)
        elif args.command == "activate":
            set_active(db, email=args.email, activo=True)
        elif args.command == "seed-defaults":
            seed_defaults(db, email=args.email)
        elif args.command == "list-users":
            list_users(db)
        elif args.command == "verify-permissions":
            verify_permissions(db, email=args.email)
    finally:
        db.close()

if __name__ == "__main__":
    main()
