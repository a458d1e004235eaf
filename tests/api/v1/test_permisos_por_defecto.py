import pytest
import uuid
from httpx import AsyncClient
from fastapi import status
from typing import Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.permissions import (
    PERM_ARTICLES, PERM_CONSTANCIAS, PERM_DASHBOARD, PERM_RESOLUCIONES, PERM_SETTINGS, PERM_SYSTEM_ADMIN
)
from app.models.permiso import Permiso
from app.models.usuario import Usuario
from app.schemas.enums import AccionPermisoEnum, ProveedorAuthEnum, RolUsuarioEnum
from app.services.permisos_por_defecto import permisos_por_defecto_service
from app.services.usuario import usuario_service
from app.services.usuario_permiso import usuario_permiso_service

from conftest import TEST_PASSWORD, audit_logs, crear_usuario

pytestmark = pytest.mark.asyncio


def _acciones(db: Session, usuario: Usuario) -> Dict[str, list]:
    asignaciones = usuario_permiso_service.get_by_usuario(db, usuario_id=usuario.id)
    return {a.permiso.codigo: a.acciones for a in asignaciones}


async def test_permisos_por_defecto_segun_rol(db: Session, catalogo: Dict[str, Permiso]):
    usuario = crear_usuario(db, RolUsuarioEnum.USER)
    assert _acciones(db, usuario) == {PERM_DASHBOARD: ["READ"], PERM_SETTINGS: ["READ", "UPDATE"]}

    moderador = crear_usuario(db, RolUsuarioEnum.MODERATOR)
    edicion = ["CREATE", "READ", "UPDATE", "EXPORT"]
    assert _acciones(db, moderador) == {
        PERM_DASHBOARD: ["READ", "EXPORT"],
        PERM_CONSTANCIAS: edicion,
        PERM_RESOLUCIONES: edicion,
        PERM_ARTICLES: edicion,
    }

    admin = crear_usuario(db, RolUsuarioEnum.ADMIN)
    acciones_admin = _acciones(db, admin)
    assert set(acciones_admin) == set(catalogo) - {PERM_SYSTEM_ADMIN}
    for codigo, acciones in acciones_admin.items():
        assert acciones == catalogo[codigo].acciones

    super_admin = crear_usuario(db, RolUsuarioEnum.SUPER_ADMIN)
    assert _acciones(db, super_admin) == {}


async def test_siembra_deja_auditoria(db: Session, catalogo: Dict[str, Permiso]):
    usuario = crear_usuario(db, RolUsuarioEnum.USER)
    logs = audit_logs(db, "permissions.seeded")
    assert len(logs) == 1
    assert logs[0].entidad_id == str(usuario.id)
    assert logs[0].cambios["rol"] == "USER"
    assert {s["codigo"] for s in logs[0].cambios["after"]} == {PERM_DASHBOARD, PERM_SETTINGS}

    crear_usuario(db, RolUsuarioEnum.SUPER_ADMIN)
    assert len(audit_logs(db, "permissions.seeded")) == 1


async def test_resiembra_es_idempotente(db: Session, usuario_regular: Usuario):
    antes = _acciones(db, usuario_regular)
    permisos_por_defecto_service.seed_defaults(db, usuario_id=usuario_regular.id, rol=usuario_regular.rol)
    db.commit()

    assert _acciones(db, usuario_regular) == antes
    assert len(audit_logs(db, "permissions.seeded")) == 1


async def test_resiembra_no_quita_acciones(
    db: Session, usuario_regular: Usuario, catalogo: Dict[str, Permiso]
):
    usuario_permiso_service.upsert(
        db,
        usuario_id=usuario_regular.id,
        permiso=catalogo[PERM_DASHBOARD],
        acciones=[AccionPermisoEnum.READ, AccionPermisoEnum.EXPORT],
    )
    usuario_permiso_service.upsert(
        db,
        usuario_id=usuario_regular.id,
        permiso=catalogo[PERM_SETTINGS],
        acciones=[AccionPermisoEnum.READ],
    )
    db.commit()

    permisos_por_defecto_service.seed_defaults(db, usuario_id=usuario_regular.id, rol=usuario_regular.rol)
    db.commit()

    assert _acciones(db, usuario_regular) == {
        PERM_DASHBOARD: ["READ", "EXPORT"],
        PERM_SETTINGS: ["READ", "UPDATE"],
    }
    logs = audit_logs(db, "permissions.seeded")
    assert len(logs) == 2
    assert sorted([s["codigo"] for s in log.cambios["after"]] for log in logs) == [[PERM_DASHBOARD, PERM_SETTINGS], [PERM_SETTINGS]]


async def test_catalogo_vacio_no_impide_el_alta(db: Session):
    usuario = crear_usuario(db, RolUsuarioEnum.MODERATOR)
    assert usuario.id is not None
    assert _acciones(db, usuario) == {}
    assert audit_logs(db, "permissions.seeded") == []
    assert len(audit_logs(db, "users.registered")) == 1


async def test_alta_con_permisos_adicionales(
    db: Session,
    client: AsyncClient,
    admin: Usuario,
    admin_headers: Dict[str, str],
    catalogo: Dict[str, Permiso],
):
    body = {
        "nombre": "Redactora",
        "email": "redaccion@portal-admin.com",
        "password": TEST_PASSWORD,
        "rol": "USER",
        "permiso_ids": [str(catalogo[PERM_ARTICLES].id)],
    }
    response = await client.post(f"{settings.API_V1_STR}/usuarios/", headers=admin_headers, json=body)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    data = response.json()
    assert data["rol"] == "USER"
    assert "hashed_password" not in data

    nuevo = db.get(Usuario, uuid.UUID(data["id"]))
    assert _acciones(db, nuevo) == {
        PERM_DASHBOARD: ["READ"],
        PERM_SETTINGS: ["READ", "UPDATE"],
        PERM_ARTICLES: ["CREATE", "READ", "UPDATE", "DELETE", "EXPORT"],
    }
    asignacion = usuario_permiso_service.get_by_usuario_permiso(
        db, usuario_id=nuevo.id, permiso_id=catalogo[PERM_ARTICLES].id
    )
    assert asignacion.otorgado_por == admin.id

    logs = audit_logs(db, "users.created")
    assert len(logs) == 1
    assert logs[0].usuario_id == admin.id
    assert logs[0].entidad_id == data["id"]


async def test_fallo_en_la_siembra_no_impide_el_registro(
    db: Session, client: AsyncClient, catalogo: Dict[str, Permiso], monkeypatch
):
    def siembra_fallida(*args, **kwargs):
        raise SQLAlchemyError("fallo simulado")

    monkeypatch.setattr(permisos_por_defecto_service, "seed_defaults", siembra_fallida)

    body = {"nombre": "Nueva Cuenta", "email": "nueva@portal-admin.com", "password": TEST_PASSWORD}
    response = await client.post(f"{settings.API_V1_STR}/auth/register", json=body)
    assert response.status_code == status.HTTP_201_CREATED, response.text

    nuevo = db.get(Usuario, uuid.UUID(response.json()["id"]))
    assert nuevo is not None
    assert _acciones(db, nuevo) == {}
    assert len(audit_logs(db, "users.registered")) == 1


async def test_primer_login_social_siembra_una_vez(db: Session, catalogo: Dict[str, Permiso]):
    usuario, creado = usuario_service.get_or_create_social(
        db, email="social@portal-admin.com", nombre="Cuenta Social"
    )
    db.commit()
    assert creado is True
    assert usuario.hashed_password is None
    assert usuario.proveedor_auth == ProveedorAuthEnum.GOOGLE
    assert _acciones(db, usuario) == {PERM_DASHBOARD: ["READ"], PERM_SETTINGS: ["READ", "UPDATE"]}

    mismo, creado = usuario_service.get_or_create_social(
        db, email="social@portal-admin.com", nombre="Cuenta Social"
    )
    assert creado is False
    assert mismo.id == usuario.id
    assert len(audit_logs(db, "permissions.seeded")) == 1
