import pytest
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient
from fastapi import status
from typing import Dict

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import FORBIDDEN_DETAIL
from app.core.permissions import (
    PERM_ARTICLES, PERM_DASHBOARD, PERM_ROLES, PERM_SETTINGS, PERM_SYSTEM_ADMIN
)
from app.models.permiso import Permiso
from app.models.usuario import Usuario
from app.schemas.enums import AccionPermisoEnum
from app.services.autorizacion import autorizacion_service
from app.services.usuario_permiso import usuario_permiso_service

pytestmark = pytest.mark.asyncio


async def test_super_admin_tiene_todo_sin_asignaciones(db: Session, super_admin: Usuario):
    assert usuario_permiso_service.get_by_usuario(db, usuario_id=super_admin.id) == []
    assert autorizacion_service.has_permission(db, super_admin.id, PERM_SYSTEM_ADMIN, AccionPermisoEnum.DELETE)
    assert autorizacion_service.has_permission(db, super_admin.id, "codigo.que.no.existe")
    assert autorizacion_service.has_permission(db, super_admin.id, PERM_ROLES, "EXPORT")


async def test_codigo_desconocido_falla_cerrado(db: Session, admin: Usuario):
    assert not autorizacion_service.has_permission(db, admin.id, "codigo.inexistente")
    assert not autorizacion_service.has_permission(db, admin.id, "codigo.inexistente", AccionPermisoEnum.READ)


async def test_sin_accion_basta_con_cualquier_accion(db: Session, usuario_regular: Usuario):
    assert autorizacion_service.has_permission(db, usuario_regular.id, PERM_DASHBOARD)
    assert autorizacion_service.has_permission(db, usuario_regular.id, PERM_DASHBOARD, AccionPermisoEnum.READ)
    assert not autorizacion_service.has_permission(db, usuario_regular.id, PERM_DASHBOARD, AccionPermisoEnum.EXPORT)
    assert not autorizacion_service.has_permission(db, usuario_regular.id, PERM_ARTICLES)


async def test_accion_desconocida_no_se_permite(db: Session, usuario_regular: Usuario):
    assert not autorizacion_service.has_permission(db, usuario_regular.id, PERM_SETTINGS, "PURGE")


async def test_asignacion_expirada_cuenta_como_inexistente(
    db: Session, usuario_regular: Usuario, catalogo: Dict[str, Permiso]
):
    usuario_permiso_service.upsert(
        db,
        usuario_id=usuario_regular.id,
        permiso=catalogo[PERM_DASHBOARD],
        acciones=[AccionPermisoEnum.READ],
        expira_en=datetime.now(timezone.utc) - timedelta(hours=1),
    )
    usuario_permiso_service.upsert(
        db,
        usuario_id=usuario_regular.id,
        permiso=catalogo[PERM_ARTICLES],
        acciones=[AccionPermisoEnum.READ],
        expira_en=datetime.now(timezone.utc) + timedelta(days=1),
    )
    db.commit()

    assert not autorizacion_service.has_permission(db, usuario_regular.id, PERM_DASHBOARD)
    assert autorizacion_service.has_permission(db, usuario_regular.id, PERM_ARTICLES, AccionPermisoEnum.READ)

    vigentes = usuario_permiso_service.get_by_usuario(db, usuario_id=usuario_regular.id)
    todas = usuario_permiso_service.get_by_usuario(db, usuario_id=usuario_regular.id, incluir_expirados=True)
    assert {a.permiso.codigo for a in vigentes} == {PERM_ARTICLES, PERM_SETTINGS}
    assert len(todas) == 3


async def test_usuario_inactivo_no_tiene_permisos(db: Session, usuario_regular: Usuario):
    usuario_regular.activo = False
    db.commit()
    assert not autorizacion_service.has_permission(db, usuario_regular.id, PERM_DASHBOARD)


async def test_check_endpoint(client: AsyncClient, usuario_headers: Dict[str, str]):
    url = f"{settings.API_V1_STR}/permisos/check"

    response = await client.post(url, headers=usuario_headers, json={"codigo": PERM_SETTINGS, "accion": "UPDATE"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"codigo": PERM_SETTINGS, "accion": "UPDATE", "tiene_permiso": True}

    response = await client.post(url, headers=usuario_headers, json={"codigo": PERM_SETTINGS, "accion": "DELETE"})
    assert response.json()["tiene_permiso"] is False

    response = await client.post(url, headers=usuario_headers, json={"codigo": "otro.codigo"})
    assert response.json()["tiene_permiso"] is False


async def test_check_endpoint_requiere_autenticacion(client: AsyncClient):
    response = await client.post(f"{settings.API_V1_STR}/permisos/check", json={"codigo": PERM_DASHBOARD})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


async def test_token_invalido_es_401(client: AsyncClient):
    headers = {"Authorization": "Bearer no-es-un-jwt"}
    response = await client.get(f"{settings.API_V1_STR}/permisos/usuario", headers=headers)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


async def test_denegacion_usa_mensaje_fijo(client: AsyncClient, usuario_headers: Dict[str, str]):
    response = await client.get(f"{settings.API_V1_STR}/permisos/por-rol", headers=usuario_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == FORBIDDEN_DETAIL
    assert PERM_ROLES not in response.text


async def test_permisos_del_usuario_actual(client: AsyncClient, usuario_headers: Dict[str, str]):
    response = await client.get(f"{settings.API_V1_STR}/permisos/usuario", headers=usuario_headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["rol"] == "USER"
    assert data["acceso_total"] is False
    acciones = {p["codigo"]: p["acciones"] for p in data["permisos"]}
    assert acciones == {PERM_DASHBOARD: ["READ"], PERM_SETTINGS: ["READ", "UPDATE"]}


async def test_permisos_super_admin_acceso_total(client: AsyncClient, super_admin_headers: Dict[str, str]):
    response = await client.get(f"{settings.API_V1_STR}/permisos/usuario", headers=super_admin_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["acceso_total"] is True
    assert response.json()["permisos"] == []

    # Pasa cualquier guardia aunque no tenga ninguna asignación
    response = await client.get(f"{settings.API_V1_STR}/permisos/por-rol", headers=super_admin_headers)
    assert response.status_code == status.HTTP_200_OK
