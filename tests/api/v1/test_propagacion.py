import pytest
from httpx import AsyncClient
from uuid import uuid4
from fastapi import status
from typing import Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.permissions import PERM_ARTICLES, PERM_DASHBOARD, PERM_USERS
from app.models.permiso import Permiso
from app.models.usuario import Usuario
from app.schemas.enums import RolUsuarioEnum
from app.services.autorizacion import autorizacion_service
from app.services.usuario_permiso import usuario_permiso_service

from conftest import audit_logs, crear_usuario

pytestmark = pytest.mark.asyncio

URL = f"{settings.API_V1_STR}/permisos/bulk-update"


@pytest.fixture(scope="function")
def moderadores(db: Session, catalogo: Dict[str, Permiso]):
    return [crear_usuario(db, RolUsuarioEnum.MODERATOR) for _ in range(3)]


async def test_propaga_a_todos_los_usuarios_del_rol(
    db: Session,
    client: AsyncClient,
    admin_headers: Dict[str, str],
    moderadores,
    usuario_regular: Usuario,
    catalogo: Dict[str, Permiso],
):
    permiso = catalogo[PERM_USERS]
    body = {"cambios": [{"rol": "MODERATOR", "permiso_id": str(permiso.id), "acciones": ["READ"]}]}
    response = await client.post(URL, headers=admin_headers, json=body)
    assert response.status_code == status.HTTP_200_OK, response.text
    assert response.json() == {"cambios_procesados": 1, "filas_afectadas": 3, "fallos": []}

    for moderador in moderadores:
        assert autorizacion_service.has_permission(db, moderador.id, PERM_USERS, "READ")
        assert not autorizacion_service.has_permission(db, moderador.id, PERM_USERS, "UPDATE")
    assert not autorizacion_service.has_permission(db, usuario_regular.id, PERM_USERS)

    logs = audit_logs(db, "permissions.bulk_update")
    assert len(logs) == 1
    assert logs[0].cambios["filas_afectadas"] == 3
    assert logs[0].cambios["fallos"] == 0
    assert logs[0].cambios["after"][0]["acciones"] == ["READ"]


async def test_propagacion_reemplaza_acciones(
    db: Session,
    client: AsyncClient,
    admin_headers: Dict[str, str],
    moderadores,
    catalogo: Dict[str, Permiso],
):
    permiso = catalogo[PERM_DASHBOARD]
    body = {"cambios": [{"rol": "MODERATOR", "permiso_id": str(permiso.id), "acciones": ["EXPORT"]}]}
    response = await client.post(URL, headers=admin_headers, json=body)
    assert response.status_code == status.HTTP_200_OK

    asignacion = usuario_permiso_service.get_by_usuario_permiso(
        db, usuario_id=moderadores[0].id, permiso_id=permiso.id
    )
    assert asignacion.acciones == ["EXPORT"]
    logs = audit_logs(db, "permissions.bulk_update")
    assert {tuple(f["acciones"]) for f in logs[0].cambios["before"]} == {("READ", "EXPORT")}


async def test_acciones_vacias_eliminan_asignaciones(
    db: Session,
    client: AsyncClient,
    admin_headers: Dict[str, str],
    moderadores,
    catalogo: Dict[str, Permiso],
):
    permiso = catalogo[PERM_ARTICLES]
    body = {"cambios": [{"rol": "MODERATOR", "permiso_id": str(permiso.id), "acciones": []}]}
    response = await client.post(URL, headers=admin_headers, json=body)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["filas_afectadas"] == 3

    for moderador in moderadores:
        assert usuario_permiso_service.get_by_usuario_permiso(
            db, usuario_id=moderador.id, permiso_id=permiso.id
        ) is None
        assert not autorizacion_service.has_permission(db, moderador.id, PERM_ARTICLES)


async def test_rol_sin_usuarios(
    db: Session, client: AsyncClient, admin_headers: Dict[str, str], catalogo: Dict[str, Permiso]
):
    permiso = catalogo[PERM_DASHBOARD]
    body = {"cambios": [{"rol": "MODERATOR", "permiso_id": str(permiso.id), "acciones": ["READ"]}]}
    response = await client.post(URL, headers=admin_headers, json=body)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["filas_afectadas"] == 0
    # Aun sin filas afectadas queda un registro de la operación
    assert len(audit_logs(db, "permissions.bulk_update")) == 1


async def test_super_admin_rechazado(
    db: Session,
    client: AsyncClient,
    admin_headers: Dict[str, str],
    super_admin: Usuario,
    catalogo: Dict[str, Permiso],
):
    permiso = catalogo[PERM_DASHBOARD]
    body = {"cambios": [{"rol": "SUPER_ADMIN", "permiso_id": str(permiso.id), "acciones": ["READ"]}]}
    response = await client.post(URL, headers=admin_headers, json=body)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert [e["field"] for e in response.json()["errors"]] == ["cambios -> 0 -> rol"]
    assert audit_logs(db, "permissions.bulk_update") == []
    assert usuario_permiso_service.get_by_usuario(db, usuario_id=super_admin.id) == []


async def test_accion_no_admitida_rechaza_el_lote(
    db: Session,
    client: AsyncClient,
    admin_headers: Dict[str, str],
    moderadores,
    catalogo: Dict[str, Permiso],
):
    body = {"cambios": [
        {"rol": "MODERATOR", "permiso_id": str(catalogo[PERM_USERS].id), "acciones": ["READ"]},
        {"rol": "MODERATOR", "permiso_id": str(catalogo[PERM_DASHBOARD].id), "acciones": ["DELETE"]},
    ]}
    response = await client.post(URL, headers=admin_headers, json=body)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert [e["field"] for e in response.json()["errors"]] == ["cambios -> 1 -> acciones"]

    # Nada se aplicó, ni siquiera el cambio válido
    assert not autorizacion_service.has_permission(db, moderadores[0].id, PERM_USERS)
    assert audit_logs(db, "permissions.bulk_update") == []


async def test_permiso_inexistente(client: AsyncClient, admin_headers: Dict[str, str]):
    body = {"cambios": [{"rol": "USER", "permiso_id": str(uuid4()), "acciones": ["READ"]}]}
    response = await client.post(URL, headers=admin_headers, json=body)
    assert response.status_code == status.HTTP_404_NOT_FOUND


async def test_lote_vacio(client: AsyncClient, admin_headers: Dict[str, str]):
    response = await client.post(URL, headers=admin_headers, json={"cambios": []})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


async def test_requiere_roles_update(
    client: AsyncClient, moderador_headers: Dict[str, str], catalogo: Dict[str, Permiso]
):
    body = {"cambios": [{"rol": "USER", "permiso_id": str(catalogo[PERM_DASHBOARD].id), "acciones": ["READ"]}]}
    response = await client.post(URL, headers=moderador_headers, json=body)
    assert response.status_code == status.HTTP_403_FORBIDDEN


async def test_fallo_parcial_no_revierte_filas_confirmadas(
    db: Session,
    client: AsyncClient,
    admin_headers: Dict[str, str],
    moderadores,
    catalogo: Dict[str, Permiso],
    monkeypatch,
):
    permiso = catalogo[PERM_USERS]
    fallido_id = moderadores[1].id
    upsert_original = usuario_permiso_service.upsert

    def upsert_con_fallo(db, *, usuario_id, **kwargs):
        if usuario_id == fallido_id:
            raise SQLAlchemyError("fallo simulado")
        return upsert_original(db, usuario_id=usuario_id, **kwargs)

    monkeypatch.setattr(usuario_permiso_service, "upsert", upsert_con_fallo)

    body = {"cambios": [{"rol": "MODERATOR", "permiso_id": str(permiso.id), "acciones": ["READ", "EXPORT"]}]}
    response = await client.post(URL, headers=admin_headers, json=body)
    assert response.status_code == status.HTTP_200_OK, response.text
    data = response.json()
    assert data["filas_afectadas"] == 2
    assert len(data["fallos"]) == 1
    assert data["fallos"][0]["usuario_id"] == str(fallido_id)
    assert data["fallos"][0]["error"] == "SQLAlchemyError"

    for moderador in moderadores:
        esperado = moderador.id != fallido_id
        assert autorizacion_service.has_permission(db, moderador.id, PERM_USERS, "EXPORT") is esperado

    logs = audit_logs(db, "permissions.bulk_update")
    assert len(logs) == 1
    assert logs[0].cambios["fallos"] == 1
    assert logs[0].cambios["filas_afectadas"] == 2
