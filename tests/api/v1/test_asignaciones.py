import pytest
from httpx import AsyncClient
from uuid import uuid4
from fastapi import status
from typing import Dict

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.permissions import PERM_ARTICLES, PERM_DASHBOARD, PERM_SETTINGS
from app.models.permiso import Permiso
from app.models.usuario import Usuario
from app.services.autorizacion import autorizacion_service
from app.services.usuario_permiso import usuario_permiso_service

from conftest import audit_logs

pytestmark = pytest.mark.asyncio

URL = f"{settings.API_V1_STR}/permisos/usuarios"


async def test_otorgar_permiso_individual(
    db: Session,
    client: AsyncClient,
    admin: Usuario,
    admin_headers: Dict[str, str],
    usuario_regular: Usuario,
    catalogo: Dict[str, Permiso],
):
    permiso = catalogo[PERM_ARTICLES]
    response = await client.put(
        f"{URL}/{usuario_regular.id}/{permiso.id}", headers=admin_headers, json={"acciones": ["UPDATE", "READ"]}
    )
    assert response.status_code == status.HTTP_200_OK, response.text
    data = response.json()
    assert data["acciones"] == ["READ", "UPDATE"]
    assert data["otorgado_por"] == str(admin.id)
    assert data["permiso"]["codigo"] == PERM_ARTICLES

    assert autorizacion_service.has_permission(db, usuario_regular.id, PERM_ARTICLES, "UPDATE")
    logs = audit_logs(db, "permissions.granted")
    assert len(logs) == 1
    assert logs[0].entidad_id == f"{usuario_regular.id}:{permiso.id}"
    assert logs[0].cambios["before"] is None


async def test_otorgar_accion_fuera_del_permiso(
    db: Session,
    client: AsyncClient,
    admin_headers: Dict[str, str],
    usuario_regular: Usuario,
    catalogo: Dict[str, Permiso],
):
    permiso = catalogo[PERM_DASHBOARD]
    response = await client.put(
        f"{URL}/{usuario_regular.id}/{permiso.id}", headers=admin_headers, json={"acciones": ["READ", "DELETE"]}
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["errors"][0]["field"] == "acciones"
    assert audit_logs(db, "permissions.granted") == []
    # La asignación por defecto queda intacta
    assert autorizacion_service.has_permission(db, usuario_regular.id, PERM_DASHBOARD, "READ")


async def test_acciones_vacias_revocan(
    db: Session,
    client: AsyncClient,
    admin_headers: Dict[str, str],
    usuario_regular: Usuario,
    catalogo: Dict[str, Permiso],
):
    permiso = catalogo[PERM_DASHBOARD]
    response = await client.put(
        f"{URL}/{usuario_regular.id}/{permiso.id}", headers=admin_headers, json={"acciones": []}
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json() is None
    assert usuario_permiso_service.get_by_usuario_permiso(
        db, usuario_id=usuario_regular.id, permiso_id=permiso.id
    ) is None
    assert len(audit_logs(db, "permissions.revoked")) == 1


async def test_revocar_permiso(
    db: Session,
    client: AsyncClient,
    admin_headers: Dict[str, str],
    usuario_regular: Usuario,
    catalogo: Dict[str, Permiso],
):
    permiso = catalogo[PERM_SETTINGS]
    response = await client.delete(f"{URL}/{usuario_regular.id}/{permiso.id}", headers=admin_headers)
    assert response.status_code == status.HTTP_200_OK
    assert not autorizacion_service.has_permission(db, usuario_regular.id, PERM_SETTINGS)

    response = await client.delete(f"{URL}/{usuario_regular.id}/{permiso.id}", headers=admin_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert len(audit_logs(db, "permissions.revoked")) == 1


async def test_reemplazar_permisos_de_usuario(
    db: Session,
    client: AsyncClient,
    admin_headers: Dict[str, str],
    usuario_regular: Usuario,
    catalogo: Dict[str, Permiso],
):
    body = {"permisos": [
        {"permiso_id": str(catalogo[PERM_ARTICLES].id), "acciones": ["READ", "EXPORT"]},
        {"permiso_id": str(catalogo[PERM_DASHBOARD].id), "acciones": ["READ"]},
    ]}
    response = await client.put(f"{URL}/{usuario_regular.id}", headers=admin_headers, json=body)
    assert response.status_code == status.HTTP_200_OK, response.text
    assert {a["permiso"]["codigo"] for a in response.json()} == {PERM_ARTICLES, PERM_DASHBOARD}

    asignaciones = usuario_permiso_service.get_by_usuario(db, usuario_id=usuario_regular.id)
    assert {a.permiso.codigo: a.acciones for a in asignaciones} == {
        PERM_ARTICLES: ["READ", "EXPORT"],
        PERM_DASHBOARD: ["READ"],
    }
    logs = audit_logs(db, "permissions.replaced")
    assert len(logs) == 1
    assert len(logs[0].cambios["before"]) == 2
    assert len(logs[0].cambios["after"]) == 2


async def test_reemplazo_invalido_no_cambia_nada(
    db: Session,
    client: AsyncClient,
    admin_headers: Dict[str, str],
    usuario_regular: Usuario,
    catalogo: Dict[str, Permiso],
):
    body = {"permisos": [
        {"permiso_id": str(catalogo[PERM_ARTICLES].id), "acciones": ["READ"]},
        {"permiso_id": str(catalogo[PERM_DASHBOARD].id), "acciones": ["DELETE"]},
    ]}
    response = await client.put(f"{URL}/{usuario_regular.id}", headers=admin_headers, json=body)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    asignaciones = usuario_permiso_service.get_by_usuario(db, usuario_id=usuario_regular.id)
    assert {a.permiso.codigo for a in asignaciones} == {PERM_DASHBOARD, PERM_SETTINGS}


async def test_read_permisos_de_usuario(
    client: AsyncClient, admin_headers: Dict[str, str], usuario_regular: Usuario
):
    response = await client.get(f"{URL}/{usuario_regular.id}", headers=admin_headers)
    assert response.status_code == status.HTTP_200_OK
    assert {a["permiso"]["codigo"] for a in response.json()} == {PERM_DASHBOARD, PERM_SETTINGS}

    response = await client.get(f"{URL}/{uuid4()}", headers=admin_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


async def test_asignaciones_requieren_roles_access(
    client: AsyncClient,
    moderador_headers: Dict[str, str],
    usuario_regular: Usuario,
    catalogo: Dict[str, Permiso],
):
    permiso = catalogo[PERM_ARTICLES]
    response = await client.put(
        f"{URL}/{usuario_regular.id}/{permiso.id}", headers=moderador_headers, json={"acciones": ["READ"]}
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


async def test_resumen_por_rol(
    client: AsyncClient,
    admin_headers: Dict[str, str],
    usuario_regular: Usuario,
    moderador: Usuario,
):
    response = await client.get(f"{settings.API_V1_STR}/permisos/por-rol", headers=admin_headers)
    assert response.status_code == status.HTTP_200_OK
    resumen = {r["rol"]: r for r in response.json()}
    assert set(resumen) == {"SUPER_ADMIN", "ADMIN", "MODERATOR", "USER"}

    assert resumen["USER"]["total_usuarios"] == 1
    user_permisos = {p["codigo"]: p for p in resumen["USER"]["permisos"]}
    assert user_permisos[PERM_SETTINGS]["acciones"] == ["READ", "UPDATE"]
    assert user_permisos[PERM_DASHBOARD]["usuarios_con_permiso"] == 1

    assert resumen["SUPER_ADMIN"]["total_usuarios"] == 0
    assert resumen["SUPER_ADMIN"]["permisos"] == []
    assert len(resumen["MODERATOR"]["permisos"]) == 4
