import pytest
from httpx import AsyncClient
from fastapi import status
from typing import Dict

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.usuario import Usuario

from conftest import audit_logs

pytestmark = pytest.mark.asyncio

URL = f"{settings.API_V1_STR}/auditoria/"


async def test_read_audit_logs_success(client: AsyncClient, admin: Usuario, admin_headers: Dict[str, str]):
    """El alta del admin dejó al menos su registro y la siembra de sus permisos."""
    response = await client.get(URL, headers=admin_headers)
    assert response.status_code == status.HTTP_200_OK, response.text
    logs = response.json()
    assert {"users.registered", "permissions.seeded"} <= {log["accion"] for log in logs}
    log_sample = logs[0]
    for campo in ("id", "usuario_id", "accion", "entidad", "entidad_id", "created_at"):
        assert campo in log_sample


async def test_read_audit_logs_no_permission(client: AsyncClient, usuario_headers: Dict[str, str]):
    response = await client.get(URL, headers=usuario_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


async def test_read_audit_logs_unauthenticated(client: AsyncClient):
    response = await client.get(URL)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


async def test_read_audit_logs_with_filters(
    client: AsyncClient, admin: Usuario, admin_headers: Dict[str, str], usuario_regular: Usuario
):
    params = {"accion": "permissions.seeded", "entidad_id": str(usuario_regular.id)}
    response = await client.get(URL, headers=admin_headers, params=params)
    assert response.status_code == status.HTTP_200_OK
    logs = response.json()
    assert len(logs) == 1
    assert logs[0]["entidad"] == "Usuario"
    assert logs[0]["cambios"]["rol"] == "USER"

    response = await client.get(URL, headers=admin_headers, params={"usuario_id": str(admin.id)})
    assert all(log["usuario_id"] == str(admin.id) for log in response.json())


async def test_rango_de_fechas_invalido(client: AsyncClient, admin_headers: Dict[str, str]):
    params = {"start_time": "2024-05-02T00:00:00", "end_time": "2024-05-01T00:00:00"}
    response = await client.get(URL, headers=admin_headers, params=params)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


async def test_auditoria_no_se_puede_borrar(client: AsyncClient, super_admin_headers: Dict[str, str]):
    response = await client.delete(URL, headers=super_admin_headers)
    assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED


async def test_metadatos_de_la_peticion(db: Session, client: AsyncClient, admin_headers: Dict[str, str]):
    headers = {
        **admin_headers,
        "X-Forwarded-For": "203.0.113.7, 10.0.0.1",
        "User-Agent": "portal-tests/1.0",
    }
    response = await client.post(
        f"{settings.API_V1_STR}/modulos/", headers=headers, json={"nombre": "Reportes", "slug": "reportes"}
    )
    assert response.status_code == status.HTTP_201_CREATED

    logs = audit_logs(db, "module.created")
    assert len(logs) == 1
    assert logs[0].metadatos == {"ip": "203.0.113.7", "user_agent": "portal-tests/1.0"}


async def test_operacion_fallida_no_deja_auditoria(
    db: Session, client: AsyncClient, admin_headers: Dict[str, str], usuario_regular: Usuario
):
    response = await client.put(
        f"{settings.API_V1_STR}/permisos/usuarios/{usuario_regular.id}",
        headers=admin_headers,
        json={"permisos": [{"permiso_id": "00000000-0000-0000-0000-000000000000", "acciones": ["READ"]}]},
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert audit_logs(db, "permissions.replaced") == []
