import os

# La base de tests se elige antes de importar la aplicación
os.environ["DATABASE_URI"] = os.getenv("TEST_DATABASE_URI", "sqlite://")

import pytest
import pytest_asyncio
from typing import AsyncGenerator, Generator, Dict, Optional
from uuid import uuid4
import logging

from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine, event, select
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.models import Usuario, Permiso, AuditLog  # noqa
from app.main import app as fastapi_app
from app.core import security
from app.core.config import settings
from app.api.deps import get_db
from app.db.init_db import cargar_catalogo_base
from app.schemas.enums import RolUsuarioEnum
from app.schemas.usuario import UsuarioCreate
from app.services.usuario import usuario_service

# Configuración básica de logging para los tests
logging.basicConfig(level=logging.INFO, format='%(asctime)s [%(levelname)s] [%(name)s] [%(funcName)s] %(message)s')
logger = logging.getLogger(__name__)

TEST_SQLALCHEMY_DATABASE_URL = str(settings.DATABASE_URI)
logger.info(f"Usando URL de BD para tests: {TEST_SQLALCHEMY_DATABASE_URL}")

if TEST_SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        TEST_SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _sqlite_on_connect(dbapi_connection, connection_record):
        # pysqlite: delegar el control de transacciones a SQLAlchemy para que funcionen los SAVEPOINT
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _sqlite_on_begin(conn):
        conn.exec_driver_sql("BEGIN")
else:
    engine = create_engine(TEST_SQLALCHEMY_DATABASE_URL, echo=False, pool_pre_ping=True)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "ClaveSegura123!"


@pytest.fixture(scope="session")
def app() -> FastAPI:
    """
    Fixture que proporciona la instancia de la aplicación FastAPI para los tests.
    """
    return fastapi_app


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Sesión de BD por test sobre un esquema recién creado."""
    Base.metadata.create_all(bind=engine)
    db_session = TestingSessionLocal()
    try:
        yield db_session
    finally:
        db_session.rollback()
        db_session.close()
        Base.metadata.drop_all(bind=engine)


@pytest_asyncio.fixture(scope="function")
async def client(app: FastAPI, db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Cliente HTTP asíncrono que comparte la sesión del test."""
    def override_get_db_for_test():
        yield db

    app.dependency_overrides[get_db] = override_get_db_for_test
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)


# ==============================================================================
# Catálogo y usuarios
# ==============================================================================

@pytest.fixture(scope="function")
def catalogo(db: Session) -> Dict[str, Permiso]:
    """Catálogo base cargado; devuelve los permisos por código."""
    cargar_catalogo_base(db)
    db.commit()
    return {p.codigo: p for p in db.execute(select(Permiso)).scalars().all()}


def crear_usuario(
    db: Session,
    rol: RolUsuarioEnum,
    email: Optional[str] = None,
    actor: Optional[Usuario] = None,
) -> Usuario:
    """Alta por el servicio, con la siembra de permisos por defecto incluida."""
    user_in = UsuarioCreate(
        nombre=f"Usuario {rol.value.title()}",
        email=email or f"{rol.value.lower()}_{uuid4().hex[:8]}@portal-admin.com",
        password=TEST_PASSWORD,
        rol=rol,
    )
    usuario = usuario_service.create(db, obj_in=user_in, actor_id=actor.id if actor else None)
    db.commit()
    db.refresh(usuario)
    return usuario


def auth_headers(usuario: Usuario) -> Dict[str, str]:
    token = security.create_access_token(subject=usuario.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def super_admin(db: Session, catalogo: Dict[str, Permiso]) -> Usuario:
    return crear_usuario(db, RolUsuarioEnum.SUPER_ADMIN)


@pytest.fixture(scope="function")
def admin(db: Session, catalogo: Dict[str, Permiso]) -> Usuario:
    return crear_usuario(db, RolUsuarioEnum.ADMIN)


@pytest.fixture(scope="function")
def moderador(db: Session, catalogo: Dict[str, Permiso]) -> Usuario:
    return crear_usuario(db, RolUsuarioEnum.MODERATOR)


@pytest.fixture(scope="function")
def usuario_regular(db: Session, catalogo: Dict[str, Permiso]) -> Usuario:
    return crear_usuario(db, RolUsuarioEnum.USER)


@pytest.fixture(scope="function")
def admin_headers(admin: Usuario) -> Dict[str, str]:
    return auth_headers(admin)


@pytest.fixture(scope="function")
def super_admin_headers(super_admin: Usuario) -> Dict[str, str]:
    return auth_headers(super_admin)


@pytest.fixture(scope="function")
def usuario_headers(usuario_regular: Usuario) -> Dict[str, str]:
    return auth_headers(usuario_regular)


@pytest.fixture(scope="function")
def moderador_headers(moderador: Usuario) -> Dict[str, str]:
    return auth_headers(moderador)


def audit_logs(db: Session, accion: str):
    return list(db.execute(select(AuditLog).where(AuditLog.accion == accion)).scalars().all())
