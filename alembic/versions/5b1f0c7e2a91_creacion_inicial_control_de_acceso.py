"""
Creación inicial del esquema de control de acceso

Revision ID: 5b1f0c7e2a91
Revises:
Create Date: 2026-10-19 10:40:00.000000

Crea las tablas del catálogo (modulos, submodulos, permisos), los usuarios,
sus permisos otorgados y la auditoría. El catálogo base se carga aparte con
scripts/seed_catalogo.py.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '5b1f0c7e2a91'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

ROLES = ("SUPER_ADMIN", "ADMIN", "MODERATOR", "USER")
PROVEEDORES = ("credentials", "google")


def upgrade() -> None:
    op.create_table(
        "usuarios",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("nombre", sa.String(length=150), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("contrasena", sa.String(), nullable=True),
        sa.Column("rol", sa.Enum(*ROLES, name="rol_usuario"), nullable=False),
        sa.Column("proveedor_auth", sa.Enum(*PROVEEDORES, name="proveedor_auth"), nullable=False),
        sa.Column("activo", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_usuarios")),
    )
    op.create_index(op.f("ix_usuarios_email"), "usuarios", ["email"], unique=True)
    op.create_index(op.f("ix_usuarios_rol"), "usuarios", ["rol"], unique=False)

    op.create_table(
        "modulos",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("nombre", sa.String(length=100), nullable=False),
        sa.Column("slug", sa.String(length=100), nullable=False),
        sa.Column("descripcion", sa.Text(), nullable=True),
        sa.Column("icono", sa.String(length=50), nullable=True),
        sa.Column("activo", sa.Boolean(), nullable=False),
        sa.Column("orden", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_modulos")),
    )
    op.create_index(op.f("ix_modulos_slug"), "modulos", ["slug"], unique=True)

    op.create_table(
        "submodulos",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("modulo_id", sa.Uuid(), nullable=False),
        sa.Column("nombre", sa.String(length=100), nullable=False),
        sa.Column("slug", sa.String(length=100), nullable=False),
        sa.Column("descripcion", sa.Text(), nullable=True),
        sa.Column("icono", sa.String(length=50), nullable=True),
        sa.Column("activo", sa.Boolean(), nullable=False),
        sa.Column("orden", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(
            ["modulo_id"], ["modulos.id"],
            name=op.f("fk_submodulos_modulo_id_modulos"), ondelete="RESTRICT"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_submodulos")),
        sa.UniqueConstraint("modulo_id", "slug", name="uq_submodulos_modulo_slug"),
    )
    op.create_index(op.f("ix_submodulos_modulo_id"), "submodulos", ["modulo_id"], unique=False)

    op.create_table(
        "permisos",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("nombre", sa.String(length=100), nullable=False),
        sa.Column("codigo", sa.String(length=150), nullable=False),
        sa.Column("descripcion", sa.Text(), nullable=True),
        sa.Column("modulo_id", sa.Uuid(), nullable=False),
        sa.Column("submodulo_id", sa.Uuid(), nullable=True),
        sa.Column("acciones", JSONType, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(
            ["modulo_id"], ["modulos.id"],
            name=op.f("fk_permisos_modulo_id_modulos"), ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(
            ["submodulo_id"], ["submodulos.id"],
            name=op.f("fk_permisos_submodulo_id_submodulos"), ondelete="RESTRICT"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_permisos")),
    )
    op.create_index(op.f("ix_permisos_codigo"), "permisos", ["codigo"], unique=True)
    op.create_index(op.f("ix_permisos_modulo_id"), "permisos", ["modulo_id"], unique=False)
    op.create_index(op.f("ix_permisos_submodulo_id"), "permisos", ["submodulo_id"], unique=False)

    op.create_table(
        "usuarios_permisos",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("usuario_id", sa.Uuid(), nullable=False),
        sa.Column("permiso_id", sa.Uuid(), nullable=False),
        sa.Column("acciones", JSONType, nullable=False),
        sa.Column("otorgado_por", sa.Uuid(), nullable=True),
        sa.Column("otorgado_en", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("expira_en", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["usuario_id"], ["usuarios.id"],
            name=op.f("fk_usuarios_permisos_usuario_id_usuarios"), ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["permiso_id"], ["permisos.id"],
            name=op.f("fk_usuarios_permisos_permiso_id_permisos"), ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["otorgado_por"], ["usuarios.id"],
            name=op.f("fk_usuarios_permisos_otorgado_por_usuarios"), ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_usuarios_permisos")),
        sa.UniqueConstraint("usuario_id", "permiso_id", name="uq_usuarios_permisos_usuario_permiso"),
    )
    op.create_index(op.f("ix_usuarios_permisos_usuario_id"), "usuarios_permisos", ["usuario_id"], unique=False)
    op.create_index(op.f("ix_usuarios_permisos_permiso_id"), "usuarios_permisos", ["permiso_id"], unique=False)

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("usuario_id", sa.Uuid(), nullable=False),
        sa.Column("accion", sa.String(length=100), nullable=False),
        sa.Column("entidad", sa.String(length=100), nullable=False),
        sa.Column("entidad_id", sa.String(length=100), nullable=False),
        sa.Column("cambios", JSONType, nullable=True),
        sa.Column("metadatos", JSONType, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(
            ["usuario_id"], ["usuarios.id"],
            name=op.f("fk_audit_log_usuario_id_usuarios"), ondelete="RESTRICT"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_audit_log")),
    )
    op.create_index(op.f("ix_audit_log_usuario_id"), "audit_log", ["usuario_id"], unique=False)
    op.create_index(op.f("ix_audit_log_accion"), "audit_log", ["accion"], unique=False)
    op.create_index(op.f("ix_audit_log_entidad_id"), "audit_log", ["entidad_id"], unique=False)
    op.create_index(op.f("ix_audit_log_created_at"), "audit_log", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("usuarios_permisos")
    op.drop_table("permisos")
    op.drop_table("submodulos")
    op.drop_table("modulos")
    op.drop_table("usuarios")
    sa.Enum(name="proveedor_auth").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="rol_usuario").drop(op.get_bind(), checkfirst=True)
