"""Initial schema (workspaces, key_auth, apis, keys, encrypted_keys, roles, keys_roles, root_keys).

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

Compatible with SQLite (default) and PostgreSQL. Set DATABASE_URL=postgresql://...
and run: alembic upgrade head
"""
from alembic import op
import sqlalchemy as sa


revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "workspaces",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "key_auth",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("workspace_id", sa.String(64), sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("store_encrypted_keys", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(op.f("ix_key_auth_workspace_id"), "key_auth", ["workspace_id"], unique=False)

    op.create_table(
        "apis",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("workspace_id", sa.String(64), sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("key_auth_id", sa.String(64), sa.ForeignKey("key_auth.id"), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(op.f("ix_apis_workspace_id"), "apis", ["workspace_id"], unique=False)

    op.create_table(
        "keys",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("key_auth_id", sa.String(64), sa.ForeignKey("key_auth.id"), nullable=False),
        sa.Column("workspace_id", sa.String(64), sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("hash", sa.String(255), nullable=False),
        sa.Column("start", sa.String(64), nullable=False, server_default=""),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("environment", sa.String(255), nullable=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("owner_id", sa.String(255), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("key_auth_id", "hash", name="uq_keys_key_auth_hash"),
    )
    op.create_index(op.f("ix_keys_key_auth_id"), "keys", ["key_auth_id"], unique=False)
    op.create_index(op.f("ix_keys_workspace_id"), "keys", ["workspace_id"], unique=False)
    op.create_index(op.f("ix_keys_hash"), "keys", ["hash"], unique=False)

    op.create_table(
        "encrypted_keys",
        sa.Column("key_id", sa.String(64), sa.ForeignKey("keys.id"), primary_key=True),
        sa.Column("workspace_id", sa.String(64), sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("encrypted", sa.Text(), nullable=False),
        sa.Column("encryption_key_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "roles",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("workspace_id", sa.String(64), sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("name", sa.String(512), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("workspace_id", "name", name="uq_roles_workspace_name"),
    )
    op.create_index(op.f("ix_roles_workspace_id"), "roles", ["workspace_id"], unique=False)

    op.create_table(
        "keys_roles",
        sa.Column("key_id", sa.String(64), sa.ForeignKey("keys.id"), primary_key=True),
        sa.Column("role_id", sa.String(64), sa.ForeignKey("roles.id"), primary_key=True),
        sa.Column("workspace_id", sa.String(64), sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "root_keys",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("workspace_id", sa.String(64), sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("hash", sa.String(255), unique=True, nullable=False),
        sa.Column("start", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(op.f("ix_root_keys_workspace_id"), "root_keys", ["workspace_id"], unique=False)


def downgrade() -> None:
    op.drop_table("root_keys")
    op.drop_table("keys_roles")
    op.drop_index(op.f("ix_roles_workspace_id"), table_name="roles")
    op.drop_table("roles")
    op.drop_table("encrypted_keys")
    op.drop_index(op.f("ix_keys_hash"), table_name="keys")
    op.drop_index(op.f("ix_keys_workspace_id"), table_name="keys")
    op.drop_index(op.f("ix_keys_key_auth_id"), table_name="keys")
    op.drop_table("keys")
    op.drop_index(op.f("ix_apis_workspace_id"), table_name="apis")
    op.drop_table("apis")
    op.drop_index(op.f("ix_key_auth_workspace_id"), table_name="key_auth")
    op.drop_table("key_auth")
    op.drop_table("workspaces")
