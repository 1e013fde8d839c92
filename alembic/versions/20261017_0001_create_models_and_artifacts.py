# mypy: ignore-errors
"""
Migration Alembic pour créer les tables document_models et artifacts.

`artifacts` porte l'historique versionné des contrats générés: une version unique par
(model_id, fingerprint) et au plus un contrat actif par empreinte.
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Crée les tables des modèles et des contrats générés."""
    op.create_table(
        "document_models",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("template_path", sa.String(length=1024), nullable=False),
        sa.Column("main_query", sa.Text(), nullable=False),
        sa.Column("variables", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "artifacts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("model_id", sa.String(length=32), nullable=False),
        sa.Column("fingerprint", sa.String(length=64), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("parameters", sa.JSON(), nullable=False),
        sa.Column("output_path", sa.String(length=1024), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("field_identifiers", sa.JSON(), nullable=True),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("model_id", "fingerprint", "version", name="uq_artifact_version"),
    )
    op.create_index("ix_artifacts_model_id", "artifacts", ["model_id"])
    op.create_index(
        "uq_artifact_active",
        "artifacts",
        ["model_id", "fingerprint"],
        unique=True,
        sqlite_where=sa.text("active = 1"),
        postgresql_where=sa.text("active"),
    )


def downgrade() -> None:
    """Supprime les tables créées par `upgrade`."""
    op.drop_index("uq_artifact_active", table_name="artifacts")
    op.drop_index("ix_artifacts_model_id", table_name="artifacts")
    op.drop_table("artifacts")
    op.drop_table("document_models")
