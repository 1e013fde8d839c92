"""SQLAlchemy models for persistence layer (modèles de documents et contrats générés)."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    """Horodatage UTC courant (aware)."""
    return datetime.now(UTC)


def _new_id() -> str:
    return uuid.uuid4().hex


class Base(DeclarativeBase):
    """Classe de base pour tous les modèles SQLAlchemy."""

    metadata = MetaData()


class ModelORM(Base):
    """Modèle ORM pour les modèles de documents (template + requêtes)."""

    __tablename__ = "document_models"

    id = Column(String(32), primary_key=True, default=_new_id)
    title = Column(String(255), nullable=False)
    type = Column(String(64), nullable=False)
    description = Column(Text, nullable=False, default="")
    template_path = Column(String(1024), nullable=False)
    main_query = Column(Text, nullable=False)
    variables = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class ArtifactORM(Base):
    """Modèle ORM pour les contrats générés (historique versionné)."""

    __tablename__ = "artifacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    model_id = Column(String(32), nullable=False, index=True)
    fingerprint = Column(String(64), nullable=False)
    version = Column(Integer, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    parameters = Column(JSON, nullable=False, default=dict)
    output_path = Column(String(1024), nullable=False)
    data = Column(JSON, nullable=True)
    field_identifiers = Column(JSON, nullable=True)
    generated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("model_id", "fingerprint", "version", name="uq_artifact_version"),
        # Au plus un contrat actif par (model_id, fingerprint)
        Index(
            "uq_artifact_active",
            "model_id",
            "fingerprint",
            unique=True,
            sqlite_where=text("active = 1"),
            postgresql_where=text("active"),
        ),
    )
