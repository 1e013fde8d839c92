# ============================================================
# Module : backend/infra/repo/model_repo.py
# Objet  : Accès SQL (CRUD) pour les modèles de documents.
# ============================================================

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ...domain.entities import DocumentModel, Variable
from .models import ModelORM, utcnow


def as_utc(value: datetime | None) -> datetime | None:
    """Rend un horodatage lu en base comparable (SQLite perd le fuseau)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _to_domain(row: ModelORM) -> DocumentModel:
    return DocumentModel(
        id=row.id,
        title=row.title,
        type=row.type,
        description=row.description or "",
        template_path=row.template_path,
        main_query=row.main_query,
        variables=[Variable.model_validate(v) for v in (row.variables or [])],
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


class ModelRepo:
    """CRUD pour les modèles de documents."""

    _UPDATABLE = ("title", "type", "description", "template_path", "main_query")

    def __init__(self, session: Session) -> None:
        """Construit le repo avec une session (SQLAlchemy)."""
        self._session = session

    def create(
        self,
        *,
        title: str,
        type: str,
        description: str,
        template_path: str,
        main_query: str,
        variables: list[Variable],
        now: datetime | None = None,
    ) -> DocumentModel:
        """Insère un modèle et le retourne avec son identifiant."""
        stamp = now or utcnow()
        row = ModelORM(
            title=title,
            type=type,
            description=description,
            template_path=template_path,
            main_query=main_query,
            variables=[v.model_dump() for v in variables],
            created_at=stamp,
            updated_at=stamp,
        )
        self._session.add(row)
        self._session.flush()
        return _to_domain(row)

    def get(self, model_id: str) -> DocumentModel | None:
        """Retourne un modèle par id, ou None."""
        row = self._session.get(ModelORM, model_id)
        return _to_domain(row) if row else None

    def list_all(self) -> list[DocumentModel]:
        """Liste les modèles, plus récents d'abord."""
        stmt = select(ModelORM).order_by(ModelORM.created_at.desc())
        return [_to_domain(r) for r in self._session.execute(stmt).scalars().all()]

    def update(
        self,
        model_id: str,
        *,
        variables: list[Variable] | None = None,
        now: datetime | None = None,
        **fields: str,
    ) -> DocumentModel | None:
        """Met à jour les champs fournis et avance `updated_at`."""
        row = self._session.get(ModelORM, model_id)
        if row is None:
            return None
        for name, value in fields.items():
            if name not in self._UPDATABLE:
                raise ValueError(f"unknown model field: {name}")
            setattr(row, name, value)
        if variables is not None:
            row.variables = [v.model_dump() for v in variables]
        row.updated_at = now or utcnow()
        self._session.flush()
        return _to_domain(row)

    def touch(self, model_id: str, when: datetime) -> None:
        """Force `updated_at` (invalide la réutilisation des contrats plus anciens)."""
        row = self._session.get(ModelORM, model_id)
        if row is not None:
            row.updated_at = when
            self._session.flush()

    def delete(self, model_id: str) -> DocumentModel | None:
        """Supprime un modèle et retourne l'état supprimé, ou None s'il est absent."""
        row = self._session.get(ModelORM, model_id)
        if row is None:
            return None
        deleted = _to_domain(row)
        self._session.delete(row)
        self._session.flush()
        return deleted
