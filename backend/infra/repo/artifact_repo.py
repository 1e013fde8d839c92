# ============================================================
# Module : backend/infra/repo/artifact_repo.py
# Objet  : Accès SQL pour les contrats générés (versions, actif, historique).
# Notes  : seul l'orchestrateur de génération modifie `active` et `version`.
# ============================================================

from __future__ import annotations

from pydantic_core import to_jsonable_python
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...domain.entities import Artifact, ContractData, FieldIdentifiers
from .model_repo import as_utc
from .models import ArtifactORM


def _to_domain(row: ArtifactORM) -> Artifact:
    return Artifact(
        id=row.id,
        model_id=row.model_id,
        parameters=row.parameters or {},
        fingerprint=row.fingerprint,
        version=row.version,
        active=row.active,
        generated_at=as_utc(row.generated_at),
        output_path=row.output_path,
        data=ContractData.model_validate(row.data) if row.data is not None else None,
        field_identifiers=(
            FieldIdentifiers.model_validate(row.field_identifiers)
            if row.field_identifiers is not None
            else None
        ),
    )


class ArtifactRepo:
    """Lecture/écriture des contrats générés."""

    def __init__(self, session: Session) -> None:
        """Construit le repo avec une session (SQLAlchemy)."""
        self._session = session

    def get_active(self, model_id: str, fingerprint: str) -> Artifact | None:
        """Contrat actif pour (model_id, fingerprint), s'il existe."""
        stmt = select(ArtifactORM).where(
            ArtifactORM.model_id == model_id,
            ArtifactORM.fingerprint == fingerprint,
            ArtifactORM.active.is_(True),
        )
        row = self._session.execute(stmt).scalars().first()
        return _to_domain(row) if row else None

    def max_version(self, model_id: str, fingerprint: str) -> int:
        """Plus haute version connue sur tout l'historique (0 si aucune)."""
        stmt = select(func.max(ArtifactORM.version)).where(
            ArtifactORM.model_id == model_id, ArtifactORM.fingerprint == fingerprint
        )
        return self._session.execute(stmt).scalar() or 0

    def create(self, artifact: Artifact) -> Artifact:
        """Insère un contrat. Lève IntegrityError sur doublon unique.

        Contraintes: (model_id, fingerprint, version) unique; un seul actif par empreinte.
        Les valeurs binaires des données (colonnes BLOB) sont stockées en base64.
        """
        row = ArtifactORM(
            model_id=artifact.model_id,
            fingerprint=artifact.fingerprint,
            version=artifact.version,
            active=artifact.active,
            parameters=to_jsonable_python(artifact.parameters, bytes_mode="base64"),
            output_path=artifact.output_path,
            data=(
                to_jsonable_python(artifact.data, bytes_mode="base64")
                if artifact.data is not None
                else None
            ),
            field_identifiers=(
                artifact.field_identifiers.model_dump()
                if artifact.field_identifiers is not None
                else None
            ),
            generated_at=artifact.generated_at,
        )
        self._session.add(row)
        try:
            self._session.flush()
        except IntegrityError:
            self._session.rollback()
            raise
        return _to_domain(row)

    def deactivate_active(self, model_id: str, fingerprint: str) -> int:
        """Passe le contrat actif en historique; retourne le nombre de lignes modifiées."""
        stmt = (
            update(ArtifactORM)
            .where(
                ArtifactORM.model_id == model_id,
                ArtifactORM.fingerprint == fingerprint,
                ArtifactORM.active.is_(True),
            )
            .values(active=False)
        )
        result = self._session.execute(stmt)
        return result.rowcount or 0

    def list_active(self, model_id: str | None = None) -> list[Artifact]:
        """Contrats actifs (filtrables par modèle), plus récents d'abord."""
        stmt = select(ArtifactORM).where(ArtifactORM.active.is_(True))
        if model_id is not None:
            stmt = stmt.where(ArtifactORM.model_id == model_id)
        stmt = stmt.order_by(ArtifactORM.generated_at.desc(), ArtifactORM.id.desc())
        return [_to_domain(r) for r in self._session.execute(stmt).scalars().all()]

    def history(self, model_id: str, fingerprint: str) -> list[Artifact]:
        """Toutes les versions d'une empreinte, de la plus récente à la plus ancienne."""
        stmt = (
            select(ArtifactORM)
            .where(ArtifactORM.model_id == model_id, ArtifactORM.fingerprint == fingerprint)
            .order_by(ArtifactORM.version.desc())
        )
        return [_to_domain(r) for r in self._session.execute(stmt).scalars().all()]

    def list_for_model(self, model_id: str) -> list[Artifact]:
        """Tous les contrats d'un modèle, plus récents d'abord."""
        stmt = (
            select(ArtifactORM)
            .where(ArtifactORM.model_id == model_id)
            .order_by(ArtifactORM.generated_at.desc(), ArtifactORM.id.desc())
        )
        return [_to_domain(r) for r in self._session.execute(stmt).scalars().all()]
