# ============================================================
# Tests : tests/test_repositories.py
# Objet  : CRUD modèles et contrats via SQLAlchemy (sqlite mémoire).
# ============================================================
"""
Tests pour les repositories des modèles et des contrats générés.

Ce module vérifie les contraintes d'unicité (version, contrat actif), le calcul de la version
maximale et les tris de l'historique.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from backend.domain.entities import Artifact, FieldIdentifiers, Variable
from backend.infra.repo.artifact_repo import ArtifactRepo
from backend.infra.repo.db import session_scope
from backend.infra.repo.model_repo import ModelRepo

T0 = datetime(2026, 1, 1, tzinfo=UTC)
EXPECTED_VERSION_3 = 3


def _artifact(version: int, active: bool = True, fp: str = "fp1", at=T0) -> Artifact:
    return Artifact(
        model_id="m1",
        parameters={"cliente_id": 1},
        fingerprint=fp,
        version=version,
        active=active,
        generated_at=at,
        output_path=f"/tmp/out_v{version}.docx",
        field_identifiers=FieldIdentifiers(primary="x", secondary=None),
    )


def test_model_create_get_update_delete(engine) -> None:
    """Cycle de vie d'un modèle; la mise à jour avance `updated_at`."""
    with session_scope(engine) as s:
        repo = ModelRepo(s)
        model = repo.create(
            title="T",
            type="servico",
            description="d",
            template_path="/tmp/t.docx",
            main_query="SELECT 1",
            variables=[Variable(name="v", kind="list", query="SELECT 2")],
            now=T0,
        )
    with session_scope(engine) as s:
        got = ModelRepo(s).get(model.id)
    assert got is not None
    assert got.variables[0].kind == "list"
    assert got.updated_at == T0

    with session_scope(engine) as s:
        updated = ModelRepo(s).update(model.id, title="T2", now=T0 + timedelta(hours=1))
    assert updated.title == "T2"
    assert updated.updated_at > updated.created_at

    with session_scope(engine) as s:
        assert ModelRepo(s).delete(model.id) is not None
        assert ModelRepo(s).get(model.id) is None
        assert ModelRepo(s).delete(model.id) is None


def test_model_update_rejects_unknown_field(engine) -> None:
    with session_scope(engine) as s:
        model = ModelRepo(s).create(
            title="T",
            type="t",
            description="",
            template_path="/tmp/t.docx",
            main_query="SELECT 1",
            variables=[],
        )
        with pytest.raises(ValueError):
            ModelRepo(s).update(model.id, id="other")


def test_artifact_version_unique(engine) -> None:
    """(model_id, fingerprint, version) est unique."""
    with session_scope(engine) as s:
        ArtifactRepo(s).create(_artifact(1, active=False))
    with pytest.raises(IntegrityError):
        with session_scope(engine) as s:
            ArtifactRepo(s).create(_artifact(1, active=False))


def test_artifact_single_active(engine) -> None:
    """Deux contrats actifs pour la même empreinte sont refusés par la base."""
    with session_scope(engine) as s:
        ArtifactRepo(s).create(_artifact(1))
    with pytest.raises(IntegrityError):
        with session_scope(engine) as s:
            ArtifactRepo(s).create(_artifact(2))


def test_max_version_spans_inactive_history(engine) -> None:
    with session_scope(engine) as s:
        repo = ArtifactRepo(s)
        assert repo.max_version("m1", "fp1") == 0
        repo.create(_artifact(1, active=False))
        repo.create(_artifact(3, active=False))
        repo.create(_artifact(2))
    with session_scope(engine) as s:
        repo = ArtifactRepo(s)
        assert repo.max_version("m1", "fp1") == EXPECTED_VERSION_3
        assert repo.get_active("m1", "fp1").version == 2


def test_deactivate_then_history_order(engine) -> None:
    with session_scope(engine) as s:
        repo = ArtifactRepo(s)
        repo.create(_artifact(1))
    with session_scope(engine) as s:
        repo = ArtifactRepo(s)
        assert repo.deactivate_active("m1", "fp1") == 1
        repo.create(_artifact(2, at=T0 + timedelta(minutes=1)))
    with session_scope(engine) as s:
        repo = ArtifactRepo(s)
        assert repo.deactivate_active("m1", "other") == 0
        assert [a.version for a in repo.history("m1", "fp1")] == [2, 1]
        assert [a.active for a in repo.history("m1", "fp1")] == [True, False]


def test_list_active_filters_and_sorts(engine) -> None:
    with session_scope(engine) as s:
        repo = ArtifactRepo(s)
        repo.create(_artifact(1, fp="a", at=T0))
        repo.create(_artifact(1, fp="b", at=T0 + timedelta(minutes=5)))
        repo.create(_artifact(2, fp="a", active=False, at=T0 + timedelta(minutes=9)))
    with session_scope(engine) as s:
        repo = ArtifactRepo(s)
        assert [a.fingerprint for a in repo.list_active()] == ["b", "a"]
        assert repo.list_active("unknown") == []
        assert [a.fingerprint for a in repo.list_for_model("m1")] == ["a", "b", "a"]


def test_artifact_roundtrip_keeps_timezone(engine) -> None:
    with session_scope(engine) as s:
        ArtifactRepo(s).create(_artifact(1))
    with session_scope(engine) as s:
        got = ArtifactRepo(s).get_active("m1", "fp1")
    assert got.generated_at == T0
    assert got.field_identifiers.primary == "x"
    assert got.parameters == {"cliente_id": 1}
