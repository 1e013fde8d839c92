"""Tests pour l'administration des modèles (templates, variables, nettoyage des fichiers)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from backend.domain import model_service as model_service_mod
from backend.domain.errors import InvalidInput, NotFound
from backend.domain.model_service import parse_variables
from backend.infra import storage as storage_mod
from tests.fakes import CLIENT_QUERY, build_docx

PAYLOAD = {"title": "T", "type": "t", "description": "d", "main_query": CLIENT_QUERY}


def test_create_stores_template_and_variables(model_service, contract_model):
    assert Path(contract_model.template_path).is_file()
    assert contract_model.template_path.endswith("contrato.docx")
    assert [v.name for v in contract_model.variables] == ["parcelas", "observacoes"]
    assert model_service.get(contract_model.id).title == "Contrato de  Prestação"
    assert [m.id for m in model_service.list_all()] == [contract_model.id]


def test_create_requires_fields(model_service, docx_template):
    with pytest.raises(InvalidInput) as exc:
        model_service.create({"title": "T"}, "c.docx", docx_template)
    assert exc.value.details == {"missing": ["type", "description", "main_query"]}


def test_create_requires_supported_template(model_service, docx_template, storage):
    with pytest.raises(InvalidInput):
        model_service.create(PAYLOAD, "contrato.pdf", docx_template)
    with pytest.raises(InvalidInput):
        model_service.create(PAYLOAD, None, None)
    assert list(storage.templates_dir.iterdir()) == []


def test_invalid_variable_kind_is_rejected() -> None:
    with pytest.raises(InvalidInput) as exc:
        parse_variables([{"name": "v", "kind": "grid"}])
    assert exc.value.details["errors"][0]["loc"] == ("kind",)


def test_update_replaces_template_and_bumps_timestamp(model_service, contract_model):
    old_path = contract_model.template_path
    updated = model_service.update(
        contract_model.id, {"title": "Novo"}, "novo.docx", build_docx("{{ principal.cpf }}")
    )
    assert updated.title == "Novo"
    assert updated.type == contract_model.type
    assert updated.updated_at > contract_model.updated_at
    assert updated.template_path != old_path
    assert Path(updated.template_path).is_file()
    assert not Path(old_path).exists()


def test_update_keeps_variables_unless_given(model_service, contract_model):
    kept = model_service.update(contract_model.id, {"description": "x"})
    assert kept.variables == contract_model.variables
    cleared = model_service.update(contract_model.id, {"variables": []})
    assert cleared.variables == []


def test_update_unknown_model(model_service, docx_template, storage):
    with pytest.raises(NotFound):
        model_service.update("nao-existe", {"title": "x"}, "c.docx", docx_template)
    assert list(storage.templates_dir.iterdir()) == []


def test_delete_removes_template(model_service, contract_model):
    model_service.delete(contract_model.id)
    assert not Path(contract_model.template_path).exists()
    with pytest.raises(NotFound):
        model_service.get(contract_model.id)
    with pytest.raises(NotFound):
        model_service.delete(contract_model.id)


def test_template_cleanup_failure_is_logged(model_service, contract_model):
    """Un échec de suppression du fichier n'empêche pas la suppression du modèle."""
    with (
        patch.object(Path, "unlink", side_effect=PermissionError("busy")),
        patch.object(storage_mod, "log") as storage_log,
        patch.object(model_service_mod, "log") as service_log,
    ):
        model_service.delete(contract_model.id)
    assert storage_log.warning.call_args.args == ("file_cleanup_failed",)
    service_log.warning.assert_called_once_with(
        "template_cleanup_failed", model_id=contract_model.id
    )
    with pytest.raises(NotFound):
        model_service.get(contract_model.id)


def test_template_path_requires_file(model_service, contract_model):
    assert model_service.template_path(contract_model.id) == contract_model.template_path
    Path(contract_model.template_path).unlink()
    with pytest.raises(NotFound):
        model_service.template_path(contract_model.id)
