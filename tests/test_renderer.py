"""Tests pour le rendu des templates `.docx` (docxtpl) et le filtre `date_in_words`."""

from __future__ import annotations

import io
from datetime import UTC, date, datetime

import pytest
from docx import Document

from backend.domain.errors import InvalidInput, UpstreamFailure
from backend.infra.renderer import DocxRenderer, date_in_words, ensure_supported_template
from tests.fakes import build_docx


def _paragraphs(content: bytes) -> list[str]:
    return [p.text for p in Document(io.BytesIO(content)).paragraphs]


def test_render_fills_principal_and_tables() -> None:
    """Les balises `principal.*` et les boucles sur variables sont remplies."""
    template = build_docx(
        "Contratante: {{ principal.razao_social }}",
        "Data: {{ principal.hoje|date_in_words }}",
        "Parcelas: {% for p in parcelas %}{{ p.numero }}={{ p.valor }};{% endfor %}",
    )
    data = {
        "principal": {"razao_social": "Empresa Teste ME", "hoje": date(2024, 1, 15)},
        "parcelas": [{"numero": 1, "valor": 100.0}, {"numero": 2, "valor": 150.5}],
    }
    out = DocxRenderer().render(template, data)
    assert _paragraphs(out) == [
        "Contratante: Empresa Teste ME",
        "Data: 15 de janeiro de 2024",
        "Parcelas: 1=100.0;2=150.5;",
    ]


def test_missing_keys_render_empty() -> None:
    out = DocxRenderer().render(build_docx("Nome: {{ principal.nome }}"), {"principal": {}})
    assert _paragraphs(out) == ["Nome: "]


def test_invalid_template_bytes_is_upstream_failure() -> None:
    with pytest.raises(UpstreamFailure):
        DocxRenderer().render(b"not a docx", {"principal": {}})


def test_template_syntax_error_is_upstream_failure() -> None:
    with pytest.raises(UpstreamFailure):
        DocxRenderer().render(build_docx("{{ principal.nome "), {"principal": {}})


def test_date_in_words() -> None:
    assert date_in_words(date(2024, 3, 1)) == "1 de março de 2024"
    assert date_in_words(datetime(2024, 12, 25, 10, 0, tzinfo=UTC)) == "25 de dezembro de 2024"
    assert date_in_words("2024-01-15") == "15 de janeiro de 2024"
    assert date_in_words("15/01/2024") == "15 de janeiro de 2024"
    assert date_in_words("amanhã") == ""
    assert date_in_words(None) == ""
    assert date_in_words(42) == ""


def test_supported_template_extensions() -> None:
    assert ensure_supported_template("Contrato.DOCX") == ".docx"
    with pytest.raises(InvalidInput) as exc:
        ensure_supported_template("contrato.pdf")
    assert exc.value.details == {"allowed": [".docx"]}
    with pytest.raises(InvalidInput):
        ensure_supported_template("sem_extensao")
