"""Service de rendu des contrats à partir de templates Word (.docx).

Ce module remplit les balises Jinja d'un template `.docx` via `docxtpl` et expose le filtre
`date_in_words` ("15 de janeiro de 2024") aux templates.
"""

from __future__ import annotations

import io
import zipfile
from datetime import date
from pathlib import PurePath
from typing import Any

import jinja2
import structlog
from docx.opc.exceptions import PackageNotFoundError
from docxtpl import DocxTemplate

from backend.domain.errors import InvalidInput, UpstreamFailure
from backend.domain.fingerprint import parse_date

log = structlog.get_logger(__name__)

SUPPORTED_EXTENSIONS = (".docx",)

MONTHS = (
    "janeiro",
    "fevereiro",
    "março",
    "abril",
    "maio",
    "junho",
    "julho",
    "agosto",
    "setembro",
    "outubro",
    "novembro",
    "dezembro",
)


def date_in_words(value: Any) -> str:
    """Formate une date en toutes lettres; chaîne vide si la valeur n'est pas une date."""
    if not value:
        return ""
    if isinstance(value, str):
        parsed = parse_date(value)
        if parsed is None:
            return ""
        value = parsed
    if not isinstance(value, date):
        return ""
    return f"{value.day} de {MONTHS[value.month - 1]} de {value.year}"


def ensure_supported_template(
    name: str, extensions: tuple[str, ...] = SUPPORTED_EXTENSIONS
) -> str:
    """Vérifie l'extension du template et la retourne (minuscule)."""
    ext = PurePath(name).suffix.lower()
    if ext not in extensions:
        raise InvalidInput(
            f"unsupported template format: {ext or '<none>'}",
            {"allowed": list(extensions)},
        )
    return ext


def build_environment() -> jinja2.Environment:
    """Environnement Jinja partagé par tous les rendus."""
    env = jinja2.Environment(autoescape=False)
    env.filters["date_in_words"] = date_in_words
    return env


class DocxRenderer:
    """Moteur de rendu `docxtpl` (template binaire + arbre de données -> document binaire)."""

    def __init__(self, env: jinja2.Environment | None = None) -> None:
        """Initialise le moteur avec un environnement Jinja (filtres inclus)."""
        self.env = env or build_environment()

    def render(self, template: bytes, data: dict[str, Any]) -> bytes:
        """Remplit le template et retourne le document généré."""
        try:
            tpl = DocxTemplate(io.BytesIO(template))
            tpl.render(data, jinja_env=self.env)
            out = io.BytesIO()
            tpl.save(out)
        except (
            jinja2.TemplateError,
            zipfile.BadZipFile,
            PackageNotFoundError,
            ValueError,
            KeyError,
        ) as err:
            log.error("render_failed", error=str(err), error_type=type(err).__name__)
            raise UpstreamFailure("template rendering failed", {"error": str(err)}) from err
        return out.getvalue()

