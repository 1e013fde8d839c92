"""Stockage fichier des templates et des contrats générés.

Arborescence sous la racine `UPLOAD_DIR`:
- `templates/`            templates binaires des modèles
- `contratos-gerados/`    documents générés, nommés `{titre}_{empreinte}_v{version}.docx`
"""

from __future__ import annotations

import re
import uuid
from pathlib import Path

import structlog

from backend.domain.errors import NotFound, StorageFailure

log = structlog.get_logger(__name__)

TEMPLATES_DIR = "templates"
OUTPUT_DIR = "contratos-gerados"

_SPACES = re.compile(r"\s+")
_UNSAFE = re.compile(r"[^\w.\-]")


def output_name(title: str, fingerprint: str, version: int, ext: str = ".docx") -> str:
    """Nom unique par (modèle, empreinte, version); les blancs du titre deviennent `_`."""
    stem = _UNSAFE.sub("", _SPACES.sub("_", title.strip())) or "contrato"
    return f"{stem}_{fingerprint}_v{version}{ext}"


class FileStorage:
    """Accès disque pour les templates et les sorties."""

    def __init__(self, root: str | Path) -> None:
        """Initialise le stockage et crée les répertoires si besoin."""
        self.root = Path(root)
        self.templates_dir = self.root / TEMPLATES_DIR
        self.output_dir = self.root / OUTPUT_DIR
        for d in (self.templates_dir, self.output_dir):
            d.mkdir(parents=True, exist_ok=True)

    def _write(self, path: Path, content: bytes) -> str:
        try:
            path.write_bytes(content)
        except OSError as err:
            log.error("file_write_failed", path=str(path), error=str(err))
            raise StorageFailure(f"cannot write {path.name}", {"error": str(err)}) from err
        return str(path)

    def save_template(self, filename: str, content: bytes) -> str:
        """Enregistre un template sous un nom unique et retourne son chemin."""
        safe = _UNSAFE.sub("_", Path(filename).name)
        return self._write(self.templates_dir / f"{uuid.uuid4().hex[:12]}-{safe}", content)

    def write_output(self, name: str, content: bytes) -> str:
        """Écrit un document généré (écrase un éventuel orphelin de même nom)."""
        return self._write(self.output_dir / name, content)

    def read(self, path: str) -> bytes:
        """Lit un fichier; NotFound s'il a disparu."""
        p = Path(path)
        if not p.is_file():
            raise NotFound(f"file not found: {p.name}")
        try:
            return p.read_bytes()
        except OSError as err:
            raise StorageFailure(f"cannot read {p.name}", {"error": str(err)}) from err

    def exists(self, path: str | None) -> bool:
        """Vrai si le fichier existe encore."""
        return bool(path) and Path(path).is_file()

    def delete_quietly(self, path: str | None) -> bool:
        """Suppression best-effort: journalise l'échec sans le propager."""
        if not path:
            return False
        try:
            Path(path).unlink(missing_ok=True)
            return True
        except OSError as err:
            log.warning("file_cleanup_failed", path=path, error=str(err))
            return False
