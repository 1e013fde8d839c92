"""Administration des modèles de documents (création, mise à jour, suppression).

Toute modification avance `updated_at`, ce qui invalide la réutilisation des contrats
générés auparavant. Le remplacement ou la suppression d'un template supprime l'ancien
fichier en best-effort: un échec est journalisé sans faire échouer l'opération.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError
from sqlalchemy.engine import Engine

from backend.domain.entities import DocumentModel, Variable
from backend.domain.errors import InvalidInput, NotFound
from backend.infra.renderer import ensure_supported_template
from backend.infra.repo.db import session_scope
from backend.infra.repo.model_repo import ModelRepo
from backend.infra.storage import FileStorage

log = structlog.get_logger(__name__)

REQUIRED_FIELDS = ("title", "type", "description", "main_query")


def parse_variables(raw: list | None) -> list[Variable]:
    """Valide les déclarations de variables."""
    try:
        return [Variable.model_validate(v) for v in raw or []]
    except ValidationError as err:
        errors = err.errors(include_url=False, include_context=False)
        raise InvalidInput("invalid variables", {"errors": errors}) from err


class ModelService:
    """Service d'administration des modèles."""

    def __init__(
        self,
        engine: Engine,
        storage: FileStorage,
        template_extensions: tuple[str, ...] = (".docx",),
    ):
        self.engine = engine
        self.storage = storage
        self.template_extensions = template_extensions

    def _store_template(self, filename: str | None, content: bytes | None) -> str:
        if not filename or not content:
            raise InvalidInput("a template file is required")
        ensure_supported_template(filename, self.template_extensions)
        return self.storage.save_template(filename, content)

    def create(
        self, payload: dict[str, Any], template_name: str | None, template: bytes | None
    ) -> DocumentModel:
        """Crée un modèle avec son template."""
        missing = [f for f in REQUIRED_FIELDS if not payload.get(f)]
        if missing:
            raise InvalidInput("missing model fields", {"missing": missing})
        template_path = self._store_template(template_name, template)
        with session_scope(self.engine) as session:
            model = ModelRepo(session).create(
                title=payload["title"],
                type=payload["type"],
                description=payload["description"],
                template_path=template_path,
                main_query=payload["main_query"],
                variables=parse_variables(payload.get("variables")),
            )
        log.info("model_created", model_id=model.id, title=model.title)
        return model

    def get(self, model_id: str) -> DocumentModel:
        with session_scope(self.engine) as session:
            model = ModelRepo(session).get(model_id)
        if model is None:
            raise NotFound(f"model {model_id} not found")
        return model

    def list_all(self) -> list[DocumentModel]:
        with session_scope(self.engine) as session:
            return ModelRepo(session).list_all()

    def update(
        self,
        model_id: str,
        payload: dict[str, Any],
        template_name: str | None = None,
        template: bytes | None = None,
    ) -> DocumentModel:
        """Met à jour un modèle; un nouveau template remplace (et supprime) l'ancien."""
        current = self.get(model_id)
        fields = {f: payload[f] for f in REQUIRED_FIELDS if payload.get(f)}
        new_path = None
        if template_name or template:
            new_path = self._store_template(template_name, template)
            fields["template_path"] = new_path
        variables = payload.get("variables")
        with session_scope(self.engine) as session:
            model = ModelRepo(session).update(
                model_id,
                variables=parse_variables(variables) if variables is not None else None,
                **fields,
            )
        if model is None:
            self.storage.delete_quietly(new_path)
            raise NotFound(f"model {model_id} not found")
        if new_path and current.template_path != new_path:
            if not self.storage.delete_quietly(current.template_path):
                log.warning("template_cleanup_failed", model_id=model_id)
        log.info("model_updated", model_id=model_id, template_replaced=bool(new_path))
        return model

    def delete(self, model_id: str) -> DocumentModel:
        """Supprime un modèle et son template."""
        with session_scope(self.engine) as session:
            model = ModelRepo(session).delete(model_id)
        if model is None:
            raise NotFound(f"model {model_id} not found")
        if not self.storage.delete_quietly(model.template_path):
            log.warning("template_cleanup_failed", model_id=model_id)
        log.info("model_deleted", model_id=model_id)
        return model

    def template_path(self, model_id: str) -> str:
        """Chemin du template d'un modèle; NotFound si le fichier a disparu."""
        model = self.get(model_id)
        if not self.storage.exists(model.template_path):
            raise NotFound("template file not found")
        return model.template_path
