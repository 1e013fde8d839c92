"""
Orchestrateur de génération de contrats.

Pour un modèle et un jeu de paramètres, décide si le contrat actif peut être réutilisé ou s'il
faut produire une nouvelle version (et passer l'ancienne en historique).

Séquence d'une demande:
    START -> LOOKUP -> {REUSE | FETCH -> RENDER -> PERSIST} -> DONE
Toute erreur interrompt la séquence (FAILED); aucune reprise automatique n'est tentée, le
demandeur peut relancer avec `force_regenerate`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from backend.domain.entities import Artifact, ContractData, DocumentModel
from backend.domain.errors import GenerationError, InvalidInput, NotFound, StorageFailure
from backend.domain.field_identifier import identify_from_rows
from backend.domain.fingerprint import fingerprint, parameters_equivalent
from backend.infra.locks import NullLockFactory, lock_key
from backend.infra.query_executor import SqlQueryExecutor
from backend.infra.renderer import (
    SUPPORTED_EXTENSIONS,
    DocxRenderer,
    ensure_supported_template,
)
from backend.infra.repo.artifact_repo import ArtifactRepo
from backend.infra.repo.db import session_scope
from backend.infra.repo.model_repo import ModelRepo
from backend.infra.repo.models import utcnow
from backend.infra.storage import FileStorage, output_name

log = structlog.get_logger(__name__)

_SCALARS = (str, int, float, bool, date, datetime)


def validate_parameters(parameters: Any) -> dict[str, Any]:
    """Vérifie que les paramètres sont un mapping nom -> scalaire (ou None)."""
    if parameters is None:
        return {}
    if not isinstance(parameters, Mapping):
        raise InvalidInput("parameters must be a mapping")
    bad = sorted(
        str(k)
        for k, v in parameters.items()
        if not isinstance(k, str) or (v is not None and not isinstance(v, _SCALARS))
    )
    if bad:
        raise InvalidInput("parameters must be scalar values", {"invalid": bad})
    return dict(parameters)


def build_template_data(data: ContractData, today: datetime) -> dict[str, Any]:
    """Arbre de données du template: `principal` (1re ligne + `hoje`) et une clé par variable."""
    first = data.principal[0] if data.principal else {}
    return {"principal": {**first, "hoje": today}, **data.variables}


def is_stale(model: DocumentModel, artifact: Artifact) -> bool:
    """Vrai si le modèle a été modifié strictement après la génération du contrat."""
    if model.updated_at is None or artifact.generated_at is None:
        return False
    return model.updated_at > artifact.generated_at


class ContractService:
    """Service métier de génération et d'historique des contrats.

    Responsabilités:
    - Calculer l'empreinte (modèle + paramètres normalisés).
    - Réutiliser le contrat actif tant qu'il est frais (fichier présent, modèle inchangé).
    - Sinon exécuter les requêtes, rendre le template, écrire le fichier, puis
      désactiver l'ancien contrat et insérer la nouvelle version dans une même transaction.
    """

    def __init__(
        self,
        engine: Engine,
        executor: SqlQueryExecutor,
        storage: FileStorage,
        renderer: DocxRenderer | None = None,
        locks=None,
        clock: Callable[[], datetime] = utcnow,
        template_extensions: tuple[str, ...] = SUPPORTED_EXTENSIONS,
    ):
        """Initialise le service avec ses dépendances.

        Paramètres:
        - engine: moteur SQLAlchemy de la base des modèles/contrats.
        - executor: exécuteur des requêtes des modèles.
        - storage: stockage fichier (templates et sorties).
        - renderer: moteur de rendu `.docx`.
        - locks: fabrique de verrous par empreinte (aucun verrou par défaut).
        - clock: horloge UTC des générations.
        - template_extensions: extensions de template acceptées (mêmes que l'administration).
        """
        self.engine = engine
        self.executor = executor
        self.storage = storage
        self.renderer = renderer or DocxRenderer()
        self.locks = locks or NullLockFactory()
        self.clock = clock
        self.template_extensions = template_extensions

    def get_model(self, model_id: str) -> DocumentModel:
        """Charge un modèle; NotFound s'il est absent."""
        with session_scope(self.engine) as session:
            model = ModelRepo(session).get(model_id)
        if model is None:
            raise NotFound(f"model {model_id} not found")
        return model

    def fetch_data(self, model_id: str, parameters: Mapping[str, Any] | None) -> ContractData:
        """Exécute les requêtes du modèle sans générer de document."""
        params = validate_parameters(parameters)
        model = self.get_model(model_id)
        return self.executor.fetch_model_data(model, params)

    def test_query(
        self, query: str, parameters: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Exécute une requête ad hoc (mise au point des modèles)."""
        return self.executor.execute(query, validate_parameters(parameters))

    def generate(
        self,
        model_id: str,
        parameters: Mapping[str, Any] | None,
        force_regenerate: bool = False,
    ) -> Artifact:
        """Retourne le contrat actif réutilisable ou génère une nouvelle version."""
        params = validate_parameters(parameters)
        model = self.get_model(model_id)
        fp = fingerprint(model_id, params)
        logger = log.bind(model_id=model_id, fingerprint=fp)
        try:
            with self.locks.acquire(lock_key(model_id, fp)):
                return self._generate_locked(model, params, fp, force_regenerate, logger)
        except GenerationError as err:
            logger.error("generation_failed", code=err.code, error=err.message)
            raise

    def _generate_locked(
        self,
        model: DocumentModel,
        params: dict[str, Any],
        fp: str,
        force_regenerate: bool,
        logger,
    ) -> Artifact:
        with session_scope(self.engine) as session:
            repo = ArtifactRepo(session)
            existing = repo.get_active(model.id, fp)
            version = repo.max_version(model.id, fp) + 1

        if existing is not None and not force_regenerate:
            if not self.storage.exists(existing.output_path):
                logger.info("artifact_file_missing", version=existing.version)
            elif is_stale(model, existing):
                logger.info("artifact_stale", version=existing.version)
            else:
                logger.info("artifact_reused", version=existing.version)
                return existing

        ext = ensure_supported_template(model.template_path, self.template_extensions)
        template = self.storage.read(model.template_path)
        data = self.executor.fetch_model_data(model, params)
        generated_at = self.clock()
        content = self.renderer.render(template, build_template_data(data, generated_at))
        path = self.storage.write_output(output_name(model.title, fp, version, ext), content)

        artifact = Artifact(
            model_id=model.id,
            parameters=params,
            fingerprint=fp,
            version=version,
            active=True,
            generated_at=generated_at,
            output_path=path,
            data=data,
            field_identifiers=identify_from_rows(data.principal),
        )
        # Le fichier est déjà écrit: si l'insertion échoue il reste orphelin et sera écrasé
        # ou ignoré, jamais relu (son nom dépend de l'empreinte et de la version).
        # Seul un échec de sérialisation, qui se répéterait à chaque essai, le supprime.
        try:
            with session_scope(self.engine) as session:
                repo = ArtifactRepo(session)
                retired = repo.deactivate_active(model.id, fp)
                saved = repo.create(artifact)
        except IntegrityError as err:
            raise StorageFailure(
                "concurrent generation for the same contract",
                {"model_id": model.id, "fingerprint": fp, "version": version},
            ) from err
        except SQLAlchemyError as err:
            raise StorageFailure("cannot persist generated contract", {"error": str(err)}) from err
        except (ValueError, TypeError) as err:
            self.storage.delete_quietly(path)
            raise StorageFailure(
                "cannot serialize contract data", {"error": str(err), "version": version}
            ) from err
        logger.info(
            "artifact_generated", version=version, retired=retired, forced=force_regenerate
        )
        return saved

    def list_active(self, model_id: str | None = None) -> list[Artifact]:
        """Contrats actifs, éventuellement pour un seul modèle, plus récents d'abord."""
        with session_scope(self.engine) as session:
            return ArtifactRepo(session).list_active(model_id)

    def history(self, model_id: str, parameters: Mapping[str, Any] | None) -> list[Artifact]:
        """Toutes les versions d'un contrat, de la plus récente à la plus ancienne.

        Recherche d'abord par empreinte; à défaut, retient les contrats du modèle dont les
        paramètres stockés sont équivalents à `parameters`.
        """
        params = validate_parameters(parameters)
        fp = fingerprint(model_id, params)
        with session_scope(self.engine) as session:
            repo = ArtifactRepo(session)
            found = repo.history(model_id, fp)
            if found:
                return found
            candidates = repo.list_for_model(model_id)
        related = [a for a in candidates if parameters_equivalent(a.parameters, params)]
        return sorted(related, key=lambda a: a.version, reverse=True)

    def output_path(self, model_id: str, fp: str) -> str:
        """Chemin du document actif pour (modèle, empreinte); NotFound sinon."""
        with session_scope(self.engine) as session:
            artifact = ArtifactRepo(session).get_active(model_id, fp)
        if artifact is None:
            raise NotFound(f"no contract for model {model_id} and fingerprint {fp}")
        if not self.storage.exists(artifact.output_path):
            raise NotFound("contract file not found")
        return artifact.output_path
