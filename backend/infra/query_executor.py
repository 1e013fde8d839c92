"""
Exécuteur des requêtes SQL déclarées par les modèles.

Les requêtes utilisent des paramètres nommés `:nom`, liés tels quels par `sqlalchemy.text`.
Le moteur est une ressource partagée, créée au premier usage puis réutilisée.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Any

import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from backend.domain.entities import ContractData, DocumentModel
from backend.domain.errors import InvalidInput, UpstreamFailure

log = structlog.get_logger(__name__)


class SqlQueryExecutor:
    """Exécute une requête paramétrée et retourne les lignes sous forme de dicts."""

    def __init__(self, url: str | None = None, engine: Engine | None = None) -> None:
        """Initialise l'exécuteur à partir d'une URL ou d'un moteur existant."""
        if url is None and engine is None:
            raise ValueError("SqlQueryExecutor requires an url or an engine")
        self._url = url
        self._engine = engine
        self._lock = threading.Lock()

    @property
    def engine(self) -> Engine:
        """Moteur SQLAlchemy, créé à la première demande."""
        if self._engine is None:
            with self._lock:
                if self._engine is None:
                    self._engine = create_engine(self._url, future=True, pool_pre_ping=True)
                    log.info("data_source_connected", dialect=self._engine.dialect.name)
        return self._engine

    def execute(
        self, query: str, params: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Exécute `query` avec les paramètres référencés et retourne les lignes."""
        if not query or not query.strip():
            raise InvalidInput("query is empty")
        statement = text(query)
        names = set(statement.compile().params)
        bound = {name: value for name, value in (params or {}).items() if name in names}
        missing = sorted(names - bound.keys())
        if missing:
            raise InvalidInput("missing query parameters", {"missing": missing})
        try:
            with self.engine.connect() as conn:
                result = conn.execute(statement, bound)
                if not result.returns_rows:
                    return []
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as err:
            log.error("query_failed", error=str(err))
            raise UpstreamFailure("query execution failed", {"error": str(err)}) from err

    def fetch_model_data(
        self, model: DocumentModel, params: Mapping[str, Any] | None
    ) -> ContractData:
        """Exécute la requête principale puis celle de chaque variable.

        Les paramètres bruts (non normalisés) sont transmis au moteur SQL.
        """
        principal = self.execute(model.main_query, params)
        variables: dict[str, list[dict[str, Any]]] = {}
        for variable in model.variables:
            if variable.query and variable.query.strip():
                variables[variable.name] = self.execute(variable.query, params)
            else:
                variables[variable.name] = []
        return ContractData(principal=principal, variables=variables)
