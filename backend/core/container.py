"""
Conteneur d'injection de dépendances et configuration application.

Instancie les composants centraux (settings, moteur SQL, stockage, verrous, services)
et expose un singleton `container` utilisé par le reste de l'application.
"""

from backend.core.settings import Settings, get_settings
from backend.domain.generation import ContractService
from backend.domain.model_service import ModelService
from backend.infra.locks import build_lock_factory
from backend.infra.query_executor import SqlQueryExecutor
from backend.infra.renderer import DocxRenderer
from backend.infra.repo.db import get_engine, init_schema
from backend.infra.storage import FileStorage


class Container:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        extensions = tuple(self.settings.TEMPLATE_EXTENSIONS)
        self.engine = get_engine(self.settings.DATABASE_URL)
        init_schema(self.engine)
        # Base interrogée par les modèles: dédiée si configurée, sinon celle de l'application.
        # Le moteur dédié n'est créé qu'à la première requête.
        if self.settings.DATA_SOURCE_URL:
            self.executor = SqlQueryExecutor(url=self.settings.DATA_SOURCE_URL)
        else:
            self.executor = SqlQueryExecutor(engine=self.engine)
        self.storage = FileStorage(self.settings.UPLOAD_DIR)
        self.locks = build_lock_factory(
            self.settings.GENERATION_LOCK_ENABLED,
            self.settings.REDIS_URL,
            self.settings.GENERATION_LOCK_TIMEOUT_S,
        )
        self.contracts = ContractService(
            self.engine,
            self.executor,
            self.storage,
            renderer=DocxRenderer(),
            locks=self.locks,
            template_extensions=extensions,
        )
        self.models = ModelService(
            self.engine,
            self.storage,
            template_extensions=extensions,
        )
        self.storage_backend = self.engine.dialect.name
        self.lock_backend = type(self.locks).__name__


container = Container()
