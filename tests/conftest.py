"""Configuration de test pour pytest avec gestion des chemins et fixtures partagées.

Ce module ajoute la racine du projet au sys.path, isole les répertoires de fichiers du
conteneur global, et fournit une base de données source (SQLite) ainsi qu'un template `.docx`.
"""

import os
import sys
import tempfile
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import text

# Ensure project root is on sys.path so that
# imports like `from backend...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Le conteneur global est construit à l'import: ses fichiers vont dans un répertoire jetable.
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="contracts-tests-"))
os.environ.pop("DATABASE_URL", None)
os.environ.pop("REDIS_URL", None)

from backend.domain.generation import ContractService  # noqa: E402
from backend.domain.model_service import ModelService  # noqa: E402
from backend.infra.query_executor import SqlQueryExecutor  # noqa: E402
from backend.infra.repo.db import get_engine, init_schema  # noqa: E402
from backend.infra.storage import FileStorage  # noqa: E402
from tests.fakes import (  # noqa: E402
    CLIENT_QUERY,
    PARCELAS_QUERY,
    RecordingRenderer,
    TickingClock,
    build_docx,
)


@pytest.fixture
def engine():
    """Base des modèles et contrats (SQLite mémoire, schéma créé)."""
    eng = get_engine("sqlite+pysqlite:///:memory:")
    init_schema(eng)
    return eng


@pytest.fixture
def data_engine():
    """Base source interrogée par les requêtes des modèles."""
    eng = get_engine("sqlite+pysqlite:///:memory:")
    with eng.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE clientes (id INTEGER PRIMARY KEY, razao_social TEXT, "
                "cpf TEXT, cnpj TEXT, cidade TEXT)"
            )
        )
        conn.execute(
            text("CREATE TABLE parcelas (cliente_id INTEGER, numero INTEGER, valor REAL)")
        )
        conn.execute(
            text(
                "INSERT INTO clientes VALUES "
                "(1, 'Empresa Teste ME', '123.456.789-00', '12345678901234', 'Recife'), "
                "(2, 'Outra Empresa LTDA', '987.654.321-00', '', 'Olinda')"
            )
        )
        conn.execute(
            text(
                "INSERT INTO parcelas VALUES (1, 1, 100.0), (1, 2, 150.5), (2, 1, 80.0)"
            )
        )
    return eng


@pytest.fixture
def executor(data_engine):
    """Exécuteur branché sur la base source de test."""
    return SqlQueryExecutor(engine=data_engine)


@pytest.fixture
def storage(tmp_path):
    """Stockage fichier isolé par test."""
    return FileStorage(tmp_path / "uploads")


@pytest.fixture
def docx_template():
    """Template .docx avec balises Jinja."""
    return build_docx(
        "Contratante: {{ principal.razao_social }}",
        "Data: {{ principal.hoje|date_in_words }}",
    )


@pytest.fixture
def model_service(engine, storage):
    return ModelService(engine, storage)


@pytest.fixture
def contract_model(model_service, docx_template):
    """Modèle de contrat avec une variable `parcelas`."""
    return model_service.create(
        {
            "title": "Contrato de  Prestação",
            "type": "servico",
            "description": "Contrato padrão",
            "main_query": CLIENT_QUERY,
            "variables": [
                {
                    "name": "parcelas",
                    "kind": "table",
                    "fields": ["numero", "valor"],
                    "query": PARCELAS_QUERY,
                },
                {"name": "observacoes", "kind": "simple"},
            ],
        },
        "contrato.docx",
        docx_template,
    )


@pytest.fixture
def clock():
    """Horloge en avance d'une heure: les modèles de test sont toujours plus anciens."""
    return TickingClock(datetime.now(UTC) + timedelta(hours=1))


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def contract_service(engine, executor, storage, renderer, clock):
    """Orchestrateur avec rendu enregistré et horloge contrôlée."""
    return ContractService(engine, executor, storage, renderer=renderer, clock=clock)
