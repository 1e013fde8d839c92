"""
Application principale FastAPI.

Ce module assemble les composants de l'application : logging, middlewares, gestion des erreurs
et routes du générateur de contrats.

Responsabilités du module:
- Initialiser le logging structuré
- Construire l'application FastAPI avec son titre/debug
- Ajouter le middleware de contexte de requête (request id, durée)
- Monter les routers (santé, modèles, contrats)
"""

from __future__ import annotations

from fastapi import FastAPI

from backend.api.errors import register_error_handlers
from backend.api.routes_contracts import router as contracts_router
from backend.api.routes_health import router as health_router
from backend.api.routes_models import router as models_router
from backend.core.container import container
from backend.core.logging import setup_logging
from backend.middlewares.request_context import RequestContextMiddleware


def create_app() -> FastAPI:
    """
    Construit et retourne l'application FastAPI prête à l'usage.

    Étapes:
    - Configure le logging structuré (structlog)
    - Lit les paramètres d'exécution
    - Ajoute le middleware de contexte et les gestionnaires d'erreurs
    - Publie les routes de santé, de modèles et de contrats
    """
    settings = container.settings
    setup_logging(settings.LOG_LEVEL, json_logs=settings.LOG_JSON)
    app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG)
    app.add_middleware(RequestContextMiddleware)
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(models_router)
    app.include_router(contracts_router)
    return app


app = create_app()
