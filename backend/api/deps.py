"""Dépendances partagées pour les routes de l'API.

But du module
-------------
- Centraliser l'accès aux services exposés par le conteneur.
- Offrir un point d'ancrage pour `app.dependency_overrides` dans les tests, sans modifier
  les routes.
"""

from backend.core.container import container
from backend.domain.generation import ContractService
from backend.domain.model_service import ModelService


def get_contract_service() -> ContractService:
    """Service de génération des contrats."""
    return container.contracts


def get_model_service() -> ModelService:
    """Service d'administration des modèles."""
    return container.models
