"""Taxonomie des erreurs du moteur de génération.

- NotFound / InvalidInput: détectées tôt, sans effet de bord.
- UpstreamFailure: échec de l'exécuteur de requêtes ou du moteur de rendu.
- StorageFailure: échec d'E/S (fichiers, base des contrats).
"""

from __future__ import annotations


class GenerationError(Exception):
    """Erreur de base du domaine."""

    code = "GENERATION_ERROR"

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFound(GenerationError):
    """Modèle, template ou contrat absent."""

    code = "NOT_FOUND"


class InvalidInput(GenerationError):
    """Paramètres invalides ou format de template non supporté."""

    code = "INVALID_INPUT"


class UpstreamFailure(GenerationError):
    """Erreur remontée par un collaborateur externe (SQL, rendu)."""

    code = "UPSTREAM_FAILURE"


class StorageFailure(GenerationError):
    """Erreur d'E/S sur le stockage des fichiers ou des enregistrements."""

    code = "STORAGE_FAILURE"
