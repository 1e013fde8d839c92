# Schémas Pydantic exposés par l'API (requêtes et réponses).

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from backend.domain.entities import Artifact, FieldIdentifiers, ParamValue, Variable


class ModelPayload(BaseModel):
    """Champs d'un modèle transmis avec le template (partie `payload` du multipart).

    Tous optionnels pour la mise à jour; la création vérifie les champs obligatoires.
    """

    title: str | None = None
    type: str | None = None
    description: str | None = None
    main_query: str | None = None
    variables: list[Variable] | None = None


class ModelResponse(BaseModel):
    """Modèle de document tel qu'exposé par l'API."""

    id: str
    title: str
    type: str
    description: str
    main_query: str
    variables: list[Variable]
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ParametersRequest(BaseModel):
    """Paramètres nommés des requêtes du modèle."""

    parameters: dict[str, ParamValue] = Field(default_factory=dict)


class GenerateRequest(ParametersRequest):
    """Demande de génération: paramètres + régénération forcée."""

    force_regenerate: bool = False


class QueryRequest(ParametersRequest):
    """Requête SQL ad hoc à exécuter."""

    query: str


class ArtifactResponse(BaseModel):
    """Contrat généré (sans les données brutes)."""

    model_id: str
    version: int
    generated_at: datetime
    parameters: dict[str, Any]
    field_identifiers: FieldIdentifiers | None = None
    fingerprint: str
    active: bool
    output_path: str

    @classmethod
    def from_artifact(cls, artifact: Artifact) -> "ArtifactResponse":
        return cls(**artifact.model_dump(exclude={"id", "data"}))


class ContractDataResponse(BaseModel):
    """Données issues des requêtes du modèle."""

    model_config = ConfigDict(ser_json_bytes="base64")

    principal: list[dict[str, Any]]
    variables: dict[str, list[dict[str, Any]]]


class RowsResponse(BaseModel):
    """Lignes renvoyées par une requête ad hoc."""

    model_config = ConfigDict(ser_json_bytes="base64")

    rows: list[dict[str, Any]]
    count: int
