"""
Routes liées aux contrats: données, génération, historique et téléchargement.

Ce module regroupe les endpoints `/contracts`. La génération réutilise le contrat actif
lorsque les paramètres (normalisés) et le modèle n'ont pas changé.
"""

from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from backend.api.deps import get_contract_service
from backend.api.schemas import (
    ArtifactResponse,
    ContractDataResponse,
    GenerateRequest,
    ParametersRequest,
    QueryRequest,
    RowsResponse,
)
from backend.core.http_constants import DOCX_MEDIA_TYPE
from backend.domain.generation import ContractService

router = APIRouter(prefix="/contracts", tags=["contracts"])
service_dep = Depends(get_contract_service)


@router.post("/test-query", response_model=RowsResponse)
def test_query(payload: QueryRequest, service: ContractService = service_dep):
    """Exécute une requête SQL ad hoc avec ses paramètres `:nom`."""
    rows = service.test_query(payload.query, payload.parameters)
    return RowsResponse(rows=rows, count=len(rows))


@router.get("/active", response_model=list[ArtifactResponse])
def list_active(model_id: str | None = None, service: ContractService = service_dep):
    """Contrats actifs (filtrables par modèle), plus récents d'abord."""
    return [ArtifactResponse.from_artifact(a) for a in service.list_active(model_id)]


@router.post("/{model_id}/data", response_model=ContractDataResponse)
def contract_data(
    model_id: str, payload: ParametersRequest, service: ContractService = service_dep
):
    """Exécute les requêtes du modèle sans générer de document."""
    data = service.fetch_data(model_id, payload.parameters)
    return ContractDataResponse(**data.model_dump())


@router.post("/{model_id}/generate", response_model=ArtifactResponse)
def generate(model_id: str, payload: GenerateRequest, service: ContractService = service_dep):
    """Génère (ou réutilise) le contrat d'un modèle pour ces paramètres."""
    artifact = service.generate(model_id, payload.parameters, payload.force_regenerate)
    return ArtifactResponse.from_artifact(artifact)


@router.post("/{model_id}/history", response_model=list[ArtifactResponse])
def history(model_id: str, payload: ParametersRequest, service: ContractService = service_dep):
    """Toutes les versions d'un contrat, de la plus récente à la plus ancienne."""
    artifacts = service.history(model_id, payload.parameters)
    return [ArtifactResponse.from_artifact(a) for a in artifacts]


@router.get("/{model_id}/{fingerprint}/download", response_class=FileResponse)
def download(model_id: str, fingerprint: str, service: ContractService = service_dep):
    """Télécharge le document actif d'une empreinte."""
    path = service.output_path(model_id, fingerprint)
    return FileResponse(path, media_type=DOCX_MEDIA_TYPE, filename=Path(path).name)
