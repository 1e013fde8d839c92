"""
Routes d'administration des modèles de documents.

Ce module regroupe les endpoints `/models`: création et mise à jour (multipart: `payload` JSON +
fichier `template`), lecture, suppression et téléchargement du template.
"""

from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse
from pydantic import ValidationError

from backend.api.deps import get_model_service
from backend.api.schemas import ModelPayload, ModelResponse
from backend.core.http_constants import DOCX_MEDIA_TYPE, HTTP_CREATED
from backend.domain.errors import InvalidInput
from backend.domain.model_service import ModelService

router = APIRouter(prefix="/models", tags=["models"])
service_dep = Depends(get_model_service)
template_file = File(None)


def _parse_payload(raw: str) -> dict:
    try:
        payload = ModelPayload.model_validate_json(raw or "{}")
    except ValidationError as err:
        errors = err.errors(include_url=False, include_context=False)
        raise InvalidInput("invalid model payload", {"errors": errors}) from err
    return payload.model_dump(exclude_none=True)


async def _read_upload(upload: UploadFile | None) -> tuple[str | None, bytes | None]:
    if upload is None:
        return None, None
    return upload.filename, await upload.read()


@router.post("", response_model=ModelResponse, status_code=HTTP_CREATED)
async def create_model(
    payload: str = Form(...),
    template: UploadFile | None = template_file,
    service: ModelService = service_dep,
):
    """Crée un modèle à partir de ses champs et de son template `.docx`."""
    name, content = await _read_upload(template)
    return service.create(_parse_payload(payload), name, content)


@router.get("", response_model=list[ModelResponse])
def list_models(service: ModelService = service_dep):
    """Liste les modèles, plus récents d'abord."""
    return service.list_all()


@router.get("/{model_id}", response_model=ModelResponse)
def get_model(model_id: str, service: ModelService = service_dep):
    """Retourne un modèle par identifiant."""
    return service.get(model_id)


@router.put("/{model_id}", response_model=ModelResponse)
async def update_model(
    model_id: str,
    payload: str = Form("{}"),
    template: UploadFile | None = template_file,
    service: ModelService = service_dep,
):
    """Met à jour un modèle; un nouveau template remplace l'ancien."""
    name, content = await _read_upload(template)
    return service.update(model_id, _parse_payload(payload), name, content)


@router.delete("/{model_id}")
def delete_model(model_id: str, service: ModelService = service_dep):
    """Supprime un modèle et son template."""
    service.delete(model_id)
    return {"deleted": model_id}


@router.get("/{model_id}/template", response_class=FileResponse)
def download_template(model_id: str, service: ModelService = service_dep):
    """Télécharge le template binaire d'un modèle."""
    path = service.template_path(model_id)
    return FileResponse(path, media_type=DOCX_MEDIA_TYPE, filename=Path(path).name)
