from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.datastructures import UploadFile

from ..core.models import ImageResponse, ListResponse, MessageResponse, UploadResponse
from ..core.results import Outcome, to_envelope
from ..gateway.service import UploadGateway, UploadRequest

router = APIRouter(prefix="/api", tags=["images"])

FORM_PATH = Path(__file__).resolve().parent.parent / "templates" / "upload_form.html"

# Failure envelopes share one shape whatever the status code
FAILURE_RESPONSES = {
    400: {"model": MessageResponse, "description": "Validation failure"},
    404: {"model": MessageResponse, "description": "Image not found"},
    502: {"model": MessageResponse, "description": "Image provider failure"},
}


def get_gateway(request: Request) -> UploadGateway:
    return request.app.state.gateway


def _respond(outcome: Outcome) -> JSONResponse:
    return JSONResponse(status_code=outcome.status_code, content=to_envelope(outcome))


@router.get("", response_class=HTMLResponse, summary="Upload form")
def upload_form(request: Request):
    settings = request.app.state.settings
    html = FORM_PATH.read_text(encoding="utf-8")
    html = html.replace("{{ field_name }}", settings.upload_field_name)
    html = html.replace("{{ max_files }}", str(settings.max_files))
    return HTMLResponse(html)


@router.post(
    "/upload",
    response_model=UploadResponse,
    responses=FAILURE_RESPONSES,
    summary="Upload up to 5 images",
    description=(
        "Multipart form-data with `name`, `email`, `password` and up to 5 files under "
        "`profilePhotos`. Non-image parts are ignored; at least one image is required."
    ),
)
async def upload_images(request: Request, gateway: UploadGateway = Depends(get_gateway)):
    form = await request.form()
    field_name = gateway.settings.upload_field_name
    fields = {}
    for key, value in form.multi_items():
        if isinstance(value, str) and key not in fields:
            fields[key] = value
    files = [f for f in form.getlist(field_name) if isinstance(f, UploadFile)]
    try:
        outcome = await gateway.upload(UploadRequest(fields=fields, files=files))
    finally:
        await form.close()
    return _respond(outcome)


@router.get("/fetch/all", response_model=ListResponse, responses=FAILURE_RESPONSES, summary="List all images")
async def list_images(gateway: UploadGateway = Depends(get_gateway)):
    return _respond(await gateway.list_images())


@router.get("/fetch", response_model=ImageResponse, responses=FAILURE_RESPONSES, summary="Fetch an image by public id")
async def fetch_image(
    id: Optional[str] = Query(None, description="Public id, e.g. users/profilePhotos_1700000000000_1a2b3c4d"),
    gateway: UploadGateway = Depends(get_gateway),
):
    return _respond(await gateway.fetch_image(id))


@router.get(
    "/fetch/{image_id:path}",
    response_model=ImageResponse,
    responses=FAILURE_RESPONSES,
    summary="Fetch an image by id within the namespace",
)
async def fetch_image_in_namespace(image_id: str, gateway: UploadGateway = Depends(get_gateway)):
    return _respond(await gateway.fetch_image(gateway.resolve_id(image_id)))


@router.delete("/delete/all", response_model=MessageResponse, responses=FAILURE_RESPONSES, summary="Delete all images")
async def delete_all_images(gateway: UploadGateway = Depends(get_gateway)):
    return _respond(await gateway.delete_all())


@router.delete("/delete", response_model=MessageResponse, responses=FAILURE_RESPONSES, summary="Delete an image by public id")
async def delete_image(
    id: Optional[str] = Query(None, description="Public id of the image to delete"),
    gateway: UploadGateway = Depends(get_gateway),
):
    return _respond(await gateway.delete_image(id))


@router.delete(
    "/delete/{image_id:path}",
    response_model=MessageResponse,
    responses=FAILURE_RESPONSES,
    summary="Delete an image by id within the namespace",
)
async def delete_image_in_namespace(image_id: str, gateway: UploadGateway = Depends(get_gateway)):
    return _respond(await gateway.delete_image(gateway.resolve_id(image_id)))
