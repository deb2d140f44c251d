from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .aws.storage import S3ImageProvider
from .core.config import Settings
from .core.logging import configure_logging, get_logger
from .gateway.service import UploadGateway
from .middleware.logging import RequestLoggingMiddleware
from .providers.base import ImageProvider
from .routers.images import router as images_router

logger = get_logger(__name__)

tags_metadata = [
    {
        "name": "images",
        "description": (
            "Endpoints to upload, list, fetch and delete images.\n\n"
            "- Upload up to 5 images via multipart together with name, email and password.\n"
            "- Non-image parts are dropped; each image is forwarded to the image provider.\n"
            "- Images live under a single namespace folder and can be listed or removed in bulk."
        ),
    }
]


def create_app(settings: Optional[Settings] = None, provider: Optional[ImageProvider] = None) -> FastAPI:
    """Build the application around one settings object and one image provider."""
    settings = settings or Settings.from_env()
    provider = provider or S3ImageProvider(settings)

    app = FastAPI(
        title="Image Upload Gateway",
        description=(
            "How to Use:\n\n"
            "1) Open GET /api for a browser form, or POST /api/upload with `name`, `email`, `password` "
            "and up to 5 files under `profilePhotos`.\n"
            "2) List images: GET /api/fetch/all.\n"
            "3) Fetch one: GET /api/fetch?id=<public id> or GET /api/fetch/<id within the namespace>.\n"
            "4) Delete: DELETE /api/delete?id=<public id>, or DELETE /api/delete/all to clear the namespace.\n\n"
            "Every endpoint answers with `{success, message}` plus `data`, `images` or `image` on success."
        ),
        openapi_tags=tags_metadata,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings
    app.state.gateway = UploadGateway(settings, provider)

    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(images_router)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error("unhandled_error", path=request.url.path, error_type=type(exc).__name__, exc_info=exc)
        return JSONResponse(status_code=500, content={"success": False, "message": str(exc) or "Internal error"})

    return app


def run() -> None:
    settings = Settings.from_env()
    configure_logging("image-upload-gateway", log_level=settings.log_level, json_format=settings.log_json)
    app = create_app(settings)
    logger.info("starting_server", host=settings.host, port=settings.port, bucket=settings.bucket_name)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
