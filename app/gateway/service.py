"""Upload gateway: validates requests and forwards them to the image provider."""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from starlette.datastructures import UploadFile

from ..core.config import Settings
from ..core.logging import get_logger
from ..core.results import NotFound, Outcome, Success, UpstreamFailure, ValidationFailure
from ..providers.base import ImageNotFoundError, ImageProvider, ProviderError, StoredImage, UploadOptions
from .uploads import (
    AcceptPredicate,
    FilenameStrategy,
    accept_image,
    remove_files,
    save_upload,
    temp_filename,
    upload_destination,
)

logger = get_logger(__name__)

REQUIRED_FIELDS = ("name", "email", "password")
RESOURCE_TYPE = "image"

UPLOAD_FAILED = "Failure uploading files to the image provider"
MISSING_ID = "Please provide public ID of image"


@dataclass
class UploadRequest:
    """Text fields and file parts of one multipart submission, in submission order."""
    fields: Dict[str, str] = field(default_factory=dict)
    files: List[UploadFile] = field(default_factory=list)


def _ref(image: StoredImage) -> Dict[str, str]:
    return {"id": image.public_id, "url": image.secure_url}


class UploadGateway:
    def __init__(
        self,
        settings: Settings,
        provider: ImageProvider,
        accept: AcceptPredicate = accept_image,
        filename_strategy: FilenameStrategy = temp_filename,
    ):
        self.settings = settings
        self.provider = provider
        self.accept = accept
        self.filename_strategy = filename_strategy

    @property
    def upload_options(self) -> UploadOptions:
        return UploadOptions(
            folder=self.settings.namespace,
            tags=[self.settings.upload_tag],
            resource_type=RESOURCE_TYPE,
            use_filename=True,
            unique_filename=False,
            overwrite=True,
        )

    def resolve_id(self, path_id: str) -> Optional[str]:
        """Public id for an id given relative to the namespace folder, None if it is empty."""
        path_id = path_id.strip("/")
        if not path_id:
            return None
        return f"{self.settings.namespace.strip('/')}/{path_id}"

    def _validate(self, request: UploadRequest):
        if not request.fields:
            return ValidationFailure("No field values were provided"), []
        if not all(request.fields.get(name) for name in REQUIRED_FIELDS):
            return ValidationFailure("Please provide all the details"), []
        if len(request.files) > self.settings.max_files:
            return ValidationFailure(f"Too many files, at most {self.settings.max_files} are allowed"), []

        accepted = [f for f in request.files if self.accept(f.content_type)]
        dropped = len(request.files) - len(accepted)
        if dropped:
            logger.info("non_image_files_dropped", dropped=dropped)
        for f in accepted:
            if f.size is not None and f.size > self.settings.max_file_size:
                return ValidationFailure(
                    f"File {f.filename} exceeds the {self.settings.max_file_size} byte limit"
                ), []
        if not accepted:
            return ValidationFailure("No files were uploaded"), []
        return None, accepted

    async def upload(self, request: UploadRequest) -> Outcome:
        failure, accepted = self._validate(request)
        if failure is not None:
            logger.info("upload_rejected", reason=failure.message)
            return failure

        destination = upload_destination(self.settings.upload_dir)
        options = self.upload_options
        paths: List[str] = []
        try:
            for f in accepted:
                name = self.filename_strategy(self.settings.upload_field_name, f.content_type)
                paths.append(await save_upload(f, destination, name))
            # Every call settles before the temp files go away
            results = await asyncio.gather(
                *(self.provider.upload(p, options) for p in paths), return_exceptions=True
            )
            errors = [r for r in results if isinstance(r, BaseException)]
            if errors:
                logger.error(
                    "provider_upload_failed",
                    files=len(paths),
                    failed=len(errors),
                    errors=[f"{type(e).__name__}: {e}" for e in errors],
                )
                return UpstreamFailure(UPLOAD_FAILED)
            stored: List[StoredImage] = list(results)
        finally:
            if not self.settings.keep_temp_files:
                await remove_files(paths)

        images = [_ref(image) for image in stored]
        logger.info("images_uploaded", count=len(images), public_ids=[i["id"] for i in images])
        return Success(
            "Images uploaded successfully",
            {
                "data": {
                    "name": request.fields["name"],
                    "email": request.fields["email"],
                    "password": request.fields["password"],
                    "images": images,
                }
            },
        )

    async def list_images(self) -> Outcome:
        try:
            resources = await self.provider.list_resources(self.settings.namespace, RESOURCE_TYPE)
        except ProviderError as e:
            logger.warning("provider_list_failed", error=str(e))
            return UpstreamFailure(str(e))
        return Success("Images successfully fetched", {"images": [_ref(r) for r in resources]})

    async def fetch_image(self, public_id: Optional[str]) -> Outcome:
        if not public_id:
            return ValidationFailure(MISSING_ID)
        try:
            image = await self.provider.get_resource(public_id, RESOURCE_TYPE)
        except ImageNotFoundError as e:
            return NotFound(str(e))
        except ProviderError as e:
            logger.warning("provider_fetch_failed", public_id=public_id, error=str(e))
            return UpstreamFailure(str(e))
        return Success("Image successfully fetched", {"image": _ref(image)})

    async def delete_all(self) -> Outcome:
        try:
            deleted = await self.provider.delete_resources_by_prefix(self.settings.namespace, RESOURCE_TYPE)
        except ProviderError as e:
            logger.warning("provider_bulk_delete_failed", error=str(e))
            return UpstreamFailure(str(e))
        logger.info("namespace_cleared", namespace=self.settings.namespace, deleted=deleted)
        return Success("Images successfully deleted")

    async def delete_image(self, public_id: Optional[str]) -> Outcome:
        if not public_id:
            return ValidationFailure(MISSING_ID)
        try:
            await self.provider.destroy(public_id, RESOURCE_TYPE)
        except ImageNotFoundError as e:
            return NotFound(str(e))
        except ProviderError as e:
            logger.warning("provider_delete_failed", public_id=public_id, error=str(e))
            return UpstreamFailure(str(e))
        logger.info("image_deleted", public_id=public_id)
        return Success("Image successfully deleted")
