"""S3-backed image provider.

Objects are keyed `<resource_type>/<public_id>`, so `image/users/avatar_1`
holds the image whose public id is `users/avatar_1`. Each object carries the
probed format and dimensions as metadata and the upload tags as object tags.
"""
import asyncio
import mimetypes
import os
import uuid
from io import BytesIO
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlencode

from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image

from ..core.config import Settings
from ..core.logging import get_logger
from ..providers.base import (
    ImageNotFoundError,
    ImageProvider,
    ProviderError,
    StoredImage,
    UploadOptions,
)
from .clients import s3 as s3_client_factory

logger = get_logger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_DELETE_BATCH = 1000


def _probe_image(data_bytes: bytes) -> Dict[str, Any]:
    """Format and dimensions of an image, or an empty dict if Pillow can't read it."""
    try:
        with Image.open(BytesIO(data_bytes)) as img:
            width, height = img.size
            return {"format": (img.format or "").lower() or None, "width": width, "height": height}
    except Exception:
        return {}


def _content_type(path: str, fmt: Optional[str]) -> str:
    if fmt:
        mime = Image.MIME.get(fmt.upper())
        if mime:
            return mime
    guessed, _ = mimetypes.guess_type(path)
    return guessed or "application/octet-stream"


def _int_or_none(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


class S3ImageProvider(ImageProvider):
    def __init__(self, settings: Settings):
        self.settings = settings
        self.bucket = settings.bucket_name
        self._s3 = None

    def _client(self):
        # boto3 clients are thread safe, creating them is not
        if self._s3 is None:
            self._s3 = s3_client_factory(self.settings)
        return self._s3

    def _key(self, public_id: str, resource_type: str) -> str:
        return f"{resource_type}/{public_id}"

    def public_url(self, key: str) -> str:
        path = quote(key, safe="/")
        if self.settings.public_base_url:
            return f"{self.settings.public_base_url.rstrip('/')}/{path}"
        if self.settings.aws_endpoint_url:
            return f"{self.settings.aws_endpoint_url.rstrip('/')}/{self.bucket}/{path}"
        return f"https://{self.bucket}.s3.{self.settings.aws_region}.amazonaws.com/{path}"

    def _public_id_for(self, path: str, options: UploadOptions) -> str:
        stem = os.path.splitext(os.path.basename(path))[0] if options.use_filename else uuid.uuid4().hex
        if options.use_filename and options.unique_filename:
            stem = f"{stem}_{uuid.uuid4().hex[:6]}"
        folder = options.folder.strip("/")
        return f"{folder}/{stem}" if folder else stem

    def _from_head(self, public_id: str, resource_type: str, head: Dict[str, Any], tags: List[str]) -> StoredImage:
        meta = head.get("Metadata") or {}
        return StoredImage(
            public_id=public_id,
            secure_url=self.public_url(self._key(public_id, resource_type)),
            resource_type=resource_type,
            format=meta.get("format"),
            bytes=head.get("ContentLength"),
            width=_int_or_none(meta.get("width")),
            height=_int_or_none(meta.get("height")),
            tags=tags,
        )

    def _head(self, s3, public_id: str, resource_type: str) -> Dict[str, Any]:
        try:
            return s3.head_object(Bucket=self.bucket, Key=self._key(public_id, resource_type))
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                raise ImageNotFoundError(f"Image {public_id} not found") from e
            raise

    def _upload_sync(self, s3, path: str, options: UploadOptions) -> StoredImage:
        public_id = self._public_id_for(path, options)
        key = self._key(public_id, options.resource_type)

        if not options.overwrite:
            try:
                head = self._head(s3, public_id, options.resource_type)
                return self._from_head(public_id, options.resource_type, head, list(options.tags))
            except ImageNotFoundError:
                pass

        with open(path, "rb") as fh:
            data_bytes = fh.read()
        probe = _probe_image(data_bytes)
        metadata = {k: str(v) for k, v in probe.items() if v is not None}

        params: Dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data_bytes,
            "ContentType": _content_type(path, probe.get("format")),
            "Metadata": metadata,
        }
        if options.tags:
            params["Tagging"] = urlencode({tag: "true" for tag in options.tags})
        s3.put_object(**params)

        return StoredImage(
            public_id=public_id,
            secure_url=self.public_url(key),
            resource_type=options.resource_type,
            format=probe.get("format"),
            bytes=len(data_bytes),
            width=probe.get("width"),
            height=probe.get("height"),
            tags=list(options.tags),
        )

    def _list_sync(self, s3, prefix: str, resource_type: str) -> List[StoredImage]:
        root = f"{resource_type}/"
        items: List[StoredImage] = []
        paginator = s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=root + prefix):
            for obj in page.get("Contents", []):
                key = obj["Key"]
                items.append(
                    StoredImage(
                        public_id=key[len(root):],
                        secure_url=self.public_url(key),
                        resource_type=resource_type,
                        bytes=obj.get("Size"),
                    )
                )
        return items

    def _get_sync(self, s3, public_id: str, resource_type: str) -> StoredImage:
        head = self._head(s3, public_id, resource_type)
        tagging = s3.get_object_tagging(Bucket=self.bucket, Key=self._key(public_id, resource_type))
        tags = [t["Key"] for t in tagging.get("TagSet", [])]
        return self._from_head(public_id, resource_type, head, tags)

    def _destroy_sync(self, s3, public_id: str, resource_type: str) -> None:
        self._head(s3, public_id, resource_type)
        s3.delete_object(Bucket=self.bucket, Key=self._key(public_id, resource_type))

    def _delete_prefix_sync(self, s3, prefix: str, resource_type: str) -> int:
        keys = [{"Key": self._key(item.public_id, resource_type)} for item in self._list_sync(s3, prefix, resource_type)]
        for start in range(0, len(keys), _DELETE_BATCH):
            resp = s3.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": keys[start:start + _DELETE_BATCH], "Quiet": True},
            )
            errors = resp.get("Errors") or []
            if errors:
                first = errors[0]
                raise ProviderError(f"Failed to delete {first.get('Key')}: {first.get('Message')}")
        return len(keys)

    async def _run(self, fn, *args):
        s3 = self._client()
        try:
            return await asyncio.to_thread(fn, s3, *args)
        except ClientError as e:
            message = e.response.get("Error", {}).get("Message") or str(e)
            raise ProviderError(message) from e
        except BotoCoreError as e:
            raise ProviderError(str(e)) from e

    async def upload(self, path: str, options: UploadOptions) -> StoredImage:
        image = await self._run(self._upload_sync, path, options)
        logger.debug("s3_object_stored", public_id=image.public_id, bytes=image.bytes)
        return image

    async def list_resources(self, prefix: str, resource_type: str = "image") -> List[StoredImage]:
        return await self._run(self._list_sync, prefix, resource_type)

    async def get_resource(self, public_id: str, resource_type: str = "image") -> StoredImage:
        return await self._run(self._get_sync, public_id, resource_type)

    async def destroy(self, public_id: str, resource_type: str = "image") -> None:
        await self._run(self._destroy_sync, public_id, resource_type)

    async def delete_resources_by_prefix(self, prefix: str, resource_type: str = "image") -> int:
        deleted = await self._run(self._delete_prefix_sync, prefix, resource_type)
        logger.info("s3_prefix_deleted", prefix=prefix, deleted=deleted)
        return deleted
