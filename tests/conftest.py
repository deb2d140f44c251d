import asyncio
import os
import sys
from typing import Dict, List, Optional, Set

import pytest

# Ensure project root on sys.path so `import app...` works
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from app.core.config import Settings
from app.providers.base import (
    ImageNotFoundError,
    ImageProvider,
    ProviderError,
    StoredImage,
    UploadOptions,
)


class RecordingProvider(ImageProvider):
    """In-memory provider that records every call made to it."""

    def __init__(self, base_url: str = "https://img.example.test"):
        self.base_url = base_url
        self.calls: List[tuple] = []
        self.store: Dict[str, StoredImage] = {}
        self.failing_uploads: Set[int] = set()
        self.upload_delays: Dict[int, float] = {}
        self.error: Optional[ProviderError] = None
        self.seen_paths: List[str] = []
        self._uploads = 0

    def _maybe_fail(self):
        if self.error is not None:
            raise self.error

    async def upload(self, path: str, options: UploadOptions) -> StoredImage:
        index = self._uploads
        self._uploads += 1
        self.calls.append(("upload", path, options))
        assert os.path.exists(path), "temporary file must exist while uploading"
        self.seen_paths.append(path)
        await asyncio.sleep(self.upload_delays.get(index, 0))
        if index in self.failing_uploads:
            raise ProviderError(f"upload {index} rejected")
        stem = os.path.splitext(os.path.basename(path))[0]
        public_id = f"{options.folder}/{stem}"
        image = StoredImage(
            public_id=public_id,
            secure_url=f"{self.base_url}/{options.resource_type}/{public_id}",
            resource_type=options.resource_type,
            tags=list(options.tags),
        )
        self.store[public_id] = image
        return image

    async def list_resources(self, prefix: str, resource_type: str = "image") -> List[StoredImage]:
        self.calls.append(("list", prefix, resource_type))
        self._maybe_fail()
        return [img for pid, img in self.store.items() if pid.startswith(prefix) and img.resource_type == resource_type]

    async def get_resource(self, public_id: str, resource_type: str = "image") -> StoredImage:
        self.calls.append(("get", public_id, resource_type))
        self._maybe_fail()
        if public_id not in self.store:
            raise ImageNotFoundError(f"Image {public_id} not found")
        return self.store[public_id]

    async def destroy(self, public_id: str, resource_type: str = "image") -> None:
        self.calls.append(("destroy", public_id, resource_type))
        self._maybe_fail()
        if public_id not in self.store:
            raise ImageNotFoundError(f"Image {public_id} not found")
        del self.store[public_id]

    async def delete_resources_by_prefix(self, prefix: str, resource_type: str = "image") -> int:
        self.calls.append(("delete_prefix", prefix, resource_type))
        self._maybe_fail()
        doomed = [pid for pid in self.store if pid.startswith(prefix)]
        for pid in doomed:
            del self.store[pid]
        return len(doomed)


@pytest.fixture
def provider():
    return RecordingProvider()


@pytest.fixture
def settings(tmp_path):
    return Settings(upload_dir=str(tmp_path / "uploads"))
