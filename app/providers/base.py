"""Contract between the gateway and the image-storage provider."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


class ProviderError(Exception):
    """Any failure reported by the provider; the message is shown to clients."""


class ImageNotFoundError(ProviderError):
    pass


@dataclass(frozen=True)
class UploadOptions:
    folder: str
    tags: List[str] = field(default_factory=list)
    resource_type: str = "image"
    use_filename: bool = True
    unique_filename: bool = False
    overwrite: bool = True


@dataclass(frozen=True)
class StoredImage:
    public_id: str
    secure_url: str
    resource_type: str = "image"
    format: Optional[str] = None
    bytes: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    tags: List[str] = field(default_factory=list)


class ImageProvider(ABC):
    """Hosted image storage addressed by public id.

    A public id is a slash separated path such as `users/avatar_1`; the
    leading segments act as the folder used for prefix listing and deletion.
    """

    @abstractmethod
    async def upload(self, path: str, options: UploadOptions) -> StoredImage:
        """Upload the local file at `path`."""

    @abstractmethod
    async def list_resources(self, prefix: str, resource_type: str = "image") -> List[StoredImage]:
        """Every stored resource of `resource_type` whose public id starts with `prefix`."""

    @abstractmethod
    async def get_resource(self, public_id: str, resource_type: str = "image") -> StoredImage:
        """Raises ImageNotFoundError when nothing is stored under `public_id`."""

    @abstractmethod
    async def destroy(self, public_id: str, resource_type: str = "image") -> None:
        """Raises ImageNotFoundError when nothing is stored under `public_id`."""

    @abstractmethod
    async def delete_resources_by_prefix(self, prefix: str, resource_type: str = "image") -> int:
        """Delete everything under `prefix` and return how many resources went."""
