"""File acceptance and temporary storage for multipart uploads."""

import os
import re
import time
import uuid
from pathlib import Path
from typing import Callable, Iterable, Optional

import aiofiles
import aiofiles.os
from starlette.datastructures import UploadFile

from ..core.logging import get_logger

logger = get_logger(__name__)

AcceptPredicate = Callable[[Optional[str]], bool]
FilenameStrategy = Callable[[str, Optional[str]], str]

_CHUNK = 64 * 1024


def accept_image(content_type: Optional[str]) -> bool:
    """True for any declared `image/*` media type."""
    if not content_type:
        return False
    return content_type.split(";", 1)[0].strip().lower().startswith("image/")


def temp_filename(field_name: str, content_type: Optional[str]) -> str:
    """`<field>_<epoch ms>_<8 hex>.<subtype>`, e.g. `profilePhotos_1700000000000_1a2b3c4d.png`."""
    subtype = (content_type or "").split(";", 1)[0].split("/")[-1]
    ext = re.sub(r"[^A-Za-z0-9]", "", subtype).lower() or "bin"
    return f"{field_name}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.{ext}"


def upload_destination(upload_dir: str) -> Path:
    path = Path(upload_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


async def save_upload(file: UploadFile, destination: Path, filename: str) -> str:
    """Stream an uploaded part to `destination/filename` and return the path."""
    target = destination / filename
    await file.seek(0)
    async with aiofiles.open(target, "wb") as out:
        while True:
            chunk = await file.read(_CHUNK)
            if not chunk:
                break
            await out.write(chunk)
    return str(target)


async def remove_files(paths: Iterable[str]) -> None:
    for path in paths:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning("temp_file_cleanup_failed", path=os.fspath(path), error=str(e))
