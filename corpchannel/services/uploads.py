"""
Disk storage for uploaded media.
"""
import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from fastapi import UploadFile

from corpchannel.core.logging import get_logger
from corpchannel.schemas.message import MessageType

logger = get_logger(__name__)


@dataclass
class StoredUpload:
    """Where an uploaded file ended up."""
    media_url: str
    media_filename: str
    path: Path


def generate_upload_filename(original_filename: Optional[str]) -> str:
    """Randomized name: epoch millis, a random suffix and the original extension."""
    extension = Path(original_filename or "").suffix
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{unique_suffix}{extension}"


def infer_message_type(content_type: Optional[str]) -> MessageType:
    """Pick a message type from the upload's MIME type."""
    content_type = (content_type or "").lower()
    if content_type.startswith("image/"):
        return MessageType.IMAGE
    if content_type.startswith("video/"):
        return MessageType.VIDEO
    return MessageType.FILE


async def save_upload(
    upload: UploadFile,
    upload_dir: Union[str, Path],
    url_prefix: str = "/uploads",
) -> StoredUpload:
    """Write ``upload`` into ``upload_dir`` and return its servable path."""
    directory = Path(upload_dir)
    directory.mkdir(parents=True, exist_ok=True)
    
    name = generate_upload_filename(upload.filename)
    file_path = directory / name
    
    with file_path.open("wb") as f:
        f.write(await upload.read())
    
    stored = StoredUpload(
        media_url=f"{url_prefix.rstrip('/')}/{name}",
        media_filename=upload.filename or name,
        path=file_path,
    )
    logger.info(
        "Upload stored",
        extra={"extra_data": {"media_url": stored.media_url, "media_filename": stored.media_filename}}
    )
    return stored
