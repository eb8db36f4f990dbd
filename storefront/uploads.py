from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence

from fastapi import UploadFile

from .errors import UploadTooLarge, UploadTypeRejected


@dataclass
class ImageUpload:
    filename: str
    content_type: str
    data: bytes


async def read_image_upload(upload: Optional[UploadFile], settings) -> Optional[ImageUpload]:
    """Read one multipart image part; None when the part is missing or empty."""
    if upload is None or not upload.filename:
        return None
    data = await upload.read(settings.max_upload_bytes + 1)
    if not data:
        return None
    if len(data) > settings.max_upload_bytes:
        raise UploadTooLarge()
    content_type = (upload.content_type or "").lower()
    if content_type not in settings.allowed_image_types:
        raise UploadTypeRejected()
    return ImageUpload(filename=upload.filename, content_type=content_type, data=data)


async def read_image_uploads(uploads: Sequence[Optional[UploadFile]], settings) -> List[ImageUpload]:
    out: List[ImageUpload] = []
    for u in uploads:
        img = await read_image_upload(u, settings)
        if img is not None:
            out.append(img)
    return out
