import asyncio
import base64
from typing import List, Sequence

from fastapi import UploadFile


async def encode_image(upload: UploadFile) -> str:
    """Read an uploaded file and return it as a data URL"""
    content = await upload.read()
    content_type = upload.content_type or "application/octet-stream"
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


async def encode_batch(uploads: Sequence[UploadFile], encode=encode_image) -> List[str]:
    # gather keeps input order regardless of which read finishes first
    return list(await asyncio.gather(*(encode(upload) for upload in uploads)))
