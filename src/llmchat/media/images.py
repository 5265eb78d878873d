"""
Image loading for multi-modal prompts.

URL delivery passes the source straight through; inline delivery loads the
bytes (local file or http(s) URL), downsizes anything over MAX_IMAGE_BYTES,
and base64-encodes the result.
"""
from __future__ import annotations
import base64
import io
import logging
from pathlib import Path
from typing import List, Sequence

import httpx
from PIL import Image

from llmchat.core.ports import ImageDelivery
from llmchat.core.wire import Content, ImageInline, ImageURL, Text

log = logging.getLogger(__name__)

# 5 MiB, the per-image cap for inline images
MAX_IMAGE_BYTES = 5 * 1024 * 1024

# Each downscale pass shrinks both sides by at least this factor
_MIN_SHRINK = 0.9


def _is_url(source: str) -> bool:
    return source.startswith(("https://", "http://"))


def detect_media_type(data: bytes) -> str:
    """MIME type from Pillow's format sniffing, e.g. 'image/png'."""
    with Image.open(io.BytesIO(data)) as img:
        fmt = img.format or "PNG"
    return Image.MIME.get(fmt, f"image/{fmt.lower()}")


def downsize(data: bytes, max_bytes: int = MAX_IMAGE_BYTES) -> bytes:
    """Re-encode at smaller dimensions until the encoded size fits."""
    with Image.open(io.BytesIO(data)) as src:
        fmt = src.format or "PNG"
        img = src.copy()

    out = data
    scale = (max_bytes / len(data)) ** 0.5
    while len(out) > max_bytes:
        width = max(1, int(img.width * scale))
        height = max(1, int(img.height * scale))
        img = img.resize((width, height), Image.Resampling.LANCZOS)
        buf = io.BytesIO()
        if fmt == "JPEG":
            img.convert("RGB").save(buf, format="JPEG", quality=85)
        else:
            img.save(buf, format=fmt, optimize=True)
        out = buf.getvalue()
        scale = min(_MIN_SHRINK, (max_bytes / len(out)) ** 0.5)
        if width == 1 and height == 1:
            break
    return out


def load_image(source: str, *, max_bytes: int = MAX_IMAGE_BYTES, timeout: float = 60.0) -> bytes:
    if _is_url(source):
        rsp = httpx.get(source, follow_redirects=True, timeout=timeout)
        rsp.raise_for_status()
        data = rsp.content
    else:
        data = Path(source).read_bytes()

    if len(data) > max_bytes:
        log.info("re-sizing image path=%s bytes=%d", source, len(data))
        data = downsize(data, max_bytes)
    return data


def image_part(source: str, delivery: ImageDelivery) -> Content:
    if delivery == "url":
        return ImageURL(url=source)
    data = load_image(source)
    return ImageInline(
        media_type=detect_media_type(data),
        data=base64.b64encode(data).decode("ascii"),
    )


def build_user_content(prompt: str, images: Sequence[str], delivery: ImageDelivery) -> List[Content]:
    """Text first (omitted when empty), then one part per image in the order given."""
    parts: List[Content] = [Text(prompt)] if prompt else []
    parts.extend(image_part(src, delivery) for src in images)
    return parts
