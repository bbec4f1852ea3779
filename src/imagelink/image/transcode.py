"""Transcode pasted images to WebP.

The target container is fixed: every pasted image is re-encoded to WebP
with Pillow before upload.  Decoding and encoding are CPU bound, so the
async entry point runs them in a worker thread.
"""

from __future__ import annotations

import asyncio
import io
import re
import time

from PIL import Image, UnidentifiedImageError

from imagelink.config import MAX_QUALITY
from imagelink.errors import ImageLinkTranscodeError
from imagelink.models import ClipboardFile, TranscodedImage
from imagelink.observability import get_logger

log = get_logger("imagelink.transcode")

TARGET_FORMAT = "WEBP"
TARGET_MIME = "image/webp"
TARGET_EXTENSION = "webp"

_SUFFIX_RE = re.compile(r"\.[^/.]+$")

# Modes the WebP encoder accepts as-is.
_WEBP_MODES = frozenset({"RGB", "RGBA"})


def transcoded_filename(name: str) -> str:
    """Swap the final suffix of *name* for the target extension.

    >>> transcoded_filename("image.png")
    'image.webp'
    >>> transcoded_filename("image")
    'image'
    """
    return _SUFFIX_RE.sub(f".{TARGET_EXTENSION}", name)


def transcode(data: bytes, quality: int = MAX_QUALITY) -> bytes:
    """Re-encode *data* as WebP.

    Parameters
    ----------
    data:
        Encoded image bytes in any format Pillow can read.
    quality:
        WebP quality, 1-100.

    Returns
    -------
    bytes
        The WebP-encoded image.

    Raises
    ------
    ImageLinkTranscodeError
        If *data* is empty or cannot be decoded or encoded.
    """
    context = {"size_bytes": len(data), "target_format": TARGET_FORMAT}
    if not data:
        raise ImageLinkTranscodeError(
            message="Image is empty",
            context=context,
        )

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.mode not in _WEBP_MODES:
                has_alpha = img.mode in ("LA", "PA", "P") or "transparency" in img.info
                img = img.convert("RGBA" if has_alpha else "RGB")
            out = io.BytesIO()
            img.save(out, format=TARGET_FORMAT, quality=quality)
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        ValueError,
    ) as exc:
        raise ImageLinkTranscodeError(
            message=f"Cannot convert image to {TARGET_FORMAT}: {exc}",
            context=context,
            cause=exc,
        ) from exc

    return out.getvalue()


async def async_transcode(
    source: ClipboardFile,
    quality: int = MAX_QUALITY,
) -> TranscodedImage:
    """Transcode a clipboard file off the event loop.

    Returns
    -------
    TranscodedImage
        WebP bytes together with the renamed file name.
    """
    t0 = time.monotonic()
    data = await asyncio.to_thread(transcode, source.data, quality)
    log.debug(
        "Image transcoded",
        extra={
            "extra_fields": {
                "op": "transcode",
                "source_name": source.name,
                "source_mime": source.mime_type,
                "size_in": len(source.data),
                "size_out": len(data),
                "elapsed_ms": round((time.monotonic() - t0) * 1000, 2),
            }
        },
    )
    return TranscodedImage(
        filename=transcoded_filename(source.name),
        mime_type=TARGET_MIME,
        data=data,
    )
