"""Clipboard image detection.

Decides which file of a paste event is an image and what extension its
content key will use.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from imagelink.errors import ImageLinkValidationError
from imagelink.models import ClipboardFile

_IMAGE_MIME_RE = re.compile(r"^image/", re.IGNORECASE)


def is_image_mime(mime_type: str | None) -> bool:
    """Return ``True`` if *mime_type* names an image (``image/*``)."""
    return bool(mime_type) and _IMAGE_MIME_RE.match(mime_type) is not None


def select_image_file(files: Iterable[ClipboardFile]) -> ClipboardFile:
    """Return the first clipboard file with an image MIME type.

    Raises
    ------
    ImageLinkValidationError
        If no file is an image.
    """
    seen: list[str] = []
    for item in files:
        if is_image_mime(item.mime_type):
            return item
        seen.append(item.mime_type)
    raise ImageLinkValidationError(
        message="Clipboard does not contain an image",
        context={"reason": "no_image_file", "mime_types": seen},
    )


def file_extension(filename: str) -> str | None:
    """Return the text after the last dot of *filename*, or ``None``.

    >>> file_extension("cat.webp")
    'webp'
    >>> file_extension("cat") is None
    True
    >>> file_extension("cat.") is None
    True
    """
    base = filename.rsplit("/", 1)[-1]
    if "." not in base:
        return None
    extension = base.rsplit(".", 1)[1]
    return extension or None
