"""Image helpers for detecting and transcoding pasted images.

Exports
-------
is_image_mime / select_image_file
    Pick the image file out of a paste event.
file_extension
    Extension used in the content key.
transcode / async_transcode
    Re-encode to WebP with Pillow.
transcoded_filename
    Rename a file to the WebP extension.
"""

from .detect import file_extension, is_image_mime, select_image_file
from .transcode import (
    TARGET_EXTENSION,
    TARGET_FORMAT,
    TARGET_MIME,
    async_transcode,
    transcode,
    transcoded_filename,
)

__all__ = [
    "TARGET_EXTENSION",
    "TARGET_FORMAT",
    "TARGET_MIME",
    "async_transcode",
    "file_extension",
    "is_image_mime",
    "select_image_file",
    "transcode",
    "transcoded_filename",
]
