"""imagelink.upload -- HTTP upload of transcoded images.

* :mod:`.client` -- :class:`UploadClient`, the templated multipart ``POST``.
"""

from __future__ import annotations

from .client import UploadClient, build_headers

__all__ = [
    "UploadClient",
    "build_headers",
]
