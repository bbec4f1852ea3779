"""Header / payload redaction for safe debug output.

Upload headers are user-supplied and usually carry a static credential
(``Authorization: Bearer ...``, ``X-Api-Key: ...``).  Before a request or
response is written to a debug dump the :func:`redact` function must be
applied:

* Values under **sensitive keys** (any key containing ``token``,
  ``secret``, ``authorization``, ...) are masked.
* ``Bearer <credential>`` patterns are masked wherever they appear.
* **Bytes** values are replaced with ``<binary:N_bytes>``.
"""

from __future__ import annotations

import copy
import re
from typing import Any

# Substrings: if any of these appear in a key name (case-insensitive), the
# value is redacted.
_SENSITIVE_KEY_PATTERNS: frozenset[str] = frozenset({
    "token",
    "secret",
    "password",
    "credential",
    "authorization",
    "cookie",
    "private_key",
    "api_key",
    "api-key",
})

_BEARER_RE = re.compile(r"(Bearer\s+)\S+", re.IGNORECASE)


def _mask(value: str) -> str:
    """Mask a credential, keeping its last four characters when long enough."""
    if _BEARER_RE.search(value):
        return _BEARER_RE.sub(lambda m: f"{m.group(1)}<redacted>", value)
    if len(value) >= 12:
        return f"<redacted:...{value[-4:]}>"
    return "<redacted>"


def _redact_value(value: Any) -> Any:
    if isinstance(value, dict):
        return _redact_dict(value)
    if isinstance(value, (list, tuple)):
        return [_redact_value(item) for item in value]
    if isinstance(value, (bytes, bytearray)):
        return f"<binary:{len(value)}_bytes>"
    if isinstance(value, str):
        return _BEARER_RE.sub(lambda m: f"{m.group(1)}<redacted>", value)
    return value


def _redact_dict(d: dict) -> dict:
    result: dict = {}
    for key, value in d.items():
        key_lower = key.lower() if isinstance(key, str) else ""
        if any(pat in key_lower for pat in _SENSITIVE_KEY_PATTERNS):
            result[key] = _mask(value) if isinstance(value, str) else "<redacted>"
        else:
            result[key] = _redact_value(value)
    return result


def redact(payload: dict) -> dict:
    """Return a deep copy of *payload* with sensitive data redacted.

    The original *payload* is never mutated.

    Examples
    --------
    >>> redact({"Authorization": "Bearer abc123"})
    {'Authorization': 'Bearer <redacted>'}
    >>> redact({"image": b"RIFF...."})
    {'image': '<binary:8_bytes>'}
    """
    return _redact_dict(copy.deepcopy(payload))
