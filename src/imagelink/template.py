"""Template engine for upload requests and responses.

Three small pure functions:

* :func:`parse_template` -- parse a JSON object template from settings.
* :func:`render_body` -- find the multipart field names marked by the
  ``$IMAGE`` and ``$KEY`` tokens.
* :func:`extract_field` -- walk a dotted path through a parsed JSON
  response, falling back to its top-level ``url``.
"""

from __future__ import annotations

import json
from typing import Any

from imagelink.errors import (
    ImageLinkRequestBuildError,
    ImageLinkResponseExtractionError,
)
from imagelink.models import FieldPlan

IMAGE_TOKEN = "$IMAGE"
KEY_TOKEN = "$KEY"

DEFAULT_IMAGE_FIELD = "image"
DEFAULT_KEY_FIELD = "key"

FALLBACK_FIELD = "url"

# Sentinel distinguishing "path did not resolve" from a JSON ``null``.
_MISSING = object()


def parse_template(text: str, name: str) -> dict[str, Any]:
    """Parse *text* as a JSON object.

    Parameters
    ----------
    text:
        Template text from the settings (e.g. the ``body`` setting).
    name:
        Setting name, used in the error message and context.

    Raises
    ------
    ImageLinkRequestBuildError
        If *text* is not valid JSON or its top level is not an object.
    """
    try:
        value = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ImageLinkRequestBuildError(
            message=f"The {name} template is not valid JSON: {exc}",
            context={"template": name, "reason": "invalid_json"},
            cause=exc,
        ) from exc
    if not isinstance(value, dict):
        raise ImageLinkRequestBuildError(
            message=f"The {name} template must be a JSON object",
            context={"template": name, "reason": "not_an_object"},
        )
    return value


def render_body(
    template: dict[str, Any],
    image_token: str = IMAGE_TOKEN,
    key_token: str = KEY_TOKEN,
) -> FieldPlan:
    """Resolve the multipart field names declared by a body template.

    Only top-level pairs are scanned; a token nested inside an object or
    list is not recognised.  The first key (in template order) whose
    value equals a token wins.  Missing tokens fall back to the
    conventional names ``image`` and ``key``.

    Examples
    --------
    >>> render_body({"file": "$IMAGE", "name": "$KEY"})
    FieldPlan(image_field='file', key_field='name')
    >>> render_body({})
    FieldPlan(image_field='image', key_field='key')
    """
    image_field = next(
        (k for k, v in template.items() if v == image_token), DEFAULT_IMAGE_FIELD
    )
    key_field = next(
        (k for k, v in template.items() if v == key_token), DEFAULT_KEY_FIELD
    )
    return FieldPlan(image_field=image_field, key_field=key_field)


def _walk(value: Any, segments: list[str]) -> Any:
    """Follow *segments* through nested dicts/lists, or return ``_MISSING``."""
    current = value
    for segment in segments:
        if isinstance(current, dict):
            if segment not in current:
                return _MISSING
            current = current[segment]
        elif isinstance(current, list):
            if not segment.isdigit() or int(segment) >= len(current):
                return _MISSING
            current = current[int(segment)]
        else:
            return _MISSING
    return current


def _as_reference(value: Any) -> str | None:
    # bool is an int subclass but "True" is never a usable reference.
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


def extract_field(response: Any, path: str) -> str:
    """Extract the reference from a parsed JSON *response*.

    *path* is split on ``.``; each segment indexes an object by key or an
    array by decimal position.  If any step fails, or the value reached
    is not a string or number, the top-level ``url`` property of
    *response* is used instead.

    Raises
    ------
    ImageLinkResponseExtractionError
        If neither the path nor the ``url`` fallback yields a value.

    Examples
    --------
    >>> extract_field({"a": {"b": "X"}}, "a.b")
    'X'
    >>> extract_field({"url": "Y"}, "bogus.path")
    'Y'
    """
    found = _as_reference(_walk(response, path.split(".")))
    if found is not None:
        return found

    fallback = _MISSING
    if isinstance(response, dict):
        fallback = response.get(FALLBACK_FIELD, _MISSING)
    found = _as_reference(fallback)
    if found is not None:
        return found

    raise ImageLinkResponseExtractionError(
        message=(
            f"Response has no value at {path!r} and no {FALLBACK_FIELD!r} field"
        ),
        context={"path": path, "reason": "field_not_found"},
    )
