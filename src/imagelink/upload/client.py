"""Async HTTP upload client.

:class:`UploadClient` performs the single request of an upload:

1. Parse the ``headers`` and ``body`` templates of the :class:`UploadConfig`.
2. Resolve the multipart field names from the body template.
3. ``POST`` the image bytes and content key as multipart form data.
4. Parse the response as JSON, whatever its content type or status.
5. Extract the reference with the configured dotted path.

There are no retries and, unless configured, no timeout: the caller
decides how long a pending upload is tolerated.
"""

from __future__ import annotations

import json as _json
import sys
import time
from typing import Any

import httpx

from imagelink.config import ImageLinkConfig, UploadConfig
from imagelink.errors import (
    ImageLinkError,
    ImageLinkRequestBuildError,
    ImageLinkResponseExtractionError,
    ImageLinkTransportError,
)
from imagelink.image.transcode import TARGET_MIME
from imagelink.observability import NoopMetricsHook, get_logger
from imagelink.template import extract_field, parse_template, render_body
from imagelink.utils.redact import redact

log = get_logger("imagelink.upload")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def build_headers(template: dict[str, Any]) -> dict[str, str]:
    """Turn a parsed headers template into request headers.

    Scalar values are sent as their text; ``null`` headers are dropped.

    Raises
    ------
    ImageLinkRequestBuildError
        If a header value is an object or array, or a header name or
        value is not ASCII (HTTP headers cannot carry it).
    """
    headers: dict[str, str] = {}
    for name, value in template.items():
        if value is None:
            continue
        if isinstance(value, (dict, list)):
            raise ImageLinkRequestBuildError(
                message=f"Header {name!r} must be a string, not {type(value).__name__}",
                context={"template": "headers", "reason": "non_scalar_header", "header": name},
            )
        if isinstance(value, bool):
            text = "true" if value else "false"
        else:
            text = str(value)
        try:
            name.encode("ascii")
            text.encode("ascii")
        except UnicodeEncodeError as exc:
            raise ImageLinkRequestBuildError(
                message=f"Header {name!r} contains non-ASCII characters",
                context={"template": "headers", "reason": "non_ascii_header", "header": name},
                cause=exc,
            ) from exc
        headers[name] = text
    return headers


def _dump_exchange(
    url: str,
    headers: dict[str, str],
    form: dict[str, Any],
    response_status: int | None,
    response_body: Any | None,
) -> None:
    """Write a redacted debug dump of the request/response to stderr."""
    dump: dict[str, Any] = {
        "method": "POST",
        "url": url,
        "headers": headers,
        "form": form,
    }
    if response_status is not None:
        dump["response_status"] = response_status
    if response_body is not None:
        dump["response_body"] = response_body
    print(
        _json.dumps(redact(dump), indent=2, default=str),
        file=sys.stderr,
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class UploadClient:
    """Asynchronous uploader for pasted images.

    Parameters
    ----------
    config:
        Runtime options (timeout, proxy, metrics, debug dumps).  The
        endpoint itself comes from the :class:`UploadConfig` passed to
        each :meth:`upload` call.
    transport:
        Optional ``httpx`` transport, e.g. :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        config: ImageLinkConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or ImageLinkConfig()
        self._metrics = (
            self._config.metrics if self._config.metrics is not None else NoopMetricsHook()
        )
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.timeout_seconds),
            proxy=self._config.http_proxy,
            transport=transport,
        )

    # -- public API --------------------------------------------------------

    async def upload(
        self,
        config: UploadConfig,
        data: bytes,
        filename: str,
        key: str,
        content_type: str = TARGET_MIME,
    ) -> str:
        """Upload one image and return the reference found in the response.

        Parameters
        ----------
        config:
            Endpoint settings, read once at call time.
        data:
            Encoded image bytes.
        filename:
            File name sent with the image part.
        key:
            Content key sent under the key field.
        content_type:
            MIME type of the image part.

        Returns
        -------
        str
            The extracted reference (usually a URL).

        Raises
        ------
        ImageLinkRequestBuildError
            If a template is not a JSON object.
        ImageLinkTransportError
            On any network-level failure.
        ImageLinkResponseExtractionError
            If the body is not JSON or holds no reference.
        """
        t0 = time.monotonic()
        try:
            reference = await self._upload(config, data, filename, key, content_type)
        except ImageLinkError as exc:
            self._metrics.increment(
                "imagelink.upload_failure_total",
                tags={"code": getattr(exc.code, "value", exc.code)},
            )
            raise
        self._metrics.increment("imagelink.upload_success_total")
        self._metrics.timing(
            "imagelink.upload_duration_ms",
            (time.monotonic() - t0) * 1000,
        )
        return reference

    async def close(self) -> None:
        """Close the underlying async HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> UploadClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- internals ---------------------------------------------------------

    async def _upload(
        self,
        config: UploadConfig,
        data: bytes,
        filename: str,
        key: str,
        content_type: str,
    ) -> str:
        body_template = parse_template(config.body, "body")
        headers = build_headers(parse_template(config.headers, "headers"))
        plan = render_body(body_template)

        url = config.api_url
        form = {plan.key_field: key}
        files = {plan.image_field: (filename, data, content_type)}

        log.info(
            "Uploading image",
            extra={
                "extra_fields": {
                    "op": "upload",
                    "url": url,
                    "key": key,
                    "image_field": plan.image_field,
                    "key_field": plan.key_field,
                    "size_bytes": len(data),
                }
            },
        )

        try:
            response = await self._client.post(url, headers=headers, data=form, files=files)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.warning(
                "Upload network error",
                extra={"extra_fields": {"op": "upload", "url": url, "error": str(exc)}},
            )
            raise ImageLinkTransportError(
                message=f"Network error on POST {url}: {exc}",
                context={"url": url},
                cause=exc,
            ) from exc

        if not response.is_success:
            log.warning(
                "Upload endpoint returned an error status",
                extra={
                    "extra_fields": {
                        "op": "upload",
                        "url": url,
                        "status_code": response.status_code,
                    }
                },
            )

        try:
            payload = response.json()
        except ValueError as exc:
            if self._config.debug_dump_payload:
                _dump_exchange(
                    url, headers, {**form, **{plan.image_field: data}},
                    response.status_code, response.text[:1000],
                )
            raise ImageLinkResponseExtractionError(
                message=f"Upload response from {url} is not JSON (status {response.status_code})",
                context={
                    "path": config.target,
                    "reason": "invalid_json",
                    "status_code": response.status_code,
                },
                cause=exc,
            ) from exc

        if self._config.debug_dump_payload:
            _dump_exchange(
                url, headers, {**form, **{plan.image_field: data}},
                response.status_code, payload,
            )

        try:
            reference = extract_field(payload, config.target)
        except ImageLinkResponseExtractionError as exc:
            exc.context["status_code"] = response.status_code
            raise

        log.info(
            "Upload complete",
            extra={
                "extra_fields": {
                    "op": "upload",
                    "key": key,
                    "status_code": response.status_code,
                    "reference": reference,
                }
            },
        )
        return reference
