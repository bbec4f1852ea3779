"""Full error hierarchy for the imagelink pipeline.

Every public error class inherits from ImageLinkError. Each carries a
machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause`` (chained exception).

Error codes are defined as a :class:`str` enum so that they serialise
naturally to JSON log lines and can be matched with simple ``==``
comparisons.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error the pipeline can raise."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_EXTENSION = "MISSING_EXTENSION"
    TRANSCODE_ERROR = "TRANSCODE_ERROR"
    UPLOAD_ERROR = "UPLOAD_ERROR"
    REQUEST_BUILD_ERROR = "REQUEST_BUILD_ERROR"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    RESPONSE_EXTRACTION_ERROR = "RESPONSE_EXTRACTION_ERROR"
    SETTINGS_ERROR = "SETTINGS_ERROR"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class ImageLinkError(Exception):
    """Base exception for all imagelink errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A user-presentable description of what went wrong.  This is the
        text shown in editor notices.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys and expected types are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Paste-path errors (raised before any placeholder is inserted)
# ---------------------------------------------------------------------------

class ImageLinkValidationError(ImageLinkError):
    """The paste event does not carry a usable image.

    Handled silently by the orchestrator: no notice, no document change.

    Context keys: ``reason``, ``mime_types``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class ImageLinkMissingExtensionError(ImageLinkError):
    """No file extension could be derived for the content key.

    Context keys: ``filename``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.MISSING_EXTENSION,
            message=message,
            context=context,
            cause=cause,
        )


class ImageLinkTranscodeError(ImageLinkError):
    """The image codec could not decode or re-encode the pasted bytes.

    Context keys: ``size_bytes``, ``target_format``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.TRANSCODE_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Upload errors (raised after the placeholder is in the document)
# ---------------------------------------------------------------------------

class ImageLinkUploadError(ImageLinkError):
    """Base class for upload errors.

    Context varies by subclass.
    """

    def __init__(
        self,
        code: str = ErrorCode.UPLOAD_ERROR,
        message: str = "Upload error",
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            context=context,
            cause=cause,
        )


class ImageLinkRequestBuildError(ImageLinkUploadError):
    """A headers or body template is not a valid JSON object.

    Context keys: ``template``, ``reason``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.REQUEST_BUILD_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class ImageLinkTransportError(ImageLinkUploadError):
    """A transport-level failure occurred (DNS, connection reset, timeout).

    Context keys: ``url``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.TRANSPORT_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class ImageLinkResponseExtractionError(ImageLinkUploadError):
    """The upload response did not yield a reference.

    Raised when the body is not JSON, or when neither the configured
    field path nor the top-level ``url`` fallback resolves to a value.

    Context keys: ``path``, ``reason``, ``status_code``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.RESPONSE_EXTRACTION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Settings errors
# ---------------------------------------------------------------------------

class ImageLinkSettingsError(ImageLinkError):
    """Persisted settings could not be read or written.

    Context keys: ``path``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.SETTINGS_ERROR,
            message=message,
            context=context,
            cause=cause,
        )
