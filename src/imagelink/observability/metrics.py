"""Metrics hook protocol and no-op default implementation.

imagelink emits counters and timings at the points of a paste session
that matter operationally.  By default a :class:`NoopMetricsHook` is
used.  Any object satisfying :class:`MetricsHook` can be passed as
``ImageLinkConfig(metrics=...)`` to route them to StatsD, Prometheus and
similar backends.

Emitted metric names:

* ``imagelink.paste_sessions_total``   -- counter, tagged ``outcome``
* ``imagelink.transcode_duration_ms``  -- timing
* ``imagelink.upload_duration_ms``     -- timing
* ``imagelink.upload_success_total``   -- counter
* ``imagelink.upload_failure_total``   -- counter, tagged ``code``
* ``imagelink.pending_uploads``        -- gauge
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    All methods accept an optional *tags* dict of string keys and values.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to an absolute value."""
        ...


class NoopMetricsHook:
    """Metrics implementation that silently discards all data points.

    Used when no backend is configured, so call sites never need
    ``if metrics is not None`` guards.
    """

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass
