#!/usr/bin/env python3
"""
Metrics Collection

Two collectors with different scopes:

- ``CacheMetrics``: process-local hit/miss counters with a derived hit rate.
  Read by the diagnostics endpoint and by tests; reset only on restart (or
  explicitly in tests). Not globally consistent across processes.
- ``MetricsCollector``: prometheus-client mirror of cache and rate-limit
  events, exported in Prometheus text format.

Architectural Decision: prometheus-client for industry-standard metrics
- Compatible with Grafana dashboards
- Labels separate genuine allows from fail-open allows
"""

import threading
from dataclasses import dataclass

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Info,
    generate_latest,
)

from dermi_cache.core.config.settings import get_settings
from dermi_cache.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Process-local cache metrics
# ============================================================================


@dataclass(frozen=True)
class CacheMetricsSnapshot:
    """Immutable view of the cache counters at one point in time."""

    hits: int
    misses: int
    hit_rate: float

    @property
    def total(self) -> int:
        return self.hits + self.misses

    def to_dict(self) -> dict[str, float | int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "total_requests": self.total,
            "hit_rate": round(self.hit_rate, 4),
        }


class CacheMetrics:
    """
    Hit/miss counters for the cache-aside orchestrator.

    Counters only grow; callers get snapshots, never the counters. The lock
    keeps increments exact when the collector is shared with worker threads;
    in pure asyncio code there is no await between read and write anyway.
    """

    def __init__(self):
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

    def record_hit(self) -> None:
        with self._lock:
            self._hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self._misses += 1

    def snapshot(self) -> CacheMetricsSnapshot:
        """
        Current counters and hit rate.

        ``hit_rate = hits / (hits + misses)``, 0.0 before any observation.
        """
        with self._lock:
            hits, misses = self._hits, self._misses
        total = hits + misses
        return CacheMetricsSnapshot(
            hits=hits,
            misses=misses,
            hit_rate=hits / total if total else 0.0,
        )

    def reset(self) -> None:
        """Zero the counters (tests only)."""
        with self._lock:
            self._hits = 0
            self._misses = 0


_cache_metrics: CacheMetrics | None = None


def get_cache_metrics() -> CacheMetrics:
    """Get the process-wide cache metrics collector."""
    global _cache_metrics
    if _cache_metrics is None:
        _cache_metrics = CacheMetrics()
    return _cache_metrics


# ============================================================================
# Prometheus Metric Definitions
# ============================================================================

CACHE_LOOKUPS = Counter(
    'dermi_cache_lookups_total',
    'Cache-aside lookups by result',
    ['namespace', 'result']  # hit, miss
)

CACHE_STORE_ERRORS = Counter(
    'dermi_cache_store_errors_total',
    'Store failures absorbed by the fail-open policy',
    ['operation']  # read, write, rate_limit
)

CACHE_MALFORMED_ENTRIES = Counter(
    'dermi_cache_malformed_entries_total',
    'Cached values that failed to deserialize',
    ['namespace']
)

RATE_LIMIT_DECISIONS = Counter(
    'dermi_rate_limit_decisions_total',
    'Rate limit decisions by endpoint',
    ['endpoint', 'decision']  # allowed, rejected, fail_open
)

ERRORS = Counter(
    'dermi_cache_errors_total',
    'Unhandled errors by type and component',
    ['error_type', 'component']
)

APP_INFO = Info(
    'dermi_cache_app',
    'Application information'
)


class MetricsCollector:
    """
    Centralized Prometheus metrics recorder.

    STAGE-M: Metrics collection

    Usage:
        metrics = get_metrics_collector()
        metrics.record_cache_lookup("detect-disease", hit=True)
        metrics.record_rate_limit_decision("ai-final-evaluation", "rejected")
        output = metrics.get_prometheus_metrics()
    """

    def __init__(self):
        """Initialize metrics collector."""
        self.settings = get_settings()

        APP_INFO.info({
            'version': self.settings.app.APP_VERSION,
            'environment': self.settings.app.ENVIRONMENT,
            'app_name': self.settings.app.APP_NAME
        })

        logger.info("Metrics collector initialized", stage="M.0")

    # =========================================================================
    # Cache Metrics
    # =========================================================================

    def record_cache_lookup(self, namespace: str, hit: bool) -> None:
        """Record a cache-aside lookup outcome."""
        CACHE_LOOKUPS.labels(namespace=namespace, result="hit" if hit else "miss").inc()

    def record_store_error(self, operation: str) -> None:
        """Record a store failure absorbed by fail-open handling."""
        CACHE_STORE_ERRORS.labels(operation=operation).inc()

    def record_malformed_entry(self, namespace: str) -> None:
        """Record a cached value that could not be deserialized."""
        CACHE_MALFORMED_ENTRIES.labels(namespace=namespace).inc()

    # =========================================================================
    # Rate Limiting Metrics
    # =========================================================================

    def record_rate_limit_decision(self, endpoint: str, decision: str) -> None:
        """Record a rate limit decision (allowed / rejected / fail_open)."""
        RATE_LIMIT_DECISIONS.labels(endpoint=endpoint, decision=decision).inc()

    # =========================================================================
    # Error Metrics
    # =========================================================================

    def record_error(self, error_type: str, component: str) -> None:
        """Record an error that reached the HTTP boundary."""
        ERRORS.labels(error_type=error_type, component=component).inc()

    # =========================================================================
    # Export
    # =========================================================================

    def get_prometheus_metrics(self) -> bytes:
        """Get Prometheus text format metrics."""
        return generate_latest(REGISTRY)

    def get_content_type(self) -> str:
        """Get Prometheus content type."""
        return CONTENT_TYPE_LATEST


_metrics: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get global metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
