from dermi_cache.infrastructure.monitoring.metrics_collector import (
    CacheMetrics,
    CacheMetricsSnapshot,
    MetricsCollector,
    get_cache_metrics,
    get_metrics_collector,
)

__all__ = [
    "CacheMetrics",
    "CacheMetricsSnapshot",
    "MetricsCollector",
    "get_cache_metrics",
    "get_metrics_collector",
]
