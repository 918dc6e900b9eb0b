"""Infrastructure layer: Redis store adapter, cache-aside orchestration, metrics."""
