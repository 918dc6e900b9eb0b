from dermi_cache.core.interfaces.cache import CacheStore

__all__ = ["CacheStore"]
