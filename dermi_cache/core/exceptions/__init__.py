"""
Exception Module

Structured exception hierarchy, organized by theme:

- **base.py**: DermiCacheError base class + ConfigurationError
- **cache.py**: store and cache-aside exceptions
- **rate_limit.py**: rate limiting exceptions

Usage:
------
```python
from dermi_cache.core.exceptions import CacheUnavailableError, RateLimitExceededError
```
"""

from dermi_cache.core.exceptions.base import ConfigurationError, DermiCacheError
from dermi_cache.core.exceptions.cache import (
    CacheError,
    CacheUnavailableError,
    MalformedCacheEntryError,
)
from dermi_cache.core.exceptions.rate_limit import RateLimitError, RateLimitExceededError

__all__ = [
    # Base
    "DermiCacheError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheUnavailableError",
    "MalformedCacheEntryError",
    # Rate Limit
    "RateLimitError",
    "RateLimitExceededError",
]
