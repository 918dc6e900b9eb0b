"""
Configuration Module

- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: Stage identifiers, TTL presets, key namespaces, HTTP headers

Usage:
------
```python
from dermi_cache.core.config import get_settings
from dermi_cache.core.config.constants import CacheTTL, Stage

settings = get_settings()
ttl = settings.cache.CACHE_AI_ANALYSIS_TTL
```
"""

from dermi_cache.core.config.settings import Settings, get_settings, reload_settings

__all__ = ["Settings", "get_settings", "reload_settings"]
