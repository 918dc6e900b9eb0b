"""
DermiAssist Cache Service

Shared caching and rate limiting for the DermiAssist dermatology platform.
"""

__version__ = "1.0.0"
