"""
Application Services

Cached entry points for the platform's expensive reads:

- ai_cache: AI analysis flows, with the per-user AI budget
- profile_cache: user profiles, doctor profiles and doctor listings
"""

from .ai_cache import (
    AIAnalysisCache,
    detect_disease_name_cached,
    final_evaluation_cached,
    get_ai_analysis_cache,
)
from .profile_cache import (
    ProfileCache,
    get_cached_doctor_list,
    get_cached_doctor_profile,
    get_cached_user_profile,
    get_profile_cache,
    invalidate_doctor_list_cache,
    invalidate_doctor_profile_cache,
    invalidate_user_profile_cache,
)

__all__ = [
    "AIAnalysisCache",
    "detect_disease_name_cached",
    "final_evaluation_cached",
    "get_ai_analysis_cache",
    "ProfileCache",
    "get_cached_doctor_list",
    "get_cached_doctor_profile",
    "get_cached_user_profile",
    "get_profile_cache",
    "invalidate_doctor_list_cache",
    "invalidate_doctor_profile_cache",
    "invalidate_user_profile_cache",
]
