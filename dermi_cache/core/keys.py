"""
Cache Key Derivation

Deterministic, collision-resistant cache keys built from heterogeneous
inputs: uploaded skin images (as data URIs), free-text questionnaire answers
and plain identifiers.

Every function here is pure: no I/O, no hidden state, same output for the
same input across process restarts.

Hashing scheme for binary payloads
----------------------------------
Images reach the service as data URIs (``data:image/jpeg;base64,<body>``).
The ``data:...,`` prefix is stripped and the *encoded body text* is hashed
with SHA-256, exactly as transmitted. The body is never base64-decoded: two
different encodings of the same pixels get different keys, while the MIME
label does not take part in the key. Payloads without a comma, or with an
empty body, are hashed whole. Nothing here raises on malformed input.

Key layout
----------
``<namespace>:<part>[:<part>...]``, for example::

    detect-disease:9f86d081884c7d65...
    final-eval:9f86d081884c7d65...:2c26b46b68ffc68f
"""

import hashlib
from typing import Any

import orjson

from dermi_cache.core.config.constants import (
    ANSWERS_DIGEST_LENGTH,
    KEY_SEPARATOR,
    NAMESPACE_ANALYSIS,
    NAMESPACE_DETECT_DISEASE,
    NAMESPACE_DOCTOR,
    NAMESPACE_DOCTORS,
    NAMESPACE_FINAL_EVALUATION,
    NAMESPACE_USER,
)

_DATA_URI_PREFIX = "data:"


def _strip_data_uri_prefix(payload: str | bytes) -> str | bytes:
    """Return the body of a data URI, or the payload itself."""
    if isinstance(payload, bytes):
        head, sep, body = payload.partition(b",")
        if sep and body and head.startswith(_DATA_URI_PREFIX.encode()):
            return body
        return payload

    head, sep, body = payload.partition(",")
    if sep and body and head.startswith(_DATA_URI_PREFIX):
        return body
    return payload


def hash_binary_payload(payload: str | bytes) -> str:
    """
    SHA-256 hex digest of a data-URI encoded binary payload.

    Args:
        payload: Data URI (``data:<mime>;base64,<body>``), bare base64 text,
            or raw bytes

    Returns:
        64-character lowercase hex digest
    """
    body = _strip_data_uri_prefix(payload or "")
    if isinstance(body, str):
        body = body.encode("utf-8", errors="surrogatepass")
    return hashlib.sha256(body).hexdigest()


def hash_text(text: str, length: int | None = ANSWERS_DIGEST_LENGTH) -> str:
    """
    SHA-256 hex digest of free text, optionally truncated.

    Args:
        text: Text to fingerprint (e.g. proforma answers)
        length: Number of hex characters to keep; None keeps all 64

    Returns:
        Hex digest (possibly truncated)
    """
    digest = hashlib.sha256((text or "").encode("utf-8", errors="surrogatepass")).hexdigest()
    return digest[:length] if length else digest


def build_cache_key(namespace: str, *parts: Any) -> str:
    """
    Join a namespace and component identifiers into a cache key.

    Raises:
        ValueError: If namespace is empty
    """
    if not namespace:
        raise ValueError("Cache key namespace must not be empty")
    return KEY_SEPARATOR.join([namespace, *(str(part) for part in parts)])


# ============================================================================
# Feature keys
# ============================================================================


def detect_disease_cache_key(photo_data_uri: str) -> str:
    """Cache key for condition-name detection on an image."""
    return build_cache_key(NAMESPACE_DETECT_DISEASE, hash_binary_payload(photo_data_uri))


def final_evaluation_cache_key(photo_data_uri: str, user_answers: str) -> str:
    """Cache key for the final evaluation of an image plus questionnaire answers."""
    return build_cache_key(
        NAMESPACE_FINAL_EVALUATION,
        hash_binary_payload(photo_data_uri),
        hash_text(user_answers),
    )


class CacheKeys:
    """
    Central catalogue of key namespaces.

    Keeping every namespace here makes collisions between features visible
    in one place.
    """

    @staticmethod
    def user_profile(user_id: str) -> str:
        return build_cache_key(NAMESPACE_USER, user_id, "profile")

    @staticmethod
    def analysis(image_hash: str) -> str:
        return build_cache_key(NAMESPACE_ANALYSIS, image_hash)

    @staticmethod
    def analysis_explanation(analysis_id: str, language: str) -> str:
        return build_cache_key(NAMESPACE_ANALYSIS, analysis_id, "explanation", language)

    @staticmethod
    def doctor_profile(doctor_id: str) -> str:
        return build_cache_key(NAMESPACE_DOCTOR, doctor_id, "profile")

    @staticmethod
    def doctor_list(filters: dict[str, Any] | None = None) -> str:
        """
        Key for a doctor listing.

        Filters are serialized with sorted keys, so ``{"a": 1, "b": 2}`` and
        ``{"b": 2, "a": 1}`` share an entry.
        """
        if not filters:
            return build_cache_key(NAMESPACE_DOCTORS, "list", "all")
        encoded = orjson.dumps(filters, option=orjson.OPT_SORT_KEYS).decode("utf-8")
        return build_cache_key(NAMESPACE_DOCTORS, "list", hash_text(encoded, length=None))

    @staticmethod
    def rate_limit(prefix: str, endpoint: str, identifier: str, window_index: int) -> str:
        return build_cache_key(prefix, endpoint, identifier, window_index)


def truncate_for_log(value: str, max_length: int = 50) -> str:
    """
    Shorten long values (data URIs, digests) for log output.

    >>> truncate_for_log("x" * 60, 10)
    'xxxxxxxxxx... (60 chars total)'
    """
    if len(value) <= max_length:
        return value
    return f"{value[:max_length]}... ({len(value)} chars total)"
