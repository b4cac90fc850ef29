"""
Deterministic HMAC-SHA256 helpers for tracking-hit pseudonymization.

Raw IP addresses and user agents never leave the ingestion path in a form
that can be reversed; only namespaced digests are used as device keys.
"""

from __future__ import annotations

import hashlib
import hmac

from resume_tracker.config import settings

SECRET_MIN_LENGTH = 16
UNKNOWN_VALUES = {"", "unknown"}

__all__ = [
    "HashingError",
    "compute_hmac",
    "fingerprint_device",
]


class HashingError(RuntimeError):
    """Raised when hashing prerequisites are not satisfied."""


def _secret_bytes() -> bytes:
    secret = getattr(settings, "FINGERPRINT_SECRET", None)
    if not secret:
        raise HashingError("FINGERPRINT_SECRET is not configured")
    if len(secret) < SECRET_MIN_LENGTH:
        raise HashingError("FINGERPRINT_SECRET is too short; please rotate it")
    return secret.encode("utf-8")


def compute_hmac(value: str, *, namespace: str) -> str:
    """
    Compute a namespaced hex HMAC-SHA256 digest.

    Args:
        value: Raw string value to hash (normalized by caller).
        namespace: Logical namespace to avoid cross-field collisions.
    """
    scoped = f"{namespace}:{value or ''}"
    digest = hmac.new(_secret_bytes(), scoped.encode("utf-8"), hashlib.sha256)
    return digest.hexdigest()


def _normalize(value: str | None) -> str:
    normalized = (value or "").strip().lower()
    return "" if normalized in UNKNOWN_VALUES else normalized


def fingerprint_device(ip_address: str | None, user_agent: str | None) -> str | None:
    """
    Derive a stable device key from the client address and user agent.

    Only the first hop of a forwarded-for chain is used. Returns None when
    neither value is known, so aggregation falls back to the device type.
    """
    first_hop = (ip_address or "").split(",")[0]
    ip = _normalize(first_hop)
    agent = _normalize(user_agent)
    if not ip and not agent:
        return None
    return compute_hmac(f"{ip}|{agent}", namespace="device")
