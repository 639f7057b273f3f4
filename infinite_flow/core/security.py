"""
Content API — Security helpers

Access tokens are issued by Supabase Auth and signed with the project's JWT
secret, so verifying them needs only the shared secret. Mux webhooks are signed
with HMAC-SHA256.
"""
import hashlib
import hmac
from typing import Any

from jose import jwt, JWTError

from infinite_flow.core.config import Settings


# ─── Supabase access tokens ───────────────────────────────────────────────────

def decode_token(token: str, settings: Settings) -> dict[str, Any]:
    """Decode and validate a Supabase JWT. Raises JWTError on failure."""
    return jwt.decode(
        token,
        settings.SUPABASE_JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        audience=settings.SUPABASE_JWT_AUDIENCE,
    )


def is_admin(claims: dict[str, Any]) -> bool:
    app_meta = claims.get("app_metadata") or {}
    return claims.get("role") == "service_role" or app_meta.get("role") == "admin"


# ─── Mux webhook signatures ───────────────────────────────────────────────────

def verify_mux_signature(payload: bytes, signature_header: str, secret: str) -> bool:
    """
    Check a `Mux-Signature: t=<timestamp>,v1=<hex digest>` header.
    The v1 digest is HMAC-SHA256 of the raw body keyed by the webhook secret.
    """
    parts = dict(
        part.split("=", 1) for part in signature_header.split(",") if "=" in part
    )
    received = parts.get("v1")
    if not received:
        return False

    expected = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, received)


__all__ = ["decode_token", "is_admin", "verify_mux_signature", "JWTError"]
