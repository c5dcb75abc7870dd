"""
Authentication Utility - verifies identity-provider tokens.

Sign-in happens with the external identity provider; this service never
issues tokens. It only:
- Extracts the bearer token from the Authorization header
- Verifies signature / expiry (and audience/issuer when configured)
- Enforces the allowed email domains (test users bypass the check)
- Hands the verified identity to routes as an explicit `viewer` dict
"""

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from collab.core.config import get_settings
from collab.core.errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

settings = get_settings()

# auto_error=False: a missing header must be a 401, not FastAPI's default 403
bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    """
    Decode and verify an identity token.

    Raises:
        Unauthorized: token is malformed, forged, or expired
    """
    options = {"verify_aud": settings.jwt_audience is not None, "require_exp": True}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options=options,
        )
    except ExpiredSignatureError:
        raise Unauthorized("Session expired. Please refresh the page.")
    except JWTError as e:
        logger.warning("Token verification failed: %s", e)
        raise Unauthorized("Unauthorized: Invalid token")


def is_email_allowed(email: Optional[str]) -> bool:
    """Check email against the allowed domains (empty list allows everyone)."""
    if not settings.allowed_email_domains:
        return True

    email = (email or "").lower()
    if email in {e.lower() for e in settings.test_user_emails}:
        return True
    return any(email.endswith(f"@{d.lower()}") for d in settings.allowed_email_domains)


def identity_from_claims(payload: dict) -> dict:
    """Map verified token claims to the viewer dict routes receive."""
    uid = payload.get("sub") or payload.get("user_id") or payload.get("uid")
    if not uid:
        raise Unauthorized("Unauthorized: Invalid token")

    email = payload.get("email")
    if not is_email_allowed(email):
        domains = " / ".join(settings.allowed_email_domains)
        raise Forbidden(f"Only {domains} emails are allowed")

    return {
        "uid": str(uid),
        "email": email,
        "name": payload.get("name"),
        "picture": payload.get("picture"),
    }


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    """
    FastAPI dependency - Get the verified viewer identity.

    Usage:
        @router.get("/protected")
        async def route(viewer: dict = Depends(get_current_user)):
            return viewer
    """
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Unauthorized: Missing token")

    payload = decode_token(credentials.credentials)
    return identity_from_claims(payload)
