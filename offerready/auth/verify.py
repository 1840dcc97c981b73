"""
verify.py
---------
Purpose:
    JWT verification using Supabase JWKS (ES256).

Notes:
    - Fetches JWKS from Supabase and caches keys.
    - Provides `auth_dependency` (verified claims) and `current_user`
      (AuthenticatedUser) for protected routes.
    - Failures raise AuthError, rendered as 401 `{"error": message}`.
"""

import re

import jwt
from fastapi import Depends, Header
from jwt import PyJWKClient

from offerready.config import settings
from offerready.errors import AuthError
from offerready.infrastructure.observability.logging import get_logger
from offerready.models.domain.billing_domain import AuthenticatedUser

logger = get_logger(__name__)

SUPABASE_AUDIENCE = "authenticated"
BEARER_PATTERN = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)

_jwk_client = PyJWKClient(settings.jwks_url())


def read_bearer_token(authorization: str | None = Header(None)) -> str:
    if not authorization:
        raise AuthError("Missing Authorization header")
    match = BEARER_PATTERN.match(authorization.strip())
    if not match:
        raise AuthError("Invalid Authorization header")
    return match.group(1)


def verify_jwt(token: str) -> dict:
    try:
        signing_key = _jwk_client.get_signing_key_from_jwt(token)
        decoded = jwt.decode(
            token,
            signing_key.key,
            algorithms=["ES256"],
            audience=SUPABASE_AUDIENCE,
            options={"verify_exp": True},
        )
        return decoded
    except jwt.PyJWTError as e:
        logger.info("Token rejected", error=str(e))
        raise AuthError("Invalid token") from e


def auth_dependency(token: str = Depends(read_bearer_token)) -> dict:
    return verify_jwt(token)


def current_user(claims: dict = Depends(auth_dependency)) -> AuthenticatedUser:
    user_id = claims.get("sub")
    if not user_id:
        raise AuthError("Invalid token")
    return AuthenticatedUser(user_id=user_id, email=claims.get("email"))
