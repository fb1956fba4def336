"""Auth0 bearer-token authentication for the marketplace API.

Mobile and desktop clients sign in through Auth0; the API verifies the
RS256 signature against the tenant's JWKS (cached by ``PyJWKClient``) and
never creates a local ``User`` row.  The marketplace role travels in the
claim named by ``AUTH0_ROLE_CLAIM``.

Tokens from another issuer (e.g. local SimpleJWT tokens in development)
are left for the next authentication class.  Any verification failure on
an Auth0 token is a 401.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import jwt as pyjwt
import structlog
from decouple import config
from jwt import PyJWKClient
from jwt.exceptions import PyJWTError
from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.request import Request

logger = structlog.get_logger(__name__)

AUTH0_DOMAIN = config("AUTH0_DOMAIN", default="")
AUTH0_AUDIENCE = config("AUTH0_AUDIENCE", default="")
AUTH0_ALGORITHM = config("AUTH0_ALGORITHM", default="RS256")
AUTH0_ROLE_CLAIM = config("AUTH0_ROLE_CLAIM", default="https://marketplace/role")

_ISSUER = f"https://{AUTH0_DOMAIN}/" if AUTH0_DOMAIN else ""

_jwks_client: Optional[PyJWKClient] = (
    PyJWKClient(f"{_ISSUER}.well-known/jwks.json", cache_jwk_set=True, lifespan=300)
    if AUTH0_DOMAIN
    else None
)


class Auth0User:
    """Principal built from verified Auth0 claims (no database row)."""

    is_authenticated = True
    is_active = True

    def __init__(self, payload: Dict[str, Any]) -> None:
        self.payload = payload
        self.sub: str = payload.get("sub", "")
        self.role: Optional[str] = payload.get(AUTH0_ROLE_CLAIM)

    def __str__(self) -> str:  # pragma: no cover
        return self.sub


class Auth0JSONWebTokenAuthentication(BaseAuthentication):
    keyword = "Bearer"

    def authenticate(self, request: Request) -> Optional[Tuple[Auth0User, str]]:
        header = request.META.get("HTTP_AUTHORIZATION", "")
        if not header or _jwks_client is None or not AUTH0_AUDIENCE:
            return None

        parts = header.split()
        if len(parts) != 2 or parts[0].lower() != self.keyword.lower():
            raise AuthenticationFailed("Invalid Authorization header format.")
        token = parts[1]

        if unverified_issuer(token) != _ISSUER:
            return None

        try:
            signing_key = _jwks_client.get_signing_key_from_jwt(token)
            payload = pyjwt.decode(
                token,
                signing_key.key,
                algorithms=[AUTH0_ALGORITHM],
                audience=AUTH0_AUDIENCE,
                issuer=_ISSUER,
            )
        except PyJWTError as exc:
            logger.warning("auth.jwt_rejected", error=str(exc))
            raise AuthenticationFailed(f"Token validation failed: {exc}") from exc

        user = Auth0User(payload)
        logger.info("auth.jwt_accepted", sub=user.sub, role=user.role)
        return user, token

    def authenticate_header(self, request: Request) -> str:
        return f'{self.keyword} realm="api"'


def unverified_issuer(token: str) -> Optional[str]:
    """Peek at the ``iss`` claim without verifying anything."""
    try:
        payload = pyjwt.decode(
            token,
            options={"verify_signature": False, "verify_aud": False, "verify_iss": False},
        )
    except PyJWTError:
        return None
    return payload.get("iss")
