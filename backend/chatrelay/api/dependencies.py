"""API Dependencies — bearer-token authentication against the configured token map.

Invariants:
    - Missing or unknown token → AuthenticationError (401), never retried
    - A resolved Principal always carries a non-empty user id

Design Decisions:
    - The real auth provider is an external collaborator; settings.auth_tokens
      is its local stand-in, swapped by overriding get_principal
"""

from fastapi import Depends, Header

from chatrelay.config import Settings, get_settings
from chatrelay.core.domain_types import Principal, UserId
from chatrelay.core.errors import AuthenticationError


def get_principal(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> Principal:
    """Resolve the caller from `Authorization: Bearer <token>`."""
    if not authorization:
        raise AuthenticationError()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Malformed Authorization header")
    user_id = settings.auth_tokens.get(token.strip())
    if not user_id:
        raise AuthenticationError("Invalid or expired token")
    return Principal(user_id=UserId(user_id))
