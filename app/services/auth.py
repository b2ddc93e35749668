"""
Auth Verifier
Resolves a Supabase bearer token to the calling user.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from app.core.exceptions import AuthError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerIdentity:
    user_id: str
    email: Optional[str] = None


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Return the token from an ``Authorization: Bearer ...`` header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Authentication required")
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise AuthError("Authentication required")
    return token


class SupabaseAuthVerifier:
    """Validates tokens against Supabase Auth."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            from app.core.supabase import get_supabase_anon
            self._client = get_supabase_anon()
        return self._client

    def verify(self, token: str) -> CallerIdentity:
        """
        Raises:
            AuthError: the token is rejected or Supabase is unreachable
        """
        try:
            user_response = self.client.auth.get_user(token)
        except Exception as e:
            logger.debug(f"Token verification failed: {e}")
            raise AuthError("Invalid authentication", cause=e) from e

        user = getattr(user_response, "user", None)
        if user is None or not getattr(user, "id", None):
            raise AuthError("Invalid authentication")
        return CallerIdentity(user_id=str(user.id), email=getattr(user, "email", None))
