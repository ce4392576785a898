import hmac
from typing import Dict, Optional

from tunebridge.domain.errors import Unauthenticated


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


class StaticTokenAuthenticator:
    """Authenticates callers against a fixed token -> user id table."""

    def __init__(self, tokens: Dict[str, str]):
        self._tokens = dict(tokens)

    def authenticate(self, credential: Optional[str]) -> str:
        """Return the user id for an Authorization header value.

        Raises:
            Unauthenticated: header missing, not a bearer credential or unknown token
        """
        token = bearer_token(credential)
        if token is None:
            raise Unauthenticated("User not authenticated")
        for known, user_id in self._tokens.items():
            if hmac.compare_digest(known.encode('utf-8'), token.encode('utf-8')):
                return user_id
        raise Unauthenticated("User not authenticated")
