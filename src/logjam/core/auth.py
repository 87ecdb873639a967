"""
Token authentication.

TokenSet is built once at startup from a comma-separated configuration
string and never changes afterwards. AuthGate answers membership
questions against it; authenticate_token is the FastAPI dependency that
guards the ingestion routes.
"""

from typing import FrozenSet, Iterable, Iterator

import structlog
from fastapi import Request

from .exceptions import AuthenticationError

logger = structlog.get_logger(__name__)


def _token_label(token: str) -> str:
    return token[:8] + "..." if len(token) >= 8 else "***"


class TokenSet:
    """
    Immutable set of valid authentication tokens.
    """

    __slots__ = ("_tokens",)

    def __init__(self, tokens: Iterable[str] = ()) -> None:
        self._tokens: FrozenSet[str] = frozenset(tokens)

    @classmethod
    def from_config(cls, raw: str, allow_empty: bool = False) -> "TokenSet":
        """
        Build a token set from a comma-separated string.

        Entries are stripped of surrounding whitespace. Empty entries are
        discarded unless allow_empty is set, in which case an empty string
        becomes a valid token (so "" or "a," admit unauthenticated callers).
        """
        tokens = [part.strip() for part in (raw or "").split(",")]
        if not allow_empty:
            tokens = [token for token in tokens if token]
        return cls(tokens)

    def __contains__(self, token: object) -> bool:
        return token in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)

    def __iter__(self) -> Iterator[str]:
        return iter(self._tokens)

    def __repr__(self) -> str:
        return f"TokenSet(size={len(self._tokens)})"


class AuthGate:
    """
    Checks presented tokens against a TokenSet by exact string equality.
    """

    def __init__(self, token_set: TokenSet, header_name: str = "x-logjam-token") -> None:
        self.token_set = token_set
        self.header_name = header_name

        if len(token_set) == 0:
            logger.warning("Token set is empty, every authenticated request will be rejected")
        elif "" in token_set:
            logger.warning("Empty token is valid, unauthenticated callers will be accepted")
        else:
            logger.info("Auth gate initialized", tokens=len(token_set), header=header_name)

    def validate(self, token: str) -> bool:
        return token in self.token_set


async def authenticate_token(request: Request) -> str:
    """
    Authenticate the token header against the app's AuthGate.

    Runs before the handler reads the body, so rejected callers never
    reach the decoder.
    """
    gate: AuthGate = request.app.state.auth_gate
    token = request.headers.get(gate.header_name)

    if token is None:
        logger.warning("Authentication failed: missing token", path=request.url.path)
        raise AuthenticationError("Missing authentication token")

    if not gate.validate(token):
        logger.warning(
            "Authentication failed: unknown token",
            token=_token_label(token),
            path=request.url.path,
        )
        raise AuthenticationError("Invalid authentication token")

    logger.debug("Token authenticated successfully", token=_token_label(token))
    return token
