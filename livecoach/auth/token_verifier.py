"""
Bearer token verification.

Tokens are issued elsewhere; the hub only verifies signature and expiry.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

from jose import JWTError, jwt

from ..error_types import ErrorMessages
from ..exceptions import InvalidCredential
from ..logging.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class VerifiedToken:
    """Result of a successful verification."""

    user_id: str
    claims: dict[str, Any] = field(default_factory=dict)


class TokenVerifier(Protocol):
    """External token verification interface."""

    async def verify(self, token: str) -> VerifiedToken:
        """
        Verify a bearer token.

        Raises:
            InvalidCredential: If the token is malformed, forged or expired
        """
        ...


class JWTTokenVerifier:
    """Verifies HS256 (or configured algorithm) JWTs with python-jose."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", audience: str | None = None) -> None:
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.audience = audience

    async def verify(self, token: str) -> VerifiedToken:
        try:
            options = {"verify_aud": self.audience is not None}
            payload = jwt.decode(
                token, self.secret_key, algorithms=[self.algorithm], audience=self.audience, options=options
            )
        except JWTError as e:
            logger.warning("JWT decode error", error=str(e))
            raise InvalidCredential(
                f"Token verification failed: {e}", user_friendly=ErrorMessages.AUTHENTICATION_FAILED
            ) from e

        # Tokens minted by the REST API before the switch to "sub" carry "userId"
        subject = payload.get("sub") or payload.get("userId")
        if not subject:
            raise InvalidCredential("Token has no subject claim", user_friendly=ErrorMessages.AUTHENTICATION_FAILED)
        return VerifiedToken(user_id=str(subject), claims=payload)
