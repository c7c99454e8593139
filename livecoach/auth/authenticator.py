"""
Connection authenticator.

Validates the credential presented when a client connects, then confirms the
subject is a known, active user. Stateless: independent connections may be
authenticated concurrently.
"""

import asyncio
from dataclasses import dataclass

from ..error_types import ErrorMessages
from ..exceptions import (
    ErrorContext,
    InvalidCredential,
    MissingCredential,
    UserInactive,
    UserNotFound,
)
from ..logging.logging_config import get_logger
from ..persistence.directory import DirectoryLookupError, UserDirectory, UserProfile
from .token_verifier import TokenVerifier

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity captured at authentication time."""

    user_id: str
    profile: UserProfile


class ConnectionAuthenticator:
    """
    authenticate(credential) -> AuthenticatedUser, raising an AuthenticationError subclass on refusal.

    The whole check (token verification plus directory lookup) is bounded by
    timeout_seconds; a timeout counts as an invalid credential.
    """

    def __init__(self, verifier: TokenVerifier, directory: UserDirectory, timeout_seconds: float = 5.0) -> None:
        self.verifier = verifier
        self.directory = directory
        self.timeout_seconds = timeout_seconds

    async def authenticate(self, credential: str | None) -> AuthenticatedUser:
        if credential is None or not credential.strip():
            raise MissingCredential("No credential presented", user_friendly=ErrorMessages.AUTHENTICATION_REQUIRED)

        try:
            return await asyncio.wait_for(self._authenticate(credential.strip()), timeout=self.timeout_seconds)
        except TimeoutError as e:
            logger.warning("Authentication timed out", timeout_seconds=self.timeout_seconds)
            raise InvalidCredential(
                "Authentication timed out", user_friendly=ErrorMessages.AUTHENTICATION_FAILED
            ) from e

    async def _authenticate(self, credential: str) -> AuthenticatedUser:
        verified = await self.verifier.verify(credential)
        context = ErrorContext(user_id=verified.user_id)

        try:
            profile = await self.directory.find_by_id(verified.user_id)
        except DirectoryLookupError as e:
            raise UserNotFound(
                f"User lookup failed: {e}", context=context, user_friendly=ErrorMessages.USER_NOT_FOUND
            ) from e

        if profile is None:
            raise UserNotFound("User not found", context=context, user_friendly=ErrorMessages.USER_NOT_FOUND)
        if not profile.active:
            raise UserInactive("User account is disabled", context=context, user_friendly=ErrorMessages.USER_NOT_FOUND)

        logger.debug("Connection authenticated", user_id=profile.id)
        return AuthenticatedUser(user_id=profile.id, profile=profile)
