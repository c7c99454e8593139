"""Connection authentication for the LiveCoach hub."""

from .authenticator import AuthenticatedUser, ConnectionAuthenticator
from .token_verifier import JWTTokenVerifier, TokenVerifier, VerifiedToken

__all__ = ["AuthenticatedUser", "ConnectionAuthenticator", "JWTTokenVerifier", "TokenVerifier", "VerifiedToken"]
