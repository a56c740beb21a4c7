"""Caller authentication: identity tokens and API keys."""

from .service import (
    ApiKeyAuthenticator,
    FirebaseIdentityVerifier,
    IdentityVerifier,
    get_firebase_app,
)

__all__ = [
    "ApiKeyAuthenticator",
    "FirebaseIdentityVerifier",
    "IdentityVerifier",
    "get_firebase_app",
]
