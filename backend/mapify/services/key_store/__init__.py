"""API key store: Firestore backend plus an in-memory backend for development."""

from .service import (
    FirestoreKeyStore,
    InMemoryKeyStore,
    KeyStore,
    generate_key_value,
)

__all__ = [
    "FirestoreKeyStore",
    "InMemoryKeyStore",
    "KeyStore",
    "generate_key_value",
]
