"""Core data models for Mapify.

Pydantic models for issued API keys and normalized POI search results, plus
the ``KeyRef`` handle the key cache stores for each resolved key.

JSON field names are camelCase on the wire (``usageCount``, ``openingHours``),
snake_case in Python.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

KEYS_ROOT_COLLECTION = "apiKeys"
KEYS_SUBCOLLECTION = "keys"


@dataclass(frozen=True)
class KeyRef:
    """Store reference to one key document: ``apiKeys/{owner_id}/keys/{key_id}``.

    Enough to update the key (usage counters, lastUsed) without querying
    for it again.
    """

    owner_id: str
    key_id: str

    @property
    def path(self) -> str:
        return f"{KEYS_ROOT_COLLECTION}/{self.owner_id}/{KEYS_SUBCOLLECTION}/{self.key_id}"

    @classmethod
    def from_path(cls, path: str) -> "KeyRef":
        """Parse a document path produced by ``KeyRef.path``.

        Raises:
            ValueError: If the path does not address a key document.
        """
        parts = path.split("/")
        if (
            len(parts) != 4
            or parts[0] != KEYS_ROOT_COLLECTION
            or parts[2] != KEYS_SUBCOLLECTION
            or not parts[1]
            or not parts[3]
        ):
            raise ValueError(f"Not a key document path: {path!r}")
        return cls(owner_id=parts[1], key_id=parts[3])


class CamelModel(BaseModel):
    """Base for models exchanged as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def mask_key(value: str) -> str:
    """Return a display-safe preview of a key value."""
    if len(value) <= 12:
        return value[:4] + "•" * 8
    return value[:8] + "•" * 24 + value[-4:]


class ApiKey(CamelModel):
    """One issued API key.

    ``value`` is the secret token; it is only ever returned to the owner once,
    by ``generateKey``. Revocation (``active=False``) is terminal.
    """

    id: str = Field(..., min_length=1, description="Store-assigned key id")
    owner_id: str = Field(..., min_length=1, description="Identity provider subject")
    value: str = Field(..., min_length=1, repr=False, description="Secret key token")
    active: bool = Field(default=True)
    name: str = Field(default="")
    created_at: Optional[datetime] = None
    last_used: Optional[datetime] = None
    usage_count: int = Field(default=0, ge=0)

    @property
    def ref(self) -> KeyRef:
        return KeyRef(owner_id=self.owner_id, key_id=self.id)

    @property
    def preview(self) -> str:
        return mask_key(self.value)


class ApiKeySummary(CamelModel):
    """Owner-facing view of an API key, without the secret value."""

    id: str
    name: str
    active: bool
    created_at: Optional[datetime] = None
    last_used: Optional[datetime] = None
    usage_count: int = 0
    key_preview: str

    @classmethod
    def from_api_key(cls, key: ApiKey) -> "ApiKeySummary":
        return cls(
            id=key.id,
            name=key.name,
            active=key.active,
            created_at=key.created_at,
            last_used=key.last_used,
            usage_count=key.usage_count,
            key_preview=key.preview,
        )


class POIResult(CamelModel):
    """Normalized point of interest returned by ``/search``.

    Only ``id``, ``lat`` and ``lng`` are required; every other field defaults
    to an empty string when the upstream element does not carry it.
    """

    id: int
    name: str = ""
    category: str = ""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    address: str = ""
    phone: str = ""
    website: str = ""
    opening_hours: str = ""
