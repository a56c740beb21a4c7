"""Test doubles shared by the unit tests."""

from urllib.parse import parse_qs

import httpx
from google.api_core.exceptions import ServiceUnavailable

from mapify.models import AuthError, StoreError
from mapify.services.auth import IdentityVerifier
from mapify.services.key_store import InMemoryKeyStore

OWNER_TOKEN = "token-alice"
OWNER_ID = "uid-alice"
OTHER_TOKEN = "token-bob"
OTHER_ID = "uid-bob"

# Three hospitals around lower Manhattan: a tagged node, an untagged way and
# a relation without a tags field at all
SAMPLE_ELEMENTS = [
    {
        "type": "node",
        "id": 101,
        "lat": 40.7138,
        "lon": -74.0021,
        "tags": {
            "amenity": "hospital",
            "name": "NewYork-Presbyterian Lower Manhattan",
            "addr:street": "William Street",
            "phone": "+1 212 312 5000",
        },
    },
    {
        "type": "way",
        "id": 202,
        "center": {"lat": 40.7392, "lon": -73.9754},
        "tags": {},
    },
    {
        "type": "relation",
        "id": 303,
        "center": {"lat": 40.7424, "lon": -73.9740},
    },
]


class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeIdentityVerifier(IdentityVerifier):
    """Accepts a fixed set of tokens."""

    def __init__(self, tokens: dict[str, str]) -> None:
        self._tokens = tokens

    async def verify(self, id_token: str) -> str:
        uid = self._tokens.get(id_token)
        if uid is None:
            raise AuthError()
        return uid


class OverpassStub:
    """Records interpreter requests and answers with canned elements."""

    def __init__(self, elements: list | None = None, status_code: int = 200) -> None:
        self.elements = list(SAMPLE_ELEMENTS if elements is None else elements)
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="upstream failure")
        return httpx.Response(200, json={"version": 0.6, "elements": self.elements})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def query(self, index: int = -1) -> str:
        """Return the Overpass QL text of a recorded request."""
        form = parse_qs(self.requests[index].content.decode())
        return form["data"][0]


def bearer(token: str = OWNER_TOKEN) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


STORE_OUTAGE_DETAIL = "firestore.googleapis.com:443 unavailable (10.0.0.7)"


class FailingKeyStore(InMemoryKeyStore):
    """In-memory store whose named operations fail like a store outage."""

    def fail(self, *operations: str) -> None:
        for name in operations:
            setattr(self, name, self._outage)

    async def _outage(self, *args, **kwargs):
        raise StoreError() from ServiceUnavailable(STORE_OUTAGE_DETAIL)
