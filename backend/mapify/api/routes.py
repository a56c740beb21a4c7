"""API routes for Mapify.

Five stateless operations:
- GET  /verify       check a key (always a fresh store read), touch lastUsed
- POST /generateKey  issue a key to the signed-in owner; the value is shown once
- POST /revokeKey    deactivate one of the owner's keys (terminal)
- GET  /search       nearby POI search, authenticated by ``x-api-key``
- GET  /usage        the owner's keys with aggregated usage

The only state shared between requests is the key cache behind
``ApiKeyAuthenticator``.
"""

import logging
import time
from typing import Annotated, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Header, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from mapify.api.dependencies import (
    get_current_owner,
    get_key_authenticator,
    get_key_store,
    get_poi_client,
    get_settings,
)
from mapify.config import Settings
from mapify.models import (
    ApiKeySummary,
    CamelModel,
    ErrorCode,
    InputValidationError,
    KeyRef,
    NotFoundError,
    POIResult,
    StoreError,
)
from mapify.services.auth import ApiKeyAuthenticator
from mapify.services.key_store import KeyStore
from mapify.services.osm import OverpassPOIClient
from mapify.services.request_validator import (
    DEFAULT_POI_TYPE,
    DEFAULT_RADIUS_METERS,
    validate_search_request,
)

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_KEY_NAME_LENGTH = 100


class VerifyResponse(BaseModel):
    valid: bool


class GenerateKeyRequest(BaseModel):
    name: Optional[str] = None


class GenerateKeyResponse(CamelModel):
    success: bool = True
    key_id: str
    key: str


class RevokeKeyRequest(CamelModel):
    key_id: Optional[str] = None


class RevokeKeyResponse(BaseModel):
    success: bool = True


class SearchResponse(BaseModel):
    success: bool = True
    results: list[POIResult] = Field(default_factory=list)
    count: int = 0


class UsageResponse(CamelModel):
    success: bool = True
    keys: list[ApiKeySummary] = Field(default_factory=list)
    total_usage: int = 0
    active_keys: int = 0


def _default_key_name() -> str:
    return f"API Key {int(time.time() * 1000)}"


async def record_usage(store: KeyStore, ref: KeyRef) -> None:
    """Increment a key's usage counter after the response is sent."""
    try:
        await store.increment_usage(ref)
    except (StoreError, NotFoundError) as e:
        logger.error(f"[API] Usage increment failed for key {ref.key_id}: {e}")


@router.get("/verify", response_model=VerifyResponse)
async def verify_key(
    store: Annotated[KeyStore, Depends(get_key_store)],
    key: Optional[str] = None,
):
    """Check whether a key is valid and active.

    Bypasses the key cache so revocations are visible immediately. Every
    error body carries ``valid: false``.
    """
    if not key:
        return JSONResponse(
            status_code=400,
            content={"valid": False, "error": "API key is required"},
        )

    try:
        api_key = await store.find_active_by_value(key)
        if api_key is None:
            return VerifyResponse(valid=False)
        await store.mark_used(api_key.ref)
    except NotFoundError:
        # Deleted between lookup and update
        return VerifyResponse(valid=False)
    except StoreError as e:
        logger.error(f"[API] Error verifying API key: {e!r}")
        return JSONResponse(
            status_code=500,
            content={"valid": False, "error": "Internal server error"},
        )

    return VerifyResponse(valid=True)


@router.post("/generateKey", response_model=GenerateKeyResponse)
async def generate_key(
    owner_id: Annotated[str, Depends(get_current_owner)],
    store: Annotated[KeyStore, Depends(get_key_store)],
    body: Annotated[Optional[GenerateKeyRequest], Body()] = None,
) -> GenerateKeyResponse:
    """Issue a new key. The key value is returned here and never again."""
    name = (body.name or "").strip() if body else ""
    name = name[:MAX_KEY_NAME_LENGTH] or _default_key_name()

    api_key = await store.create(owner_id, name)
    logger.info(f"[API] Generated key {api_key.id} for owner {owner_id}")
    return GenerateKeyResponse(key_id=api_key.id, key=api_key.value)


@router.post("/revokeKey", response_model=RevokeKeyResponse)
async def revoke_key(
    owner_id: Annotated[str, Depends(get_current_owner)],
    store: Annotated[KeyStore, Depends(get_key_store)],
    authenticator: Annotated[ApiKeyAuthenticator, Depends(get_key_authenticator)],
    settings: Annotated[Settings, Depends(get_settings)],
    body: Annotated[Optional[RevokeKeyRequest], Body()] = None,
) -> RevokeKeyResponse:
    """Deactivate one of the caller's keys.

    Scoping the update to the caller's own collection is the ownership check.
    Revoking an already revoked key succeeds without changes.
    """
    key_id = (body.key_id or "").strip() if body else ""
    if not key_id:
        raise InputValidationError("Key ID is required", ErrorCode.MISSING_PARAMETER)

    api_key = await store.deactivate(owner_id, key_id)
    if settings.invalidate_cache_on_revoke:
        await authenticator.forget(api_key.value)
    return RevokeKeyResponse()


@router.get("/search", response_model=SearchResponse)
async def search_pois(
    background_tasks: BackgroundTasks,
    authenticator: Annotated[ApiKeyAuthenticator, Depends(get_key_authenticator)],
    store: Annotated[KeyStore, Depends(get_key_store)],
    poi_client: Annotated[OverpassPOIClient, Depends(get_poi_client)],
    x_api_key: Annotated[Optional[str], Header()] = None,
    lat: Optional[str] = None,
    lon: Optional[str] = None,
    poi_type: Annotated[str, Query(alias="type")] = DEFAULT_POI_TYPE,
    radius: str = str(DEFAULT_RADIUS_METERS),
) -> SearchResponse:
    """Search POIs around a point.

    Key resolution reads through the key cache; usage is counted in the
    background once the response is out.
    """
    ref = await authenticator.resolve(x_api_key)

    if not lat or not lon:
        raise InputValidationError(
            "Latitude and longitude are required", ErrorCode.INVALID_COORDINATES
        )
    request = validate_search_request(lat, lon, poi_type, radius)

    results = await poi_client.search(request)
    background_tasks.add_task(record_usage, store, ref)

    return SearchResponse(results=results, count=len(results))


@router.get("/usage", response_model=UsageResponse)
async def usage_stats(
    owner_id: Annotated[str, Depends(get_current_owner)],
    store: Annotated[KeyStore, Depends(get_key_store)],
) -> UsageResponse:
    """List the caller's keys (previews only) with usage totals."""
    keys = await store.list_by_owner(owner_id)
    return UsageResponse(
        keys=[ApiKeySummary.from_api_key(k) for k in keys],
        total_usage=sum(k.usage_count for k in keys),
        active_keys=sum(1 for k in keys if k.active),
    )
