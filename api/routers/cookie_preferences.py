"""
Cookie preference endpoints.
"""

from fastapi import APIRouter, Depends, Request, status
from redis.exceptions import RedisError

from api.errors.exceptions import NotFoundException, StoreUnavailableException
from api.monitoring.metrics import record_preference_operation, update_stored_preferences
from core.logging_config import get_logger
from models.cookies import (
    CookieListResponse,
    CookieResponse,
    CookieSettingsPayload,
)
from services.preference_store import PreferenceStore

logger = get_logger(__name__)

router = APIRouter()


def get_preference_store(request: Request) -> PreferenceStore:
    """Dependency to get the preference store from app state."""
    return request.app.state.preference_store


@router.get(
    "",
    response_model=CookieListResponse,
    status_code=status.HTTP_200_OK,
    summary="List cookie preferences",
    description="Administrative listing of every stored consent record"
)
async def list_preferences(store: PreferenceStore = Depends(get_preference_store)):
    """
    List all stored cookie preferences.

    Intended for administrative inspection. No ordering is guaranteed.
    """
    try:
        records = store.list_all()
    except RedisError as e:
        logger.error("preference_list_failed", error=str(e))
        raise StoreUnavailableException()

    update_stored_preferences(len(records))
    record_preference_operation("list", "ok")
    return CookieListResponse(success=True, data=records)


@router.post(
    "",
    response_model=CookieResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="Save cookie preferences",
    description="Validate and store the complete consent record for a user"
)
async def save_preferences(
    payload: CookieSettingsPayload,
    store: PreferenceStore = Depends(get_preference_store)
):
    """
    Save cookie preferences.

    Full-replace upsert keyed by ``userId``: callers submit the complete
    desired state. ``essential`` is always stored as true and any supplied
    ``timestamp`` is replaced by the server time.
    """
    try:
        record = store.save(payload)
        update_stored_preferences(store.count())
    except RedisError as e:
        logger.error("preference_save_failed", user_id=payload.user_id, error=str(e))
        raise StoreUnavailableException()

    record_preference_operation("save", "ok")
    logger.info("preferences_saved", user_id=record.user_id, timestamp=record.timestamp)
    return CookieResponse(success=True, message="Cookie preferences saved")


@router.get(
    "/{user_id:path}",
    response_model=CookieResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="Get cookie preferences",
    description="Retrieve the consent record stored for a user"
)
async def get_preferences(
    user_id: str,
    store: PreferenceStore = Depends(get_preference_store)
):
    """Get cookie preferences by exact ``userId``."""
    try:
        record = store.get(user_id)
    except RedisError as e:
        logger.error("preference_get_failed", user_id=user_id, error=str(e))
        raise StoreUnavailableException()

    if record is None:
        record_preference_operation("get", "not_found")
        raise NotFoundException(user_id)

    record_preference_operation("get", "ok")
    return CookieResponse(success=True, data=record)


@router.delete(
    "/{user_id:path}",
    response_model=CookieResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="Delete cookie preferences",
    description="Remove the consent record stored for a user"
)
async def delete_preferences(
    user_id: str,
    store: PreferenceStore = Depends(get_preference_store)
):
    """
    Delete cookie preferences.

    Never fails because nothing was stored: ``success`` reports whether a
    record actually existed.
    """
    try:
        deleted = store.delete(user_id)
        update_stored_preferences(store.count())
    except RedisError as e:
        logger.error("preference_delete_failed", user_id=user_id, error=str(e))
        raise StoreUnavailableException()

    record_preference_operation("delete", "ok" if deleted else "not_found")
    return CookieResponse(
        success=deleted,
        message="Cookie preferences deleted" if deleted else "Cookie preferences not found"
    )
