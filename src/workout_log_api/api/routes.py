"""API routes for Telegram authentication and workout logs."""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from workout_log_api.auth import get_current_telegram_id, verify_or_raise
from workout_log_api.config import Settings
from workout_log_api.dependencies import (
    get_settings,
    get_user_service,
    get_workout_reader,
    get_workout_replacer,
)
from workout_log_api.models import ValidationError, parse_workout_date, parse_workout_payload
from workout_log_api.services.errors import StoreError
from workout_log_api.services.user_service import AppUserService
from workout_log_api.services.workout_store import WorkoutReader, WorkoutReplacer

logger = logging.getLogger(__name__)

router = APIRouter()


def _store_failure(e: StoreError, settings: Settings) -> HTTPException:
    """500 for a failed store call; the raw message stays in the logs in production."""
    message = "Storage error" if settings.is_production else e.message
    return HTTPException(status_code=500, detail={"error": message})


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health")
def health():
    """Health check endpoint."""
    return {"ok": True}


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


@router.post("/api/auth/telegram")
def auth_telegram(
    body: Any = Body(None),
    settings: Settings = Depends(get_settings),
    users: AppUserService = Depends(get_user_service),
):
    """Verify initData from the Mini App and create or refresh the app user."""
    init_data = body.get("initData") if isinstance(body, dict) else None
    if not init_data or not isinstance(init_data, str):
        raise HTTPException(status_code=400, detail={"error": "initData required"})

    result = verify_or_raise(init_data, settings, include_debug=True)
    principal = result.principal

    try:
        users.upsert_principal(principal)
    except StoreError as e:
        raise _store_failure(e, settings)

    logger.info("Telegram user %s authenticated", principal.id)
    return {"telegramId": principal.id}


# ---------------------------------------------------------------------------
# Workouts
# ---------------------------------------------------------------------------


@router.get("/api/workouts")
def get_workout(
    date: Optional[str] = Query(None),
    telegram_id: int = Depends(get_current_telegram_id),
    settings: Settings = Depends(get_settings),
    reader: WorkoutReader = Depends(get_workout_reader),
):
    """Return the workout logged for ``date`` (YYYY-MM-DD), or null."""
    try:
        workout_date = parse_workout_date(date, "date")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail={"error": str(e)})

    try:
        return reader.read(telegram_id, workout_date)
    except StoreError as e:
        raise _store_failure(e, settings)


@router.post("/api/workouts")
def save_workout(
    body: Any = Body(None),
    telegram_id: int = Depends(get_current_telegram_id),
    settings: Settings = Depends(get_settings),
    replacer: WorkoutReplacer = Depends(get_workout_replacer),
):
    """
    Replace the whole workout for ``workout_date``.

    The body is the complete desired state; exercises and sets that are not
    sent are removed.
    """
    try:
        payload = parse_workout_payload(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail={"error": str(e)})

    try:
        workout_id = replacer.replace(
            telegram_id,
            payload.workout_date,
            payload.title,
            payload.notes,
            payload.exercises,
        )
    except StoreError as e:
        raise _store_failure(e, settings)

    return {"ok": True, "workout_id": workout_id}
