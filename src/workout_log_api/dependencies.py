"""
FastAPI dependencies for the objects built once in ``create_app``.

Everything lives on ``app.state``; nothing here is a module-level singleton.
"""
from typing import Any

from fastapi import HTTPException, Request

from workout_log_api.config import Settings
from workout_log_api.services.keyed_lock import KeyedLock
from workout_log_api.services.user_service import AppUserService
from workout_log_api.services.workout_store import WorkoutReader, WorkoutReplacer


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_supabase(request: Request) -> Any:
    client = request.app.state.supabase
    if client is None:
        raise HTTPException(status_code=500, detail={"error": "Storage not configured"})
    return client


def get_replace_locks(request: Request) -> KeyedLock:
    return request.app.state.replace_locks


def get_workout_replacer(request: Request) -> WorkoutReplacer:
    return WorkoutReplacer(get_supabase(request), get_replace_locks(request))


def get_workout_reader(request: Request) -> WorkoutReader:
    return WorkoutReader(get_supabase(request))


def get_user_service(request: Request) -> AppUserService:
    return AppUserService(get_supabase(request))
