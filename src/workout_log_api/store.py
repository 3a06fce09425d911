"""
Supabase store handle.

The client is built once by the application factory and handed to every
service that needs it. It holds no per-request state, so it needs no
teardown.
"""
import logging
from typing import Any, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from workout_log_api.config import Settings
from workout_log_api.services.errors import StoreError

logger = logging.getLogger(__name__)


def build_supabase_client(settings: Settings) -> Optional[Client]:
    """Create the Supabase client, or None when credentials are missing."""
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE:
        logger.warning("Supabase credentials not configured. Workout storage is unavailable.")
        return None

    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE)
    except Exception as e:
        logger.error("Failed to create Supabase client: %s", e)
        return None


def execute(query: Any, operation: str) -> Any:
    """
    Execute a single PostgREST request.

    Args:
        query: A built supabase-py request (anything with ``execute()``)
        operation: Short label used in logs and in the raised error

    Returns:
        The response ``data`` (a list of rows, possibly empty)

    Raises:
        StoreError: If PostgREST or the transport reports a failure
    """
    try:
        response = query.execute()
    except APIError as e:
        message = getattr(e, "message", None) or str(e)
        logger.error("Store call failed (%s): %s", operation, message)
        raise StoreError(message, operation) from e
    except httpx.HTTPError as e:
        logger.error("Store transport failed (%s): %s", operation, e)
        raise StoreError(str(e), operation) from e

    if response is None or response.data is None:
        return []
    return response.data
