"""App user records backed by the Supabase ``app_users`` table."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from workout_log_api.store import execute
from workout_log_api.telegram_auth import TelegramPrincipal

logger = logging.getLogger(__name__)

_TABLE = "app_users"


class AppUserService:
    """Create-or-refresh of the durable user record for a verified principal."""

    def __init__(self, client: Any):
        self.client = client

    def upsert_principal(self, principal: TelegramPrincipal) -> None:
        """Insert the user or refresh username/first_name. Raises StoreError."""
        execute(
            self.client.table(_TABLE).upsert(
                {
                    "telegram_id": principal.id,
                    "username": principal.username,
                    "first_name": principal.first_name,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                },
                on_conflict="telegram_id",
            ),
            "upsert app user",
        )
        logger.debug("App user %s refreshed", principal.id)
