"""
Authentication for Telegram Mini App requests.

Every protected request carries the raw initData in the
``x-telegram-initdata`` header and is verified from scratch; no session or
token is issued. The verified Telegram user id is returned to the route as
a plain value.
"""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException

from workout_log_api.config import Settings
from workout_log_api.dependencies import get_settings
from workout_log_api.telegram_auth import (
    VerificationResult,
    extract_unverified_user_id,
    verify_init_data,
)

logger = logging.getLogger(__name__)

INITDATA_HEADER = "x-telegram-initdata"


def verify_or_raise(
    init_data: str,
    settings: Settings,
    include_debug: bool = False,
) -> VerificationResult:
    """
    Verify initData and turn a failure into a 401.

    The short hash preview is attached only when ``include_debug`` is set and
    the service is not running in production.
    """
    result = verify_init_data(init_data, settings.BOT_TOKEN, settings.INITDATA_MAX_AGE_SECONDS)
    if result.ok:
        return result

    logger.info(
        "initData rejected: reason=%s claimed_user=%s",
        result.reason,
        extract_unverified_user_id(init_data),
    )
    detail = {"error": "Invalid initData", "reason": result.reason}
    if include_debug and not settings.is_production:
        detail["debug"] = result.debug
    raise HTTPException(status_code=401, detail=detail)


async def get_current_telegram_id(
    x_telegram_initdata: Optional[str] = Header(None, alias=INITDATA_HEADER),
    settings: Settings = Depends(get_settings),
) -> int:
    """
    Require a valid initData header and return the Telegram user id.

    Usage:
        @router.get("/protected")
        def protected_route(telegram_id: int = Depends(get_current_telegram_id)):
            return {"telegram_id": telegram_id}
    """
    if not x_telegram_initdata:
        raise HTTPException(
            status_code=401,
            detail={
                "error": f"{INITDATA_HEADER} header required",
                "reason": "missing_initdata",
            },
        )

    result = verify_or_raise(x_telegram_initdata, settings)
    return result.principal.id
