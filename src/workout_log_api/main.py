"""Main FastAPI application."""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from workout_log_api.api.routes import router
from workout_log_api.auth import INITDATA_HEADER
from workout_log_api.config import Settings
from workout_log_api.services.keyed_lock import KeyedLock
from workout_log_api.store import build_supabase_client

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _malformed_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": {"error": "Malformed request"}})


def create_app(settings: Optional[Settings] = None, supabase_client: Any = None) -> FastAPI:
    """
    Build the application and its long-lived collaborators.

    Args:
        settings: Configuration; read from the environment when omitted
        supabase_client: Store handle; built from ``settings`` when omitted
    """
    settings = settings or Settings()
    missing = settings.missing()
    if missing:
        # Start anyway; affected requests fail when they need the value.
        logger.warning("Missing configuration: %s", ", ".join(missing))

    app = FastAPI(title="Workout Log API")
    app.state.settings = settings
    app.state.supabase = (
        supabase_client if supabase_client is not None else build_supabase_client(settings)
    )
    app.state.replace_locks = KeyedLock()

    # The Mini App sends initData in a custom header, which must survive preflight.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", INITDATA_HEADER],
    )
    app.add_exception_handler(RequestValidationError, _malformed_request)

    app.include_router(router)
    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn on ``PORT``."""
    import uvicorn

    settings = Settings()
    configure_logging(settings.LOG_LEVEL)
    logger.info("Backend running on port %s", settings.PORT)
    # Single worker: replaces are serialized by an in-process lock.
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.PORT, workers=1)


if __name__ == "__main__":
    run()
