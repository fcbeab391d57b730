"""
Presence API

HTTP endpoint that lets external services change the displayed activity of
a running bot.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .api_key_middleware import APIKeyMiddleware

logger = logging.getLogger(__name__)


class PresenceUpdateRequest(BaseModel):
    name: Optional[str] = None
    status: Optional[str] = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(supervisor, api_key: str) -> FastAPI:
    """
    Build the API application.

    Args:
        supervisor: LifecycleSupervisor whose active bots can be updated
        api_key: Shared secret required in the X-API-Key header
    """
    app = FastAPI(
        title="Bot Manager API",
        description="Presence updates for bots run by the bot manager",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.supervisor = supervisor
    app.add_middleware(APIKeyMiddleware, api_key=api_key)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies get the same answer as missing fields."""
        for error in exc.errors():
            logger.warning(
                f"Rejected {request.method} {request.url.path}: "
                f"{' -> '.join(str(loc) for loc in error['loc'])}: {error['msg']}"
            )
        return _error(400, "Name and status are required.")

    @app.post("/api/bot/presence")
    async def set_bot_presence(body: PresenceUpdateRequest):
        if not body.name or not body.status:
            return _error(400, "Name and status are required.")

        if not supervisor.is_active(body.name):
            return _error(404, "Bot not found or not logged in.")

        try:
            updated = await supervisor.set_bot_presence(body.name, body.status)
        except Exception as e:
            logger.error(f"Failed to update presence for bot {body.name}: {e}")
            return _error(500, "Failed to update bot presence.")

        if not updated:
            # Stopped between the check and the update
            return _error(404, "Bot not found or not logged in.")

        return {"message": "Bot presence updated successfully."}

    return app
