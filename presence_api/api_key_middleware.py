import hmac
import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Middleware to authenticate requests using a shared API key.

    Checks the X-API-Key header on every request.
    Returns 403 Forbidden if the key is missing or does not match.
    """

    def __init__(self, app, api_key: str):
        super().__init__(app)
        self.api_key = api_key

    async def dispatch(self, request: Request, call_next):
        api_key = request.headers.get("X-API-Key")

        if not api_key or not hmac.compare_digest(api_key.encode(), self.api_key.encode()):
            client_ip = (
                request.headers.get("x-forwarded-for")
                or (request.client.host if request.client else None)
            )
            logger.warning(
                f"Invalid API key attempt from IP: {client_ip}, key provided: {'yes' if api_key else 'no'}"
            )
            return JSONResponse(
                content={"error": "Forbidden: Invalid API Key"},
                status_code=403,
            )

        return await call_next(request)
