import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from exceptions import WhittleError
from security.auth import authenticate, require_auth
from utils.logging import get_logger, request_id_var

logger = get_logger("http")


def error_response(exc: WhittleError) -> JSONResponse:
    """Render a WhittleError as {success: false, error, message, **details}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.error_code,
            "message": exc.message,
            **exc.details,
        },
    )


class RequestGuardMiddleware(BaseHTTPMiddleware):
    """Request ID, API key checks and a one-line access log.

    Auth failures short-circuit before routing; errors raised by handlers
    are rendered by the app's WhittleError handler. Every response,
    including rejections, carries X-Request-ID.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        started = time.perf_counter()

        try:
            request.state.is_authenticated = authenticate(request)
            require_auth(request, request.state.is_authenticated)
            response = await call_next(request)
        except WhittleError as exc:
            response = error_response(exc)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={
                "request_id": request_id,
                "context": {
                    "status": response.status_code,
                    "duration_ms": round(elapsed_ms, 1),
                },
            },
        )
        return response
