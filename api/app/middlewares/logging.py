import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..utils.responses import err

logger = logging.getLogger("api")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Emit one structured access log line per request.

    Unhandled exceptions escaping the routes are logged with an ``error_id``
    and converted into a 500 envelope carrying the same id.
    """

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        error_id = None
        try:
            response = await call_next(request)
        except Exception:
            error_id = str(uuid.uuid4())
            logger.exception(
                "unhandled_error error_id=%s",
                error_id,
                extra={"route": request.url.path, "status": 500},
            )
            payload = err(500, "Internal Server Error")
            payload["error_id"] = error_id
            response = JSONResponse(payload, status_code=500)

        dur_ms = int((time.perf_counter() - start) * 1000)
        status = response.status_code
        principal = getattr(request.state, "principal", None)
        extra = {
            "route": request.url.path,
            "status": status,
            "latency_ms": dur_ms,
            "user": getattr(principal, "user_id", None),
        }
        level = logging.ERROR if status >= 500 else logging.INFO
        logger.log(level, "%s %s", request.method, request.url.path, extra=extra)
        return response
