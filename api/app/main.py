# main.py

"""FastAPI application for order management, loyalty and live order status."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.asyncio import from_url
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings

from .errors import OrderError
from .middlewares import LoggingMiddleware, PrometheusMiddleware, RequestIdMiddleware
from .obs import capture_exception, init_sentry
from .obs.logging import configure_logging
from .routes_loyalty import router as loyalty_router
from .routes_metrics import router as metrics_router
from .routes_order_analytics import router as order_analytics_router
from .routes_orders import router as orders_router
from .routes_orders_ws import router as orders_ws_router
from .utils.responses import err, ok, order_error

settings = get_settings()

configure_logging(settings.log_level)
logger = logging.getLogger("api")
init_sentry(settings.error_dsn)

app = FastAPI(
    title="Orders API",
    version="1.0.0",
    servers=[{"url": "/"}],
    openapi_url="/openapi.json",
)
app.state.redis = from_url(settings.redis_url, decode_responses=True)
app.add_middleware(PrometheusMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIdMiddleware)


@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError):
    principal = getattr(request.state, "principal", None)
    logger.warning(
        exc.message,
        extra={
            "status": exc.status_code,
            "route": request.url.path,
            "user": getattr(principal, "user_id", None),
        },
    )
    return JSONResponse(order_error(exc), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(
        "invalid request", extra={"status": 422, "route": request.url.path}
    )
    return JSONResponse(
        err(
            "INVALID_ARGUMENT",
            "Invalid request",
            details={"errors": jsonable_encoder(exc.errors())},
        ),
        status_code=422,
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(
        exc.detail,
        extra={"status": exc.status_code, "route": request.url.path},
    )
    return JSONResponse(
        err(exc.status_code, exc.detail),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    logger.exception(
        "unhandled_error", extra={"status": 500, "route": request.url.path}
    )
    capture_exception(exc)
    return JSONResponse(err(500, "Internal Server Error"), status_code=500)


@app.get("/health")
async def health() -> dict:
    return ok({"status": "ok"})


app.include_router(order_analytics_router)
app.include_router(orders_router)
app.include_router(loyalty_router)
app.include_router(orders_ws_router)
app.include_router(metrics_router)
