# routes_metrics.py

"""Prometheus metrics and /metrics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Counters
http_requests_total = Counter(
    "http_requests_total", "Total HTTP requests", ["path", "method", "status"]
)

http_errors_total = Counter("http_errors_total", "Total HTTP errors", ["status"])
http_errors_total.labels(status="0").inc(0)

orders_created_total = Counter("orders_created_total", "Total orders created")
orders_created_total.inc(0)

order_transitions_total = Counter(
    "order_transitions_total", "Committed order status transitions", ["status"]
)

order_transition_rejections_total = Counter(
    "order_transition_rejections_total",
    "Transition requests rejected by validation",
    ["code"],
)

loyalty_points_awarded_total = Counter(
    "loyalty_points_awarded_total", "Loyalty points awarded on orders"
)
loyalty_points_awarded_total.inc(0)

loyalty_points_redeemed_total = Counter(
    "loyalty_points_redeemed_total", "Loyalty points redeemed for discounts"
)
loyalty_points_redeemed_total.inc(0)

notification_publish_failures_total = Counter(
    "notification_publish_failures_total",
    "Order notifications that could not be published",
)
notification_publish_failures_total.inc(0)

# Histograms
db_query_seconds = Histogram(
    "db_query_seconds", "SQL statement latency", ["db", "verb"]
)

# Gauges
ws_clients = Gauge("ws_clients", "Connected order WebSocket subscribers")

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics in text format."""

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
