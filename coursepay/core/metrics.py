"""Prometheus metric inventory.

Every metric the service exports is declared here; the owning modules
import and increment them at the point of action.

  HTTP metrics        : populated by MetricsMiddleware for every request.
  Payment metrics     : checkout initiation outcomes and webhook handling.
  Coupon metrics      : validation results and confirmed redemptions.

Useful queries:
  rate(payment_webhooks_total{outcome="duplicate"}[5m])
    → how often the gateway redelivers an already-settled webhook
  sum by (outcome) (rate(payment_checkouts_total[5m]))
    → gateway rejection rate at checkout
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

PAYMENT_CHECKOUTS = Counter(
    "payment_checkouts_total",
    "Checkout sessions requested from the payment gateway",
    ["outcome"],  # "created" | "gateway_rejected"
)

GATEWAY_LATENCY = Histogram(
    "payment_gateway_request_seconds",
    "Round-trip time of outbound checkout requests",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0],
)

PAYMENT_WEBHOOKS = Counter(
    "payment_webhooks_total",
    "Gateway webhook deliveries by reported status and handling outcome",
    ["payment_status", "outcome"],  # outcome: applied|duplicate|ignored|not_found
)

# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------

COUPON_VALIDATIONS = Counter(
    "coupon_validations_total",
    "Coupon validation attempts by result",
    ["result"],  # valid|not_found|expired|limit_reached|already_used
)

COUPON_REDEMPTIONS = Counter(
    "coupon_redemptions_total",
    "Coupon usages counted on confirmed payment",
    ["result"],  # counted|over_limit
)
