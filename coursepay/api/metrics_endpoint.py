"""Prometheus scrape endpoint.

Returns every registered metric in the text exposition format, e.g.

  payment_webhooks_total{payment_status="COMPLETED",outcome="applied"} 42.0
  coupon_validations_total{result="expired"} 3.0

Keep it off the public ingress in production; counters reveal payment
volume.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
