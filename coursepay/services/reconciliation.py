"""Payment reconciliation: applies gateway webhooks to enrollment state.

State machine per transaction id::

    pending ──COMPLETED──▶ completed
       │ ────FAILED─────▶ failed
       └─────CANCELLED──▶ cancelled

Terminal states never move again.  A COMPLETED delivery also settles
the side effects of the purchase, all in the same store transaction as
the status change:

  - the coupon (if any) counts one more use, guarded by its usage limit
  - the course id joins the student's enrolled courses (set semantics)
  - the course's student count goes up by one

Exactly-once comes from the conditional transition: the status only
changes if it is still ``pending`` when the UPDATE runs, and the side
effects only run when that transition succeeded.  Redelivered webhooks
find a terminal status and are acknowledged as duplicates.  A per-
transaction lock keeps concurrent deliveries from even racing to that
point.

Outcomes reported to the caller (and to the payment_webhooks_total
metric):

  applied     the delivery changed the enrollment
  duplicate   the enrollment was already terminal
  ignored     the gateway reported a status we do not act on
  not_found   no enrollment carries this transaction id (raises)
"""

from __future__ import annotations

import datetime
import logging

from coursepay.core.metrics import COUPON_REDEMPTIONS, PAYMENT_WEBHOOKS
from coursepay.db.store import Repos, Store
from coursepay.models.enrollment import (
    CANCELLED,
    COMPLETED,
    FAILED,
    PENDING,
    Enrollment,
)
from coursepay.services.errors import NotFoundError
from coursepay.services.locks import WebhookLocks, webhook_locks
from coursepay.services.payment_gateway import WebhookPayload

logger = logging.getLogger(__name__)

APPLIED = "applied"
DUPLICATE = "duplicate"
IGNORED = "ignored"

_TARGET_STATUS = {
    "COMPLETED": COMPLETED,
    "FAILED": FAILED,
    "CANCELLED": CANCELLED,
}


async def handle_webhook(
    store: Store,
    payload: WebhookPayload,
    *,
    locks: WebhookLocks | None = None,
) -> str:
    """Apply one webhook delivery. Returns the outcome label."""
    locks = locks or webhook_locks
    txn = payload.transaction_id
    status_label = (
        payload.payment_status if payload.payment_status in _TARGET_STATUS else "other"
    )
    log_extra = {"transaction_id": txn, "payment_status": payload.payment_status}

    async with locks.hold(txn):
        async with store.transaction() as repos:
            enrollment = await repos.enrollments.get_by_transaction_id(txn)
            if enrollment is None:
                PAYMENT_WEBHOOKS.labels(
                    payment_status=status_label, outcome="not_found"
                ).inc()
                logger.warning("Webhook for unknown transaction", extra=log_extra)
                raise NotFoundError("Enrollment not found")

            target = _TARGET_STATUS.get(payload.payment_status)
            if target is None:
                outcome = IGNORED
            else:
                updated = await repos.enrollments.transition(
                    txn,
                    from_status=PENDING,
                    to_status=target,
                    payment_details=(
                        _payment_details(payload) if target == COMPLETED else None
                    ),
                )
                if updated is None:
                    outcome = DUPLICATE
                else:
                    outcome = APPLIED
                    if target == COMPLETED:
                        await _settle(repos, updated)

    PAYMENT_WEBHOOKS.labels(payment_status=status_label, outcome=outcome).inc()
    logger.info("Webhook %s enrollment=%s", outcome, enrollment.id, extra=log_extra)
    return outcome


def _payment_details(payload: WebhookPayload) -> dict:
    return {
        "invoice_id": payload.invoice_id,
        "payment_method": payload.payment_method,
        "paid_amount": str(payload.amount) if payload.amount is not None else None,
        "paid_at": datetime.datetime.now(datetime.UTC).isoformat(),
    }


async def _settle(repos: Repos, enrollment: Enrollment) -> None:
    if enrollment.coupon_id is not None:
        counted = await repos.coupons.increment_used_count(enrollment.coupon_id)
        if counted:
            COUPON_REDEMPTIONS.labels(result="counted").inc()
        else:
            # Payment already happened; the enrollment completes regardless.
            COUPON_REDEMPTIONS.labels(result="over_limit").inc()
            logger.warning(
                "Coupon %s already at its usage limit, not counted for "
                "transaction_id=%s",
                enrollment.coupon_id,
                enrollment.transaction_id,
            )

    try:
        await repos.users.add_enrolled_course(
            enrollment.student_id, enrollment.course_id
        )
    except KeyError:
        logger.error(
            "Student %s missing while settling transaction_id=%s",
            enrollment.student_id,
            enrollment.transaction_id,
        )

    try:
        await repos.courses.increment_student_count(enrollment.course_id)
    except KeyError:
        logger.error(
            "Course %s missing while settling transaction_id=%s",
            enrollment.course_id,
            enrollment.transaction_id,
        )
