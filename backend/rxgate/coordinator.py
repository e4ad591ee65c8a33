"""
Fulfillment transaction coordinator.

Turns a verification decision into one atomic change across the prescription,
every order waiting on it and the stock those orders hold:

    pending ──verify──▶ verified   orders → pending (or confirmed when paid)
       │
       └────reject───▶ rejected   orders → cancelled (policy "cancel")
                                          or pending_prescription (policy "retry")
                                   reserved stock handed back

The status check and the status write share one transaction: the row is
locked and the UPDATE is conditional on status = pending, so of two racing
decisions exactly one wins and the other gets AlreadyProcessed.

Notifications go out after the atomic block and can only ever be reported
back, never undo the decision. The block is durable: decide() refuses to run
inside an outer transaction (e.g. ATOMIC_REQUESTS), since its notifications
would then be queued before the decision is really committed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .exceptions import AlreadyProcessed, ReasonRequired, ValidationError
from .inventory import release_order
from .models import Order, Prescription
from .notifications import NotificationDispatcher
from .services import lock_prescription

logger = logging.getLogger(__name__)

REJECT_CANCELS = 'cancel'
REJECT_RETRIES = 'retry'
REJECTION_POLICIES = (REJECT_CANCELS, REJECT_RETRIES)

DECISIONS = (Prescription.Status.VERIFIED, Prescription.Status.REJECTED)


@dataclass
class DecisionResult:
    prescription: Any
    decision: str
    orders: list = field(default_factory=list)
    released_units: int = 0
    notification_failures: list = field(default_factory=list)


def _normalize_decision(decision):
    value = str(decision or '').strip().lower()
    if value not in DECISIONS:
        raise ValidationError(
            message=f'Unknown decision: {decision!r}',
            code='INVALID_DECISION',
            detail={'allowed': [d.value for d in DECISIONS]},
        )
    return value


class FulfillmentCoordinator:

    def __init__(self, using='default', dispatcher=None, rejection_policy=None):
        self.using = using
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.rejection_policy = rejection_policy or getattr(
            settings, 'PRESCRIPTION_REJECTION_POLICY', REJECT_CANCELS,
        )
        if self.rejection_policy not in REJECTION_POLICIES:
            raise ValueError(
                f"Unknown rejection policy: {self.rejection_policy!r}. "
                f"Known policies: {list(REJECTION_POLICIES)}"
            )

    def decide(self, prescription_id, decision, rejection_reason=None):
        """
        Verify or reject a pending prescription and cascade to its orders.

        Raises PrescriptionNotFound / AlreadyProcessed / ReasonRequired /
        ValidationError with nothing written. Notification problems are
        returned in DecisionResult.notification_failures.
        """
        decision = _normalize_decision(decision)
        reason = (rejection_reason or '').strip()

        # exists → pending → reason
        with transaction.atomic(using=self.using, durable=True):
            prescription = self._lock_prescription(prescription_id)
            if not prescription.is_pending:
                raise AlreadyProcessed(
                    detail={'prescription_id': prescription.id, 'status': prescription.status},
                )
            if decision == Prescription.Status.REJECTED and not reason:
                raise ReasonRequired(detail={'prescription_id': prescription.id})

            self._write_status(prescription, decision, reason or None)

            orders = list(
                Order.objects.using(self.using)
                .select_for_update()
                .filter(prescription=prescription, status__in=Order.AWAITING_REVIEW)
                .order_by('id')
            )
            released = 0
            for order in orders:
                if decision == Prescription.Status.VERIFIED:
                    self._advance(order)
                else:
                    released += self._reject(order, reason)

        logger.info(
            "[Coordinator] prescription=%s %s, orders=%s, released=%d",
            prescription.id, decision, [o.id for o in orders], released,
        )

        failures = self.dispatcher.dispatch(prescription, decision, orders)
        for failure in failures:
            logger.warning("[Coordinator] %s %s", failure.code, failure.detail)

        return DecisionResult(
            prescription=prescription,
            decision=decision,
            orders=orders,
            released_units=released,
            notification_failures=failures,
        )

    # ── steps ──────────────────────────────────────────────────────────────

    def _lock_prescription(self, prescription_id):
        return lock_prescription(prescription_id, using=self.using)

    def _write_status(self, prescription, decision, reason):
        now = timezone.now()
        values = {
            'status': decision,
            'verified': decision == Prescription.Status.VERIFIED,
            'rejection_reason': reason if decision == Prescription.Status.REJECTED else None,
            'updated_at': now,
        }
        # compare-and-swap against the stored status
        updated = (
            Prescription.objects.using(self.using)
            .filter(pk=prescription.pk, status=Prescription.Status.PENDING)
            .update(**values)
        )
        if updated != 1:
            raise AlreadyProcessed(detail={'prescription_id': prescription.pk})

        for name, value in values.items():
            setattr(prescription, name, value)

    def _advance(self, order):
        if order.payment_status == Order.PaymentStatus.PAID:
            order.status = Order.Status.CONFIRMED
        else:
            order.status = Order.Status.PENDING
        order.save(using=self.using, update_fields=['status', 'updated_at'])

    def _reject(self, order, reason):
        released = release_order(order, using=self.using)
        if self.rejection_policy == REJECT_RETRIES:
            order.status = Order.Status.PENDING_PRESCRIPTION
            order.save(using=self.using, update_fields=['status', 'updated_at'])
        else:
            order.status = Order.Status.CANCELLED
            order.cancelled_at = timezone.now()
            order.cancel_reason = reason
            order.save(using=self.using, update_fields=['status', 'cancelled_at', 'cancel_reason', 'updated_at'])
        return released
