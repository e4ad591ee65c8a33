import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=10,   # base delay (s); backoff doubles it per retry
    acks_late=True,           # ack after running so a crashed worker does not lose it
    reject_on_worker_lost=True,
)
def send_verification_notification(self, prescription_id: int, decision: str, order_id: int, channels=None):
    """
    Tell the patient about a prescription decision for one order.

    Retry policy:
      - up to 3 retries, only for the channels that failed
      - exponential backoff: 10s → 20s → 40s
      - after that the failure is logged and dropped; the decision stands
    """
    from rxgate.models import Order, Prescription
    from rxgate.notifications import NotificationMessage, get_notifiers

    logger.info(
        "[Celery][send_verification_notification] prescription=%s order=%s (attempt %d/%d)",
        prescription_id, order_id, self.request.retries + 1, self.max_retries + 1,
    )

    try:
        prescription = Prescription.objects.get(id=prescription_id)
    except Prescription.DoesNotExist:
        logger.error("[Celery] prescription %s does not exist, skipping", prescription_id)
        return

    order = Order.objects.filter(id=order_id).first()
    message = NotificationMessage.for_decision(prescription, decision, order)
    if not message.has_recipient:
        logger.warning("[Celery] no contact details for prescription=%s, skipping", prescription_id)
        return

    failed = []
    last_exc = None
    for notifier in get_notifiers(channels):
        if not notifier.can_send(message):
            continue
        try:
            notifier.send(message)
        except Exception as exc:
            logger.warning(
                "[Celery] %s delivery failed prescription=%s: %s", notifier.channel, prescription_id, exc,
            )
            failed.append(notifier.channel)
            last_exc = exc

    if not failed:
        return

    if self.request.retries < self.max_retries:
        countdown = self.default_retry_delay * (2 ** self.request.retries)
        logger.info("[Celery] retrying %s in %ds", failed, countdown)
        raise self.retry(
            exc=last_exc,
            countdown=countdown,
            args=(prescription_id, decision, order_id),
            kwargs={'channels': failed},
        )

    logger.error(
        "[Celery] giving up on %s for prescription=%s order=%s after %d retries",
        failed, prescription_id, order_id, self.max_retries,
    )


@shared_task
def cancel_timed_out_orders():
    """
    Cancel orders that waited too long for a prescription and hand their
    reserved stock back. One transaction per order.
    """
    from rxgate.inventory import release_order
    from rxgate.models import Order

    hours = getattr(settings, 'PRESCRIPTION_REVIEW_TIMEOUT_HOURS', 48)
    cutoff = timezone.now() - timedelta(hours=hours)
    order_ids = list(
        Order.objects.filter(
            status=Order.Status.PENDING_PRESCRIPTION,
            created_at__lte=cutoff,
        ).values_list('id', flat=True)
    )

    cancelled = 0
    for order_id in order_ids:
        with transaction.atomic():
            order = (
                Order.objects.select_for_update()
                .filter(id=order_id, status=Order.Status.PENDING_PRESCRIPTION)
                .first()
            )
            if order is None:
                continue
            released = release_order(order)
            order.status = Order.Status.CANCELLED
            order.cancelled_at = timezone.now()
            order.cancel_reason = 'Prescription verification timeout'
            order.save(update_fields=['status', 'cancelled_at', 'cancel_reason', 'updated_at'])
        cancelled += 1
        logger.info("[Celery] order=%s cancelled after %dh, released=%d", order_id, hours, released)

    logger.info("[Celery] timed-out order cleanup done, cancelled=%d", cancelled)
    return cancelled
