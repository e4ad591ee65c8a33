"""
Post-commit hand-off of decision notifications.

One call per affected order; each is its own failure domain. Failures come
back as NotificationFailed values, never as raised exceptions.
"""

import logging

from ..exceptions import NotificationFailed

logger = logging.getLogger(__name__)


def enqueue_verification_notification(prescription, decision, order):
    """Default transport: one Celery task per order."""
    from rxgate.tasks import send_verification_notification

    send_verification_notification.delay(prescription.id, decision, order.id)


class NotificationDispatcher:

    def __init__(self, notify=None):
        self._notify = notify or enqueue_verification_notification

    def dispatch(self, prescription, decision, orders):
        failures = []
        for order in orders:
            try:
                self._notify(prescription, decision, order)
            except Exception as exc:  # any transport error; the decision is already committed
                logger.exception(
                    "[Notify] dispatch failed prescription=%s order=%s", prescription.id, order.id,
                )
                failures.append(NotificationFailed(
                    message=f'Notification for order {order.id} could not be dispatched',
                    detail={
                        'prescription_id': prescription.id,
                        'order_id': order.id,
                        'error': str(exc),
                    },
                ))
        return failures
