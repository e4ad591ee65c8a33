"""
Concrete channels.

Registered channels:
  email - EmailNotifier       (Django mail backend)
  sms   - SmsGatewayNotifier  (HTTP SMS gateway, SMS_GATEWAY_URL)
  log   - LogNotifier         (logger only, for local development)
"""

import logging

import requests
from django.conf import settings
from django.core.mail import send_mail

from .base import BaseNotifier
from .types import NotificationMessage

logger = logging.getLogger(__name__)


class EmailNotifier(BaseNotifier):

    channel = 'email'

    def can_send(self, message: NotificationMessage) -> bool:
        return bool(message.email)

    def send(self, message: NotificationMessage) -> None:
        send_mail(
            subject=message.subject,
            message=message.body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[message.email],
            fail_silently=False,
        )
        logger.info("[Notify] email sent prescription=%s to=%s", message.prescription_id, message.email)


# ── SmsGatewayNotifier ─────────────────────────────────────────────────────
#
# Posts {"to": "+234...", "message": "..."} to SMS_GATEWAY_URL with a bearer
# token. Skipped entirely when no gateway is configured.

class SmsGatewayNotifier(BaseNotifier):

    channel = 'sms'

    def can_send(self, message: NotificationMessage) -> bool:
        return bool(message.phone and getattr(settings, 'SMS_GATEWAY_URL', ''))

    def send(self, message: NotificationMessage) -> None:
        headers = {}
        token = getattr(settings, 'SMS_GATEWAY_TOKEN', '')
        if token:
            headers['Authorization'] = f'Bearer {token}'

        response = requests.post(
            settings.SMS_GATEWAY_URL,
            json={'to': message.phone, 'message': message.body},
            headers=headers,
            timeout=getattr(settings, 'SMS_GATEWAY_TIMEOUT', 10),
        )
        response.raise_for_status()
        logger.info("[Notify] sms sent prescription=%s to=%s", message.prescription_id, message.phone)


class LogNotifier(BaseNotifier):

    channel = 'log'

    def can_send(self, message: NotificationMessage) -> bool:
        return True

    def send(self, message: NotificationMessage) -> None:
        logger.info(
            "[Notify] %s prescription=%s order=%s: %s",
            message.decision, message.prescription_id, message.order_id, message.subject,
        )
