"""
NotificationMessage: the one shape every channel understands.

Content is minimal: a subject and a one-line body with a link
back to the status page.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from django.conf import settings


@dataclass
class NotificationMessage:
    prescription_id: int
    decision: str
    subject: str
    body: str
    email: Optional[str] = None
    phone: Optional[str] = None
    order_id: Optional[int] = None

    @property
    def has_recipient(self) -> bool:
        return bool(self.email or self.phone)

    @classmethod
    def for_decision(cls, prescription, decision, order=None) -> 'NotificationMessage':
        email = prescription.email or (order.email if order else None)
        phone = prescription.phone or (order.phone if order else None)

        params = {'patientIdentifier': prescription.patient_identifier}
        payable = order is not None and order.total_price and order.total_price > 0
        if payable:
            params['orderId'] = order.id
        link = f"{settings.FRONTEND_URL}/status-check?{urlencode(params)}"

        if decision == 'verified':
            subject = 'Your Prescription is Ready'
            action = 'Complete your order payment' if payable else 'View your items and select a provider'
            body = f"Your prescription #{prescription.id} has been verified. {action}: {link}"
        else:
            subject = 'Prescription Rejected'
            reason = f" ({prescription.rejection_reason})" if prescription.rejection_reason else ''
            body = (
                f"Your prescription #{prescription.id} was rejected{reason}. "
                f"Please upload a clearer image or contact support."
            )

        return cls(
            prescription_id=prescription.id,
            decision=decision,
            subject=subject,
            body=body,
            email=email,
            phone=phone,
            order_id=order.id if order else None,
        )
