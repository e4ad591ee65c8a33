"""
Phone / email normalization for prescription contacts.

Phones end up in one canonical international form ("+<cc><10 digits>") so the
same patient is matched whatever way they typed the number.
"""

import logging
import re

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email

from .exceptions import InvalidContact
from .intake.types import ContactData

logger = logging.getLogger(__name__)

_STRIP_RE = re.compile(r'[^+\d]')


def _country_code():
    return str(getattr(settings, 'PHONE_COUNTRY_CODE', '234'))


def normalize_phone(raw: str) -> str:
    """
    "0803 123 4567"   → "+2348031234567"
    "234-803-123-4567" → "+2348031234567"

    Raises InvalidContact when the result is not "+<cc>" followed by 10 digits.
    """
    cc = _country_code()
    cleaned = _STRIP_RE.sub('', raw or '')
    if cleaned.startswith('0'):
        cleaned = f'+{cc}{cleaned[1:]}'
    elif cleaned.startswith(cc):
        cleaned = f'+{cleaned}'

    if not re.fullmatch(rf'\+{cc}\d{{10}}', cleaned):
        raise InvalidContact(
            message=f'Invalid phone number: {raw!r}',
            detail={'field': 'phone'},
        )
    return cleaned


def normalize_email(raw: str) -> str:
    email = (raw or '').strip()
    try:
        validate_email(email)
    except DjangoValidationError:
        raise InvalidContact(
            message=f'Invalid email address: {raw!r}',
            detail={'field': 'email'},
        )
    local, domain = email.rsplit('@', 1)
    return f'{local}@{domain.lower()}'


def is_email(raw: str) -> bool:
    try:
        normalize_email(raw)
    except InvalidContact:
        return False
    return True


def split_contact(raw):
    """A single free-form contact string → ContactData(email=…) or ContactData(phone=…)."""
    if not raw or not str(raw).strip():
        return ContactData()
    raw = str(raw).strip()
    if is_email(raw):
        return ContactData(email=raw)
    return ContactData(phone=raw)


def normalize_contact(phone=None, email=None, required=False) -> ContactData:
    """
    Normalize whichever of phone / email was given.

    Values that fail validation are dropped (and logged). When `required` is
    set at least one of the two has to survive, else InvalidContact.
    """
    result = ContactData()
    errors = []

    if phone:
        try:
            result.phone = normalize_phone(phone)
        except InvalidContact as exc:
            errors.append(exc.message)
            logger.warning("[Contact] dropping invalid phone %r", phone)

    if email:
        try:
            result.email = normalize_email(email)
        except InvalidContact as exc:
            errors.append(exc.message)
            logger.warning("[Contact] dropping invalid email %r", email)

    if required and result.is_empty:
        raise InvalidContact(detail={'errors': errors} if errors else None)

    return result
