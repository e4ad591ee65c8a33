"""
REST_FRAMEWORK['EXCEPTION_HANDLER'] for the prescription API.

Every rxgate error reaches the client as

    409 {"type": "block", "code": "PRESCRIPTION_ALREADY_PROCESSED",
         "message": "Prescription is already processed",
         "detail": {"prescription_id": 12, "status": "verified"}}

so a pharmacist UI retrying a decision, or a patient page polling statuses,
only has to look for "type". Successful bodies never carry it.

Malformed JSON and DRF's own validation errors are folded into the same
validation_error shape. Anything DRF knows how to answer (404 routes, 405) is
left to DRF; anything else propagates as a 500.
"""

import logging

from django.http import JsonResponse
from rest_framework.exceptions import ParseError
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.views import exception_handler as drf_default_handler

from .exceptions import BaseAppException, ValidationError

logger = logging.getLogger(__name__)


def _from_drf(exc):
    return ValidationError(
        message='Malformed request body' if isinstance(exc, ParseError) else None,
        detail={'errors': [{'field': 'body', 'message': str(exc.detail)}]},
    )


def _view_name(context):
    view = (context or {}).get('view')
    return type(view).__name__ if view is not None else '-'


def unified_exception_handler(exc, context):
    if isinstance(exc, (DRFValidationError, ParseError)):
        exc = _from_drf(exc)

    if not isinstance(exc, BaseAppException):
        return drf_default_handler(exc, context)

    logger.info("[API][%s] %s %s: %s", _view_name(context), exc.http_status, exc.code, exc.message)
    body = {'type': exc.type, 'code': exc.code, 'message': exc.message}
    if exc.detail is not None:
        body['detail'] = exc.detail
    return JsonResponse(body, status=exc.http_status)
