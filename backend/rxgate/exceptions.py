"""
Unified exception hierarchy.

Every business exception inherits BaseAppException and carries:
- type:        error family (validation_error / not_found / block / notification_error)
- code:        machine-readable code (PRESCRIPTION_NOT_FOUND, REASON_REQUIRED, ...)
- message:     human-readable description
- detail:      optional extra payload (dict / list / None)
- http_status: HTTP status used by the API layer

Services only raise; exception_handler formats the response.
"""


class BaseAppException(Exception):
    """Base class for all business exceptions."""

    type = 'error'
    code = 'UNKNOWN_ERROR'
    http_status = 500
    default_message = 'Unexpected error'

    def __init__(self, message=None, code=None, detail=None, http_status=None):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        self.detail = detail
        super().__init__(self.message)


# ── InvalidInput ──────────────────────────────────────────────────────────

class ValidationError(BaseAppException):
    """Malformed or missing input. Nothing is written, 400."""

    type = 'validation_error'
    code = 'VALIDATION_ERROR'
    http_status = 400
    default_message = 'Request validation failed'


class InvalidCoordinates(ValidationError):
    code = 'INVALID_COORDINATES'
    default_message = 'Invalid latitude or longitude'


class InvalidContact(ValidationError):
    code = 'INVALID_CONTACT'
    default_message = 'A valid phone number or email address is required'


class ReasonRequired(ValidationError):
    code = 'REASON_REQUIRED'
    default_message = 'A rejection reason is required when rejecting a prescription'


# ── NotFound ──────────────────────────────────────────────────────────────

class NotFoundError(BaseAppException):
    type = 'not_found'
    code = 'NOT_FOUND'
    http_status = 404
    default_message = 'Resource not found'


class PrescriptionNotFound(NotFoundError):
    code = 'PRESCRIPTION_NOT_FOUND'
    default_message = 'Prescription not found'


class OrderNotFound(NotFoundError):
    code = 'ORDER_NOT_FOUND'
    default_message = 'Order not found'


class CatalogItemNotFound(NotFoundError):
    code = 'CATALOG_ITEM_NOT_FOUND'
    default_message = 'Catalog item not found'


# ── Business blocks ───────────────────────────────────────────────────────

class BlockError(BaseAppException):
    """A business rule prevents the operation, 409."""

    type = 'block'
    code = 'BUSINESS_BLOCK'
    http_status = 409
    default_message = 'Operation not allowed'


class AlreadyProcessed(BlockError):
    code = 'PRESCRIPTION_ALREADY_PROCESSED'
    default_message = 'Prescription is already processed'


class NoEligibleItems(BlockError):
    code = 'NO_ELIGIBLE_ITEMS'
    default_message = 'Order has no items that require a prescription'


class InsufficientStock(BlockError):
    code = 'INSUFFICIENT_STOCK'
    default_message = 'Not enough stock to reserve'


# ── Post-commit ───────────────────────────────────────────────────────────

class NotificationFailed(BaseAppException):
    """
    Delivery of a decision notification failed.

    Never raised out of a decision: the coordinator collects these on the
    DecisionResult, the committed decision stands.
    """

    type = 'notification_error'
    code = 'NOTIFICATION_FAILED'
    http_status = 502
    default_message = 'Notification could not be dispatched'
