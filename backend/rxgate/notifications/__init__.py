from .dispatcher import NotificationDispatcher, enqueue_verification_notification
from .factory import get_notifiers
from .types import NotificationMessage

__all__ = [
    'NotificationDispatcher',
    'NotificationMessage',
    'enqueue_verification_notification',
    'get_notifiers',
]
