"""
Factory: settings.NOTIFICATION_CHANNELS → notifier instances.

Adding a channel:
  1. create XxxNotifier(BaseNotifier) in services.py
  2. add one line to the registry below
"""

from django.conf import settings

from .base import BaseNotifier


def _build_registry() -> dict[str, type[BaseNotifier]]:
    from .services import EmailNotifier, LogNotifier, SmsGatewayNotifier

    return {
        "email": EmailNotifier,
        "sms":   SmsGatewayNotifier,
        "log":   LogNotifier,
    }


def get_notifiers(channels=None) -> list[BaseNotifier]:
    """
    Instances for the requested channels (default: settings.NOTIFICATION_CHANNELS).

    Raises:
        ValueError: unknown channel name
    """
    if channels is None:
        channels = getattr(settings, "NOTIFICATION_CHANNELS", ["email"])
    registry = _build_registry()

    notifiers = []
    for name in channels:
        notifier_cls = registry.get(name)
        if notifier_cls is None:
            raise ValueError(
                f"Unknown notification channel: {name!r}. "
                f"Known channels: {list(registry.keys())}"
            )
        notifiers.append(notifier_cls())
    return notifiers
