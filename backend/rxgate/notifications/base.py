"""
BaseNotifier: abstract base for every delivery channel.

A new channel only needs to:
1. subclass BaseNotifier
2. implement can_send() and send()
3. register one line in factory.py

tasks.py never knows which channels are behind it.
"""

from abc import ABC, abstractmethod

from .types import NotificationMessage


class BaseNotifier(ABC):

    channel: str = ''

    @abstractmethod
    def can_send(self, message: NotificationMessage) -> bool:
        """Whether this channel has what it needs (recipient, configuration) for the message."""

    @abstractmethod
    def send(self, message: NotificationMessage) -> None:
        """
        Deliver the message.

        Raises:
            Exception: delivery failed; the Celery task retries the channel
        """
