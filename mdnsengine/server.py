"""Base class for anything that sends and receives mDNS messages."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, List

from .records import Message

MessageCallback = Callable[[Message], None]


class AbstractServer(ABC):
    """Sends messages and delivers received ones to subscribers."""

    def __init__(self) -> None:
        self._subscribers: List[MessageCallback] = []

    @abstractmethod
    def send_message(self, message: Message) -> None:
        """Send a message to the address and port stored in it."""

    @abstractmethod
    def send_message_to_all(self, message: Message) -> None:
        """Send a message to the multicast groups on every interface."""

    def subscribe(self, callback: MessageCallback) -> None:
        """Call ``callback`` with every received message."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: MessageCallback) -> None:
        """Stop delivering messages to ``callback``; ValueError if not subscribed."""
        try:
            self._subscribers.remove(callback)
        except ValueError:
            raise ValueError("callback is not subscribed") from None

    def emit_message(self, message: Message) -> None:
        """Deliver a received message to all subscribers."""
        for callback in list(self._subscribers):
            callback(message)