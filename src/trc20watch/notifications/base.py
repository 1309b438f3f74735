"""Notifier interface used by the ingestion pipeline."""

from abc import ABC, abstractmethod


class Notifier(ABC):
    """Announces newly recorded deposits.

    Delivery is best-effort: implementations report failure by returning
    False instead of raising.
    """

    @abstractmethod
    async def send(self, text: str) -> bool:
        """Send a formatted message.

        Returns:
            True if the message was delivered
        """
        raise NotImplementedError()
