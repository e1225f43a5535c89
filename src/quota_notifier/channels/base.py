"""Delivery channel contract."""

import logging
from typing import Protocol

from ..models.results import SendResult

logger = logging.getLogger(__name__)


class DeliveryChannel(Protocol):
    """Submits one message to one recipient.

    Implementations never raise for transport failures; they return a failed
    ``SendResult`` so the dispatcher can continue with other recipients.
    """

    name: str

    async def send(self, sender: str, to: str, subject: str, body: str) -> SendResult: ...

    async def close(self) -> None: ...


class LoggingChannel:
    """Logs messages instead of delivering them. Used for dry runs."""

    name = "log"

    async def send(self, sender: str, to: str, subject: str, body: str) -> SendResult:
        logger.info(f"[dry-run] Mail from {sender} to {to}: {subject}\n{body}")
        return SendResult(ok=True, detail="dry-run")

    async def close(self) -> None:
        pass
