"""
Delivery channel factory.

Exactly one channel is active per deployment; there is no fallback between
channels at runtime.
"""

import logging

from ..config import MailSettings
from .base import DeliveryChannel
from .http_api import HttpEmailChannel
from .smtp import SmtpChannel

logger = logging.getLogger(__name__)


def create_channel(settings: MailSettings) -> DeliveryChannel:
    """Create the configured delivery channel."""
    if settings.channel == "http":
        # MailSettings validation guarantees api_key is set for this channel
        channel: DeliveryChannel = HttpEmailChannel(
            api_url=settings.api_url,
            api_key=settings.api_key.get_secret_value(),
            timeout=settings.timeout,
        )
        logger.info(f"Delivery channel: HTTP email API ({settings.api_url})")
        return channel

    password = settings.smtp_password.get_secret_value() if settings.smtp_password else None
    channel = SmtpChannel(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=password,
        use_tls=settings.smtp_use_tls,
        use_ssl=settings.smtp_use_ssl,
        timeout=settings.timeout,
    )
    logger.info(f"Delivery channel: SMTP ({settings.smtp_host}:{settings.smtp_port})")
    return channel
