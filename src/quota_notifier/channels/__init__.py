"""Mail delivery channels: SMTP relay or HTTP email API."""

from .base import DeliveryChannel, LoggingChannel
from .factory import create_channel
from .http_api import HttpEmailChannel
from .smtp import SmtpChannel

__all__ = ["DeliveryChannel", "HttpEmailChannel", "LoggingChannel", "SmtpChannel", "create_channel"]
