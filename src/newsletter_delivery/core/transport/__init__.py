"""Email transport: the capability the dispatcher sends through."""

from .base import EmailContent, EmailTransport
from .classification import classify_exception, classify_status
from .http_client import HttpEmailClient

__all__ = [
    "EmailContent",
    "EmailTransport",
    "HttpEmailClient",
    "classify_exception",
    "classify_status",
]
