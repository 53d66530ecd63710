"""
Email Transport Abstraction

The dispatcher only sees `EmailTransport.send()` and the closed
`DeliveryOutcome` it returns. Concrete transports translate their own
error surface through `transport.classification`.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from ..delivery.models import DeliveryOutcome


class EmailContent(BaseModel):
    """What is sent to one recipient."""

    title: str
    html: str
    text: str


class EmailTransport(ABC):
    """
    Abstract base class for email transports.

    Implementations return a DeliveryOutcome and may also raise
    TransientDeliveryError / PermanentDeliveryError; the dispatcher
    classifies anything raised.
    """

    @abstractmethod
    async def send(self, recipient: str, content: EmailContent) -> DeliveryOutcome:
        """Attempt to deliver `content` to `recipient`."""
        ...

    async def aclose(self) -> None:
        """Release transport resources."""
        return None
