"""
In-memory fakes shared by the test suite.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from newsletter_delivery.core.delivery import DeliveryOutcome
from newsletter_delivery.core.subscribers import SubscriberDirectory
from newsletter_delivery.core.transport import EmailContent, EmailTransport


class FrozenClock:
    """A clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 5, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class StaticSubscriberDirectory(SubscriberDirectory):
    """In-memory directory; tests mutate `confirmed` to model unsubscribes."""

    def __init__(self, emails: Iterable[str] = ()):
        self.confirmed: List[str] = list(emails)
        self.list_calls = 0

    async def list_confirmed_subscribers(self) -> List[str]:
        self.list_calls += 1
        return list(self.confirmed)

    async def is_confirmed(self, email: str) -> bool:
        return email.lower() in {e.lower() for e in self.confirmed}


class RecordingTransport(EmailTransport):
    """
    Records every send and answers from a per-recipient script.

    `script` maps a recipient to a callable returning the outcome (or
    raising); recipients without an entry succeed.
    """

    def __init__(self, script: Optional[Dict[str, Callable[[], DeliveryOutcome]]] = None):
        self.script = script or {}
        self.sent: List[Tuple[str, EmailContent]] = []
        self.closed = False

    async def send(self, recipient: str, content: EmailContent) -> DeliveryOutcome:
        self.sent.append((recipient, content))
        # Let other workers run between claim and resolve
        await asyncio.sleep(0)
        handler = self.script.get(recipient)
        if handler is None:
            return DeliveryOutcome.success()
        return handler()

    async def aclose(self) -> None:
        self.closed = True

    def sends_to(self, recipient: str) -> int:
        return sum(1 for sent_to, _ in self.sent if sent_to == recipient)


SUBSCRIBERS = ["alice@example.com", "bob@example.com", "carol@example.com"]
