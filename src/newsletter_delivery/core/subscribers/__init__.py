"""Subscriber directory consumed at fan-out time."""

from .directory import (
    SubscriberDirectory,
    SqlSubscriberDirectory,
    parse_subscriber_email,
)

__all__ = [
    "SubscriberDirectory",
    "SqlSubscriberDirectory",
    "parse_subscriber_email",
]
