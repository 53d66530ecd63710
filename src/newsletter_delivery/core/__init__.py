"""
Newsletter Delivery Core Package

Storage, command processing, the delivery queue and its dispatcher.
"""

from . import database
from . import delivery
from . import idempotency

__all__ = ["database", "delivery", "idempotency"]
