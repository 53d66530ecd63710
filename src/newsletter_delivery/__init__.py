"""
Newsletter Delivery

Idempotent publish commands fanned out into a durable, retrying
per-recipient delivery queue.
"""

__version__ = "0.1.0"
