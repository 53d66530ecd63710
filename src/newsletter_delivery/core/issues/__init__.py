"""Newsletter issue records."""

from .models import Issue, IssueContent
from .store import IssueStore

__all__ = [
    "Issue",
    "IssueContent",
    "IssueStore",
]
