"""
Issue Models
"""

from datetime import datetime
from typing import Any, Dict, List
from uuid import uuid4

from pydantic import BaseModel, Field

from ..errors import InvalidContentError
from ..timeutils import utc_now


class IssueContent(BaseModel):
    """Title plus the two body representations of a newsletter issue."""

    title: str
    html_body: str = ""
    text_body: str = ""

    def validated(self) -> "IssueContent":
        """
        Return a whitespace-trimmed copy, or raise InvalidContentError.

        A title is required, and at least one of the bodies must be
        non-empty. A missing body representation is left empty.
        """
        title = self.title.strip()
        html_body = self.html_body.strip()
        text_body = self.text_body.strip()

        details: List[Dict[str, Any]] = []
        if not title:
            details.append({"field": "title", "message": "Title must not be empty", "code": "empty"})
        if not html_body and not text_body:
            details.append({
                "field": "content",
                "message": "At least one of html or text content is required",
                "code": "empty",
            })
        if details:
            raise InvalidContentError("Invalid newsletter content", details=details)

        return IssueContent(title=title, html_body=html_body, text_body=text_body)


class Issue(BaseModel):
    """One accepted newsletter broadcast. Immutable once stored."""

    issue_id: str = Field(default_factory=lambda: str(uuid4()))
    title: str
    html_body: str
    text_body: str
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def content(self) -> IssueContent:
        return IssueContent(title=self.title, html_body=self.html_body, text_body=self.text_body)
