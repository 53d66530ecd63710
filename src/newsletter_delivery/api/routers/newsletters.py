"""
Newsletter Publish Endpoint

Authentication happens upstream; the authenticated publisher arrives in
the `X-Publisher-Id` header. The response bytes come straight from the
idempotency store, so a retried request sees exactly what the first one
saw.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Header, Request, Response
from pydantic import BaseModel

from ...core.idempotency.processor import CommandProcessor
from ...core.issues.models import IssueContent
from ..shared.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["newsletters"])


class PublishContent(BaseModel):
    html: str = ""
    text: str = ""


class PublishRequest(BaseModel):
    title: str
    content: PublishContent


def get_processor(request: Request) -> CommandProcessor:
    return request.app.state.processor


@router.post("/newsletters", status_code=201)
async def publish_newsletter(
    body: PublishRequest,
    request: Request,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    publisher_id: Optional[str] = Header(default=None, alias="X-Publisher-Id"),
) -> Response:
    """
    Accept a newsletter issue for delivery to every confirmed subscriber.

    Returns 201 once the issue and its delivery tasks are durably
    recorded. Delivery itself happens asynchronously.
    """
    if not publisher_id or not publisher_id.strip():
        raise UnauthorizedError("Publisher identity is required")

    content = IssueContent(
        title=body.title,
        html_body=body.content.html,
        text_body=body.content.text,
    )
    cached = await get_processor(request).submit(publisher_id.strip(), idempotency_key, content)

    return Response(
        content=cached.body,
        status_code=cached.status_code,
        media_type="application/json",
        headers={"Idempotent-Replayed": "true" if cached.idempotent_hit else "false"},
    )
