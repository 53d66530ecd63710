"""
Operator Inspection Endpoints

Read-only views over the delivery queue.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request

from ..shared.responses import ListResponse

router = APIRouter(prefix="/admin/deliveries", tags=["admin"])


@router.get("/failed")
async def list_failed_deliveries(
    request: Request,
    issue_id: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> Dict[str, Any]:
    """Delivery tasks that exhausted their retries or failed permanently."""
    inspector = request.app.state.inspector
    entries = await inspector.list_failed(limit=limit, offset=offset, issue_id=issue_id)
    total = await inspector.count_failed(issue_id=issue_id)
    response = ListResponse.create(
        data=[entry.to_dict() for entry in entries],
        total=total,
        limit=limit,
        offset=offset,
    )
    return response.model_dump(mode="json")


@router.get("/failed/summary")
async def failed_delivery_summary(request: Request) -> Dict[str, Any]:
    return await request.app.state.inspector.summary()


@router.get("/stats")
async def delivery_stats(request: Request, issue_id: Optional[str] = None) -> Dict[str, int]:
    """Task counts per state."""
    return await request.app.state.queue.stats(issue_id=issue_id)
