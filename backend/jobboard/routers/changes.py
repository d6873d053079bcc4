from fastapi import APIRouter, Query

from jobboard.services.notification_service import notification_service

router = APIRouter(prefix="/changes", tags=["changes"])


@router.get("")
async def list_changes(since: int = Query(0, ge=0)):
    """Important row changes after sequence number `since`, for portals to refresh on."""
    changes, latest = notification_service.changes_since(since)
    return {"changes": changes, "latest": latest}
