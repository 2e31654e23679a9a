from fastapi import APIRouter, Depends, HTTPException, Request

from skilltrack.db import store
from skilltrack.db.database import get_db
from skilltrack.routes.auth import get_current_user

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.get("")
async def list_alerts(request: Request, unread_only: bool = False, db=Depends(get_db)):
    user = await get_current_user(request, db)
    alerts = await store.get_user_alerts(db, user["id"])
    if unread_only:
        alerts = [a for a in alerts if not a.read]
    return alerts


@router.put("/{alert_id}/read")
async def mark_read(alert_id: int, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    if not await store.mark_alert_read(db, user["id"], alert_id):
        raise HTTPException(status_code=404, detail="Alert not found")
    return {"id": alert_id, "read": True}
