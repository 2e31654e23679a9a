from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Depends, Request

from skilltrack.db import store
from skilltrack.db.database import get_db
from skilltrack.routes.auth import get_current_user
from skilltrack.services import tracker

router = APIRouter(prefix="/api/progress", tags=["progress"])


@router.get("")
async def get_progress(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await tracker.user_progress(db, user["id"], datetime.now(timezone.utc))


@router.get("/report")
async def get_progress_report(
    request: Request,
    timeframe: Literal["week", "month", "quarter"] = "month",
    db=Depends(get_db),
):
    user = await get_current_user(request, db)
    progress = await store.get_user_module_progress(db, user["id"])
    history = await store.get_user_assessments(db, user["id"])
    return tracker.progress_report(progress, history, datetime.now(timezone.utc), timeframe)


@router.get("/stagnation")
async def get_stagnation(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    progress = await store.get_user_module_progress(db, user["id"])
    return tracker.detect_stagnation(progress, datetime.now(timezone.utc))
