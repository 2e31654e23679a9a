from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from skilltrack.config import settings
from skilltrack.db import store
from skilltrack.db.database import get_db
from skilltrack.routes.auth import get_current_user
from skilltrack.services import recommender

router = APIRouter(prefix="/api/recommendations", tags=["recommendations"])


@router.get("")
async def list_recommendations(
    request: Request,
    technology: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    db=Depends(get_db),
):
    user = await get_current_user(request, db)
    recs = await store.get_user_recommendations(db, user["id"])
    if technology:
        recs = recommender.filter_by_technology(recs, technology)
    return recommender.rank_recommendations(recs, limit or settings.recommendation_limit)


@router.post("/refresh")
async def refresh_recommendations(request: Request, db=Depends(get_db)):
    """Regenerate from the current profile. 409 if there is no profile or no skills yet."""
    user = await get_current_user(request, db)
    generated = await recommender.refresh_recommendations(db, user["id"], datetime.now(timezone.utc))
    stored = await store.get_user_recommendations(db, user["id"])
    return {
        "generated": len(generated),
        "recommendations": recommender.rank_recommendations(stored, settings.recommendation_limit),
    }


@router.get("/stats")
async def recommendation_stats(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    recs = await store.get_user_recommendations(db, user["id"])
    progress = await store.get_user_module_progress(db, user["id"])
    return recommender.recommendation_stats(recs, progress)
