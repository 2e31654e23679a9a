from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from skilltrack.config import settings
from skilltrack.db import store
from skilltrack.db.database import get_db
from skilltrack.routes.auth import get_current_user
from skilltrack.services import profile as profile_service
from skilltrack.services import recommender, tracker

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

DASHBOARD_RECOMMENDATIONS = 3
DASHBOARD_ALERTS = 5


@router.get("")
async def get_dashboard(request: Request, db=Depends(get_db)):
    """Everything the landing page shows in one call."""
    user = await get_current_user(request, db)
    now = datetime.now(timezone.utc)

    profile = await store.get_profile(db, user["id"])
    history = await store.get_user_assessments(db, user["id"])
    progress = await store.get_user_module_progress(db, user["id"])
    recs = await store.get_user_recommendations(db, user["id"])
    alerts = await store.get_user_alerts(db, user["id"])

    return {
        "user": user,
        "profile": profile,
        "stats": profile_service.profile_stats(profile, history, progress) if profile else None,
        "overview": tracker.progress_overview(progress, history, now),
        "skill_gaps": recommender.identify_skill_gaps(profile.skills) if profile else [],
        "skill_progression": tracker.calculate_skill_progression(history),
        "recommendations": recommender.rank_recommendations(
            recs, min(DASHBOARD_RECOMMENDATIONS, settings.recommendation_limit),
        ),
        "alerts": [a for a in alerts if not a.read][:DASHBOARD_ALERTS],
    }
