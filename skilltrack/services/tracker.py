"""Progress tracking: streaks, stagnation, achievements and skill trends.

The analytics are pure functions over already-fetched records and take
the clock (`now`) and calendar timezone explicitly. update_progress() and
user_progress() are the orchestration entry points used by the routes.
"""

import asyncio
import logging
from collections import Counter, defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo

from skilltrack.config import settings
from skilltrack.db import store
from skilltrack.models.learning import (
    Alert,
    AssessmentRecord,
    ModuleProgressRecord,
    ScorePoint,
    SkillTrend,
)
from skilltrack.services.errors import NotFoundError

logger = logging.getLogger(__name__)

MAX_STREAK_DAYS = 365
STAGNATION_DAYS = 7
SEVERE_STAGNATION_DAYS = 14
ASSESSMENT_REMINDER_DAYS = 30

COMPLETION_MILESTONES = (1, 5, 10, 25, 50)
STREAK_MILESTONES = (7, 14, 30, 60)

TREND_WINDOW = 3
TREND_MARGIN = 5

TIMEFRAME_DAYS = {"week": 7, "month": 30, "quarter": 90}


def resolve_timezone(tz: tzinfo | str | None = None) -> tzinfo:
    if tz is None:
        return ZoneInfo(settings.timezone)
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


# ── Streaks ──────────────────────────────────────────────────────────

def calculate_learning_streak(
    progress: list[ModuleProgressRecord],
    now: datetime,
    tz: tzinfo | str | None = None,
) -> int:
    """Consecutive calendar days with at least one progress touch, counted back from today.

    Today not having activity yet does not end the walk; the first inactive
    day after today does.
    """
    if not progress:
        return 0

    zone = resolve_timezone(tz)
    today = now.astimezone(zone).date()
    active_days = {p.last_accessed_at.astimezone(zone).date() for p in progress}

    streak = 0
    for i in range(MAX_STREAK_DAYS):
        if today - timedelta(days=i) in active_days:
            streak += 1
        elif i > 0:
            break
    return streak


# ── Alert checks ─────────────────────────────────────────────────────

def check_stagnation(
    progress: list[ModuleProgressRecord],
    assessments: list[AssessmentRecord],
    now: datetime,
) -> list[Alert]:
    """Independent inactivity checks; any combination may fire."""
    alerts: list[Alert] = []
    week_ago = now - timedelta(days=STAGNATION_DAYS)
    month_ago = now - timedelta(days=ASSESSMENT_REMINDER_DAYS)

    stagnant = [p for p in progress if 0 < p.progress < 100 and p.last_accessed_at < week_ago]
    if stagnant:
        alerts.append(Alert(
            type="stagnation",
            message=(
                f"You have {len(stagnant)} learning module(s) that haven't been accessed in over a week. "
                "Consider returning to maintain your momentum!"
            ),
        ))

    has_recent_activity = any(p.last_accessed_at > week_ago for p in progress)
    if progress and not has_recent_activity:
        alerts.append(Alert(
            type="stagnation",
            message=(
                "You haven't engaged with any learning modules this week. "
                "Stay consistent with your learning goals!"
            ),
        ))

    recent_assessments = [a for a in assessments if a.completed_at > month_ago]
    if assessments and not recent_assessments:
        alerts.append(Alert(
            type="reminder",
            message="It's been a while since your last assessment. Take a quick quiz to track your progress!",
        ))

    return alerts


def check_achievements(progress_pct: float, completed_modules: int, streak: int) -> list[Alert]:
    """Milestones match exact counts: jumping from 4 to 6 completions skips the 5 milestone."""
    alerts: list[Alert] = []

    if progress_pct >= 100:
        alerts.append(Alert(
            type="achievement",
            message="🎉 Congratulations! You've completed a learning module. Keep up the excellent work!",
        ))

    if completed_modules in COMPLETION_MILESTONES:
        plural = "s" if completed_modules > 1 else ""
        alerts.append(Alert(
            type="achievement",
            message=(
                f"🏆 Amazing! You've completed {completed_modules} learning module{plural}. "
                "You're building an impressive skill set!"
            ),
        ))

    if streak in STREAK_MILESTONES:
        alerts.append(Alert(
            type="achievement",
            message=f"🔥 You're on fire! {streak} days learning streak! Consistency is key to mastery.",
        ))

    return alerts


def detect_stagnation(progress: list[ModuleProgressRecord], now: datetime) -> dict:
    """In-progress modules idle for a week (or two) plus advice on what to do next."""
    week_ago = now - timedelta(days=STAGNATION_DAYS)
    two_weeks_ago = now - timedelta(days=SEVERE_STAGNATION_DAYS)

    in_progress = [p for p in progress if 0 < p.progress < 100]
    stagnant = [p for p in in_progress if p.last_accessed_at < week_ago]
    severe = [p for p in in_progress if p.last_accessed_at < two_weeks_ago]

    advice: list[str] = []
    if stagnant:
        advice.append("Resume your in-progress learning modules to maintain momentum")
    if severe:
        advice.append("Consider reviewing completed sections before continuing")
        advice.append("Break down remaining content into smaller, manageable chunks")
    if not stagnant:
        advice.append("Take a new assessment to identify areas for improvement")
        advice.append("Explore new learning recommendations based on your skill gaps")

    return {
        "has_stagnation": bool(stagnant),
        "stagnant_modules": stagnant,
        "recommendations": advice,
    }


# ── Skill trends ─────────────────────────────────────────────────────

def _mean(values: list[float]) -> float:
    return sum(values) / len(values)


def classify_trend(scores: list[float]) -> str:
    """Compare the last three scores against everything before them.

    Needs at least two recent and one older score, so fewer than four
    scores in total is always "stable".
    """
    if len(scores) < 2:
        return "stable"
    recent = scores[-TREND_WINDOW:]
    older = scores[:-TREND_WINDOW]
    if len(recent) < 2 or len(older) < 1:
        return "stable"

    recent_avg, older_avg = _mean(recent), _mean(older)
    if recent_avg > older_avg + TREND_MARGIN:
        return "improving"
    if recent_avg < older_avg - TREND_MARGIN:
        return "declining"
    return "stable"


def calculate_skill_progression(assessments: list[AssessmentRecord]) -> list[SkillTrend]:
    groups: dict[str, list[ScorePoint]] = defaultdict(list)
    for record in assessments:
        groups[record.technology].append(ScorePoint(score=record.score, date=record.completed_at))

    trends = []
    for technology, points in groups.items():
        points.sort(key=lambda p: p.date)
        trends.append(SkillTrend(
            technology=technology,
            scores=points,
            trend=classify_trend([p.score for p in points]),
        ))
    return trends


# ── Summaries ────────────────────────────────────────────────────────

def _module_hours(p: ModuleProgressRecord) -> float:
    if not p.module:
        return 0.0
    return p.module.duration * (p.progress / 100)


def progress_overview(
    progress: list[ModuleProgressRecord],
    assessments: list[AssessmentRecord],
    now: datetime,
    tz: tzinfo | str | None = None,
) -> dict:
    total = len(progress)
    completed = sum(1 for p in progress if p.progress >= 100)
    in_progress = sum(1 for p in progress if 0 < p.progress < 100)
    avg_score = _mean([a.score for a in assessments]) if assessments else 0.0

    return {
        "total_modules": total,
        "completed_modules": completed,
        "in_progress_modules": in_progress,
        "completion_rate": (completed / total) * 100 if total else 0.0,
        "total_hours": round(sum(_module_hours(p) for p in progress), 1),
        "avg_assessment_score": round(avg_score),
        "learning_streak": calculate_learning_streak(progress, now, tz),
    }


def recent_activity(
    progress: list[ModuleProgressRecord],
    assessments: list[AssessmentRecord],
    now: datetime,
    days: int = 7,
) -> list[dict]:
    """Assessments, completions and study sessions within the window, newest first."""
    cutoff = now - timedelta(days=days)
    activities: list[dict] = []

    for a in assessments:
        if a.completed_at > cutoff:
            activities.append({
                "type": "assessment",
                "description": f"Completed {a.title or a.technology}",
                "date": a.completed_at,
                "score": a.score,
            })

    for p in progress:
        if p.last_accessed_at <= cutoff:
            continue
        title = p.module.title if p.module else f"module {p.module_id}"
        if p.completed_at and p.completed_at > cutoff:
            activities.append({
                "type": "completion",
                "description": f"Completed {title}",
                "date": p.completed_at,
            })
        else:
            activities.append({
                "type": "module_progress",
                "description": f"Studied {title} ({round(p.progress)}% complete)",
                "date": p.last_accessed_at,
            })

    return sorted(activities, key=lambda a: a["date"], reverse=True)


def progress_report(
    progress: list[ModuleProgressRecord],
    assessments: list[AssessmentRecord],
    now: datetime,
    timeframe: str = "month",
    tz: tzinfo | str | None = None,
) -> dict:
    days = TIMEFRAME_DAYS.get(timeframe)
    if days is None:
        raise ValueError(f"Unknown timeframe: {timeframe}")

    overview = progress_overview(progress, assessments, now, tz)
    activity = recent_activity(progress, assessments, now, days)
    stagnation = detect_stagnation(progress, now)

    scores = [a["score"] for a in activity if a["type"] == "assessment"]
    return {
        "timeframe": timeframe,
        "summary": {
            "modules_completed": sum(1 for a in activity if a["type"] == "completion"),
            "assessments_taken": len(scores),
            "average_score": round(_mean(scores)) if scores else 0,
            "learning_streak": overview["learning_streak"],
            "total_hours_learned": overview["total_hours"],
        },
        "stagnation_alert": stagnation["has_stagnation"],
        "recommendations": stagnation["recommendations"],
        "recent_activity": activity[:10],
    }


# ── Orchestration ────────────────────────────────────────────────────

# Serializes read-then-write sequences per user within this process.
# An entry lives only while some task holds or awaits that user's lock.
_user_locks: dict[int, asyncio.Lock] = {}
_lock_users: Counter = Counter()


@asynccontextmanager
async def _user_lock(user_id: int):
    lock = _user_locks.setdefault(user_id, asyncio.Lock())
    _lock_users[user_id] += 1
    try:
        async with lock:
            yield
    finally:
        _lock_users[user_id] -= 1
        if not _lock_users[user_id]:
            del _lock_users[user_id]
            del _user_locks[user_id]


async def update_progress(
    db,
    user_id: int,
    module_id: int,
    progress_pct: float,
    now: datetime,
    tz: tzinfo | str | None = None,
) -> list[Alert]:
    """Record a progress touch, then run achievement and stagnation checks.

    Returns the alerts that were persisted.
    """
    async with _user_lock(user_id):
        if not await store.get_module(db, module_id):
            raise NotFoundError("Learning module not found")

        await store.upsert_module_progress(db, user_id, module_id, progress_pct, now)
        records = await store.get_user_module_progress(db, user_id)
        history = await store.get_user_assessments(db, user_id)

        completed = sum(1 for p in records if p.progress >= 100)
        streak = calculate_learning_streak(records, now, tz)

        drafts = check_achievements(progress_pct, completed, streak)
        drafts += check_stagnation(records, history, now)

        saved = [await store.create_alert(db, user_id, alert, now) for alert in drafts]

    for alert in saved:
        logger.info("Alert for user %d: [%s] %s", user_id, alert.type, alert.message)
    return saved


async def user_progress(db, user_id: int, now: datetime, tz: tzinfo | str | None = None) -> dict:
    records = await store.get_user_module_progress(db, user_id)
    history = await store.get_user_assessments(db, user_id)
    return {
        "overview": progress_overview(records, history, now, tz),
        "module_progress": records,
        "skill_progression": calculate_skill_progression(history),
        "recent_activity": recent_activity(records, history, now),
    }
