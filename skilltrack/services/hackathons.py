"""
hackathons.py - Hackathon lifecycle, registration and leaderboards

Status is derived from the clock, never stored:
    now < registration_deadline        -> registration_open
    now < start_date                   -> upcoming
    now <= end_date                    -> active
    otherwise                          -> completed
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from skilltrack.db import store
from skilltrack.models.hackathon import Challenge, Hackathon, Participant
from skilltrack.services.ai_client import complete, parse_json_payload
from skilltrack.services.errors import AIResponseError, ConflictError, NotFoundError
from skilltrack.services.prompts import load_prompt

logger = logging.getLogger(__name__)

HACKATHON_FILTERS = ("all", "active", "upcoming", "completed")

_PRIZE_VALUES = {
    "beginner": (100, 50, 25),
    "intermediate": (250, 150, 75),
    "advanced": (500, 300, 150),
}


def default_prizes(difficulty: str) -> Dict[str, Dict[str, Any]]:
    first, second, third = _PRIZE_VALUES.get(difficulty, _PRIZE_VALUES["intermediate"])
    return {
        "first": {"title": "1st Place", "description": f"Certificate + ${first} voucher", "value": first},
        "second": {"title": "2nd Place", "description": f"Certificate + ${second} voucher", "value": second},
        "third": {"title": "3rd Place", "description": f"Certificate + ${third} voucher", "value": third},
    }


def hackathon_status(hackathon: Hackathon, now: datetime) -> str:
    if now < hackathon.registration_deadline:
        return "registration_open"
    if now < hackathon.start_date:
        return "upcoming"
    if now <= hackathon.end_date:
        return "active"
    return "completed"


def days_remaining(hackathon: Hackathon, now: datetime) -> int:
    """Whole days (rounded up) until the end date, or the start date once the end has passed."""
    target = hackathon.end_date if hackathon.end_date > now else hackathon.start_date
    days = math.ceil((target - now).total_seconds() / 86400)
    return max(0, days)


def filter_hackathons(hackathons: List[Hackathon], which: str, now: datetime) -> List[Hackathon]:
    if which == "active":
        return [h for h in hackathons if h.start_date <= now <= h.end_date]
    if which == "upcoming":
        return [h for h in hackathons if h.start_date > now]
    if which == "completed":
        return [h for h in hackathons if h.end_date < now]
    return list(hackathons)


def validate_join(hackathon: Hackathon, now: datetime) -> None:
    if now > hackathon.registration_deadline:
        raise ConflictError("Registration deadline has passed")
    if hackathon.max_participants and hackathon.current_participants >= hackathon.max_participants:
        raise ConflictError("Hackathon is full")


def build_leaderboard(participants: List[Participant]) -> List[Dict[str, Any]]:
    """Scored participants only, highest score first; ties go to the earlier joiner."""
    scored = sorted(
        (p for p in participants if p.score is not None),
        key=lambda p: (-p.score, p.joined_at),
    )
    return [
        {
            "rank": i,
            "username": p.username,
            "team_name": p.team_name,
            "score": p.score,
            "submission_count": len(p.submission) if p.submission else 0,
        }
        for i, p in enumerate(scored, start=1)
    ]


def hackathon_stats(hackathons: List[Hackathon], now: datetime) -> Dict[str, int]:
    total = len(hackathons)
    participants = sum(h.current_participants for h in hackathons)
    return {
        "total": total,
        "active": len(filter_hackathons(hackathons, "active", now)),
        "upcoming": len(filter_hackathons(hackathons, "upcoming", now)),
        "completed": len(filter_hackathons(hackathons, "completed", now)),
        "total_participants": participants,
        "avg_participants_per_hackathon": round(participants / total) if total else 0,
    }


def with_status(hackathon: Hackathon, now: datetime) -> Dict[str, Any]:
    return {
        **hackathon.model_dump(),
        "status": hackathon_status(hackathon, now),
        "days_remaining": days_remaining(hackathon, now),
    }


async def generate_hackathon_challenges(theme: str, difficulty: str) -> List[Challenge]:
    prompt = load_prompt("hackathon_challenges.yaml")
    user_message = prompt["user_template"].format(theme=theme, difficulty=difficulty)

    text = await complete(user_message, prompt["system_prompt"])
    payload = parse_json_payload(text, "challenges")

    challenges = []
    try:
        for i, item in enumerate(payload["challenges"], start=1):
            challenges.append(Challenge(**{**item, "id": str(item.get("id") or f"challenge{i}")}))
    except (ValidationError, AttributeError, TypeError) as exc:
        raise AIResponseError(f"AI returned an invalid challenge: {exc}") from exc
    return challenges


async def create_hackathon(
    db,
    created_by: int,
    title: str,
    description: str,
    theme: str,
    difficulty: str,
    start_date: datetime,
    end_date: datetime,
    registration_deadline: datetime,
    now: datetime,
    max_participants: Optional[int] = None,
) -> Hackathon:
    challenges = await generate_hackathon_challenges(theme, difficulty)
    hackathon_id = await store.create_hackathon(
        db,
        created_by=created_by,
        title=title,
        description=description,
        theme=theme,
        difficulty=difficulty,
        start_date=start_date,
        end_date=end_date,
        registration_deadline=registration_deadline,
        challenges=challenges,
        prizes=default_prizes(difficulty),
        now=now,
        max_participants=max_participants,
    )
    logger.info("Created hackathon %d (%s) with %d challenges", hackathon_id, theme, len(challenges))
    return await store.get_hackathon(db, hackathon_id)


async def join_hackathon(
    db,
    hackathon_id: int,
    user_id: int,
    now: datetime,
    team_name: Optional[str] = None,
) -> None:
    hackathon = await store.get_hackathon(db, hackathon_id)
    if not hackathon:
        raise NotFoundError("Hackathon not found")
    validate_join(hackathon, now)
    await store.add_participant(db, hackathon_id, user_id, now, team_name)
    logger.info("User %d joined hackathon %d", user_id, hackathon_id)


async def hackathon_details(db, hackathon_id: int, now: datetime) -> Dict[str, Any]:
    hackathon = await store.get_hackathon(db, hackathon_id)
    if not hackathon:
        raise NotFoundError("Hackathon not found")
    participants = await store.get_participants(db, hackathon_id)
    return {
        **with_status(hackathon, now),
        "participants": len(participants),
        "participant_list": [p.model_dump() for p in participants],
    }


async def user_hackathons(db, user_id: int, now: datetime) -> List[Dict[str, Any]]:
    result = []
    for participation in await store.get_user_participations(db, user_id):
        hackathon = await store.get_hackathon(db, participation.hackathon_id)
        if hackathon:
            result.append({
                "hackathon": with_status(hackathon, now),
                "participation": participation.model_dump(),
            })
    return result
