from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field, model_validator

from skilltrack.db import store
from skilltrack.db.database import get_db
from skilltrack.models.learning import UTCDateTime
from skilltrack.routes.auth import get_current_user
from skilltrack.services import hackathons as hackathon_service

router = APIRouter(prefix="/api/hackathons", tags=["hackathons"])


class CreateHackathonRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    theme: str = Field(min_length=1)
    difficulty: Literal["beginner", "intermediate", "advanced"] = "intermediate"
    start_date: UTCDateTime
    end_date: UTCDateTime
    registration_deadline: UTCDateTime
    max_participants: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if self.registration_deadline > self.end_date:
            raise ValueError("registration_deadline must not be after end_date")
        return self


class JoinRequest(BaseModel):
    team_name: Optional[str] = None


@router.get("")
async def list_hackathons(
    request: Request,
    filter: Literal["all", "active", "upcoming", "completed"] = "all",
    db=Depends(get_db),
):
    await get_current_user(request, db)
    now = datetime.now(timezone.utc)
    hackathons = hackathon_service.filter_hackathons(await store.list_hackathons(db), filter, now)
    return [hackathon_service.with_status(h, now) for h in hackathons]


@router.post("", status_code=201)
async def create_hackathon(body: CreateHackathonRequest, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await hackathon_service.create_hackathon(
        db,
        created_by=user["id"],
        title=body.title,
        description=body.description,
        theme=body.theme,
        difficulty=body.difficulty,
        start_date=body.start_date,
        end_date=body.end_date,
        registration_deadline=body.registration_deadline,
        now=datetime.now(timezone.utc),
        max_participants=body.max_participants,
    )


@router.get("/stats")
async def hackathon_stats(request: Request, db=Depends(get_db)):
    await get_current_user(request, db)
    return hackathon_service.hackathon_stats(await store.list_hackathons(db), datetime.now(timezone.utc))


@router.get("/participated")
async def participated(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await hackathon_service.user_hackathons(db, user["id"], datetime.now(timezone.utc))


@router.get("/{hackathon_id}")
async def hackathon_detail(hackathon_id: int, request: Request, db=Depends(get_db)):
    await get_current_user(request, db)
    return await hackathon_service.hackathon_details(db, hackathon_id, datetime.now(timezone.utc))


@router.post("/{hackathon_id}/join")
async def join_hackathon(
    hackathon_id: int,
    request: Request,
    body: Optional[JoinRequest] = None,
    db=Depends(get_db),
):
    user = await get_current_user(request, db)
    await hackathon_service.join_hackathon(
        db, hackathon_id, user["id"], datetime.now(timezone.utc), body.team_name if body else None,
    )
    return {"status": "joined", "hackathon_id": hackathon_id}


@router.get("/{hackathon_id}/leaderboard")
async def leaderboard(hackathon_id: int, request: Request, db=Depends(get_db)):
    await get_current_user(request, db)
    return hackathon_service.build_leaderboard(await store.get_participants(db, hackathon_id))
