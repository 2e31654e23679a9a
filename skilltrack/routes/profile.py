from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, EmailStr, Field, field_validator

from skilltrack.db import store
from skilltrack.db.database import get_db
from skilltrack.routes.auth import create_token, get_current_user
from skilltrack.services import profile as profile_service

router = APIRouter(prefix="/api/profile", tags=["profile"])


class CreateProfileRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    resume: str = Field(min_length=10)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class SkillInput(BaseModel):
    name: str
    level: float = Field(ge=0, le=100)


class UpdateProfileRequest(BaseModel):
    skills: Optional[list[SkillInput]] = None
    experience: Optional[str] = None
    education: Optional[str] = None
    github: Optional[str] = None
    linkedin: Optional[str] = None
    portfolio: Optional[str] = None


class ResumeRequest(BaseModel):
    resume: str = Field(min_length=10)


@router.post("", status_code=201)
async def create_profile(body: CreateProfileRequest, db=Depends(get_db)):
    """Public onboarding: create the user, parse the resume, return a Bearer token."""
    if await store.get_user_by_email(db, body.email):
        raise HTTPException(status_code=409, detail="User with this email already exists")

    now = datetime.now(timezone.utc)
    user_id = await store.create_user(
        db,
        username=await store.available_username(db, body.email.split("@")[0]),
        email=body.email,
        now=now,
        full_name=body.name,
    )
    profile = await profile_service.ingest_resume(db, user_id, body.resume, now)

    return {
        "user_id": user_id,
        "token": create_token(user_id, body.email),
        "profile": profile,
    }


@router.get("")
async def get_profile(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    profile = await store.get_profile(db, user["id"])
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")

    assessments = await store.get_user_assessments(db, user["id"])
    progress = await store.get_user_module_progress(db, user["id"])
    return {
        "profile": profile,
        "stats": profile_service.profile_stats(profile, assessments, progress),
    }


@router.put("")
async def update_profile(body: UpdateProfileRequest, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    updates = body.model_dump(exclude_unset=True)
    if "skills" in updates:
        updates["skills"] = profile_service.normalize_skills(updates["skills"] or [])

    return await store.upsert_profile(db, user["id"], datetime.now(timezone.utc), **updates)


@router.post("/resume")
async def upload_resume(body: ResumeRequest, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await profile_service.ingest_resume(db, user["id"], body.resume, datetime.now(timezone.utc))
