from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from skilltrack.db import store
from skilltrack.db.database import get_db
from skilltrack.models.learning import Answer
from skilltrack.routes.auth import get_current_user
from skilltrack.services import assessments as assessment_service

router = APIRouter(prefix="/api/assessments", tags=["assessments"])


class CreateAssessmentRequest(BaseModel):
    technology: str = Field(min_length=1)
    difficulty: Literal["beginner", "intermediate", "advanced"] = "intermediate"
    question_count: int = Field(default=assessment_service.DEFAULT_QUESTION_COUNT, ge=1, le=50)


class SubmitAssessmentRequest(BaseModel):
    answers: list[Answer]
    time_spent: Optional[int] = Field(default=None, ge=0)


@router.get("")
async def list_assessments(request: Request, technology: Optional[str] = None, db=Depends(get_db)):
    await get_current_user(request, db)
    return await store.list_assessments(db, technology)


@router.post("", status_code=201)
async def create_assessment(body: CreateAssessmentRequest, request: Request, db=Depends(get_db)):
    await get_current_user(request, db)
    return await assessment_service.create_assessment(
        db, body.technology, body.difficulty, datetime.now(timezone.utc), body.question_count,
    )


@router.get("/history")
async def assessment_history(request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    history = await store.get_user_assessments(db, user["id"])
    return {
        "history": history,
        "topic_scores": assessment_service.topic_scores(history),
    }


@router.get("/{assessment_id}")
async def get_assessment(assessment_id: int, request: Request, db=Depends(get_db)):
    await get_current_user(request, db)
    assessment = await store.get_assessment(db, assessment_id)
    if not assessment:
        raise HTTPException(status_code=404, detail="Assessment not found")
    return assessment


@router.post("/{assessment_id}/submit")
async def submit_assessment(
    assessment_id: int,
    body: SubmitAssessmentRequest,
    request: Request,
    db=Depends(get_db),
):
    user = await get_current_user(request, db)
    return await assessment_service.submit_assessment(
        db, user["id"], assessment_id, body.answers, datetime.now(timezone.utc), body.time_spent,
    )


@router.get("/{assessment_id}/results")
async def assessment_results(assessment_id: int, request: Request, db=Depends(get_db)):
    user = await get_current_user(request, db)
    return await assessment_service.assessment_results(db, user["id"], assessment_id)
