from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from skilltrack.db import store
from skilltrack.db.database import get_db
from skilltrack.routes.auth import get_current_user
from skilltrack.services import tracker

router = APIRouter(prefix="/api/modules", tags=["modules"])


class CreateModuleRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    technology: str = Field(min_length=1)
    difficulty: Literal["beginner", "intermediate", "advanced"]
    duration: int = Field(ge=1, description="Hours")
    rating: float = Field(default=0.0, ge=0, le=5)
    content: Optional[dict] = None
    prerequisites: list[str] = []


class ProgressUpdateRequest(BaseModel):
    progress: float = Field(ge=0, le=100)


@router.get("")
async def list_modules(request: Request, technology: Optional[str] = None, db=Depends(get_db)):
    await get_current_user(request, db)
    return await store.list_modules(db, technology)


@router.post("", status_code=201)
async def create_module(body: CreateModuleRequest, request: Request, db=Depends(get_db)):
    await get_current_user(request, db)
    module_id = await store.create_module(
        db,
        title=body.title,
        technology=body.technology,
        difficulty=body.difficulty,
        duration=body.duration,
        now=datetime.now(timezone.utc),
        description=body.description,
        rating=body.rating,
        content=body.content,
        prerequisites=body.prerequisites,
    )
    return await store.get_module(db, module_id)


@router.get("/{module_id}")
async def get_module(module_id: int, request: Request, db=Depends(get_db)):
    await get_current_user(request, db)
    module = await store.get_module(db, module_id)
    if not module:
        raise HTTPException(status_code=404, detail="Learning module not found")
    return module


@router.put("/{module_id}/progress")
async def update_module_progress(
    module_id: int,
    body: ProgressUpdateRequest,
    request: Request,
    db=Depends(get_db),
):
    """Record progress and return any achievement / stagnation alerts it produced."""
    user = await get_current_user(request, db)
    alerts = await tracker.update_progress(
        db, user["id"], module_id, body.progress, datetime.now(timezone.utc),
    )
    return {"module_id": module_id, "progress": body.progress, "alerts": alerts}
