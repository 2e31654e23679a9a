from typing import Optional

from pydantic import BaseModel

from skilltrack.models.learning import UTCDateTime


class Challenge(BaseModel):
    id: str
    title: str
    description: str = ""
    requirements: list[str] = []
    points: int = 100


class Hackathon(BaseModel):
    id: int
    title: str
    description: str
    theme: Optional[str] = None
    difficulty: str
    start_date: UTCDateTime
    end_date: UTCDateTime
    registration_deadline: UTCDateTime
    max_participants: Optional[int] = None
    current_participants: int = 0
    challenges: list[Challenge] = []
    prizes: Optional[dict] = None
    created_by: int
    created_at: Optional[UTCDateTime] = None


class Participant(BaseModel):
    id: int
    hackathon_id: int
    user_id: int
    username: str = ""
    team_name: Optional[str] = None
    submission: Optional[dict] = None
    score: Optional[float] = None
    rank: Optional[int] = None
    joined_at: UTCDateTime
