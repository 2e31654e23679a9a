"""
store.py - Persistence helpers for SkillTrack

Every function takes an open connection (aiosqlite or the PgConnection
wrapper) as its first argument and returns the pydantic shapes from
skilltrack.models, with joins already applied:

- users / profiles
- assessments / user_assessments
- learning_modules / user_module_progress
- recommendations
- hackathons / hackathon_participants
- progress_alerts
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from skilltrack.models.hackathon import Challenge, Hackathon, Participant
from skilltrack.models.learning import (
    Alert,
    Answer,
    Assessment,
    AssessmentRecord,
    LearningModule,
    ModuleProgressRecord,
    Profile,
    Question,
    Recommendation,
    Skill,
    StoredRecommendation,
    as_utc,
)
from skilltrack.services.errors import ConflictError


def to_iso(dt: datetime) -> str:
    return as_utc(dt).isoformat()


def _loads(raw, default):
    """Parse a JSON column, returning default when empty or unparseable."""
    if raw is None or raw == "":
        return default
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return default


# Column list for joining learning_modules under an "m_" prefix
_MODULE_COLUMNS = """m.id AS m_id, m.title AS m_title, m.description AS m_description,
       m.technology AS m_technology, m.difficulty AS m_difficulty,
       m.duration AS m_duration, m.rating AS m_rating, m.content AS m_content,
       m.prerequisites AS m_prerequisites, m.created_at AS m_created_at"""


def _module_from_row(row, prefix: str = "") -> LearningModule:
    return LearningModule(
        id=row[f"{prefix}id"],
        title=row[f"{prefix}title"],
        description=row[f"{prefix}description"] or "",
        technology=row[f"{prefix}technology"],
        difficulty=row[f"{prefix}difficulty"],
        duration=row[f"{prefix}duration"],
        rating=row[f"{prefix}rating"] or 0.0,
        content=_loads(row[f"{prefix}content"], None),
        prerequisites=_loads(row[f"{prefix}prerequisites"], []),
        created_at=row[f"{prefix}created_at"],
    )


# ══════════════════════════════════════════════════════════════════════════════
# USERS
# ══════════════════════════════════════════════════════════════════════════════

async def create_user(
    db,
    username: str,
    email: str,
    now: datetime,
    full_name: Optional[str] = None,
) -> int:
    """Create a user. Returns the new user ID."""
    cursor = await db.execute(
        "INSERT INTO users (username, email, full_name, created_at) VALUES (?, ?, ?, ?)",
        (username, email, full_name, to_iso(now)),
    )
    await db.commit()
    return cursor.lastrowid


async def available_username(db, base: str) -> str:
    """`base`, or `base2`, `base3`, ... whichever is not taken yet."""
    cursor = await db.execute(
        "SELECT username FROM users WHERE username = ? OR username LIKE ?",
        (base, f"{base}%"),
    )
    taken = {row["username"] for row in await cursor.fetchall()}
    if base not in taken:
        return base
    suffix = 2
    while f"{base}{suffix}" in taken:
        suffix += 1
    return f"{base}{suffix}"


async def get_user(db, user_id: int) -> Optional[Dict[str, Any]]:
    cursor = await db.execute(
        "SELECT id, username, email, full_name, avatar, created_at FROM users WHERE id = ?",
        (user_id,),
    )
    row = await cursor.fetchone()
    return dict(row) if row else None


async def get_user_by_email(db, email: str) -> Optional[Dict[str, Any]]:
    cursor = await db.execute(
        "SELECT id, username, email, full_name, avatar, created_at FROM users WHERE email = ?",
        (email,),
    )
    row = await cursor.fetchone()
    return dict(row) if row else None


# ══════════════════════════════════════════════════════════════════════════════
# PROFILES
# ══════════════════════════════════════════════════════════════════════════════

_PROFILE_FIELDS = ("resume_data", "skills", "experience", "education", "github", "linkedin", "portfolio")


def _profile_from_row(row) -> Profile:
    return Profile(
        id=row["id"],
        user_id=row["user_id"],
        skills=[Skill(**s) for s in _loads(row["skills"], [])],
        experience=row["experience"],
        education=row["education"],
        github=row["github"],
        linkedin=row["linkedin"],
        portfolio=row["portfolio"],
        resume_data=_loads(row["resume_data"], None),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _encode_profile_value(field: str, value):
    if field == "skills":
        return json.dumps([s.model_dump() if isinstance(s, Skill) else s for s in value])
    if field == "resume_data":
        return json.dumps(value, default=str) if value is not None else None
    return value


async def get_profile(db, user_id: int) -> Optional[Profile]:
    cursor = await db.execute("SELECT * FROM profiles WHERE user_id = ?", (user_id,))
    row = await cursor.fetchone()
    return _profile_from_row(row) if row else None


async def upsert_profile(db, user_id: int, now: datetime, **updates) -> Profile:
    """Create the user's profile or apply a partial update to it.

    Only keys in _PROFILE_FIELDS are written; unknown keys are ignored.
    """
    fields = {k: _encode_profile_value(k, v) for k, v in updates.items() if k in _PROFILE_FIELDS}
    existing = await get_profile(db, user_id)

    if existing:
        if fields:
            assignments = ", ".join(f"{k} = ?" for k in fields)
            await db.execute(
                f"UPDATE profiles SET {assignments}, updated_at = ? WHERE user_id = ?",
                (*fields.values(), to_iso(now), user_id),
            )
    else:
        fields.setdefault("skills", "[]")
        columns = ", ".join(fields)
        placeholders = ", ".join("?" for _ in fields)
        await db.execute(
            f"""INSERT INTO profiles (user_id, {columns}, created_at, updated_at)
                VALUES (?, {placeholders}, ?, ?)""",
            (user_id, *fields.values(), to_iso(now), to_iso(now)),
        )
    await db.commit()
    return await get_profile(db, user_id)


# ══════════════════════════════════════════════════════════════════════════════
# ASSESSMENTS
# ══════════════════════════════════════════════════════════════════════════════

def _assessment_from_row(row) -> Assessment:
    return Assessment(
        id=row["id"],
        title=row["title"],
        technology=row["technology"],
        difficulty=row["difficulty"],
        questions=[Question(**q) for q in _loads(row["questions"], [])],
        time_limit=row["time_limit"],
        created_at=row["created_at"],
    )


async def create_assessment(
    db,
    title: str,
    technology: str,
    difficulty: str,
    questions: List[Question],
    time_limit: int,
    now: datetime,
) -> int:
    cursor = await db.execute(
        """INSERT INTO assessments (title, technology, difficulty, questions, time_limit, created_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (
            title,
            technology,
            difficulty,
            json.dumps([q.model_dump() for q in questions]),
            time_limit,
            to_iso(now),
        ),
    )
    await db.commit()
    return cursor.lastrowid


async def get_assessment(db, assessment_id: int) -> Optional[Assessment]:
    cursor = await db.execute("SELECT * FROM assessments WHERE id = ?", (assessment_id,))
    row = await cursor.fetchone()
    return _assessment_from_row(row) if row else None


async def list_assessments(db, technology: Optional[str] = None) -> List[Assessment]:
    if technology:
        cursor = await db.execute(
            "SELECT * FROM assessments WHERE technology = ? ORDER BY created_at DESC",
            (technology,),
        )
    else:
        cursor = await db.execute("SELECT * FROM assessments ORDER BY created_at DESC")
    return [_assessment_from_row(r) for r in await cursor.fetchall()]


async def create_user_assessment(
    db,
    user_id: int,
    assessment_id: int,
    answers: List[Answer],
    score: float,
    correct_answers: int,
    total_questions: int,
    completed_at: datetime,
    time_spent: Optional[int] = None,
) -> int:
    cursor = await db.execute(
        """INSERT INTO user_assessments
           (user_id, assessment_id, answers, score, correct_answers, total_questions, time_spent, completed_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            user_id,
            assessment_id,
            json.dumps([a.model_dump() for a in answers]),
            score,
            correct_answers,
            total_questions,
            time_spent,
            to_iso(completed_at),
        ),
    )
    await db.commit()
    return cursor.lastrowid


async def get_user_assessments(db, user_id: int) -> List[AssessmentRecord]:
    """Completed assessments joined with their definitions, newest first."""
    cursor = await db.execute(
        """SELECT ua.id, ua.assessment_id, ua.answers, ua.score, ua.correct_answers,
                  ua.total_questions, ua.time_spent, ua.completed_at,
                  a.technology, a.difficulty, a.title
           FROM user_assessments ua
           JOIN assessments a ON a.id = ua.assessment_id
           WHERE ua.user_id = ?
           ORDER BY ua.completed_at DESC""",
        (user_id,),
    )
    return [
        AssessmentRecord(
            id=row["id"],
            assessment_id=row["assessment_id"],
            technology=row["technology"],
            difficulty=row["difficulty"],
            title=row["title"],
            score=row["score"],
            completed_at=row["completed_at"],
            correct_answers=row["correct_answers"],
            total_questions=row["total_questions"],
            time_spent=row["time_spent"],
            answers=[Answer(**a) for a in _loads(row["answers"], [])],
        )
        for row in await cursor.fetchall()
    ]


# ══════════════════════════════════════════════════════════════════════════════
# LEARNING MODULES / PROGRESS
# ══════════════════════════════════════════════════════════════════════════════

async def create_module(
    db,
    title: str,
    technology: str,
    difficulty: str,
    duration: int,
    now: datetime,
    description: str = "",
    rating: float = 0.0,
    content: Optional[Dict[str, Any]] = None,
    prerequisites: Optional[List[str]] = None,
) -> int:
    cursor = await db.execute(
        """INSERT INTO learning_modules
           (title, description, technology, difficulty, duration, rating, content, prerequisites, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            title,
            description,
            technology,
            difficulty,
            duration,
            rating,
            json.dumps(content) if content is not None else None,
            json.dumps(prerequisites or []),
            to_iso(now),
        ),
    )
    await db.commit()
    return cursor.lastrowid


async def get_module(db, module_id: int) -> Optional[LearningModule]:
    cursor = await db.execute("SELECT * FROM learning_modules WHERE id = ?", (module_id,))
    row = await cursor.fetchone()
    return _module_from_row(row) if row else None


async def list_modules(db, technology: Optional[str] = None) -> List[LearningModule]:
    """The module catalog, highest rated first."""
    if technology:
        cursor = await db.execute(
            "SELECT * FROM learning_modules WHERE technology = ? ORDER BY rating DESC",
            (technology,),
        )
    else:
        cursor = await db.execute("SELECT * FROM learning_modules ORDER BY rating DESC")
    return [_module_from_row(r) for r in await cursor.fetchall()]


def _progress_from_row(row) -> ModuleProgressRecord:
    return ModuleProgressRecord(
        id=row["id"],
        module_id=row["module_id"],
        progress=row["progress"] or 0.0,
        started_at=row["started_at"],
        last_accessed_at=row["last_accessed_at"],
        completed_at=row["completed_at"],
        module=_module_from_row(row, prefix="m_"),
    )


async def get_user_module_progress(db, user_id: int) -> List[ModuleProgressRecord]:
    """Progress records joined with their module, most recently accessed first."""
    cursor = await db.execute(
        f"""SELECT p.id, p.module_id, p.progress, p.started_at, p.last_accessed_at, p.completed_at,
                   {_MODULE_COLUMNS}
            FROM user_module_progress p
            JOIN learning_modules m ON m.id = p.module_id
            WHERE p.user_id = ?
            ORDER BY p.last_accessed_at DESC""",
        (user_id,),
    )
    return [_progress_from_row(r) for r in await cursor.fetchall()]


async def upsert_module_progress(
    db,
    user_id: int,
    module_id: int,
    progress: float,
    now: datetime,
) -> None:
    """Record a progress touch.

    lastAccessedAt is always `now`. completedAt is stamped when progress
    reaches 100 and cleared again if progress falls below 100.
    """
    completed_at = to_iso(now) if progress >= 100 else None
    cursor = await db.execute(
        "SELECT id FROM user_module_progress WHERE user_id = ? AND module_id = ?",
        (user_id, module_id),
    )
    existing = await cursor.fetchone()

    if existing:
        await db.execute(
            """UPDATE user_module_progress
               SET progress = ?, last_accessed_at = ?, completed_at = ?
               WHERE id = ?""",
            (progress, to_iso(now), completed_at, existing["id"]),
        )
    else:
        await db.execute(
            """INSERT INTO user_module_progress
               (user_id, module_id, progress, started_at, last_accessed_at, completed_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (user_id, module_id, progress, to_iso(now), to_iso(now), completed_at),
        )
    await db.commit()


# ══════════════════════════════════════════════════════════════════════════════
# RECOMMENDATIONS
# ══════════════════════════════════════════════════════════════════════════════

async def create_recommendation(db, user_id: int, rec: Recommendation, now: datetime) -> int:
    cursor = await db.execute(
        """INSERT INTO recommendations (user_id, module_id, score, reason, created_at)
           VALUES (?, ?, ?, ?, ?)""",
        (user_id, rec.module_id, rec.score, rec.reason, to_iso(now)),
    )
    await db.commit()
    return cursor.lastrowid


async def delete_user_recommendations(db, user_id: int) -> None:
    await db.execute("DELETE FROM recommendations WHERE user_id = ?", (user_id,))
    await db.commit()


async def get_user_recommendations(db, user_id: int) -> List[StoredRecommendation]:
    """Stored recommendations joined with their module, highest score first."""
    cursor = await db.execute(
        f"""SELECT r.id, r.module_id, r.score, r.reason, r.created_at, {_MODULE_COLUMNS}
            FROM recommendations r
            JOIN learning_modules m ON m.id = r.module_id
            WHERE r.user_id = ?
            ORDER BY r.score DESC""",
        (user_id,),
    )
    return [
        StoredRecommendation(
            id=row["id"],
            module_id=row["module_id"],
            score=row["score"],
            reason=row["reason"],
            created_at=row["created_at"],
            module=_module_from_row(row, prefix="m_"),
        )
        for row in await cursor.fetchall()
    ]


# ══════════════════════════════════════════════════════════════════════════════
# HACKATHONS
# ══════════════════════════════════════════════════════════════════════════════

def _hackathon_from_row(row) -> Hackathon:
    return Hackathon(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        theme=row["theme"],
        difficulty=row["difficulty"],
        start_date=row["start_date"],
        end_date=row["end_date"],
        registration_deadline=row["registration_deadline"],
        max_participants=row["max_participants"],
        current_participants=row["current_participants"] or 0,
        challenges=[Challenge(**c) for c in _loads(row["challenges"], [])],
        prizes=_loads(row["prizes"], None),
        created_by=row["created_by"],
        created_at=row["created_at"],
    )


async def create_hackathon(
    db,
    created_by: int,
    title: str,
    description: str,
    theme: Optional[str],
    difficulty: str,
    start_date: datetime,
    end_date: datetime,
    registration_deadline: datetime,
    challenges: List[Challenge],
    prizes: Optional[Dict[str, Any]],
    now: datetime,
    max_participants: Optional[int] = None,
) -> int:
    cursor = await db.execute(
        """INSERT INTO hackathons
           (title, description, theme, difficulty, start_date, end_date, registration_deadline,
            max_participants, current_participants, challenges, prizes, created_by, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?, ?)""",
        (
            title,
            description,
            theme,
            difficulty,
            to_iso(start_date),
            to_iso(end_date),
            to_iso(registration_deadline),
            max_participants,
            json.dumps([c.model_dump() for c in challenges]),
            json.dumps(prizes) if prizes is not None else None,
            created_by,
            to_iso(now),
        ),
    )
    await db.commit()
    return cursor.lastrowid


async def get_hackathon(db, hackathon_id: int) -> Optional[Hackathon]:
    cursor = await db.execute("SELECT * FROM hackathons WHERE id = ?", (hackathon_id,))
    row = await cursor.fetchone()
    return _hackathon_from_row(row) if row else None


async def list_hackathons(db) -> List[Hackathon]:
    cursor = await db.execute("SELECT * FROM hackathons ORDER BY created_at DESC")
    return [_hackathon_from_row(r) for r in await cursor.fetchall()]


async def add_participant(
    db,
    hackathon_id: int,
    user_id: int,
    now: datetime,
    team_name: Optional[str] = None,
) -> int:
    cursor = await db.execute(
        "SELECT id FROM hackathon_participants WHERE hackathon_id = ? AND user_id = ?",
        (hackathon_id, user_id),
    )
    if await cursor.fetchone():
        raise ConflictError("User already joined this hackathon")

    await db.execute(
        "UPDATE hackathons SET current_participants = COALESCE(current_participants, 0) + 1 WHERE id = ?",
        (hackathon_id,),
    )
    cursor = await db.execute(
        """INSERT INTO hackathon_participants (hackathon_id, user_id, team_name, joined_at)
           VALUES (?, ?, ?, ?)""",
        (hackathon_id, user_id, team_name, to_iso(now)),
    )
    await db.commit()
    return cursor.lastrowid


def _participant_from_row(row) -> Participant:
    return Participant(
        id=row["id"],
        hackathon_id=row["hackathon_id"],
        user_id=row["user_id"],
        username=row["username"],
        team_name=row["team_name"],
        submission=_loads(row["submission"], None),
        score=row["score"],
        rank=row["rank"],
        joined_at=row["joined_at"],
    )


async def get_participants(db, hackathon_id: int) -> List[Participant]:
    cursor = await db.execute(
        """SELECT hp.*, u.username
           FROM hackathon_participants hp
           JOIN users u ON u.id = hp.user_id
           WHERE hp.hackathon_id = ?
           ORDER BY hp.joined_at DESC""",
        (hackathon_id,),
    )
    return [_participant_from_row(r) for r in await cursor.fetchall()]


async def get_user_participations(db, user_id: int) -> List[Participant]:
    cursor = await db.execute(
        """SELECT hp.*, u.username
           FROM hackathon_participants hp
           JOIN users u ON u.id = hp.user_id
           WHERE hp.user_id = ?
           ORDER BY hp.joined_at DESC""",
        (user_id,),
    )
    return [_participant_from_row(r) for r in await cursor.fetchall()]


# ══════════════════════════════════════════════════════════════════════════════
# ALERTS
# ══════════════════════════════════════════════════════════════════════════════

def _alert_from_row(row) -> Alert:
    return Alert(
        id=row["id"],
        type=row["type"],
        message=row["message"],
        read=bool(row["read"]),
        created_at=row["created_at"],
    )


async def create_alert(db, user_id: int, alert: Alert, now: datetime) -> Alert:
    cursor = await db.execute(
        "INSERT INTO progress_alerts (user_id, type, message, read, created_at) VALUES (?, ?, ?, 0, ?)",
        (user_id, alert.type, alert.message, to_iso(now)),
    )
    await db.commit()
    return alert.model_copy(update={"id": cursor.lastrowid, "created_at": now})


async def get_user_alerts(db, user_id: int) -> List[Alert]:
    cursor = await db.execute(
        "SELECT * FROM progress_alerts WHERE user_id = ? ORDER BY created_at DESC, id DESC",
        (user_id,),
    )
    return [_alert_from_row(r) for r in await cursor.fetchall()]


async def mark_alert_read(db, user_id: int, alert_id: int) -> bool:
    """Mark one of the user's alerts read. Returns False if it does not exist for this user."""
    cursor = await db.execute(
        "SELECT id FROM progress_alerts WHERE id = ? AND user_id = ?",
        (alert_id, user_id),
    )
    if not await cursor.fetchone():
        return False
    await db.execute("UPDATE progress_alerts SET read = 1 WHERE id = ?", (alert_id,))
    await db.commit()
    return True
