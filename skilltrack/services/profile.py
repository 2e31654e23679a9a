"""
profile.py - Skill profile service

Provides:
- parse_resume(text) - AI extraction of skills, experience and education
- parse_resume_with_fallback(text) - same, degrading to keyword matching
- merge_assessment_score(skills, technology, score) - fold a result into the skill set
- ingest_resume / apply_assessment_score - persist the above for a user
- profile_stats(profile, assessments, progress) - dashboard numbers
"""

import logging
from datetime import datetime
from typing import Any, Dict, List

from pydantic import ValidationError

from skilltrack.db import store
from skilltrack.models.learning import (
    AssessmentRecord,
    ModuleProgressRecord,
    ParsedResume,
    Profile,
    Skill,
    clamp,
)
from skilltrack.services.ai_client import complete, parse_json_payload
from skilltrack.services.errors import AIResponseError
from skilltrack.services.prompts import load_prompt

logger = logging.getLogger(__name__)

# Used only when the AI parser is unavailable
COMMON_SKILLS = [
    "JavaScript", "TypeScript", "Python", "Java", "C#", "C++", "Go", "Rust", "Ruby", "PHP",
    "Kotlin", "Swift", "SQL", "HTML", "CSS", "React", "Angular", "Vue", "Node.js", "Express",
    "Django", "Flask", "FastAPI", "Spring", "PostgreSQL", "MySQL", "MongoDB", "Redis",
    "Docker", "Kubernetes", "AWS", "Azure", "GCP", "Git", "GraphQL", "Linux",
]
FALLBACK_LEVEL = 50


def normalize_skills(raw: List[Any]) -> List[Skill]:
    """Build Skill objects from AI or client payloads.

    Accepts either {skill, level, vectorScore} or {name, level, normalized_score}
    entries. Levels are clamped to 0-100 and the normalized score follows the level.
    """
    skills = []
    for item in raw:
        if isinstance(item, Skill):
            item = item.model_dump()
        if isinstance(item, str):
            item = {"name": item}
        if not isinstance(item, dict):
            continue
        name = str(item.get("name") or item.get("skill") or "").strip()
        if not name:
            continue
        try:
            level = clamp(float(item.get("level") or 0), 0.0, 100.0)
        except (TypeError, ValueError):
            level = 0.0
        skills.append(Skill(name=name, level=level, normalized_score=level / 100))
    return skills


async def parse_resume(resume_text: str) -> ParsedResume:
    prompt = load_prompt("resume_parser.yaml")
    user_message = prompt["user_template"].format(resume=resume_text)

    logger.info("Parsing resume (%d chars)", len(resume_text))
    text = await complete(user_message, prompt["system_prompt"], use_case="cheap")
    payload = parse_json_payload(text, "skills")

    try:
        return ParsedResume(
            skills=normalize_skills(payload["skills"]),
            experience=payload.get("experience"),
            education=payload.get("education"),
        )
    except ValidationError as exc:
        raise AIResponseError(f"AI returned an invalid resume payload: {exc}") from exc


def match_common_skills(resume_text: str) -> List[Skill]:
    lowered = resume_text.lower()
    return [
        Skill(name=name, level=FALLBACK_LEVEL, normalized_score=FALLBACK_LEVEL / 100)
        for name in COMMON_SKILLS
        if name.lower() in lowered
    ]


async def parse_resume_with_fallback(resume_text: str) -> ParsedResume:
    """AI parse, or keyword matching against COMMON_SKILLS when the AI call fails."""
    try:
        return await parse_resume(resume_text)
    except AIResponseError as exc:
        skills = match_common_skills(resume_text)
        logger.warning("Resume AI parse failed, matched %d common skills instead: %s", len(skills), exc)
        return ParsedResume(skills=skills, degraded=True)


def merge_assessment_score(skills: List[Skill], technology: str, score: float) -> List[Skill]:
    """Level becomes max(prior, score); unknown technologies are appended."""
    merged = [s.model_copy() for s in skills]
    score = clamp(score, 0.0, 100.0)

    for i, skill in enumerate(merged):
        if skill.name.lower() == technology.lower():
            level = max(skill.level, score)
            merged[i] = Skill(name=skill.name, level=level, normalized_score=level / 100)
            return merged

    merged.append(Skill(name=technology, level=score, normalized_score=score / 100))
    return merged


async def ingest_resume(db, user_id: int, resume_text: str, now: datetime) -> Profile:
    parsed = await parse_resume_with_fallback(resume_text)
    return await store.upsert_profile(
        db,
        user_id,
        now,
        resume_data={
            "raw_text": resume_text,
            "parsed_at": now.isoformat(),
            "degraded": parsed.degraded,
        },
        skills=parsed.skills,
        experience=parsed.experience,
        education=parsed.education,
    )


async def apply_assessment_score(
    db,
    user_id: int,
    technology: str,
    score: float,
    now: datetime,
) -> Profile:
    profile = await store.get_profile(db, user_id)
    skills = merge_assessment_score(profile.skills if profile else [], technology, score)
    return await store.upsert_profile(db, user_id, now, skills=skills)


def profile_stats(
    profile: Profile,
    assessments: List[AssessmentRecord],
    progress: List[ModuleProgressRecord],
) -> Dict[str, Any]:
    total = len(assessments)
    avg_score = sum(a.score for a in assessments) / total if total else 0
    hours = sum(p.module.duration * (p.progress / 100) for p in progress if p.module)

    return {
        "skills_assessed": len(profile.skills),
        "avg_score": round(avg_score),
        "learning_hours": round(hours),
        "total_assessments": total,
    }
