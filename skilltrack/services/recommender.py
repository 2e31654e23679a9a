"""Personalized learning-module recommendations.

Provides:
- Skill-gap analysis over a profile's skill levels
- Learning-pattern inference from assessment and module-progress history
- Weighted scoring of AI-suggested technologies against the module catalog
- Query helpers (ranking, technology filter, engagement stats)
- refresh_recommendations(): the full fetch → analyse → AI → score → persist flow
"""

import json
import logging
import math
from collections import Counter, defaultdict
from datetime import datetime

from pydantic import ValidationError

from skilltrack.config import settings
from skilltrack.db import store
from skilltrack.models.learning import (
    AISuggestion,
    AssessmentRecord,
    LearningModule,
    LearningPattern,
    ModuleProgressRecord,
    Recommendation,
    Skill,
    SkillGap,
    StoredRecommendation,
)
from skilltrack.services.ai_client import complete, parse_json_payload
from skilltrack.services.errors import MissingPrerequisiteError
from skilltrack.services.prompts import load_prompt

logger = logging.getLogger(__name__)

# Skills below this level are considered gaps
COMPETENCY_THRESHOLD = 70

GAP_WEIGHT = 0.3
DIFFICULTY_BONUS = 0.2
DURATION_BONUS = 0.1
DURATION_TOLERANCE_HOURS = 1
RATING_BONUS = 0.15
HIGH_RATING = 4.5

DEFAULT_DIFFICULTY = "intermediate"
DEFAULT_DURATION_HOURS = 3
MIN_DURATION_HOURS = 1
MAX_DURATION_HOURS = 8

SKILL_GAP_NOTE = "This addresses a skill gap in your profile."


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


# ── Analysis ─────────────────────────────────────────────────────────

def identify_skill_gaps(skills: list[Skill]) -> list[SkillGap]:
    """Skills below the competency threshold, largest gap first.

    gap_score = (70 - level) / 70, so it lies in (0, 1].
    """
    gaps = [
        SkillGap(
            skill=s.name,
            gap_score=(COMPETENCY_THRESHOLD - s.level) / COMPETENCY_THRESHOLD,
        )
        for s in skills
        if s.level < COMPETENCY_THRESHOLD
    ]
    return sorted(gaps, key=lambda g: g.gap_score, reverse=True)


def analyze_learning_patterns(
    assessments: list[AssessmentRecord],
    progress: list[ModuleProgressRecord],
) -> LearningPattern:
    """Infer difficulty and session-length preferences from history."""
    preferred_difficulty = DEFAULT_DIFFICULTY
    preferred_duration = DEFAULT_DURATION_HOURS
    completion_rate = 0.0
    avg_hours = 0.0

    if assessments:
        by_difficulty: dict[str, list[float]] = defaultdict(list)
        for record in assessments:
            by_difficulty[record.difficulty].append(record.score)

        # Strictly greater: ties keep the first difficulty seen, all-zero keeps the default
        best_avg = 0.0
        for difficulty, scores in by_difficulty.items():
            avg = sum(scores) / len(scores)
            if avg > best_avg:
                best_avg = avg
                preferred_difficulty = difficulty

    if progress:
        completed = [p for p in progress if p.progress >= 100]
        completion_rate = len(completed) / len(progress)

        timed = [p for p in completed if p.completed_at and p.started_at]
        if timed:
            avg_hours = sum(
                (p.completed_at - p.started_at).total_seconds() / 3600 for p in timed
            ) / len(timed)

        preferred_duration = max(
            MIN_DURATION_HOURS,
            min(MAX_DURATION_HOURS, _round_half_up(avg_hours or DEFAULT_DURATION_HOURS)),
        )

    return LearningPattern(
        preferred_difficulty=preferred_difficulty,
        preferred_duration=preferred_duration,
        completion_rate=completion_rate,
        avg_time_to_complete_hours=avg_hours,
    )


def _module_matches(module: LearningModule, technology: str) -> bool:
    tech = technology.lower()
    return tech in module.technology.lower() or tech in module.title.lower()


def _related_gap(gaps: list[SkillGap], technology: str) -> SkillGap | None:
    tech = technology.lower()
    for gap in gaps:
        skill = gap.skill.lower()
        if tech in skill or skill in tech:
            return gap
    return None


def create_weighted_recommendations(
    suggestions: list[AISuggestion],
    gaps: list[SkillGap],
    pattern: LearningPattern,
    modules: list[LearningModule],
) -> list[Recommendation]:
    """Score every (suggestion, matching module) pair.

    The result is unsorted and may hold several entries for one module when
    more than one suggestion matches it; ranking happens at query time.
    """
    recommendations: list[Recommendation] = []

    for suggestion in suggestions:
        if not suggestion.technology.strip():
            continue
        gap = _related_gap(gaps, suggestion.technology)

        for module in modules:
            if not _module_matches(module, suggestion.technology):
                continue

            score = suggestion.priority / 100
            if gap:
                score += gap.gap_score * GAP_WEIGHT
            if module.difficulty == pattern.preferred_difficulty:
                score += DIFFICULTY_BONUS
            if abs(module.duration - pattern.preferred_duration) <= DURATION_TOLERANCE_HOURS:
                score += DURATION_BONUS
            if module.rating >= HIGH_RATING:
                score += RATING_BONUS

            reason = f"{suggestion.reason} {SKILL_GAP_NOTE}".strip() if gap else suggestion.reason
            # Recommendation clamps score to [0, 1]
            recommendations.append(Recommendation(module_id=module.id, score=score, reason=reason))

    return recommendations


def deduplicate_recommendations(recommendations: list[Recommendation]) -> list[Recommendation]:
    """Collapse entries per module: keep the max score and the union of reasons."""
    best: dict[int, float] = {}
    reasons: dict[int, list[str]] = defaultdict(list)
    for rec in recommendations:
        best[rec.module_id] = max(best.get(rec.module_id, 0.0), rec.score)
        if rec.reason and rec.reason not in reasons[rec.module_id]:
            reasons[rec.module_id].append(rec.reason)

    return [
        Recommendation(module_id=module_id, score=score, reason=" ".join(reasons[module_id]))
        for module_id, score in best.items()
    ]


# ── Query helpers ────────────────────────────────────────────────────

def rank_recommendations(recommendations: list, limit: int | None = None) -> list:
    ranked = sorted(recommendations, key=lambda r: r.score, reverse=True)
    return ranked[:limit] if limit is not None else ranked


def filter_by_technology(
    recommendations: list[StoredRecommendation],
    technology: str,
) -> list[StoredRecommendation]:
    return [r for r in recommendations if r.module and _module_matches(r.module, technology)]


def recommendation_stats(
    recommendations: list[StoredRecommendation],
    progress: list[ModuleProgressRecord],
) -> dict:
    """How many recommendations were acted upon, and which technologies dominate."""
    recommended_ids = {r.module_id for r in recommendations}
    acted_upon = [p for p in progress if p.module_id in recommended_ids and p.progress > 0]
    action_rate = len(acted_upon) / len(recommendations) if recommendations else 0.0

    tech_counts = Counter(r.module.technology for r in recommendations if r.module)
    return {
        "total_recommendations": len(recommendations),
        "acted_upon": len(acted_upon),
        "action_rate": round(action_rate * 100),
        "top_technologies": [
            {"technology": tech, "count": count} for tech, count in tech_counts.most_common(5)
        ],
    }


# ── AI suggestions ───────────────────────────────────────────────────

async def generate_learning_suggestions(
    skills: list[Skill],
    assessments: list[AssessmentRecord],
) -> list[AISuggestion]:
    skills_json = json.dumps([{"skill": s.name, "level": s.level} for s in skills])
    history_json = json.dumps(
        [
            {
                "technology": a.technology,
                "difficulty": a.difficulty,
                "score": a.score,
                "completedAt": a.completed_at.isoformat(),
            }
            for a in assessments
        ]
    )
    prompt = load_prompt("learning_suggestions.yaml")
    user_message = prompt["user_template"].format(skills=skills_json, history=history_json)

    text = await complete(user_message, prompt["system_prompt"], use_case="recommendation")
    payload = parse_json_payload(text, "recommendations")

    # Only the array itself is required; unusable entries are dropped one by one
    suggestions = []
    for i, item in enumerate(payload["recommendations"]):
        try:
            suggestions.append(AISuggestion.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping AI recommendation entry %d: %s", i, exc.errors()[0]["msg"])
    return suggestions


# ── Orchestration ────────────────────────────────────────────────────

async def refresh_recommendations(
    db,
    user_id: int,
    now: datetime,
    *,
    replace: bool | None = None,
    dedupe: bool | None = None,
) -> list[Recommendation]:
    """Regenerate and persist a user's recommendations.

    Raises MissingPrerequisiteError when the profile is absent or has no
    skills, and AIResponseError when the AI collaborator fails.
    """
    replace = settings.replace_recommendations_on_refresh if replace is None else replace
    dedupe = settings.dedupe_recommendations if dedupe is None else dedupe

    profile = await store.get_profile(db, user_id)
    if not profile or not profile.skills:
        raise MissingPrerequisiteError("User profile not found or has no skills")

    history = await store.get_user_assessments(db, user_id)
    progress = await store.get_user_module_progress(db, user_id)

    gaps = identify_skill_gaps(profile.skills)
    pattern = analyze_learning_patterns(history, progress)
    suggestions = await generate_learning_suggestions(profile.skills, history)
    modules = await store.list_modules(db)

    recommendations = create_weighted_recommendations(suggestions, gaps, pattern, modules)
    if dedupe:
        recommendations = deduplicate_recommendations(recommendations)

    if replace:
        await store.delete_user_recommendations(db, user_id)
    for rec in recommendations:
        await store.create_recommendation(db, user_id, rec, now)

    logger.info(
        "Refreshed recommendations for user %d: %d suggestions, %d entries (replace=%s, dedupe=%s)",
        user_id, len(suggestions), len(recommendations), replace, dedupe,
    )
    return recommendations
