"""
assessments.py - AI-generated technical assessments and scoring

Provides:
- generate_assessment_questions(technology, difficulty, count) - AI question set
- score_answers(questions, answers) - percentage score and correct count
- detailed_results(questions, answers) - per-question review with explanations
- topic_scores(history) - per-technology score lists and averages
- create_assessment / submit_assessment - persisted flows used by the routes
"""

import logging
import math
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from skilltrack.db import store
from skilltrack.models.learning import Answer, Assessment, AssessmentRecord, Question
from skilltrack.services import profile as profile_service
from skilltrack.services.ai_client import complete, parse_json_payload
from skilltrack.services.errors import AIResponseError, NotFoundError
from skilltrack.services.prompts import load_prompt

logger = logging.getLogger(__name__)

DEFAULT_QUESTION_COUNT = 15

# Minutes allotted per question
MINUTES_PER_QUESTION = {
    "beginner": 1.5,
    "intermediate": 2,
    "advanced": 2.5,
}


def assessment_title(technology: str, difficulty: str) -> str:
    return f"{technology} {difficulty[:1].upper()}{difficulty[1:]} Assessment"


def time_limit_minutes(question_count: int, difficulty: str) -> int:
    return math.ceil(question_count * MINUTES_PER_QUESTION.get(difficulty, 1))


def _question_from_ai(item: dict, index: int) -> Question:
    return Question(
        id=str(item.get("id") or f"q{index}"),
        question=item.get("question", ""),
        options=item.get("options", []),
        correct_answer=item.get("correctAnswer", item.get("correct_answer")),
        explanation=item.get("explanation"),
    )


async def generate_assessment_questions(
    technology: str,
    difficulty: str,
    count: int = DEFAULT_QUESTION_COUNT,
) -> List[Question]:
    prompt = load_prompt("assessment_generator.yaml")
    user_message = prompt["user_template"].format(
        count=count, technology=technology, difficulty=difficulty,
    )

    text = await complete(user_message, prompt["system_prompt"], use_case="assessment")
    payload = parse_json_payload(text, "questions")

    try:
        return [_question_from_ai(item, i) for i, item in enumerate(payload["questions"], start=1)]
    except (ValidationError, AttributeError) as exc:
        raise AIResponseError(f"AI returned an invalid question: {exc}") from exc


def score_answers(questions: List[Question], answers: List[Answer]) -> Tuple[int, int, int]:
    """Return (score %, correct answers, total questions).

    Answers to unknown question ids are ignored; an empty assessment scores 0.
    """
    by_id = {q.id: q for q in questions}
    correct = sum(
        1 for a in answers
        if a.question_id in by_id and by_id[a.question_id].correct_answer == a.selected_answer
    )
    total = len(questions)
    score = math.floor(correct / total * 100 + 0.5) if total else 0
    return score, correct, total


def detailed_results(questions: List[Question], answers: List[Answer]) -> List[Dict[str, Any]]:
    by_id = {q.id: q for q in questions}
    results = []
    for answer in answers:
        question = by_id.get(answer.question_id)
        results.append({
            "question_id": answer.question_id,
            "question": question.question if question else None,
            "options": question.options if question else None,
            "selected_answer": answer.selected_answer,
            "correct_answer": question.correct_answer if question else None,
            "is_correct": bool(question and question.correct_answer == answer.selected_answer),
            "explanation": question.explanation if question else None,
        })
    return results


def topic_scores(history: List[AssessmentRecord]) -> Dict[str, Dict[str, Any]]:
    grouped: Dict[str, List[float]] = defaultdict(list)
    for record in history:
        grouped[record.technology].append(record.score)
    return {
        tech: {"scores": scores, "average": sum(scores) / len(scores)}
        for tech, scores in grouped.items()
    }


async def create_assessment(
    db,
    technology: str,
    difficulty: str,
    now: datetime,
    question_count: int = DEFAULT_QUESTION_COUNT,
) -> Assessment:
    questions = await generate_assessment_questions(technology, difficulty, question_count)
    assessment_id = await store.create_assessment(
        db,
        title=assessment_title(technology, difficulty),
        technology=technology,
        difficulty=difficulty,
        questions=questions,
        time_limit=time_limit_minutes(len(questions), difficulty),
        now=now,
    )
    logger.info("Created assessment %d: %s/%s with %d questions",
                assessment_id, technology, difficulty, len(questions))
    return await store.get_assessment(db, assessment_id)


async def submit_assessment(
    db,
    user_id: int,
    assessment_id: int,
    answers: List[Answer],
    now: datetime,
    time_spent: Optional[int] = None,
) -> Dict[str, Any]:
    """Score a submission, store it, and raise the user's skill level for the technology."""
    assessment = await store.get_assessment(db, assessment_id)
    if not assessment:
        raise NotFoundError("Assessment not found")

    score, correct, total = score_answers(assessment.questions, answers)
    await store.create_user_assessment(
        db,
        user_id=user_id,
        assessment_id=assessment_id,
        answers=answers,
        score=score,
        correct_answers=correct,
        total_questions=total,
        completed_at=now,
        time_spent=time_spent,
    )
    await profile_service.apply_assessment_score(db, user_id, assessment.technology, score, now)

    logger.info("User %d scored %d%% on assessment %d (%d/%d)", user_id, score, assessment_id, correct, total)
    return {"score": score, "correct_answers": correct, "total_questions": total}


async def assessment_results(db, user_id: int, assessment_id: int) -> Dict[str, Any]:
    """Latest attempt at an assessment with per-question review."""
    history = await store.get_user_assessments(db, user_id)
    record = next((r for r in history if r.assessment_id == assessment_id), None)
    if not record:
        raise NotFoundError("Assessment result not found")

    assessment = await store.get_assessment(db, assessment_id)
    return {
        **record.model_dump(),
        "detailed_results": detailed_results(assessment.questions if assessment else [], record.answers),
    }
