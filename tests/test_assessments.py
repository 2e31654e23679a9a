"""Tests for assessment generation, scoring and submission."""

import json
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from skilltrack.models.learning import Answer, AssessmentRecord, Question
from skilltrack.services import assessments as assessment_service
from skilltrack.services.errors import AIResponseError, NotFoundError


def _questions():
    return [
        Question(id="q1", question="2+2?", options=["3", "4", "5", "6"], correct_answer=1, explanation="Math"),
        Question(id="q2", question="Capital of France?", options=["Paris", "Rome", "Oslo", "Bern"], correct_answer=0),
        Question(id="q3", question="Color of sky?", options=["Red", "Blue", "Green", "Gray"], correct_answer=1),
    ]


class TestHelpers:

    def test_title(self):
        assert assessment_service.assessment_title("React", "intermediate") == "React Intermediate Assessment"

    @pytest.mark.parametrize(
        "count, difficulty, minutes",
        [(15, "beginner", 23), (15, "intermediate", 30), (15, "advanced", 38), (15, "expert", 15), (1, "beginner", 2)],
    )
    def test_time_limit(self, count, difficulty, minutes):
        assert assessment_service.time_limit_minutes(count, difficulty) == minutes


class TestScoring:

    def test_score_answers(self):
        answers = [
            Answer(question_id="q1", selected_answer=1),
            Answer(question_id="q2", selected_answer=3),
            Answer(question_id="q9", selected_answer=0),
        ]
        assert assessment_service.score_answers(_questions(), answers) == (33, 1, 3)

    def test_rounds_half_up(self):
        questions = _questions()[:2] * 4  # 8 questions
        questions = [q.model_copy(update={"id": f"q{i}"}) for i, q in enumerate(questions)]
        answers = [Answer(question_id=q.id, selected_answer=q.correct_answer) for q in questions[:5]]
        # 5 / 8 = 62.5%
        assert assessment_service.score_answers(questions, answers)[0] == 63

    def test_empty_assessment_scores_zero(self):
        assert assessment_service.score_answers([], [Answer(question_id="q1", selected_answer=0)]) == (0, 0, 0)

    def test_detailed_results(self):
        answers = [Answer(question_id="q1", selected_answer=1), Answer(question_id="q3", selected_answer=0)]
        results = assessment_service.detailed_results(_questions(), answers)

        assert results[0]["is_correct"] is True
        assert results[0]["explanation"] == "Math"
        assert results[1]["is_correct"] is False
        assert results[1]["correct_answer"] == 1

    def test_topic_scores(self, now):
        history = [
            AssessmentRecord(
                id=i, assessment_id=i, technology=tech, difficulty="beginner", score=score,
                completed_at=now - timedelta(days=i), correct_answers=0, total_questions=10,
            )
            for i, (tech, score) in enumerate([("Go", 60), ("Go", 80), ("SQL", 90)])
        ]
        topics = assessment_service.topic_scores(history)
        assert topics["Go"] == {"scores": [60, 80], "average": 70}
        assert topics["SQL"]["average"] == 90


class TestGeneration:

    async def test_fills_missing_ids(self):
        reply = json.dumps({"questions": [
            {"question": "What is a goroutine?", "options": ["a", "b", "c", "d"], "correctAnswer": 2},
            {"id": "custom", "question": "What is a channel?", "options": ["a", "b", "c", "d"], "correctAnswer": 0},
        ]})
        with patch("skilltrack.services.assessments.complete", AsyncMock(return_value=reply)) as mock:
            questions = await assessment_service.generate_assessment_questions("Go", "beginner", 2)

        assert [q.id for q in questions] == ["q1", "custom"]
        assert questions[0].correct_answer == 2
        assert mock.await_args.kwargs["use_case"] == "assessment"
        assert "Generate 2 multiple choice questions for Go at beginner level" in mock.await_args.args[0]

    async def test_question_without_answer_is_rejected(self):
        reply = json.dumps({"questions": [{"question": "?", "options": []}]})
        with patch("skilltrack.services.assessments.complete", AsyncMock(return_value=reply)):
            with pytest.raises(AIResponseError):
                await assessment_service.generate_assessment_questions("Go", "beginner", 1)


class TestSubmission:

    async def _create(self, db, now):
        reply = json.dumps({"questions": [q.model_dump() for q in _questions()]})
        with patch("skilltrack.services.assessments.complete", AsyncMock(return_value=reply)):
            return await assessment_service.create_assessment(db, "Python", "advanced", now, question_count=3)

    async def test_create_assessment(self, db, now):
        assessment = await self._create(db, now)
        assert assessment.title == "Python Advanced Assessment"
        assert assessment.time_limit == 8
        assert len(assessment.questions) == 3

    async def test_time_limit_follows_questions_received(self, db, now):
        reply = json.dumps({"questions": [q.model_dump() for q in _questions()]})
        with patch("skilltrack.services.assessments.complete", AsyncMock(return_value=reply)):
            assessment = await assessment_service.create_assessment(db, "Python", "advanced", now)

        # 15 requested, 3 returned: 3 x 2.5 min
        assert len(assessment.questions) == 3
        assert assessment.time_limit == 8

    async def test_submit_scores_stores_and_raises_skill(self, db, user_id, now):
        from skilltrack.db import store

        assessment = await self._create(db, now)
        answers = [Answer(question_id="q1", selected_answer=1), Answer(question_id="q2", selected_answer=0)]
        result = await assessment_service.submit_assessment(db, user_id, assessment.id, answers, now, time_spent=120)

        assert result == {"score": 67, "correct_answers": 2, "total_questions": 3}
        [record] = await store.get_user_assessments(db, user_id)
        assert record.score == 67
        assert record.completed_at == now

        profile = await store.get_profile(db, user_id)
        assert [(s.name, s.level) for s in profile.skills] == [("Python", 67)]

        detail = await assessment_service.assessment_results(db, user_id, assessment.id)
        assert [r["is_correct"] for r in detail["detailed_results"]] == [True, True]

    async def test_unknown_assessment(self, db, user_id, now):
        with pytest.raises(NotFoundError):
            await assessment_service.submit_assessment(db, user_id, 404, [], now)

    async def test_results_without_attempt(self, db, user_id, now):
        assessment = await self._create(db, now)
        with pytest.raises(NotFoundError):
            await assessment_service.assessment_results(db, user_id, assessment.id)
