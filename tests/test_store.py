"""Tests for the persistence helpers against an in-memory SQLite database."""

from datetime import timedelta

import pytest

from skilltrack.db import store
from skilltrack.models.hackathon import Challenge
from skilltrack.models.learning import Alert, Answer, Question, Recommendation, Skill
from skilltrack.services.errors import ConflictError


class TestUsers:

    async def test_available_username(self, db, user_id, now):
        assert await store.available_username(db, "grace") == "grace"
        assert await store.available_username(db, "ada") == "ada2"

        await store.create_user(db, "ada2", "ada@other.org", now)
        await store.create_user(db, "adam", "adam@example.com", now)
        assert await store.available_username(db, "ada") == "ada3"


class TestProfiles:

    async def test_create_then_partial_update(self, db, user_id, now):
        created = await store.upsert_profile(
            db, user_id, now, skills=[Skill(name="Go", level=55, normalized_score=0.55)], experience="3y",
        )
        assert created.skills[0].name == "Go"
        assert created.experience == "3y"

        later = now + timedelta(hours=1)
        updated = await store.upsert_profile(db, user_id, later, github="octocat", unknown="ignored")
        assert updated.github == "octocat"
        assert updated.experience == "3y"
        assert updated.skills[0].level == 55
        assert updated.updated_at == later
        assert updated.created_at == now

    async def test_missing_profile(self, db, user_id):
        assert await store.get_profile(db, user_id) is None


class TestModuleProgress:

    async def test_completed_at_set_and_cleared(self, db, user_id, now):
        module_id = await store.create_module(db, "Docker 101", "Docker", "beginner", 2, now)

        await store.upsert_module_progress(db, user_id, module_id, 100, now)
        [record] = await store.get_user_module_progress(db, user_id)
        assert record.completed_at == now
        assert record.module.title == "Docker 101"

        later = now + timedelta(days=1)
        await store.upsert_module_progress(db, user_id, module_id, 80, later)
        [record] = await store.get_user_module_progress(db, user_id)
        assert record.completed_at is None
        assert record.progress == 80
        assert record.started_at == now
        assert record.last_accessed_at == later

    async def test_most_recent_first(self, db, user_id, now):
        a = await store.create_module(db, "A", "Go", "beginner", 1, now)
        b = await store.create_module(db, "B", "Go", "beginner", 1, now)
        await store.upsert_module_progress(db, user_id, a, 10, now - timedelta(days=2))
        await store.upsert_module_progress(db, user_id, b, 10, now)

        records = await store.get_user_module_progress(db, user_id)
        assert [r.module_id for r in records] == [b, a]

    async def test_modules_by_rating(self, db, now):
        await store.create_module(db, "Low", "Go", "beginner", 1, now, rating=3.1)
        await store.create_module(db, "High", "Go", "beginner", 1, now, rating=4.9, content={"sections": 3})
        await store.create_module(db, "Other", "Rust", "beginner", 1, now, rating=5.0)

        modules = await store.list_modules(db, "Go")
        assert [m.title for m in modules] == ["High", "Low"]
        assert modules[0].content == {"sections": 3}


class TestAssessments:

    async def test_history_joined_and_newest_first(self, db, user_id, now):
        questions = [Question(id="q1", question="?", options=["a", "b", "c", "d"], correct_answer=2)]
        py = await store.create_assessment(db, "Python Beginner Assessment", "Python", "beginner", questions, 2, now)
        go = await store.create_assessment(db, "Go Advanced Assessment", "Go", "advanced", questions, 3, now)

        answers = [Answer(question_id="q1", selected_answer=2)]
        await store.create_user_assessment(db, user_id, py, answers, 100, 1, 1, now - timedelta(days=1))
        await store.create_user_assessment(db, user_id, go, [], 0, 0, 1, now, time_spent=40)

        history = await store.get_user_assessments(db, user_id)
        assert [h.technology for h in history] == ["Go", "Python"]
        assert history[0].difficulty == "advanced"
        assert history[0].time_spent == 40
        assert history[1].answers == answers

        assessment = await store.get_assessment(db, py)
        assert assessment.questions == questions
        assert [a.id for a in await store.list_assessments(db, "Go")] == [go]


class TestRecommendations:

    async def test_delete_and_order(self, db, user_id, now):
        m = await store.create_module(db, "React", "React", "beginner", 2, now)
        await store.create_recommendation(db, user_id, Recommendation(module_id=m, score=0.3, reason="x"), now)
        await store.create_recommendation(db, user_id, Recommendation(module_id=m, score=0.8, reason="y"), now)

        recs = await store.get_user_recommendations(db, user_id)
        assert [r.score for r in recs] == [0.8, 0.3]
        assert recs[0].module.technology == "React"

        await store.delete_user_recommendations(db, user_id)
        assert await store.get_user_recommendations(db, user_id) == []


class TestHackathons:

    async def test_join_once(self, db, user_id, now):
        hackathon_id = await store.create_hackathon(
            db,
            created_by=user_id,
            title="Spring Jam",
            description="",
            theme="Climate",
            difficulty="beginner",
            start_date=now + timedelta(days=7),
            end_date=now + timedelta(days=9),
            registration_deadline=now + timedelta(days=5),
            challenges=[Challenge(id="challenge1", title="Map it")],
            prizes=None,
            now=now,
        )

        await store.add_participant(db, hackathon_id, user_id, now, team_name="Solo")
        with pytest.raises(ConflictError):
            await store.add_participant(db, hackathon_id, user_id, now)

        hackathon = await store.get_hackathon(db, hackathon_id)
        assert hackathon.current_participants == 1
        assert hackathon.challenges[0].points == 100

        [participant] = await store.get_participants(db, hackathon_id)
        assert participant.username == "ada"
        assert participant.team_name == "Solo"
        assert [p.hackathon_id for p in await store.get_user_participations(db, user_id)] == [hackathon_id]


class TestAlerts:

    async def test_mark_read_is_scoped_to_owner(self, db, user_id, now):
        other = await store.create_user(db, "bob", "bob@example.com", now)
        alert = await store.create_alert(db, user_id, Alert(type="reminder", message="Take a quiz"), now)

        assert alert.id is not None
        assert await store.mark_alert_read(db, other, alert.id) is False
        assert await store.mark_alert_read(db, user_id, alert.id) is True

        [stored] = await store.get_user_alerts(db, user_id)
        assert stored.read is True
        assert await store.get_user_alerts(db, other) == []
