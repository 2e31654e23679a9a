"""Tests for hackathon status, registration rules and leaderboards."""

import json
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from skilltrack.models.hackathon import Hackathon, Participant
from skilltrack.services import hackathons as hackathon_service
from skilltrack.services.errors import ConflictError, NotFoundError


def _hackathon(now, deadline_days=2, start_days=5, end_days=7, **overrides):
    fields = dict(
        id=1,
        title="Green Code",
        description="Build for the planet",
        theme="Sustainability",
        difficulty="intermediate",
        registration_deadline=now + timedelta(days=deadline_days),
        start_date=now + timedelta(days=start_days),
        end_date=now + timedelta(days=end_days),
        created_by=1,
    )
    fields.update(overrides)
    return Hackathon(**fields)


class TestStatus:

    @pytest.mark.parametrize(
        "offset_days, status",
        [(0, "registration_open"), (3, "upcoming"), (6, "active"), (7, "active"), (8, "completed")],
    )
    def test_status_over_time(self, now, offset_days, status):
        hackathon = _hackathon(now)
        assert hackathon_service.hackathon_status(hackathon, now + timedelta(days=offset_days)) == status

    def test_days_remaining(self, now):
        hackathon = _hackathon(now)
        assert hackathon_service.days_remaining(hackathon, now) == 7
        assert hackathon_service.days_remaining(hackathon, now + timedelta(days=6, hours=1)) == 1
        assert hackathon_service.days_remaining(hackathon, now + timedelta(days=10)) == 0

    def test_filter(self, now):
        hackathons = [
            _hackathon(now, id=1),
            _hackathon(now, -10, -3, 3, id=2),
            _hackathon(now, -20, -15, -10, id=3),
        ]
        assert [h.id for h in hackathon_service.filter_hackathons(hackathons, "upcoming", now)] == [1]
        assert [h.id for h in hackathon_service.filter_hackathons(hackathons, "active", now)] == [2]
        assert [h.id for h in hackathon_service.filter_hackathons(hackathons, "completed", now)] == [3]
        assert len(hackathon_service.filter_hackathons(hackathons, "all", now)) == 3

    def test_stats(self, now):
        hackathons = [
            _hackathon(now, id=1, current_participants=4),
            _hackathon(now, -10, -3, 3, id=2, current_participants=8),
        ]
        stats = hackathon_service.hackathon_stats(hackathons, now)
        assert stats["total"] == 2
        assert stats["active"] == 1
        assert stats["upcoming"] == 1
        assert stats["total_participants"] == 12
        assert stats["avg_participants_per_hackathon"] == 6


class TestPrizes:

    def test_by_difficulty(self):
        assert hackathon_service.default_prizes("beginner")["first"]["value"] == 100
        assert hackathon_service.default_prizes("advanced")["third"]["value"] == 150
        prizes = hackathon_service.default_prizes("legendary")
        assert [p["value"] for p in prizes.values()] == [250, 150, 75]
        assert prizes["second"]["description"] == "Certificate + $150 voucher"


class TestRegistration:

    def test_deadline_passed(self, now):
        with pytest.raises(ConflictError, match="deadline"):
            hackathon_service.validate_join(_hackathon(now, deadline_days=-1), now)

    def test_full(self, now):
        hackathon = _hackathon(now, max_participants=2, current_participants=2)
        with pytest.raises(ConflictError, match="full"):
            hackathon_service.validate_join(hackathon, now)

    def test_open(self, now):
        hackathon_service.validate_join(_hackathon(now, max_participants=2, current_participants=1), now)
        hackathon_service.validate_join(_hackathon(now), now)


class TestLeaderboard:

    def test_scored_only_ties_to_earlier_join(self, now):
        participants = [
            Participant(id=1, hackathon_id=1, user_id=1, username="late", score=90, joined_at=now),
            Participant(id=2, hackathon_id=1, user_id=2, username="early", score=90,
                        joined_at=now - timedelta(days=1), submission={"challenge1": {}, "challenge2": {}}),
            Participant(id=3, hackathon_id=1, user_id=3, username="unscored", joined_at=now),
            Participant(id=4, hackathon_id=1, user_id=4, username="top", score=99, joined_at=now),
        ]
        board = hackathon_service.build_leaderboard(participants)
        assert [(row["rank"], row["username"]) for row in board] == [(1, "top"), (2, "early"), (3, "late")]
        assert board[1]["submission_count"] == 2


class TestFlows:

    _reply = json.dumps({"challenges": [
        {"title": "Carbon tracker", "description": "Track emissions", "requirements": ["API"], "points": 200},
        {"id": "c-2", "title": "Route planner", "points": 150},
    ]})

    async def test_generate_fills_ids(self):
        with patch("skilltrack.services.hackathons.complete", AsyncMock(return_value=self._reply)):
            challenges = await hackathon_service.generate_hackathon_challenges("Climate", "beginner")
        assert [c.id for c in challenges] == ["challenge1", "c-2"]
        assert challenges[1].requirements == []

    async def test_create_join_and_detail(self, db, user_id, now):
        with patch("skilltrack.services.hackathons.complete", AsyncMock(return_value=self._reply)):
            hackathon = await hackathon_service.create_hackathon(
                db,
                created_by=user_id,
                title="Climate Jam",
                description="",
                theme="Climate",
                difficulty="beginner",
                start_date=now + timedelta(days=5),
                end_date=now + timedelta(days=6),
                registration_deadline=now + timedelta(days=3),
                now=now,
                max_participants=1,
            )
        assert hackathon.prizes["first"]["value"] == 100
        assert len(hackathon.challenges) == 2

        await hackathon_service.join_hackathon(db, hackathon.id, user_id, now, team_name="Solo")
        with pytest.raises(ConflictError):
            await hackathon_service.join_hackathon(db, hackathon.id, user_id, now)

        detail = await hackathon_service.hackathon_details(db, hackathon.id, now)
        assert detail["participants"] == 1
        assert detail["status"] == "registration_open"
        assert detail["days_remaining"] == 6

        mine = await hackathon_service.user_hackathons(db, user_id, now)
        assert mine[0]["hackathon"]["title"] == "Climate Jam"

    async def test_join_unknown(self, db, user_id, now):
        with pytest.raises(NotFoundError):
            await hackathon_service.join_hackathon(db, 12, user_id, now)
