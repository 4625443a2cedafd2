"""
End-to-end review chain through the HTTP API: student -> mentor -> advisor
"""

import pytest
from datetime import date, timedelta
from unittest import mock

from models import (
    LogStatus,
    MentorFeedback,
    Notification,
    NotificationType,
    UserRole,
    XpReason,
    XpTransaction,
)
from utils.competency import COMPETENCIES
from utils.gamification import GamificationEngine

CONTENT = "Wrote integration tests for the billing service and reviewed two pull requests with my mentor."


@pytest.fixture
def draft(client, student, auth):
    response = client.post(
        "/api/v1/logs",
        json={"date": "2026-03-02", "title": "Billing tests", "content": CONTENT, "hours_spent": 420},
        headers=auth(student),
    )
    assert response.status_code == 201
    return response.json()


def submit(client, log_id, user, auth):
    return client.post(f"/api/v1/logs/{log_id}/submit", headers=auth(user))


class TestIdentity:
    def test_missing_header(self, client):
        response = client.get("/api/v1/logs")
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_unknown_user(self, client):
        response = client.get("/api/v1/logs", headers={"X-User-ID": "9999"})
        assert response.status_code == 401

    def test_wrong_role(self, client, mentor, auth):
        response = client.post("/api/v1/logs", json={"title": "Nope"}, headers=auth(mentor))
        assert response.status_code == 403


class TestStudentLogs:
    def test_create_and_fetch(self, client, student, auth, draft):
        assert draft["status"] == "draft"
        assert draft["allowed_actions"] == ["submit"]

        by_date = client.get("/api/v1/logs/by-date/2026-03-02", headers=auth(student))
        assert by_date.status_code == 200
        assert by_date.json()["id"] == draft["id"]

        listing = client.get("/api/v1/logs", headers=auth(student))
        assert [log["id"] for log in listing.json()] == [draft["id"]]

    def test_duplicate_date_conflicts(self, client, student, auth, draft):
        response = client.post(
            "/api/v1/logs", json={"date": "2026-03-02", "title": "Second"}, headers=auth(student)
        )
        assert response.status_code == 409
        assert response.json()["error_code"] == "CONFLICT"

    def test_future_date_is_rejected(self, client, student, auth):
        far_ahead = (date.today() + timedelta(days=3650)).isoformat()

        response = client.post(
            "/api/v1/logs", json={"date": far_ahead, "title": "Next decade", "content": CONTENT}, headers=auth(student)
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"
        assert client.get("/api/v1/logs", headers=auth(student)).json() == []

    def test_content_of_49_characters_stays_draft(self, client, student, auth, draft):
        client.patch(f"/api/v1/logs/{draft['id']}", json={"content": "y" * 49}, headers=auth(student))

        response = submit(client, draft["id"], student, auth)

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"
        detail = client.get(f"/api/v1/logs/{draft['id']}", headers=auth(student)).json()
        assert detail["status"] == "draft"

    def test_submit_reports_xp(self, client, test_db, student, auth, draft):
        response = submit(client, draft["id"], student, auth)

        body = response.json()
        assert response.status_code == 200
        assert body["log"]["status"] == "submitted"
        assert body["previous_status"] == "draft"
        assert body["warnings"] == []
        assert body["log"]["xp_earned"] == 10

    def test_side_effect_failure_is_reported_not_raised(self, client, test_db, student, auth, draft):
        with mock.patch.object(GamificationEngine, "grant", side_effect=RuntimeError("ledger unavailable")):
            response = submit(client, draft["id"], student, auth)

        assert response.status_code == 200
        assert response.json()["log"]["status"] == "submitted"
        assert "daily_log_submit XP" in response.json()["warnings"]
        assert test_db.query(XpTransaction).count() == 0

    def test_self_assessment_and_photo_upload(self, client, student, auth, draft):
        ratings = {key: 4 for key in COMPETENCIES}
        saved = client.put(
            f"/api/v1/logs/{draft['id']}/self-assessment",
            json={"competency_ratings": ratings, "reflection_notes": "Solid week"},
            headers=auth(student),
        )
        assert saved.status_code == 200

        photo = client.post(
            f"/api/v1/logs/{draft['id']}/photos",
            files={"file": ("whiteboard.jpg", b"\xff\xd8\xff\xe0jpeg-bytes", "image/jpeg")},
            data={"caption": "Sprint board"},
            headers=auth(student),
        )
        assert photo.status_code == 201
        assert photo.json()["caption"] == "Sprint board"

        response = submit(client, draft["id"], student, auth)
        assert response.json()["log"]["xp_earned"] == 10 + 3 + 5

    def test_unknown_competency_is_rejected(self, client, student, auth, draft):
        response = client.put(
            f"/api/v1/logs/{draft['id']}/self-assessment",
            json={"competency_ratings": {"charisma": 4}},
            headers=auth(student),
        )
        assert response.status_code == 422

    def test_other_student_cannot_view(self, client, make_user, auth, draft):
        stranger = make_user(UserRole.STUDENT)
        response = client.get(f"/api/v1/logs/{draft['id']}", headers=auth(stranger))
        assert response.status_code == 403


class TestReviewChain:
    def test_revision_without_notes_is_rejected(self, client, test_db, student, mentor, auth, draft):
        submit(client, draft["id"], student, auth)

        response = client.post(
            f"/api/v1/mentor/logs/{draft['id']}/feedback",
            json={"is_approved": False, "rating": 3, "comments": "Needs work"},
            headers=auth(mentor),
        )

        assert response.status_code == 422
        assert test_db.query(MentorFeedback).count() == 0

    def test_revision_with_notes(self, client, test_db, student, mentor, auth, draft):
        submit(client, draft["id"], student, auth)

        response = client.post(
            f"/api/v1/mentor/logs/{draft['id']}/feedback",
            json={"is_approved": False, "rating": 3, "revision_notes": "Describe the failing test"},
            headers=auth(mentor),
        )

        body = response.json()
        assert response.status_code == 200
        assert body["log"]["status"] == "needs_revision"
        assert body["feedback"]["is_approved"] is False
        notes = (
            test_db.query(Notification)
            .filter(Notification.user_id == student.id, Notification.type == NotificationType.LOG_REVISION_REQUESTED)
            .count()
        )
        assert notes == 1

        # Student revises and resubmits
        revised = client.patch(
            f"/api/v1/logs/{draft['id']}",
            json={"content": CONTENT + " The failing test was a timezone bug."},
            headers=auth(student),
        )
        assert len(revised.json()["revisions"]) == 1
        assert revised.json()["revisions"][0]["reason"] == "Describe the failing test"
        assert submit(client, draft["id"], student, auth).json()["previous_status"] == "needs_revision"

    def test_approve_then_validate(self, client, test_db, student, mentor, advisor, auth, draft):
        submit(client, draft["id"], student, auth)

        pending = client.get("/api/v1/mentor/pending", headers=auth(mentor)).json()
        assert [log["id"] for log in pending] == [draft["id"]]

        approved = client.post(
            f"/api/v1/mentor/logs/{draft['id']}/feedback",
            json={"is_approved": True, "rating": 5, "competency_ratings": {"teamwork": 5}},
            headers=auth(mentor),
        )
        assert approved.json()["log"]["status"] == "approved"
        assert approved.json()["log"]["current_feedback"]["rating"] == 5
        approval_xp = (
            test_db.query(XpTransaction)
            .filter(XpTransaction.student_id == student.id, XpTransaction.reason == XpReason.LOG_APPROVED)
            .all()
        )
        assert [t.amount for t in approval_xp] == [20]
        approved_notes = (
            test_db.query(Notification)
            .filter(Notification.user_id == student.id, Notification.type == NotificationType.LOG_APPROVED)
            .count()
        )
        assert approved_notes == 1

        queue = client.get("/api/v1/advisor/pending", headers=auth(advisor)).json()
        assert [log["id"] for log in queue] == [draft["id"]]

        validated = client.post(
            f"/api/v1/advisor/logs/{draft['id']}/validate", json={"notes": "Signed"}, headers=auth(advisor)
        )
        assert validated.status_code == 200
        assert validated.json()["log"]["status"] == "validated"
        assert validated.json()["log"]["allowed_actions"] == []

        again = client.post(
            f"/api/v1/advisor/logs/{draft['id']}/send-back", json={"notes": "Reopen"}, headers=auth(advisor)
        )
        assert again.status_code == 409
        assert again.json()["error_code"] == "INVALID_TRANSITION"

    def test_validate_without_body(self, client, student, advisor, auth, make_log):
        log = make_log(student, status=LogStatus.APPROVED)
        response = client.post(f"/api/v1/advisor/logs/{log.id}/validate", headers=auth(advisor))
        assert response.status_code == 200
        assert response.json()["log"]["advisor_notes"] is None

    def test_send_back(self, client, student, mentor, advisor, auth, make_log):
        log = make_log(student, status=LogStatus.APPROVED)

        missing = client.post(f"/api/v1/advisor/logs/{log.id}/send-back", json={}, headers=auth(advisor))
        assert missing.status_code == 422

        response = client.post(
            f"/api/v1/advisor/logs/{log.id}/send-back", json={"notes": "Check the hours"}, headers=auth(advisor)
        )
        assert response.json()["log"]["status"] == "submitted"
        assert [item["id"] for item in client.get("/api/v1/mentor/pending", headers=auth(mentor)).json()] == [log.id]

    def test_competency_comparison(self, client, student, mentor, auth, draft):
        client.put(
            f"/api/v1/logs/{draft['id']}/self-assessment",
            json={"competency_ratings": {"teamwork": 5, "communication": 3}},
            headers=auth(student),
        )
        submit(client, draft["id"], student, auth)
        client.post(
            f"/api/v1/mentor/logs/{draft['id']}/feedback",
            json={"is_approved": True, "rating": 4, "competency_ratings": {"teamwork": 3, "communication": 3}},
            headers=auth(mentor),
        )

        response = client.get(f"/api/v1/logs/{draft['id']}/competency-comparison", headers=auth(mentor))

        body = response.json()
        assert body["discrepancy_count"] == 1
        teamwork = next(item for item in body["items"] if item["competency"] == "teamwork")
        assert teamwork["difference"] == 2
        assert teamwork["is_discrepancy"] is True

    def test_student_progress(self, client, student, advisor, auth, draft):
        response = client.get(f"/api/v1/advisor/students/{student.id}/progress", headers=auth(advisor))
        assert response.status_code == 200
        assert response.json()["log_counts"]["draft"] == 1
