from models import StudentProfile, UserRole, XpReason
from utils.gamification import GamificationEngine
from utils.point_table import calculate_level


class TestProfile:
    def test_own_profile(self, client, test_db, student, auth):
        GamificationEngine(test_db).add_xp(student.id, 120, XpReason.LOG_APPROVED)

        response = client.get(f"/api/v1/gamification/students/{student.id}/profile", headers=auth(student))

        body = response.json()
        assert response.status_code == 200
        assert body["total_xp"] == 120
        assert body["current_level"] == 2
        assert body["next_level_xp"] == 300

    def test_assigned_mentor_can_view(self, client, student, mentor, auth):
        response = client.get(f"/api/v1/gamification/students/{student.id}/profile", headers=auth(mentor))
        assert response.status_code == 200

    def test_other_student_cannot_view(self, client, make_user, student, auth):
        stranger = make_user(UserRole.STUDENT)
        response = client.get(f"/api/v1/gamification/students/{student.id}/xp-history", headers=auth(stranger))
        assert response.status_code == 403

    def test_history_and_badges(self, client, test_db, student, auth):
        engine = GamificationEngine(test_db)
        engine.grant(student.id, XpReason.DAILY_LOG_SUBMIT)
        engine.award_badge(student.id, "first_log")

        history = client.get(f"/api/v1/gamification/students/{student.id}/xp-history", headers=auth(student)).json()
        badges = client.get(f"/api/v1/gamification/students/{student.id}/badges", headers=auth(student)).json()

        assert [(row["amount"], row["reason"]) for row in history] == [(10, "daily_log_submit")]
        assert [badge["badge_key"] for badge in badges] == ["first_log"]
        assert badges[0]["name"]


class TestLeaderboard:
    def test_ranked_by_xp(self, client, test_db, make_user, auth):
        names = {}
        for first_name, total in [("Ana", 40), ("Ben", 310), ("Caro", 120)]:
            user = make_user(UserRole.STUDENT, first_name)
            test_db.add(StudentProfile(id=user.id, total_xp=total, current_level=calculate_level(total)))
            names[user.id] = first_name
        test_db.commit()
        viewer = make_user(UserRole.MENTOR)

        response = client.get("/api/v1/gamification/leaderboard?limit=2", headers=auth(viewer))

        rows = response.json()
        assert [(row["rank"], names[row["student_id"]], row["total_xp"]) for row in rows] == [
            (1, "Ben", 310),
            (2, "Caro", 120),
        ]

    def test_limit_is_bounded(self, client, student, auth):
        response = client.get("/api/v1/gamification/leaderboard?limit=0", headers=auth(student))
        assert response.status_code == 422


def test_point_table_is_public(client):
    response = client.get("/api/v1/gamification/point-table")

    body = response.json()
    assert body["points"]["daily_log_submit"] == 10
    assert body["points"]["log_approved"] == 20
    assert body["levels"][0] == {"level": 1, "name": body["levels"][0]["name"], "min_xp": 0}
    assert {badge["key"] for badge in body["badges"]} >= {"first_log", "streak_7", "quiz_master"}
