import pytest
from datetime import date, timedelta
from unittest import mock

from models import (
    DailyLog,
    EarnedBadge,
    LogStatus,
    MentorFeedback,
    Notification,
    NotificationType,
    RevisionHistory,
    StudentProfile,
    UserRole,
    XpReason,
    XpTransaction,
)
from utils.attachments import LocalAttachmentStorage
from utils.competency import COMPETENCIES
from utils.error_handling import (
    ConflictError,
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationError,
)
from utils.gamification import GamificationEngine
from utils.log_workflow import (
    LogAction,
    LogWorkflow,
    TRANSITIONS,
    allowed_actions,
    resolve_transition,
)


@pytest.fixture
def workflow(test_db, tmp_path):
    return LogWorkflow(test_db, storage=LocalAttachmentStorage(str(tmp_path)))


def xp_rows(test_db, student_id, reason=None):
    query = test_db.query(XpTransaction).filter(XpTransaction.student_id == student_id)
    if reason:
        query = query.filter(XpTransaction.reason == reason)
    return query.all()


def notifications_of(test_db, user_id, type_):
    return test_db.query(Notification).filter(Notification.user_id == user_id, Notification.type == type_).all()


class TestTransitionTable:
    def test_every_edge_resolves(self):
        for transition in TRANSITIONS:
            assert resolve_transition(transition.source, transition.action) is transition

    @pytest.mark.parametrize(
        "status,action",
        [
            (LogStatus.DRAFT, LogAction.APPROVE),
            (LogStatus.DRAFT, LogAction.VALIDATE),
            (LogStatus.SUBMITTED, LogAction.SUBMIT),
            (LogStatus.SUBMITTED, LogAction.VALIDATE),
            (LogStatus.NEEDS_REVISION, LogAction.APPROVE),
            (LogStatus.APPROVED, LogAction.APPROVE),
            (LogStatus.VALIDATED, LogAction.SEND_BACK),
        ],
    )
    def test_edges_outside_the_graph_are_rejected(self, status, action):
        with pytest.raises(InvalidTransitionError):
            resolve_transition(status, action)

    def test_validated_is_terminal(self):
        assert allowed_actions(LogStatus.VALIDATED) == []

    def test_roles_per_action(self):
        roles = {(t.source, t.action): t.role for t in TRANSITIONS}
        assert roles[(LogStatus.DRAFT, LogAction.SUBMIT)] == UserRole.STUDENT
        assert roles[(LogStatus.SUBMITTED, LogAction.APPROVE)] == UserRole.MENTOR
        assert roles[(LogStatus.APPROVED, LogAction.SEND_BACK)] == UserRole.ADVISOR


class TestAuthoring:
    def test_create_log_provisions_profile_and_rejects_duplicate_date(self, test_db, workflow, make_user):
        newcomer = make_user(UserRole.STUDENT)
        log = workflow.create_log(newcomer, date(2026, 3, 2), title="First day")

        assert log.status == LogStatus.DRAFT
        assert test_db.get(StudentProfile, newcomer.id) is not None
        with pytest.raises(ConflictError):
            workflow.create_log(newcomer, date(2026, 3, 2), title="Again")

    def test_future_date_is_rejected(self, test_db, workflow, student):
        with pytest.raises(ValidationError):
            workflow.create_log(student, date.today() + timedelta(days=3650), title="Far ahead")

        assert test_db.query(DailyLog).filter(DailyLog.student_id == student.id).count() == 0

    def test_rejected_future_log_leaves_streak_counting(self, test_db, workflow, student):
        with pytest.raises(ValidationError):
            workflow.create_log(student, date.today() + timedelta(days=3650), title="Far ahead")

        for days_ago in (3, 2, 1):
            log = workflow.create_log(
                student,
                date.today() - timedelta(days=days_ago),
                title="Daily standup notes",
                content="Paired on the payments refactor and wrote the migration plan for the ledger tables.",
            )
            workflow.submit(student, log.id)

        profile = test_db.get(StudentProfile, student.id)
        test_db.refresh(profile)
        assert profile.current_streak == 3
        assert profile.last_activity_date == date.today() - timedelta(days=1)

    def test_mentor_cannot_author_logs(self, workflow, mentor):
        with pytest.raises(PermissionDeniedError):
            workflow.create_log(mentor, date(2026, 3, 2), title="Not mine")

    def test_edit_in_needs_revision_records_revision_history(self, test_db, workflow, student, mentor, make_log):
        log = make_log(student, status=LogStatus.SUBMITTED)
        workflow.review(mentor, log.id, is_approved=False, rating=2, revision_notes="Describe the outcome")

        new_content = log.content + " The pipeline now deploys on every merge."
        workflow.update_log(student, log.id, {"content": new_content})

        revision = test_db.query(RevisionHistory).filter(RevisionHistory.log_id == log.id).one()
        assert revision.new_content == new_content
        assert revision.reason == "Describe the outcome"

    def test_draft_edits_do_not_record_revisions(self, test_db, workflow, student, make_log):
        log = make_log(student)
        workflow.update_log(student, log.id, {"content": "short draft"})
        assert test_db.query(RevisionHistory).count() == 0

    def test_submitted_log_is_not_editable(self, workflow, student, make_log):
        log = make_log(student, status=LogStatus.SUBMITTED)
        with pytest.raises(InvalidTransitionError):
            workflow.update_log(student, log.id, {"title": "Changed"})

    def test_self_assessment_is_upserted(self, test_db, workflow, student, make_log):
        log = make_log(student)
        workflow.save_self_assessment(student, log.id, {"teamwork": 3})
        assessment = workflow.save_self_assessment(student, log.id, {"teamwork": 5}, "Better week")

        assert assessment.competency_ratings == {"teamwork": 5}
        assert assessment.reflection_notes == "Better week"

    def test_self_assessment_rejects_unknown_competency(self, workflow, student, make_log):
        log = make_log(student)
        with pytest.raises(ValidationError):
            workflow.save_self_assessment(student, log.id, {"charisma": 4})

    def test_photo_limit(self, workflow, student, make_log):
        log = make_log(student)
        for index in range(5):
            workflow.add_photo(student, log.id, b"\xff\xd8jpeg", f"site{index}.jpg", "image/jpeg")
        with pytest.raises(ValidationError):
            workflow.add_photo(student, log.id, b"\xff\xd8jpeg", "extra.jpg", "image/jpeg")

    def test_photo_type_is_checked(self, workflow, student, make_log):
        log = make_log(student)
        with pytest.raises(ValidationError):
            workflow.add_photo(student, log.id, b"%PDF", "notes.pdf", "application/pdf")


class TestSubmit:
    def test_content_of_49_characters_is_rejected(self, test_db, workflow, student, make_log):
        log = make_log(student, content="x" * 49)

        with pytest.raises(ValidationError):
            workflow.submit(student, log.id)

        test_db.expire_all()
        assert test_db.get(DailyLog, log.id).status == LogStatus.DRAFT
        assert xp_rows(test_db, student.id) == []

    def test_padding_does_not_count_towards_length(self, workflow, student, make_log):
        log = make_log(student, content="   " + "x" * 49 + "   ")
        with pytest.raises(ValidationError):
            workflow.submit(student, log.id)

    def test_short_title_is_rejected(self, workflow, student, make_log):
        log = make_log(student, title="Day")
        with pytest.raises(ValidationError):
            workflow.submit(student, log.id)

    def test_first_submission_grants_xp_streak_and_badge(self, test_db, workflow, student, make_log):
        log = make_log(student)

        outcome = workflow.submit(student, log.id)

        assert outcome.log.status == LogStatus.SUBMITTED
        assert outcome.failed_side_effects == []
        assert [t.amount for t in xp_rows(test_db, student.id)] == [10]
        assert outcome.log.xp_earned == 10
        profile = test_db.get(StudentProfile, student.id)
        test_db.refresh(profile)
        assert profile.total_xp == 10
        assert profile.current_streak == 1
        assert profile.last_activity_date == log.date
        assert test_db.query(EarnedBadge).filter_by(student_id=student.id, badge_key="first_log").count() == 1

    def test_photos_and_complete_self_assessment_add_bonus_xp(self, test_db, workflow, student, make_log):
        log = make_log(student)
        workflow.add_photo(student, log.id, b"img", "a.jpg", "image/jpeg")
        workflow.add_photo(student, log.id, b"img", "b.png", "image/png")
        workflow.save_self_assessment(student, log.id, {key: 4 for key in COMPETENCIES})

        workflow.submit(student, log.id)

        assert len(xp_rows(test_db, student.id, XpReason.PHOTO_ATTACHED)) == 2
        assert len(xp_rows(test_db, student.id, XpReason.SELF_ASSESSMENT)) == 1
        assert sum(t.amount for t in xp_rows(test_db, student.id)) == 10 + 2 * 3 + 5

    def test_partial_self_assessment_earns_nothing(self, test_db, workflow, student, make_log):
        log = make_log(student)
        workflow.save_self_assessment(student, log.id, {"teamwork": 4, "communication": 5})

        workflow.submit(student, log.id)

        assert xp_rows(test_db, student.id, XpReason.SELF_ASSESSMENT) == []

    def test_other_students_log(self, workflow, student, make_user, make_log):
        intruder = make_user(UserRole.STUDENT)
        log = make_log(student)
        with pytest.raises(PermissionDeniedError):
            workflow.submit(intruder, log.id)

    def test_failed_xp_grant_keeps_the_submission(self, test_db, workflow, student, make_log):
        log = make_log(student)

        with mock.patch.object(GamificationEngine, "grant", side_effect=RuntimeError("ledger unavailable")):
            outcome = workflow.submit(student, log.id)

        assert outcome.log.status == LogStatus.SUBMITTED
        assert "daily_log_submit XP" in outcome.failed_side_effects
        assert xp_rows(test_db, student.id) == []
        # Later side effects still ran
        assert test_db.query(EarnedBadge).filter_by(student_id=student.id, badge_key="first_log").count() == 1

    def test_resubmission_after_revision(self, test_db, workflow, student, mentor, make_log):
        log = make_log(student)
        workflow.submit(student, log.id)
        workflow.review(mentor, log.id, is_approved=False, rating=2, revision_notes="Add detail")

        outcome = workflow.submit(student, log.id)

        assert outcome.transition.source == LogStatus.NEEDS_REVISION
        assert len(xp_rows(test_db, student.id, XpReason.DAILY_LOG_SUBMIT)) == 2
        profile = test_db.get(StudentProfile, student.id)
        test_db.refresh(profile)
        assert profile.current_streak == 1


class TestMentorReview:
    def test_revision_requires_notes(self, test_db, workflow, student, mentor, make_log):
        log = make_log(student, status=LogStatus.SUBMITTED)

        with pytest.raises(ValidationError):
            workflow.review(mentor, log.id, is_approved=False, rating=3, revision_notes="   ")

        test_db.expire_all()
        assert test_db.get(DailyLog, log.id).status == LogStatus.SUBMITTED
        assert test_db.query(MentorFeedback).count() == 0

    def test_revision_request(self, test_db, workflow, student, mentor, make_log):
        log = make_log(student, status=LogStatus.SUBMITTED)

        outcome = workflow.review(
            mentor, log.id, is_approved=False, rating=3, revision_notes="Explain what you tested"
        )

        assert outcome.log.status == LogStatus.NEEDS_REVISION
        assert outcome.feedback.is_approved is False
        assert outcome.feedback.revision_required is True
        assert len(notifications_of(test_db, student.id, NotificationType.LOG_REVISION_REQUESTED)) == 1
        assert xp_rows(test_db, student.id, XpReason.LOG_APPROVED) == []

    def test_approval_grants_xp_and_notifies(self, test_db, workflow, student, mentor, make_log):
        log = make_log(student, status=LogStatus.SUBMITTED)

        outcome = workflow.review(mentor, log.id, is_approved=True, rating=5, comments="Great work")

        assert outcome.log.status == LogStatus.APPROVED
        approved = xp_rows(test_db, student.id, XpReason.LOG_APPROVED)
        assert [t.amount for t in approved] == [20]
        assert approved[0].log_id == log.id
        assert len(notifications_of(test_db, student.id, NotificationType.LOG_APPROVED)) == 1

    def test_unassigned_mentor_is_rejected(self, workflow, student, make_user, make_log):
        stranger = make_user(UserRole.MENTOR)
        log = make_log(student, status=LogStatus.SUBMITTED)
        with pytest.raises(PermissionDeniedError):
            workflow.review(stranger, log.id, is_approved=True, rating=4)

    def test_student_cannot_approve(self, workflow, student, make_log):
        log = make_log(student, status=LogStatus.SUBMITTED)
        with pytest.raises(PermissionDeniedError):
            workflow.review(student, log.id, is_approved=True, rating=5)

    def test_draft_cannot_be_reviewed(self, workflow, student, mentor, make_log):
        log = make_log(student)
        with pytest.raises(InvalidTransitionError):
            workflow.review(mentor, log.id, is_approved=True, rating=4)

    def test_feedback_history_keeps_latest_per_log(self, workflow, student, mentor, make_log):
        log = make_log(student)
        workflow.submit(student, log.id)
        workflow.review(mentor, log.id, is_approved=False, rating=2, revision_notes="More detail")
        workflow.submit(student, log.id)
        workflow.review(mentor, log.id, is_approved=True, rating=4)

        history = workflow.feedback_history(mentor)

        assert len(history) == 1
        assert history[0].is_approved is True
        assert workflow.get_log(log.id).current_feedback.id == history[0].id

    def test_pending_reviews_only_lists_assigned_students(self, workflow, student, mentor, make_user, make_log):
        other = make_user(UserRole.STUDENT)
        mine = make_log(student, status=LogStatus.SUBMITTED)
        make_log(other, status=LogStatus.SUBMITTED)

        assert [log.id for log in workflow.pending_reviews(mentor)] == [mine.id]


class TestAdvisor:
    def test_validate_is_terminal_and_grants_nothing(self, test_db, workflow, student, advisor, make_log):
        log = make_log(student, status=LogStatus.APPROVED)

        outcome = workflow.validate(advisor, log.id, "Signed off")

        assert outcome.log.status == LogStatus.VALIDATED
        assert outcome.log.validated_by == advisor.id
        assert outcome.log.validated_at is not None
        assert outcome.log.advisor_notes == "Signed off"
        assert xp_rows(test_db, student.id) == []
        with pytest.raises(InvalidTransitionError):
            workflow.send_back(advisor, log.id, "Too late")

    def test_send_back_requires_notes(self, workflow, student, advisor, make_log):
        log = make_log(student, status=LogStatus.APPROVED)
        with pytest.raises(ValidationError):
            workflow.send_back(advisor, log.id, "")

    def test_send_back_returns_log_to_mentor_review(self, test_db, workflow, student, advisor, make_log):
        log = make_log(student, status=LogStatus.APPROVED)

        outcome = workflow.send_back(advisor, log.id, "Hours do not match the timesheet")

        assert outcome.log.status == LogStatus.SUBMITTED
        assert outcome.log.advisor_notes == "Hours do not match the timesheet"
        sent_back = notifications_of(test_db, student.id, NotificationType.GENERAL)
        assert [n.data for n in sent_back] == [{"log_id": log.id, "event": "sent_back"}]

    def test_mentor_cannot_validate(self, workflow, student, mentor, make_log):
        log = make_log(student, status=LogStatus.APPROVED)
        with pytest.raises(PermissionDeniedError):
            workflow.validate(mentor, log.id)

    def test_student_progress(self, workflow, student, mentor, advisor, make_log):
        first = make_log(student, date(2026, 3, 2), status=LogStatus.SUBMITTED)
        second = make_log(student, date(2026, 3, 3), status=LogStatus.SUBMITTED)
        make_log(student, date(2026, 3, 4))
        workflow.review(mentor, first.id, is_approved=True, rating=5)
        workflow.review(mentor, second.id, is_approved=False, rating=2, revision_notes="Redo")

        progress = workflow.student_progress(advisor, student.id)

        assert progress["total_logs"] == 3
        assert progress["log_counts"]["approved"] == 1
        assert progress["log_counts"]["needs_revision"] == 1
        assert progress["log_counts"]["draft"] == 1
        assert progress["avg_mentor_rating"] == 3.5

    def test_reapproved_log_counts_once_towards_quality_badge(self, test_db, workflow, student, mentor, advisor, make_log):
        logs = [
            make_log(student, date(2026, 3, 1) + timedelta(days=offset), status=LogStatus.SUBMITTED)
            for offset in range(10)
        ]
        workflow.review(mentor, logs[0].id, is_approved=True, rating=5)
        workflow.send_back(advisor, logs[0].id, "Hours do not match the timesheet")
        workflow.review(mentor, logs[0].id, is_approved=True, rating=5)
        for log in logs[1:9]:
            workflow.review(mentor, log.id, is_approved=True, rating=5)

        # Ten approving reviews, nine distinct logs
        assert test_db.query(MentorFeedback).filter(MentorFeedback.is_approved.is_(True)).count() == 10
        assert test_db.query(EarnedBadge).filter_by(student_id=student.id, badge_key="quality_10").count() == 0

        workflow.review(mentor, logs[9].id, is_approved=True, rating=4)

        assert test_db.query(EarnedBadge).filter_by(student_id=student.id, badge_key="quality_10").count() == 1
