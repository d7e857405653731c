"""
Unit tests for the mentor applications service layer.

These tests cover:
- Submission and the deduplication guard
- The approval state machine (no-ops, preconditions, side-effect ordering)
- Review-sheet edit interpretation
- Per-row isolation of batch reprocessing
- Applicant status checks
"""

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.notifications import NotificationEvent
from app.modules.mentor_applications import service
from app.modules.mentor_applications.models import (
    ApplicationSource,
    ApplicationStatus,
    NoteKind,
)
from app.modules.mentor_applications.schemas import (
    ApplicationDraft,
    IntakeResult,
    ReprocessItem,
    ReviewEdit,
    TransitionResult,
)
from app.modules.mentor_applications.service import (
    DuplicateApplicationError,
    IntakeValidationError,
    InvalidEmailError,
)
from app.modules.mentors.service import ProvisioningError
from app.modules.shared import ErrorKind
from app.modules.users import UserRole

SERVICE = "app.modules.mentor_applications.service"


@pytest.fixture
def draft():
    return ApplicationDraft(
        email="a@x.edu",
        full_name="Ada",
        institution="X University",
        age_confirmed=True,
        agreement_accepted=True,
    )


@pytest.fixture
def application():
    app = MagicMock()
    app.id = uuid4()
    app.email = "a@x.edu"
    app.full_name = "Ada"
    app.status = ApplicationStatus.PENDING
    return app


def session_factory():
    @asynccontextmanager
    async def factory():
        yield AsyncMock()

    return factory


class TestSubmitApplication:
    """Tests for submit_application and the deduplication guard."""

    @pytest.mark.asyncio
    async def test_submit_success_notifies_applicant(self, mock_db, draft, application, notify):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_active_by_email = AsyncMock(return_value=None)
            mock_repo.insert_application = AsyncMock(return_value=application)

            result = await service.submit_application(
                mock_db, draft, ApplicationSource.FORM, notify=notify
            )

        assert result is application
        mock_repo.insert_application.assert_awaited_once_with(mock_db, draft, ApplicationSource.FORM)
        notify.assert_called_once()
        assert notify.call_args.args[0] == NotificationEvent.CONFIRMATION_RECEIVED
        assert notify.call_args.args[1] == "a@x.edu"

    @pytest.mark.asyncio
    async def test_existing_active_application_is_duplicate(self, mock_db, draft, application, notify):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_active_by_email = AsyncMock(return_value=application)
            mock_repo.insert_application = AsyncMock()

            with pytest.raises(DuplicateApplicationError) as exc_info:
                await service.submit_application(mock_db, draft, notify=notify)

        assert exc_info.value.existing_id == application.id
        assert exc_info.value.existing_status == ApplicationStatus.PENDING
        assert exc_info.value.status_code == 409
        mock_repo.insert_application.assert_not_called()
        notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_insert_loses_to_unique_index(
        self, mock_db, draft, application, notify
    ):
        """The store's unique index is the final arbiter."""
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_active_by_email = AsyncMock(side_effect=[None, application])
            mock_repo.insert_application = AsyncMock(
                side_effect=IntegrityError("INSERT", {}, Exception("unique"))
            )

            with pytest.raises(DuplicateApplicationError) as exc_info:
                await service.submit_application(mock_db, draft, notify=notify)

        mock_db.rollback.assert_awaited_once()
        assert exc_info.value.existing_id == application.id
        notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_intake_raises_validation_error(self, mock_db, notify):
        result = IntakeResult(success=False, errors=["email is required"])

        with pytest.raises(IntakeValidationError) as exc_info:
            await service.submit_intake(mock_db, result, ApplicationSource.API, notify=notify)

        assert exc_info.value.errors == ["email is required"]
        assert exc_info.value.status_code == 422

    @pytest.mark.asyncio
    async def test_notifier_failure_does_not_fail_submission(self, mock_db, draft, application):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_active_by_email = AsyncMock(return_value=None)
            mock_repo.insert_application = AsyncMock(return_value=application)

            result = await service.submit_application(
                mock_db, draft, notify=MagicMock(side_effect=RuntimeError("smtp down"))
            )

        assert result is application


class TestTransitionApplication:
    """Tests for the approval state machine."""

    @pytest.mark.asyncio
    async def test_not_found(self, mock_db, notify):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=None)

            result = await service.transition_application(
                mock_db, uuid4(), ApplicationStatus.APPROVED, "r1", notify=notify
            )

        assert result == TransitionResult(success=False, error=ErrorKind.APPLICATION_NOT_FOUND)

    @pytest.mark.asyncio
    async def test_pending_is_not_a_valid_target(self, mock_db, notify):
        with patch(f"{SERVICE}.repository") as mock_repo:
            result = await service.transition_application(
                mock_db, uuid4(), ApplicationStatus.PENDING, "r1", notify=notify
            )

        assert result.success is False
        assert result.error == ErrorKind.VALIDATION_ERROR
        mock_repo.get_by_id.assert_not_called()

    @pytest.mark.asyncio
    async def test_terminal_application_is_noop(self, mock_db, application, notify):
        application.status = ApplicationStatus.REJECTED

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=application)
            mock_repo.conditional_transition = AsyncMock()

            result = await service.transition_application(
                mock_db, application.id, ApplicationStatus.APPROVED, "r1", notify=notify
            )

        assert result.success is True
        assert result.noop is True
        assert result.status == ApplicationStatus.REJECTED
        mock_repo.conditional_transition.assert_not_called()
        notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_approving_existing_mentor_fails(self, mock_db, application, notify):
        mentor = MagicMock(role=UserRole.BOTH)

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=application)
            mock_repo.conditional_transition = AsyncMock()
            mock_users.get_by_email = AsyncMock(return_value=mentor)

            result = await service.transition_application(
                mock_db, application.id, ApplicationStatus.APPROVED, "r1", notify=notify
            )

        assert result.success is False
        assert result.error == ErrorKind.ALREADY_MENTOR
        mock_repo.conditional_transition.assert_not_called()
        notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_approving_user_with_profile_fails(self, mock_db, application, notify):
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.mentor_repository") as mock_mentors,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=application)
            mock_users.get_by_email = AsyncMock(return_value=MagicMock(role=UserRole.UNSET))
            mock_mentors.profile_exists = AsyncMock(return_value=True)

            result = await service.transition_application(
                mock_db, application.id, ApplicationStatus.APPROVED, "r1", notify=notify
            )

        assert result.error == ErrorKind.ALREADY_MENTOR

    @pytest.mark.asyncio
    async def test_rejecting_a_mentor_is_allowed(self, mock_db, application, notify):
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=application)
            mock_repo.conditional_transition = AsyncMock(return_value=1)
            mock_users.get_by_email = AsyncMock(return_value=MagicMock(role=UserRole.MENTOR))

            result = await service.transition_application(
                mock_db, application.id, ApplicationStatus.REJECTED, "r1", notify=notify
            )

        assert result == TransitionResult(success=True, noop=False, status=ApplicationStatus.REJECTED)
        notify.assert_called_once()
        assert notify.call_args.args[0] == NotificationEvent.APPLICATION_REJECTED

    @pytest.mark.asyncio
    async def test_lost_race_is_noop(self, mock_db, application, notify):
        """Zero rows affected means another trigger already decided."""
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.mentor_repository") as mock_mentors,
            patch(f"{SERVICE}.provision_mentor_profile", new_callable=AsyncMock) as mock_provision,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=application)
            mock_repo.conditional_transition = AsyncMock(return_value=0)
            mock_repo.get_status = AsyncMock(return_value=ApplicationStatus.REJECTED)
            mock_users.get_by_email = AsyncMock(return_value=None)
            mock_mentors.profile_exists = AsyncMock(return_value=False)

            result = await service.transition_application(
                mock_db, application.id, ApplicationStatus.APPROVED, "r2", notify=notify
            )

        assert result.success is True
        assert result.noop is True
        assert result.status == ApplicationStatus.REJECTED
        mock_db.commit.assert_not_awaited()
        notify.assert_not_called()
        mock_provision.assert_not_called()

    @pytest.mark.asyncio
    async def test_approval_commits_then_notifies_then_provisions(
        self, mock_db, application, notify
    ):
        calls = []
        mock_db.commit = AsyncMock(side_effect=lambda: calls.append("commit"))
        notify.side_effect = lambda *args: calls.append("notify")

        async def provision(db, app):
            calls.append("provision")
            return MagicMock(id=uuid4())

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.provision_mentor_profile", side_effect=provision),
        ):
            mock_repo.get_by_id = AsyncMock(return_value=application)
            mock_repo.conditional_transition = AsyncMock(return_value=1)
            mock_repo.mark_provisioned = AsyncMock(return_value=1)
            mock_users.get_by_email = AsyncMock(return_value=None)

            result = await service.transition_application(
                mock_db, application.id, ApplicationStatus.APPROVED, "r1", notify=notify
            )

        assert result == TransitionResult(success=True, noop=False, status=ApplicationStatus.APPROVED)
        assert calls[:3] == ["commit", "notify", "provision"]
        mock_repo.conditional_transition.assert_awaited_once_with(
            mock_db, application.id, ApplicationStatus.APPROVED, "r1"
        )
        mock_repo.mark_provisioned.assert_awaited_once_with(mock_db, application.id)
        assert notify.call_args.args[0] == NotificationEvent.APPLICATION_APPROVED

    @pytest.mark.asyncio
    async def test_provisioning_failure_keeps_approval(self, mock_db, application, notify):
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(
                f"{SERVICE}.provision_mentor_profile",
                new_callable=AsyncMock,
                side_effect=ProvisioningError("database unavailable"),
            ),
        ):
            mock_repo.get_by_id = AsyncMock(return_value=application)
            mock_repo.conditional_transition = AsyncMock(return_value=1)
            mock_repo.mark_provisioned = AsyncMock()
            mock_repo.get_latest_note = AsyncMock(return_value=None)
            mock_repo.append_note = AsyncMock()
            mock_users.get_by_email = AsyncMock(return_value=None)

            result = await service.transition_application(
                mock_db, application.id, ApplicationStatus.APPROVED, "r1", notify=notify
            )

        assert result.success is True
        assert result.status == ApplicationStatus.APPROVED
        mock_repo.mark_provisioned.assert_not_called()
        mock_repo.append_note.assert_awaited_once()
        args = mock_repo.append_note.call_args.args
        assert args[1] == application.id
        assert "database unavailable" in args[2]
        assert args[3] == NoteKind.PROVISIONING_ERROR

    @pytest.mark.asyncio
    async def test_reason_recorded_as_reviewer_note(self, mock_db, application, notify):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=application)
            mock_repo.conditional_transition = AsyncMock(return_value=1)
            mock_repo.append_note = AsyncMock()

            await service.transition_application(
                mock_db,
                application.id,
                ApplicationStatus.REJECTED,
                "r1",
                reason="Not a fit this cycle",
                notify=notify,
            )

        mock_repo.append_note.assert_awaited_once_with(
            mock_db, application.id, "Not a fit this cycle", NoteKind.REVIEWER, "r1"
        )


class TestReviewDecision:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (True, ApplicationStatus.APPROVED),
            ("Yes", ApplicationStatus.APPROVED),
            ("approved", ApplicationStatus.APPROVED),
            ("No", ApplicationStatus.REJECTED),
            ("rejected", ApplicationStatus.REJECTED),
            (False, None),
            ("", None),
            ("maybe", None),
            (None, None),
        ],
    )
    def test_cell_values(self, value, expected):
        assert service.review_decision(value) == expected


class TestHandleReviewEdit:
    @pytest.mark.asyncio
    async def test_untracked_column_ignored(self, mock_db):
        edit = ReviewEdit(column_label="Institution", value="Other", email="a@x.edu")

        result = await service.handle_review_edit(mock_db, edit)

        assert result.action == "ignored"
        mock_db.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_blank_approval_cell_ignored(self, mock_db):
        edit = ReviewEdit(column_label="Approved?", value="", email="a@x.edu")

        result = await service.handle_review_edit(mock_db, edit)

        assert result.action == "ignored"

    @pytest.mark.asyncio
    async def test_approval_cell_triggers_transition(self, mock_db, application, notify):
        edit = ReviewEdit(column_label="Approved?", value="Yes", email="A@x.edu", editor="r@x.edu")
        expected = TransitionResult(success=True, status=ApplicationStatus.APPROVED)

        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(
                f"{SERVICE}.transition_application", new_callable=AsyncMock, return_value=expected
            ) as mock_transition,
        ):
            mock_repo.get_active_by_email = AsyncMock(return_value=application)

            result = await service.handle_review_edit(mock_db, edit, notify=notify)

        assert result.action == "approve"
        assert result.transition == expected
        mock_repo.get_active_by_email.assert_awaited_once_with(mock_db, "a@x.edu")
        mock_transition.assert_awaited_once_with(
            mock_db, application.id, ApplicationStatus.APPROVED, "r@x.edu", notify=notify
        )

    @pytest.mark.asyncio
    async def test_notes_cell_appends_note(self, mock_db, application):
        edit = ReviewEdit(
            column_label="Reviewer Notes",
            value="Strong answers",
            application_id=application.id,
        )

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=application)
            mock_repo.append_note = AsyncMock()

            result = await service.handle_review_edit(mock_db, edit)

        assert result.action == "note"
        mock_repo.append_note.assert_awaited_once_with(
            mock_db, application.id, "Strong answers", NoteKind.REVIEWER, service.REVIEW_SHEET_AUTHOR
        )


class TestReprocessApplications:
    """Batch rows are isolated from each other."""

    @pytest.mark.asyncio
    async def test_failures_and_timeouts_do_not_stop_batch(self):
        items = [
            ReprocessItem(application_id=uuid4(), target_status=ApplicationStatus.APPROVED),
            ReprocessItem(application_id=uuid4(), target_status=ApplicationStatus.APPROVED),
            ReprocessItem(application_id=uuid4(), target_status=ApplicationStatus.REJECTED),
            ReprocessItem(application_id=uuid4(), target_status=ApplicationStatus.APPROVED),
        ]

        async def transition(db, application_id, target_status, reviewer_id, notify=None):
            if application_id == items[0].application_id:
                raise RuntimeError("connection reset")
            if application_id == items[1].application_id:
                await asyncio.sleep(5)
            if application_id == items[2].application_id:
                return TransitionResult(success=True, noop=True, status=ApplicationStatus.APPROVED)
            return TransitionResult(success=True, status=target_status)

        with patch(f"{SERVICE}.transition_application", side_effect=transition):
            result = await service.reprocess_applications(
                session_factory(), items, "r1", timeout=0.05
            )

        assert result.total == 4
        assert result.succeeded == 2
        assert result.failed == 2
        assert [row.index for row in result.rows] == [0, 1, 2, 3]
        assert result.rows[0].error == ErrorKind.INTERNAL_ERROR
        assert result.rows[0].errors == ["connection reset"]
        assert result.rows[1].error == ErrorKind.TIMEOUT
        assert result.rows[2].noop is True
        assert result.rows[3].success is True
        assert result.rows[3].noop is False


class TestGetApplicationStatus:
    @pytest.mark.asyncio
    async def test_mismatched_email_forbidden(self, mock_db, application):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=application)

            with pytest.raises(InvalidEmailError):
                await service.get_application_status(mock_db, application.id, "other@x.edu")

    @pytest.mark.asyncio
    async def test_email_match_is_case_insensitive(self, mock_db, application):
        application.submitted_at = MagicMock()

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=application)
            with patch(f"{SERVICE}.ApplicationStatusResponse") as mock_response:
                await service.get_application_status(mock_db, application.id, " A@X.edu ")

        kwargs = mock_response.call_args.kwargs
        assert kwargs["status"] == ApplicationStatus.PENDING
        assert kwargs["status_label"] == "Under review"
