from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException
from sqlalchemy.orm import sessionmaker

from tempolink import email_service, worker
from tempolink.domain.invites.schemas import InviteCreate
from tempolink.domain.invites.service import InviteService
from tempolink.email_service import EmailSendError, build_invite_variables, build_signup_url
from tempolink.models import Address, Invite
from tempolink.services.geocoding import GeocodingError

from .factories import make_teacher, make_timeslot, make_user


@pytest.fixture
def arq_pool():
    pool = MagicMock()
    pool.enqueue_job = AsyncMock()
    with patch("tempolink.domain.invites.service.create_pool", new=AsyncMock(return_value=pool)):
        yield pool


@pytest.fixture
def worker_sessions(engine):
    """Point the worker at the test database"""
    with patch.object(worker, "SessionLocal", sessionmaker(bind=engine, autocommit=False, autoflush=False)):
        yield


def invite_data(**overrides):
    data = {"email": "New.Student@Example.com", "fullName": "New Student", "role": "student"}
    data.update(overrides)
    return InviteCreate(**data)


class TestCreateInvite:
    @pytest.mark.asyncio
    async def test_new_address_queues_email(self, db, arq_pool):
        teacher = make_teacher(db)
        invite, user_exists = await InviteService(db).create_invite(invite_data(), teacher)

        assert user_exists is False
        assert invite.email == "new.student@example.com"
        assert invite.role == "STUDENT"
        assert invite.email_sent is False
        arq_pool.enqueue_job.assert_awaited_once_with("send_invite_email_task", invite.id)

    @pytest.mark.asyncio
    async def test_existing_user_is_linked_without_email(self, db, arq_pool):
        teacher = make_teacher(db)
        existing = make_user(db, "clerk_existing", "STUDENT", email="new.student@example.com")

        invite, user_exists = await InviteService(db).create_invite(invite_data(), teacher)

        assert user_exists is True
        assert invite.user_id == existing.id
        assert invite.email_sent is True
        arq_pool.enqueue_job.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_queue_failure_still_records_invite(self, db):
        teacher = make_teacher(db)
        with patch(
            "tempolink.domain.invites.service.create_pool", new=AsyncMock(side_effect=ConnectionError("no redis"))
        ):
            invite, _ = await InviteService(db).create_invite(invite_data(), teacher)
        assert db.get(Invite, invite.id).email_sent is False

    @pytest.mark.asyncio
    async def test_only_teachers(self, db, arq_pool):
        parent = make_user(db, "clerk_parent", "PARENT")
        with pytest.raises(HTTPException) as exc:
            await InviteService(db).create_invite(invite_data(), parent)
        assert exc.value.status_code == 403

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email", ["nobody", "   ", ""])
    async def test_invalid_email(self, db, arq_pool, email):
        teacher = make_teacher(db)
        with pytest.raises(HTTPException) as exc:
            await InviteService(db).create_invite(invite_data(email=email), teacher)
        assert exc.value.status_code == 400
        assert exc.value.detail == "Invalid email format"

    @pytest.mark.asyncio
    async def test_blank_name(self, db, arq_pool):
        teacher = make_teacher(db)
        with pytest.raises(HTTPException) as exc:
            await InviteService(db).create_invite(invite_data(fullName="   "), teacher)
        assert exc.value.detail == "Full name is required"

    @pytest.mark.asyncio
    async def test_timeslot_must_belong_to_teacher(self, db, arq_pool):
        teacher = make_teacher(db)
        other = make_teacher(db, clerk_id="clerk_other")
        slot = make_timeslot(db, other)
        with pytest.raises(HTTPException) as exc:
            await InviteService(db).create_invite(invite_data(timeslotId=slot.id), teacher)
        assert exc.value.status_code == 404

    def test_invalid_role_rejected_by_schema(self):
        with pytest.raises(ValueError):
            invite_data(role="TEACHER")


class TestInviteEmail:
    def test_signup_url_and_variables(self, db):
        teacher = make_teacher(db, first_name="Clara", last_name="Schumann")
        invite = Invite(id="inv-1", teacher_id=teacher.id, email="p@example.com", full_name="Kid", role="PARENT")

        assert build_signup_url(invite).endswith("/sign-up?role=parent&invitationId=inv-1")
        variables = build_invite_variables(invite, teacher)
        assert variables["teacher_name"] == "Clara Schumann"
        assert variables["student_name"] == "Kid"
        assert variables["you"] == "your child"

    def test_send_requires_api_key(self):
        with patch.object(email_service, "RESEND_API_KEY", None):
            with pytest.raises(EmailSendError):
                email_service.send_template_email("a@example.com", "tpl", {})

    def test_send_wraps_provider_errors(self):
        with patch.object(email_service, "RESEND_API_KEY", "re_test"), patch.object(
            email_service.resend.Emails, "send", side_effect=RuntimeError("rejected")
        ):
            with pytest.raises(EmailSendError):
                email_service.send_template_email("a@example.com", "tpl", {})

    def test_send_uses_template(self):
        with patch.object(email_service, "RESEND_API_KEY", "re_test"), patch.object(
            email_service.resend.Emails, "send", return_value={"id": "email_1"}
        ) as send:
            assert email_service.send_template_email("a@example.com", "tpl", {"x": 1}) == {"id": "email_1"}
        payload = send.call_args.args[0]
        assert payload["to"] == ["a@example.com"]
        assert payload["template"] == {"id": "tpl", "variables": {"x": 1}}


class TestWorkerTasks:
    def _invite(self, db, teacher, email="kid@example.com", sent=False):
        invite = Invite(teacher_id=teacher.id, email=email, full_name="Kid", role="STUDENT", email_sent=sent)
        db.add(invite)
        db.commit()
        return invite.id

    @pytest.mark.asyncio
    async def test_send_invite_email_task(self, db, worker_sessions):
        invite_id = self._invite(db, make_teacher(db))
        with patch.object(worker, "send_invite_email") as send:
            result = await worker.send_invite_email_task({}, invite_id)
            again = await worker.send_invite_email_task({}, invite_id)

        assert result == {"success": True, "inviteId": invite_id}
        assert again == {"success": True, "skipped": True}
        send.assert_called_once()
        db.expire_all()
        assert db.get(Invite, invite_id).email_sent is True

    @pytest.mark.asyncio
    async def test_send_failure_propagates_for_retry(self, db, worker_sessions):
        invite_id = self._invite(db, make_teacher(db))
        with patch.object(worker, "send_invite_email", side_effect=EmailSendError("down")):
            with pytest.raises(EmailSendError):
                await worker.send_invite_email_task({}, invite_id)
        db.expire_all()
        assert db.get(Invite, invite_id).email_sent is False

    @pytest.mark.asyncio
    async def test_missing_invite(self, worker_sessions):
        with pytest.raises(ValueError):
            await worker.send_invite_email_task({}, "missing")

    @pytest.mark.asyncio
    async def test_resend_pending_invites(self, db, worker_sessions):
        teacher = make_teacher(db)
        self._invite(db, teacher, "a@example.com")
        self._invite(db, teacher, "b@example.com")
        self._invite(db, teacher, "c@example.com", sent=True)

        with patch.object(worker, "send_invite_email", side_effect=[None, EmailSendError("bounced")]) as send:
            summary = await worker.resend_pending_invites_task({})

        assert send.call_count == 2
        assert (summary["processed"], summary["successful"], summary["failed"]) == (2, 1, 1)
        db.expire_all()
        assert db.query(Invite).filter(Invite.email_sent.is_(False)).count() == 1

    @pytest.mark.asyncio
    async def test_geocode_address_task(self, db, worker_sessions):
        address = Address(
            address={"street": "1 Main St", "city": "Springfield"}, address_formatted="1 main st, springfield"
        )
        db.add(address)
        db.commit()

        with patch.object(worker, "geocode_with_retry", new=AsyncMock(return_value=(39.8, -89.6))) as geocode:
            result = await worker.geocode_address_task({}, address.id)

        geocode.assert_awaited_once_with("1 Main St, Springfield")
        assert result == {"success": True, "latitude": 39.8, "longitude": -89.6}
        db.expire_all()
        assert (db.get(Address, address.id).latitude, db.get(Address, address.id).longitude) == (39.8, -89.6)

    @pytest.mark.asyncio
    async def test_geocode_failure_leaves_address_untouched(self, db, worker_sessions):
        address = Address(address={"city": "Nowhere"}, address_formatted="nowhere")
        db.add(address)
        db.commit()

        with patch.object(worker, "geocode_with_retry", new=AsyncMock(side_effect=GeocodingError("503"))):
            assert await worker.geocode_address_task({}, address.id) == {"success": False}
        db.expire_all()
        assert db.get(Address, address.id).latitude is None


def test_worker_settings():
    names = {f.__name__ for f in worker.WorkerSettings.functions}
    assert names == {"send_invite_email_task", "geocode_address_task", "resend_pending_invites_task"}
    assert worker.WorkerSettings.max_tries == 3
    assert len(worker.WorkerSettings.cron_jobs) == 1
