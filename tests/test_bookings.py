import pytest
from fastapi import HTTPException

from tempolink.domain.bookings.schemas import BookingRequestCreate
from tempolink.domain.bookings.service import BookingService
from tempolink.domain.students.repository import StudentRepository
from tempolink.models import BookingRequest, CalendarEvent, Lesson

from .factories import make_instrument, make_student, make_teacher, make_timeslot, make_user


@pytest.fixture
def setup(db):
    piano = make_instrument(db, "Piano")
    teacher = make_teacher(db, instruments=[piano])
    timeslot = make_timeslot(db, teacher, day_of_week=2)
    student_user = make_user(db, "clerk_student", "STUDENT", first_name="Sam", last_name="Student")
    student = make_student(db, user=student_user)
    return {"piano": piano, "teacher": teacher, "timeslot": timeslot, "student_user": student_user, "student": student}


def booking(timeslot_id, **overrides):
    data = {"timeslotId": timeslot_id, "instrument": "piano", "lessonFormat": "ONLINE"}
    data.update(overrides)
    return BookingRequestCreate(**data)


class TestCreateBookingRequest:
    def test_student_creates_pending_request(self, db, setup):
        service = BookingService(db)
        request = service.create_booking_request(
            booking(setup["timeslot"].id, proficiency="BEGINNER"), setup["student_user"]
        )

        assert request.booking_status == "PENDING"
        assert request.student_id == setup["student"].id
        assert request.instrument_id == setup["piano"].id
        proficiency = StudentRepository.get_proficiency(db, setup["student"].id, setup["piano"].id)
        assert proficiency.proficiency == "BEGINNER"

    def test_duplicate_request_conflicts(self, db, setup):
        service = BookingService(db)
        service.create_booking_request(booking(setup["timeslot"].id), setup["student_user"])
        with pytest.raises(HTTPException) as exc:
            service.create_booking_request(booking(setup["timeslot"].id), setup["student_user"])
        assert exc.value.status_code == 409

    def test_unknown_instrument(self, db, setup):
        with pytest.raises(HTTPException) as exc:
            BookingService(db).create_booking_request(
                booking(setup["timeslot"].id, instrument="Theremin"), setup["student_user"]
            )
        assert exc.value.status_code == 400
        assert exc.value.detail == "Invalid instrument specified"

    def test_missing_instrument(self, db, setup):
        with pytest.raises(HTTPException) as exc:
            BookingService(db).create_booking_request(
                booking(setup["timeslot"].id, instrument="  "), setup["student_user"]
            )
        assert exc.value.detail == "Instrument is required for booking"

    def test_booked_timeslot(self, db, setup):
        setup["timeslot"].is_booked = True
        db.commit()
        with pytest.raises(HTTPException) as exc:
            BookingService(db).create_booking_request(booking(setup["timeslot"].id), setup["student_user"])
        assert exc.value.status_code == 404

    def test_teacher_cannot_book(self, db, setup):
        with pytest.raises(HTTPException) as exc:
            BookingService(db).create_booking_request(booking(setup["timeslot"].id), setup["teacher"])
        assert exc.value.status_code == 403

    def test_parent_defaults_to_first_child(self, db, setup):
        parent = make_user(db, "clerk_parent", "PARENT")
        child = make_student(db, parent=parent, first_name="Kid")
        request = BookingService(db).create_booking_request(booking(setup["timeslot"].id), parent)
        assert request.student_id == child.id

    def test_parent_cannot_book_for_someone_elses_child(self, db, setup):
        parent = make_user(db, "clerk_parent", "PARENT")
        make_student(db, parent=parent)
        with pytest.raises(HTTPException) as exc:
            BookingService(db).create_booking_request(
                booking(setup["timeslot"].id, studentId=setup["student"].id), parent
            )
        assert exc.value.status_code == 404

    def test_parent_without_children(self, db, setup):
        parent = make_user(db, "clerk_parent", "PARENT")
        with pytest.raises(HTTPException) as exc:
            BookingService(db).create_booking_request(booking(setup["timeslot"].id), parent)
        assert exc.value.detail == "No student profiles found for this parent"


class TestAcceptBookingRequest:
    def test_accept_creates_lesson_and_event(self, db, setup):
        service = BookingService(db)
        request = service.create_booking_request(booking(setup["timeslot"].id), setup["student_user"])

        lesson, event = service.accept_booking_request(request.id, setup["teacher"])

        db.refresh(setup["timeslot"])
        assert setup["timeslot"].is_booked is True
        assert setup["timeslot"].student_id == setup["student"].id
        assert db.get(BookingRequest, request.id).booking_status == "ACCEPTED"

        assert lesson.teacher_id == setup["teacher"].id
        assert lesson.lesson_format == "ONLINE"

        assert event.uid == f"{lesson.id}@tempo-link.xyz"
        assert event.rrule == "RRULE:FREQ=WEEKLY;BYDAY=TU"
        assert event.timezone == "America/New_York"
        assert event.summary == "Piano Lesson - Sam Student"
        assert event.location == "Online"
        assert event.lesson_id == lesson.id
        roles = {(a.user_id, a.role, a.participation_status) for a in event.attendees}
        assert roles == {
            (setup["teacher"].id, "ORGANIZER", "ACCEPTED"),
            (setup["student_user"].id, "REQ-PARTICIPANT", "NEEDS-ACTION"),
        }

    def test_in_person_event_has_no_location(self, db, setup):
        service = BookingService(db)
        request = service.create_booking_request(
            booking(setup["timeslot"].id, lessonFormat="IN_PERSON"), setup["student_user"]
        )
        _, event = service.accept_booking_request(request.id, setup["teacher"])
        assert event.location is None
        assert "Format: In Person." in event.description

    def test_parent_is_the_attendee_for_a_child(self, db, setup):
        parent = make_user(db, "clerk_parent", "PARENT")
        make_student(db, parent=parent, first_name="Kid")
        service = BookingService(db)
        request = service.create_booking_request(booking(setup["timeslot"].id), parent)
        _, event = service.accept_booking_request(request.id, setup["teacher"])
        assert parent.id in {a.user_id for a in event.attendees}

    def test_other_teacher_cannot_accept(self, db, setup):
        service = BookingService(db)
        request = service.create_booking_request(booking(setup["timeslot"].id), setup["student_user"])
        other = make_teacher(db, clerk_id="clerk_other", first_name="Other")
        with pytest.raises(HTTPException) as exc:
            service.accept_booking_request(request.id, other)
        assert exc.value.status_code == 403
        assert db.query(Lesson).count() == 0

    def test_second_accept_for_same_slot_fails(self, db, setup):
        second_user = make_user(db, "clerk_student_2", "STUDENT")
        make_student(db, user=second_user)
        service = BookingService(db)
        first = service.create_booking_request(booking(setup["timeslot"].id), setup["student_user"])
        second = service.create_booking_request(booking(setup["timeslot"].id), second_user)

        service.accept_booking_request(first.id, setup["teacher"])
        with pytest.raises(HTTPException) as exc:
            service.accept_booking_request(second.id, setup["teacher"])
        assert exc.value.status_code == 400
        assert db.query(Lesson).count() == 1
        assert db.query(CalendarEvent).count() == 1

    def test_unknown_request(self, db, setup):
        with pytest.raises(HTTPException) as exc:
            BookingService(db).accept_booking_request("missing", setup["teacher"])
        assert exc.value.status_code == 404


class TestDeclineAndCancel:
    def test_decline(self, db, setup):
        service = BookingService(db)
        request = service.create_booking_request(booking(setup["timeslot"].id), setup["student_user"])
        declined = service.decline_booking_request(request.id, setup["teacher"])
        assert declined.booking_status == "DENIED"

        with pytest.raises(HTTPException) as exc:
            service.decline_booking_request(request.id, setup["teacher"])
        assert exc.value.status_code == 400

    def test_cancel_by_owner(self, db, setup):
        service = BookingService(db)
        request = service.create_booking_request(booking(setup["timeslot"].id), setup["student_user"])
        assert service.cancel_booking_request(request.id, setup["student_user"]).booking_status == "CANCELLED"

    def test_cancel_by_stranger(self, db, setup):
        service = BookingService(db)
        request = service.create_booking_request(booking(setup["timeslot"].id), setup["student_user"])
        stranger = make_user(db, "clerk_stranger", "STUDENT")
        with pytest.raises(HTTPException) as exc:
            service.cancel_booking_request(request.id, stranger)
        assert exc.value.status_code == 403


class TestListing:
    def test_teacher_sees_requesting_user_and_proficiency(self, db, setup):
        service = BookingService(db)
        service.create_booking_request(
            booking(setup["timeslot"].id, proficiency="ADVANCED"), setup["student_user"]
        )
        [item] = service.get_teacher_requests(setup["teacher"])
        assert item["requestingUser"]["id"] == setup["student_user"].id
        assert item["proficiency"] == "ADVANCED"
        assert item["bookingStatus"] == "PENDING"

    def test_student_sees_teacher(self, db, setup):
        service = BookingService(db)
        service.create_booking_request(booking(setup["timeslot"].id), setup["student_user"])
        [item] = service.get_my_requests(setup["student_user"])
        assert item["teacherUser"]["id"] == setup["teacher"].id
        assert item["instrument"]["name"] == "Piano"
