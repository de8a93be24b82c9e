import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_uuid():
    """Generate a string UUID primary key"""
    return str(uuid.uuid4())


def utcnow():
    """Naive UTC timestamp, the form every DateTime column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Enumerations are stored as plain strings
ROLES = ("TEACHER", "STUDENT", "PARENT")
TEACHING_FORMATS = ("IN_PERSON_ONLY", "ONLINE_ONLY", "IN_PERSON_AND_ONLINE")
AGE_PREFERENCES = ("ALL_AGES", "13+", "ADULTS_ONLY")
LESSON_FORMATS = ("IN_PERSON", "ONLINE")
BOOKING_STATUSES = ("PENDING", "ACCEPTED", "DENIED", "CANCELLED")
PROFICIENCY_LEVELS = ("BEGINNER", "INTERMEDIATE", "ADVANCED")
INVITE_ROLES = ("PARENT", "STUDENT")


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    clerk_id = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), index=True, nullable=False, default="")
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=True)  # TEACHER, STUDENT, PARENT - null until onboarding
    preferred_timezone = Column(String(100), nullable=True)  # IANA identifier
    image_url = Column(String(500), nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)

    teacher = relationship("Teacher", back_populates="user", uselist=False)
    student_profile = relationship(
        "Student", foreign_keys="Student.user_id", back_populates="user", uselist=False
    )
    children = relationship(
        "Student", foreign_keys="Student.parent_id", back_populates="parent", order_by="Student.created_at"
    )
    address_links = relationship("UserAddress", back_populates="user", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class Teacher(Base):
    __tablename__ = "teachers"

    id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    bio = Column(Text, nullable=True)
    accepting_students = Column(Boolean, default=False, nullable=False)
    teaching_format = Column(String(30), nullable=True)
    age_preference = Column(String(20), default="ALL_AGES", nullable=False)
    image_url = Column(String(500), nullable=True)
    profile_name = Column(String(255), unique=True, index=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)

    user = relationship("User", back_populates="teacher")
    instrument_links = relationship(
        "TeacherInstrument", back_populates="teacher", cascade="all, delete-orphan"
    )
    language_links = relationship(
        "TeacherLanguage", back_populates="teacher", cascade="all, delete-orphan"
    )
    instruments = relationship(
        "Instrument", secondary="teacher_instruments", order_by="Instrument.name", viewonly=True
    )
    languages = relationship(
        "Language", secondary="teacher_languages", order_by="Language.name", viewonly=True
    )
    social_links = relationship(
        "TeacherSocialLink",
        back_populates="teacher",
        cascade="all, delete-orphan",
        order_by="TeacherSocialLink.created_at",
    )
    timeslots = relationship("TeacherTimeslot", back_populates="teacher", cascade="all, delete-orphan")


class Instrument(Base):
    __tablename__ = "instruments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    image_path = Column(String(255), nullable=False)


class Language(Base):
    __tablename__ = "languages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    code = Column(String(10), unique=True, nullable=False)


class TeacherInstrument(Base):
    __tablename__ = "teacher_instruments"
    __table_args__ = (UniqueConstraint("teacher_id", "instrument_id", name="uq_teacher_instrument"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    teacher_id = Column(String(36), ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False)
    instrument_id = Column(Integer, ForeignKey("instruments.id", ondelete="CASCADE"), nullable=False)

    teacher = relationship("Teacher", back_populates="instrument_links")
    instrument = relationship("Instrument")


class TeacherLanguage(Base):
    __tablename__ = "teacher_languages"
    __table_args__ = (UniqueConstraint("teacher_id", "language_id", name="uq_teacher_language"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    teacher_id = Column(String(36), ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False)
    language_id = Column(Integer, ForeignKey("languages.id", ondelete="CASCADE"), nullable=False)

    teacher = relationship("Teacher", back_populates="language_links")
    language = relationship("Language")


class TeacherSocialLink(Base):
    __tablename__ = "teacher_social_links"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    teacher_id = Column(String(36), ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False, index=True)
    external_url = Column(String(500), nullable=False)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)

    teacher = relationship("Teacher", back_populates="social_links")


class Student(Base):
    """A learner record. Owned by the student's own account, by a parent, or both."""

    __tablename__ = "students"
    __table_args__ = (
        CheckConstraint("user_id IS NOT NULL OR parent_id IS NOT NULL", name="ck_student_owner"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    parent_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    date_of_birth = Column(DateTime, nullable=True)  # UTC midnight
    image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)

    user = relationship("User", foreign_keys=[user_id], back_populates="student_profile")
    parent = relationship("User", foreign_keys=[parent_id], back_populates="children")
    proficiencies = relationship(
        "StudentInstrumentProficiency", back_populates="student", cascade="all, delete-orphan"
    )
    booking_requests = relationship("BookingRequest", back_populates="student", cascade="all, delete-orphan")
    lessons = relationship("Lesson", back_populates="student", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class StudentInstrumentProficiency(Base):
    __tablename__ = "student_instrument_proficiency"
    __table_args__ = (UniqueConstraint("student_id", "instrument_id", name="uq_student_instrument"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    student_id = Column(String(36), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    instrument_id = Column(Integer, ForeignKey("instruments.id", ondelete="CASCADE"), nullable=False)
    proficiency = Column(String(20), nullable=False)  # BEGINNER, INTERMEDIATE, ADVANCED
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)

    student = relationship("Student", back_populates="proficiencies")
    instrument = relationship("Instrument")


class TeacherTimeslot(Base):
    """A weekly availability window. day_of_week: 0 = Sunday ... 6 = Saturday."""

    __tablename__ = "teacher_timeslots"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    teacher_id = Column(String(36), ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_booked = Column(Boolean, default=False, nullable=False)
    student_id = Column(String(36), ForeignKey("students.id", ondelete="SET NULL"), nullable=True)
    teaching_format = Column(String(30), nullable=True)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)

    teacher = relationship("Teacher", back_populates="timeslots")
    student = relationship("Student")
    booking_requests = relationship(
        "BookingRequest", back_populates="timeslot", cascade="all, delete-orphan"
    )


class BookingRequest(Base):
    __tablename__ = "booking_requests"
    __table_args__ = (UniqueConstraint("student_id", "timeslot_id", name="uq_booking_student_timeslot"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    timeslot_id = Column(String(36), ForeignKey("teacher_timeslots.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(String(36), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    instrument_id = Column(Integer, ForeignKey("instruments.id"), nullable=False)
    lesson_format = Column(String(20), nullable=False)  # IN_PERSON, ONLINE
    booking_status = Column(String(20), default="PENDING", nullable=False)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)

    timeslot = relationship("TeacherTimeslot", back_populates="booking_requests")
    student = relationship("Student", back_populates="booking_requests")
    instrument = relationship("Instrument")


class Lesson(Base):
    __tablename__ = "lessons"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    teacher_id = Column(String(36), ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False, index=True)
    timeslot_id = Column(String(36), ForeignKey("teacher_timeslots.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(String(36), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    instrument_id = Column(Integer, ForeignKey("instruments.id"), nullable=False)
    lesson_format = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)

    teacher = relationship("Teacher")
    timeslot = relationship("TeacherTimeslot")
    student = relationship("Student", back_populates="lessons")
    instrument = relationship("Instrument")
    notes = relationship(
        "LessonNote",
        back_populates="lesson",
        cascade="all, delete-orphan",
        order_by="LessonNote.created_at.desc()",
    )
    calendar_events = relationship("CalendarEvent", back_populates="lesson", cascade="all, delete-orphan")


class LessonNote(Base):
    __tablename__ = "lesson_notes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    lesson_id = Column(String(36), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True)
    note_title = Column(String(255), nullable=False)
    notes = Column(Text, nullable=False)
    lesson_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)

    lesson = relationship("Lesson", back_populates="notes")


class CalendarEvent(Base):
    """iCalendar-shaped event. dt_start/dt_end are naive UTC; timezone drives recurrence."""

    __tablename__ = "calendar_events"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    uid = Column(String(255), unique=True, nullable=False)
    summary = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(500), nullable=True)
    dt_start = Column(DateTime, nullable=False)
    dt_end = Column(DateTime, nullable=False)
    all_day = Column(Boolean, default=False, nullable=False)
    timezone = Column(String(100), nullable=True)
    rrule = Column(Text, nullable=True)
    exdates = Column(JSON, nullable=True)  # list of ISO datetime strings
    status = Column(String(20), default="CONFIRMED", nullable=False)
    event_type = Column(String(20), default="LESSON", nullable=False)
    priority = Column(Integer, default=5, nullable=False)
    organizer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    lesson_id = Column(String(36), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=True, index=True)
    timeslot_id = Column(String(36), ForeignKey("teacher_timeslots.id", ondelete="SET NULL"), nullable=True)
    sequence = Column(Integer, default=0, nullable=False)
    last_modified = Column(DateTime, nullable=True)
    created = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)

    lesson = relationship("Lesson", back_populates="calendar_events")
    attendees = relationship("CalendarEventAttendee", back_populates="event", cascade="all, delete-orphan")


class CalendarEventAttendee(Base):
    __tablename__ = "calendar_event_attendees"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    event_id = Column(String(36), ForeignKey("calendar_events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    participation_status = Column(String(20), default="NEEDS-ACTION", nullable=False)
    role = Column(String(20), default="REQ-PARTICIPANT", nullable=False)
    response_requested = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)

    event = relationship("CalendarEvent", back_populates="attendees")


class Invite(Base):
    __tablename__ = "invites"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    teacher_id = Column(String(36), ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    email = Column(String(255), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    timeslot_id = Column(String(36), ForeignKey("teacher_timeslots.id", ondelete="SET NULL"), nullable=True)
    role = Column(String(20), nullable=False)  # PARENT, STUDENT
    email_sent = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)

    teacher = relationship("Teacher")


class Address(Base):
    __tablename__ = "addresses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    address = Column(JSON, nullable=False)  # structured parts as submitted
    address_formatted = Column(String(500), unique=True, nullable=False, index=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)


class UserAddress(Base):
    __tablename__ = "user_addresses"
    __table_args__ = (UniqueConstraint("user_id", "address_id", name="uq_user_address"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    address_id = Column(String(36), ForeignKey("addresses.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())

    user = relationship("User", back_populates="address_links")
    address = relationship("Address")
