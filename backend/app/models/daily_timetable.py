import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.db.base import Base


class OwnerRole(str, Enum):
    hod = "hod"
    faculty = "faculty"
    student = "student"


class DailyTimetable(Base):
    __tablename__ = "daily_timetables"
    __table_args__ = (
        UniqueConstraint(
            "day",
            "role",
            "department",
            "faculty_id",
            "section",
            "semester",
            name="uq_daily_timetables_day_owner",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    day: Mapped[str] = mapped_column(String(16), index=True, nullable=False)
    role: Mapped[OwnerRole] = mapped_column(SAEnum(OwnerRole, name="owner_role"), nullable=False)
    department: Mapped[str] = mapped_column(String(200), index=True, nullable=False)
    # "" when the owner role has no such part; NULLs would escape the unique key
    faculty_id: Mapped[str] = mapped_column(String(100), nullable=False, default="", server_default="")
    section: Mapped[str] = mapped_column(String(50), nullable=False, default="", server_default="")
    semester: Mapped[str] = mapped_column(String(20), nullable=False, default="", server_default="")
    odd_even_term: Mapped[str | None] = mapped_column(String(50), nullable=True)
    duration: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    slots: Mapped[list["TimetableSlotRecord"]] = relationship(
        back_populates="timetable",
        cascade="all, delete-orphan",
        order_by="TimetableSlotRecord.position",
    )


class TimetableSlotRecord(Base):
    __tablename__ = "timetable_slots"
    __table_args__ = (
        UniqueConstraint("timetable_id", "normalized_time", name="uq_timetable_slots_entry_time"),
        UniqueConstraint("day", "normalized_time", "room_no", name="uq_timetable_slots_day_time_room"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    timetable_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("daily_timetables.id", ondelete="CASCADE"), index=True, nullable=False
    )
    day: Mapped[str] = mapped_column(String(16), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    time: Mapped[str] = mapped_column(String(20), nullable=False)
    # derived from `time`; kept only so the database can enforce the uniqueness rules
    normalized_time: Mapped[str] = mapped_column(String(5), nullable=False)
    course_code: Mapped[str] = mapped_column(String(50), nullable=False)
    course_name: Mapped[str] = mapped_column(String(200), nullable=False)
    faculty_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    room_no: Mapped[str] = mapped_column(String(50), nullable=False)
    roundings_time: Mapped[str | None] = mapped_column(String(50), nullable=True)

    timetable: Mapped[DailyTimetable] = relationship(back_populates="slots")
