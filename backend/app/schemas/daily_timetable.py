from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.services.time_normalizer import normalize_time

DAY_VALUES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

ViolationKind = Literal[
    "MissingField",
    "InvalidTimeFormat",
    "DuplicateTimeInEntry",
    "RoomConflict",
    "SlotNotFound",
]


def normalize_day_name(value: str) -> str:
    day = value.strip()
    day = day[:1].upper() + day[1:].lower()
    if day not in DAY_VALUES:
        raise ValueError(f"Invalid day value: {value}")
    return day


class HodScope(BaseModel):
    kind: Literal["hod"] = "hod"
    department: str = Field(min_length=1, max_length=200)

    @field_validator("department")
    @classmethod
    def strip_values(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Department cannot be empty")
        return trimmed


class FacultyScope(BaseModel):
    kind: Literal["faculty"] = "faculty"
    department: str = Field(min_length=1, max_length=200)
    faculty_id: str = Field(alias="facultyId", min_length=1, max_length=100)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("department", "faculty_id")
    @classmethod
    def strip_values(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Faculty scope values cannot be empty")
        return trimmed


class StudentScope(BaseModel):
    kind: Literal["student"] = "student"
    department: str = Field(min_length=1, max_length=200)
    section: str = Field(min_length=1, max_length=50)
    semester: str = Field(min_length=1, max_length=20)

    @field_validator("department", "section", "semester", mode="before")
    @classmethod
    def strip_values(cls, value: str | int) -> str:
        # semesters arrive as numbers from some clients
        trimmed = "" if value is None else str(value).strip()
        if not trimmed:
            raise ValueError("Student scope values cannot be empty")
        return trimmed


OwnerScope = Annotated[Union[HodScope, FacultyScope, StudentScope], Field(discriminator="kind")]


class SlotIn(BaseModel):
    """One proposed slot. Required attributes are checked by the conflict engine, not here."""

    id: str | None = None
    time: str | None = Field(default=None, max_length=20)
    course_code: str | None = Field(default=None, alias="courseCode", max_length=50)
    course_name: str | None = Field(default=None, alias="courseName", max_length=200)
    faculty_name: str | None = Field(default=None, alias="facultyName", max_length=200)
    room_no: str | None = Field(default=None, alias="roomNo", max_length=50)
    roundings_time: str | None = Field(default=None, alias="roundingsTime", max_length=50)

    model_config = ConfigDict(populate_by_name=True)


class SlotPatch(BaseModel):
    time: str | None = Field(default=None, max_length=20)
    course_code: str | None = Field(default=None, alias="courseCode", max_length=50)
    course_name: str | None = Field(default=None, alias="courseName", max_length=200)
    faculty_name: str | None = Field(default=None, alias="facultyName", max_length=200)
    room_no: str | None = Field(default=None, alias="roomNo", max_length=50)
    roundings_time: str | None = Field(default=None, alias="roundingsTime", max_length=50)

    model_config = ConfigDict(populate_by_name=True)


class TimetableSlot(BaseModel):
    id: str
    time: str
    course_code: str = Field(alias="courseCode")
    course_name: str = Field(alias="courseName")
    faculty_name: str | None = Field(default=None, alias="facultyName")
    room_no: str = Field(alias="roomNo")
    roundings_time: str | None = Field(default=None, alias="roundingsTime")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    @property
    def normalized_time(self) -> str | None:
        return normalize_time(self.time)


class DailyTimetableUpsert(BaseModel):
    day: str
    owner_scope: OwnerScope = Field(alias="ownerScope")
    slots: list[SlotIn] = Field(max_length=48)
    odd_even_term: str | None = Field(default=None, alias="oddEvenTerm", max_length=50)
    duration: str | None = Field(default=None, max_length=100)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str) -> str:
        return normalize_day_name(value)


class DailyTimetableEntry(BaseModel):
    id: str
    day: str
    owner_scope: OwnerScope = Field(alias="ownerScope")
    slots: list[TimetableSlot] = Field(default_factory=list)
    odd_even_term: str | None = Field(default=None, alias="oddEvenTerm")
    duration: str | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class DailyViewOut(BaseModel):
    """A single owner's day; ``entryId`` is null and ``slots`` empty when nothing is scheduled."""

    day: str
    owner_scope: OwnerScope = Field(alias="ownerScope")
    entry_id: str | None = Field(default=None, alias="entryId")
    slots: list[TimetableSlot] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class TimetableViolation(BaseModel):
    kind: ViolationKind
    message: str
    details: dict = Field(default_factory=dict)


class TimetableMutationOut(BaseModel):
    message: str
    timetable: DailyTimetableEntry | None = None
    entry_removed: bool = Field(default=False, alias="entryRemoved")

    model_config = ConfigDict(populate_by_name=True)
