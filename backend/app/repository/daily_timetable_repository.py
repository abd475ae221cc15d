from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
import logging

from sqlalchemy import select
from sqlalchemy.exc import DisconnectionError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import ConcurrentModificationError, StorageUnavailableError
from app.models.daily_timetable import DailyTimetable, OwnerRole, TimetableSlotRecord
from app.schemas.daily_timetable import (
    DailyTimetableEntry,
    FacultyScope,
    HodScope,
    StudentScope,
    TimetableSlot,
)
from app.services.conflict_engine import SlotRemoval, describe_owner
from app.services.time_normalizer import normalize_time

logger = logging.getLogger(__name__)

Scope = HodScope | FacultyScope | StudentScope


def owner_scope_columns(scope: Scope) -> dict:
    """Column values identifying ``scope``; parts the role does not use are ``""``."""
    if isinstance(scope, HodScope):
        return {"role": OwnerRole.hod, "department": scope.department, "faculty_id": "", "section": "", "semester": ""}
    if isinstance(scope, FacultyScope):
        return {
            "role": OwnerRole.faculty,
            "department": scope.department,
            "faculty_id": scope.faculty_id,
            "section": "",
            "semester": "",
        }
    if isinstance(scope, StudentScope):
        return {
            "role": OwnerRole.student,
            "department": scope.department,
            "faculty_id": "",
            "section": scope.section,
            "semester": scope.semester,
        }
    raise TypeError(f"Unsupported owner scope: {scope!r}")


def owner_scope_from_record(record: DailyTimetable) -> Scope:
    if record.role == OwnerRole.hod:
        return HodScope(department=record.department)
    if record.role == OwnerRole.faculty:
        return FacultyScope(department=record.department, faculty_id=record.faculty_id)
    if record.role == OwnerRole.student:
        return StudentScope(department=record.department, section=record.section, semester=record.semester)
    raise ValueError(f"Unknown owner role {record.role!r} on timetable {record.id}")


def to_entry(record: DailyTimetable) -> DailyTimetableEntry:
    return DailyTimetableEntry(
        id=record.id,
        day=record.day,
        owner_scope=owner_scope_from_record(record),
        slots=[TimetableSlot.model_validate(slot) for slot in record.slots],
        odd_even_term=record.odd_even_term,
        duration=record.duration,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


@contextmanager
def storage_errors() -> Iterator[None]:
    """Translate connectivity failures into StorageUnavailableError."""
    try:
        yield
    except (OperationalError, InterfaceError, DisconnectionError) as exc:
        logger.exception("TIMETABLE STORAGE UNAVAILABLE")
        raise StorageUnavailableError() from exc


class DailyTimetableRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, entry_id: str) -> DailyTimetable | None:
        with storage_errors():
            return self.db.get(DailyTimetable, entry_id)

    def find_by_scope(self, day: str, scope: Scope) -> DailyTimetable | None:
        stmt = select(DailyTimetable).where(
            DailyTimetable.day == day,
            *(getattr(DailyTimetable, column) == value for column, value in owner_scope_columns(scope).items()),
        )
        with storage_errors():
            return self.db.execute(stmt).scalar_one_or_none()

    def list_for_day(
        self,
        day: str,
        *,
        exclude_entry_id: str | None = None,
        time: str | None = None,
        room_no: str | None = None,
    ) -> list[DailyTimetable]:
        """Entries of ``day`` other than ``exclude_entry_id``, optionally only those holding ``room_no`` at ``time``."""
        stmt = (
            select(DailyTimetable)
            .where(DailyTimetable.day == day)
            .options(selectinload(DailyTimetable.slots))
            .order_by(DailyTimetable.created_at, DailyTimetable.id)
        )
        if exclude_entry_id is not None:
            stmt = stmt.where(DailyTimetable.id != exclude_entry_id)
        if time is not None and room_no is not None:
            stmt = stmt.where(
                DailyTimetable.slots.any(
                    (TimetableSlotRecord.normalized_time == normalize_time(time))
                    & (TimetableSlotRecord.room_no == room_no.strip())
                )
            )
        with storage_errors():
            return list(self.db.execute(stmt).scalars().unique())

    def search(
        self,
        *,
        day: str | None = None,
        role: OwnerRole | None = None,
        department: str | None = None,
        faculty_id: str | None = None,
        section: str | None = None,
        semester: str | None = None,
    ) -> list[DailyTimetable]:
        conditions = []
        if day:
            conditions.append(DailyTimetable.day == day)
        if role:
            conditions.append(DailyTimetable.role == role)
        if department:
            conditions.append(DailyTimetable.department == department)
        if faculty_id:
            conditions.append(DailyTimetable.faculty_id == faculty_id)
        if section:
            conditions.append(DailyTimetable.section == section)
        if semester:
            conditions.append(DailyTimetable.semester == semester)
        stmt = (
            select(DailyTimetable)
            .where(*conditions)
            .options(selectinload(DailyTimetable.slots))
            .order_by(
                DailyTimetable.day,
                DailyTimetable.role,
                DailyTimetable.department,
                DailyTimetable.faculty_id,
                DailyTimetable.section,
                DailyTimetable.semester,
            )
        )
        with storage_errors():
            return list(self.db.execute(stmt).scalars().unique())

    def upsert(
        self,
        *,
        day: str,
        scope: Scope,
        slots: Sequence[TimetableSlot],
        odd_even_term: str | None,
        duration: str | None,
        existing: DailyTimetable | None = None,
    ) -> DailyTimetable:
        if existing is None:
            record = DailyTimetable(day=day, **owner_scope_columns(scope))
            self.db.add(record)
        else:
            record = existing
            record.slots.clear()
            # old rows must be gone before new rows reuse their (entry, time) keys
            self._flush()
            record.updated_at = datetime.now(timezone.utc)

        record.odd_even_term = odd_even_term
        record.duration = duration
        record.slots.extend(
            TimetableSlotRecord(
                id=slot.id,
                day=day,
                position=position,
                time=slot.time,
                normalized_time=slot.normalized_time,
                course_code=slot.course_code,
                course_name=slot.course_name,
                faculty_name=slot.faculty_name,
                room_no=slot.room_no,
                roundings_time=slot.roundings_time,
            )
            for position, slot in enumerate(slots)
        )
        self._flush()
        logger.info(
            "TIMETABLE UPSERT | entry_id=%s | day=%s | owner=%s | slots=%d",
            record.id,
            day,
            describe_owner(scope),
            len(slots),
        )
        return record

    def replace_slot(self, record: DailyTimetable, slot: TimetableSlot) -> DailyTimetable:
        target = next((item for item in record.slots if item.id == slot.id), None)
        if target is None:
            raise ValueError(f"Slot {slot.id} does not belong to timetable {record.id}")
        target.time = slot.time
        target.normalized_time = slot.normalized_time
        target.course_code = slot.course_code
        target.course_name = slot.course_name
        target.faculty_name = slot.faculty_name
        target.room_no = slot.room_no
        target.roundings_time = slot.roundings_time
        record.updated_at = datetime.now(timezone.utc)
        self._flush()
        logger.info("TIMETABLE SLOT UPDATE | entry_id=%s | slot_id=%s", record.id, slot.id)
        return record

    def apply_slot_removal(self, record: DailyTimetable, removal: SlotRemoval) -> bool:
        """Persist an engine-approved slot removal; returns True when the entry itself was deleted."""
        keep = {slot.id for slot in removal.slots}
        for item in [item for item in record.slots if item.id not in keep]:
            record.slots.remove(item)
        if removal.entry_now_empty:
            self.db.delete(record)
        else:
            record.updated_at = datetime.now(timezone.utc)
        self._flush()
        logger.info(
            "TIMETABLE SLOT DELETE | entry_id=%s | remaining=%d | entry_removed=%s",
            record.id,
            len(removal.slots),
            removal.entry_now_empty,
        )
        return removal.entry_now_empty

    def delete(self, record: DailyTimetable) -> None:
        self.db.delete(record)
        self._flush()
        logger.info(
            "TIMETABLE DELETE | entry_id=%s | day=%s | owner=%s",
            record.id,
            record.day,
            describe_owner(owner_scope_from_record(record)),
        )

    def commit(self) -> None:
        self._write(self.db.commit)

    def _flush(self) -> None:
        self._write(self.db.flush)

    def _write(self, operation) -> None:
        try:
            with storage_errors():
                operation()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning("TIMETABLE WRITE REJECTED BY STORE | %s", exc.orig)
            raise ConcurrentModificationError(
                "The timetable changed while this request was being processed. Reload and try again.",
                details={"constraint": str(exc.orig)},
            ) from exc
