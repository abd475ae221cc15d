from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
import uuid

from app.schemas.daily_timetable import (
    DailyTimetableEntry,
    FacultyScope,
    HodScope,
    SlotIn,
    SlotPatch,
    StudentScope,
    TimetableSlot,
    TimetableViolation,
)
from app.services.time_normalizer import normalize_time

REQUIRED_SLOT_FIELDS = (
    ("time", "time"),
    ("course_code", "courseCode"),
    ("course_name", "courseName"),
    ("room_no", "roomNo"),
)

# width of the stored HH:MM key
TIME_KEY_LENGTH = 5


@dataclass
class EntryValidation:
    slots: list[TimetableSlot] = field(default_factory=list)
    violation: TimetableViolation | None = None

    @property
    def ok(self) -> bool:
        return self.violation is None


@dataclass
class SlotReplacement:
    entry: DailyTimetableEntry | None = None
    violation: TimetableViolation | None = None

    @property
    def ok(self) -> bool:
        return self.violation is None


@dataclass
class SlotRemoval:
    slots: list[TimetableSlot] = field(default_factory=list)
    entry_now_empty: bool = False
    violation: TimetableViolation | None = None

    @property
    def ok(self) -> bool:
        return self.violation is None


def describe_owner(scope: HodScope | FacultyScope | StudentScope) -> str:
    if isinstance(scope, HodScope):
        return f"HOD {scope.department}"
    if isinstance(scope, FacultyScope):
        return f"Faculty {scope.department}/{scope.faculty_id}"
    if isinstance(scope, StudentScope):
        return f"Student {scope.department}/{scope.section}/{scope.semester}"
    raise TypeError(f"Unsupported owner scope: {scope!r}")


def _is_blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def _slot_not_found(slot_id: str) -> TimetableViolation:
    return TimetableViolation(
        kind="SlotNotFound",
        message="Slot not found within this timetable entry.",
        details={"slotId": slot_id},
    )


def _room_index(
    day: str,
    other_entries_on_day: Iterable[DailyTimetableEntry],
    exclude_entry_id: str | None,
) -> dict[tuple[str, str], DailyTimetableEntry]:
    occupied: dict[tuple[str, str], DailyTimetableEntry] = {}
    for other in other_entries_on_day:
        if other.day != day or (exclude_entry_id is not None and other.id == exclude_entry_id):
            continue
        for slot in other.slots:
            key = normalize_time(slot.time)
            if key is None:
                continue
            occupied.setdefault((key, slot.room_no.strip()), other)
    return occupied


def _check_slots(
    slots: Sequence[SlotIn],
    *,
    day: str,
    other_entries_on_day: Iterable[DailyTimetableEntry],
    exclude_entry_id: str | None,
) -> TimetableViolation | None:
    normalized: list[str] = []
    seen: set[str] = set()
    for index, slot in enumerate(slots):
        for attribute, wire_name in REQUIRED_SLOT_FIELDS:
            if _is_blank(getattr(slot, attribute)):
                return TimetableViolation(
                    kind="MissingField",
                    message=(
                        f"Slot {index + 1} is missing {wire_name}. "
                        "Each timetable slot must have time, courseCode, courseName, and roomNo."
                    ),
                    details={"slotIndex": index, "slotId": slot.id, "field": wire_name},
                )

        key = normalize_time(slot.time)
        if key is None or len(key) > TIME_KEY_LENGTH:
            return TimetableViolation(
                kind="InvalidTimeFormat",
                message=f"Invalid time format: {slot.time}",
                details={"slotIndex": index, "time": slot.time},
            )
        if key in seen:
            return TimetableViolation(
                kind="DuplicateTimeInEntry",
                message=(
                    f"Duplicate timing ({slot.time}) found for this timetable entry on {day}. "
                    "Each slot must have a unique time."
                ),
                details={"slotIndex": index, "time": slot.time, "normalizedTime": key},
            )
        seen.add(key)
        normalized.append(key)

    occupied = _room_index(day, other_entries_on_day, exclude_entry_id)
    for slot, key in zip(slots, normalized):
        room_no = slot.room_no.strip()
        conflicting = occupied.get((key, room_no))
        if conflicting is None:
            continue
        owner = describe_owner(conflicting.owner_scope)
        return TimetableViolation(
            kind="RoomConflict",
            message=(
                f"Timetable conflict detected: Room {room_no} at {slot.time} "
                f"is already occupied by another class on {day} ({owner})."
            ),
            details={
                "day": day,
                "time": slot.time,
                "normalizedTime": key,
                "roomNo": room_no,
                "conflictingOwner": owner,
                "conflictingEntryId": conflicting.id,
            },
        )
    return None


def _to_timetable_slot(slot: SlotIn, slot_id: str) -> TimetableSlot:
    return TimetableSlot(
        id=slot_id,
        time=slot.time,
        course_code=slot.course_code.strip(),
        course_name=slot.course_name.strip(),
        faculty_name=slot.faculty_name,
        room_no=slot.room_no.strip(),
        roundings_time=slot.roundings_time,
    )


def validate_new_or_replaced_entry(
    proposed_slots: Sequence[SlotIn],
    day: str,
    owner_scope: HodScope | FacultyScope | StudentScope,
    existing_entry_id: str | None,
    other_entries_on_day: Iterable[DailyTimetableEntry],
) -> EntryValidation:
    """Validate a full replacement slot set for the entry of ``(day, owner_scope)``.

    Checks run fail-fast in a fixed order: required fields, time format, duplicate
    times inside the entry, then room double-booking against ``other_entries_on_day``.
    Only the first violation is reported. The entry ``existing_entry_id`` is skipped
    during the room scan so an in-place update cannot collide with itself.
    ``owner_scope`` identifies the entry being written and does not take part in
    the checks themselves.
    """
    violation = _check_slots(
        proposed_slots,
        day=day,
        other_entries_on_day=other_entries_on_day,
        exclude_entry_id=existing_entry_id,
    )
    if violation is not None:
        return EntryValidation(violation=violation)
    return EntryValidation(slots=[_to_timetable_slot(slot, str(uuid.uuid4())) for slot in proposed_slots])


def validate_slot_replacement(
    entry: DailyTimetableEntry,
    slot_id: str,
    patch: SlotPatch | dict,
    other_entries_on_day: Iterable[DailyTimetableEntry],
) -> SlotReplacement:
    """Merge ``patch`` onto one slot and re-validate the entry's whole slot collection."""
    index = next((i for i, slot in enumerate(entry.slots) if slot.id == slot_id), None)
    if index is None:
        return SlotReplacement(violation=_slot_not_found(slot_id))

    if isinstance(patch, dict):
        patch = SlotPatch.model_validate(patch)
    merged = entry.slots[index].model_dump()
    merged.update(patch.model_dump(exclude_unset=True))
    merged["id"] = slot_id

    candidates = [SlotIn.model_validate(slot.model_dump()) for slot in entry.slots]
    candidates[index] = SlotIn.model_validate(merged)

    violation = _check_slots(
        candidates,
        day=entry.day,
        other_entries_on_day=other_entries_on_day,
        exclude_entry_id=entry.id,
    )
    if violation is not None:
        return SlotReplacement(violation=violation)

    slots = list(entry.slots)
    slots[index] = _to_timetable_slot(candidates[index], slot_id)
    return SlotReplacement(entry=entry.model_copy(update={"slots": slots}))


def remove_slot(entry: DailyTimetableEntry, slot_id: str) -> SlotRemoval:
    remaining = [slot for slot in entry.slots if slot.id != slot_id]
    if len(remaining) == len(entry.slots):
        return SlotRemoval(violation=_slot_not_found(slot_id))
    return SlotRemoval(slots=remaining, entry_now_empty=not remaining)
