import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.api.deps import get_repository, require_roles
from app.core.exceptions import EntryNotFoundError, TimetableRuleError
from app.models.daily_timetable import DailyTimetable, OwnerRole
from app.repository.daily_timetable_repository import DailyTimetableRepository, to_entry
from app.schemas.daily_timetable import (
    DailyTimetableEntry,
    DailyTimetableUpsert,
    DailyViewOut,
    FacultyScope,
    HodScope,
    SlotPatch,
    StudentScope,
    TimetableMutationOut,
    TimetableViolation,
    normalize_day_name,
)
from app.schemas.user import CurrentUser, UserRole
from app.services.conflict_engine import remove_slot, validate_new_or_replaced_entry, validate_slot_replacement

router = APIRouter()
logger = logging.getLogger(__name__)

ALL_ROLES = (UserRole.admin, UserRole.hod, UserRole.faculty, UserRole.student)


def _reject(violation: TimetableViolation) -> TimetableRuleError:
    logger.info("TIMETABLE REJECTED | kind=%s | details=%s", violation.kind, violation.details)
    return TimetableRuleError(violation)


def _load_entry(repository: DailyTimetableRepository, entry_id: str) -> DailyTimetable:
    record = repository.get(entry_id)
    if record is None:
        raise EntryNotFoundError(entry_id)
    return record


def _day_or_422(value: str) -> str:
    try:
        return normalize_day_name(value)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc


def _entries(records: list[DailyTimetable]) -> list[DailyTimetableEntry]:
    return [to_entry(record) for record in records]


@router.post("/daily", response_model=TimetableMutationOut)
def create_or_update_daily_timetable(
    payload: DailyTimetableUpsert,
    response: Response,
    current_user: CurrentUser = Depends(require_roles(UserRole.admin)),
    repository: DailyTimetableRepository = Depends(get_repository),
) -> TimetableMutationOut:
    existing = repository.find_by_scope(payload.day, payload.owner_scope)
    existing_id = existing.id if existing is not None else None
    others = _entries(repository.list_for_day(payload.day, exclude_entry_id=existing_id))

    result = validate_new_or_replaced_entry(payload.slots, payload.day, payload.owner_scope, existing_id, others)
    if not result.ok:
        raise _reject(result.violation)

    record = repository.upsert(
        day=payload.day,
        scope=payload.owner_scope,
        slots=result.slots,
        odd_even_term=payload.odd_even_term,
        duration=payload.duration,
        existing=existing,
    )
    repository.commit()

    if existing is None:
        response.status_code = status.HTTP_201_CREATED
        message = "Timetable created successfully"
    else:
        message = "Timetable updated successfully"
    logger.info("%s | user_id=%s | entry_id=%s", message, current_user.id, record.id)
    return TimetableMutationOut(message=message, timetable=to_entry(record))


@router.put("/{entry_id}/slot/{slot_id}", response_model=TimetableMutationOut)
def update_timetable_slot(
    entry_id: str,
    slot_id: str,
    payload: SlotPatch,
    current_user: CurrentUser = Depends(require_roles(UserRole.admin)),
    repository: DailyTimetableRepository = Depends(get_repository),
) -> TimetableMutationOut:
    record = _load_entry(repository, entry_id)
    entry = to_entry(record)
    others = _entries(repository.list_for_day(entry.day, exclude_entry_id=entry.id))

    result = validate_slot_replacement(entry, slot_id, payload, others)
    if not result.ok:
        raise _reject(result.violation)

    replaced = next(slot for slot in result.entry.slots if slot.id == slot_id)
    repository.replace_slot(record, replaced)
    repository.commit()
    return TimetableMutationOut(message="Slot updated successfully", timetable=to_entry(record))


@router.delete("/{entry_id}", response_model=TimetableMutationOut)
def delete_timetable(
    entry_id: str,
    current_user: CurrentUser = Depends(require_roles(UserRole.admin)),
    repository: DailyTimetableRepository = Depends(get_repository),
) -> TimetableMutationOut:
    record = _load_entry(repository, entry_id)
    repository.delete(record)
    repository.commit()
    return TimetableMutationOut(message="Deleted successfully", entry_removed=True)


@router.delete("/{entry_id}/slot/{slot_id}", response_model=TimetableMutationOut)
def delete_timetable_slot(
    entry_id: str,
    slot_id: str,
    current_user: CurrentUser = Depends(require_roles(UserRole.admin)),
    repository: DailyTimetableRepository = Depends(get_repository),
) -> TimetableMutationOut:
    record = _load_entry(repository, entry_id)
    removal = remove_slot(to_entry(record), slot_id)
    if not removal.ok:
        raise _reject(removal.violation)

    entry_removed = repository.apply_slot_removal(record, removal)
    repository.commit()
    if entry_removed:
        return TimetableMutationOut(
            message=(
                "Timetable slot deleted successfully. "
                "As it was the last slot, the daily timetable entry was also removed."
            ),
            entry_removed=True,
        )
    return TimetableMutationOut(message="Timetable slot deleted successfully.", timetable=to_entry(record))


@router.get("/search", response_model=list[DailyTimetableEntry])
def search_timetable(
    department: str | None = None,
    semester: str | None = None,
    section: str | None = None,
    role: OwnerRole | None = None,
    day: str | None = None,
    current_user: CurrentUser = Depends(require_roles(*ALL_ROLES)),
    repository: DailyTimetableRepository = Depends(get_repository),
) -> list[DailyTimetableEntry]:
    return _entries(
        repository.search(
            day=_day_or_422(day) if day else None,
            role=role,
            department=department,
            semester=semester,
            section=section,
        )
    )


@router.get("/faculty-timetables", response_model=list[DailyTimetableEntry])
@router.get("/faculty-by-hod", response_model=list[DailyTimetableEntry])
def get_faculty_timetables_for_hod(
    day: str | None = None,
    current_user: CurrentUser = Depends(require_roles(UserRole.hod)),
    repository: DailyTimetableRepository = Depends(get_repository),
) -> list[DailyTimetableEntry]:
    if not current_user.department:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. HOD department not found in user session.",
        )
    return _entries(
        repository.search(
            day=_day_or_422(day) if day else None,
            role=OwnerRole.faculty,
            department=current_user.department,
        )
    )


@router.get("/daily-view", response_model=DailyViewOut)
def get_user_timetable_for_day(
    day: str,
    role: OwnerRole,
    department: str,
    semester: str | None = None,
    section: str | None = None,
    faculty_id: str | None = Query(default=None, alias="facultyId"),
    current_user: CurrentUser = Depends(require_roles(UserRole.faculty, UserRole.student, UserRole.hod)),
    repository: DailyTimetableRepository = Depends(get_repository),
) -> DailyViewOut:
    formatted_day = _day_or_422(day)
    if role == OwnerRole.student:
        if not semester or not section:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Semester and section are required for student timetable.",
            )
        scope = StudentScope(department=department, section=section, semester=semester)
    elif role == OwnerRole.faculty:
        if not faculty_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Faculty ID is required for faculty timetable.",
            )
        scope = FacultyScope(department=department, faculty_id=faculty_id)
    else:
        scope = HodScope(department=department)

    record = repository.find_by_scope(formatted_day, scope)
    if record is None:
        return DailyViewOut(day=formatted_day, owner_scope=scope)
    entry = to_entry(record)
    return DailyViewOut(day=formatted_day, owner_scope=scope, entry_id=entry.id, slots=entry.slots)


@router.get("/day/{day}", response_model=list[DailyTimetableEntry])
def get_timetable_for_day(
    day: str,
    role: OwnerRole | None = None,
    department: str | None = None,
    section: str | None = None,
    semester: str | None = None,
    faculty_id: str | None = Query(default=None, alias="facultyId"),
    current_user: CurrentUser = Depends(require_roles(*ALL_ROLES)),
    repository: DailyTimetableRepository = Depends(get_repository),
) -> list[DailyTimetableEntry]:
    formatted_day = _day_or_422(day)
    selected_department = department or current_user.department
    if not selected_department:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Department is required for timetable retrieval.",
        )

    if current_user.role == UserRole.hod:
        hod_department = current_user.department
        if not hod_department:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. HOD department not found in user session.",
            )
        if faculty_id and faculty_id != current_user.faculty_id:
            records = repository.search(
                day=formatted_day, role=OwnerRole.faculty, department=hod_department, faculty_id=faculty_id
            )
        else:
            # own facultyId selects the HOD's personal entry only
            records = repository.search(day=formatted_day, role=OwnerRole.hod, department=hod_department)
            if not faculty_id:
                records += repository.search(day=formatted_day, role=OwnerRole.faculty, department=hod_department)

    elif current_user.role == UserRole.faculty:
        target_faculty_id = faculty_id or current_user.faculty_id
        if not target_faculty_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Faculty ID not provided for faculty role.",
            )
        if target_faculty_id != current_user.faculty_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. Faculty can only view their own timetable.",
            )
        records = repository.search(
            day=formatted_day,
            role=OwnerRole.faculty,
            department=selected_department,
            faculty_id=target_faculty_id,
        )

    elif current_user.role == UserRole.student:
        target_section = section or current_user.section
        target_semester = semester or current_user.semester
        if not target_section or not target_semester:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Section and Semester are required for student timetable.",
            )
        if target_section != current_user.section or target_semester != current_user.semester:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. Students can only view their own timetable.",
            )
        records = repository.search(
            day=formatted_day,
            role=OwnerRole.student,
            department=selected_department,
            section=target_section,
            semester=target_semester,
        )

    else:
        records = repository.search(
            day=formatted_day,
            role=role,
            department=selected_department,
            faculty_id=faculty_id,
            section=section,
            semester=semester,
        )

    if not records:
        logger.info(
            "No timetable found for %s | user_role=%s | department=%s",
            formatted_day,
            current_user.role.value,
            selected_department,
        )
    return _entries(records)
