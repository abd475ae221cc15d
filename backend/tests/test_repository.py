import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from app.core.exceptions import ConcurrentModificationError, StorageUnavailableError
from app.db.base import Base
from app.models.daily_timetable import OwnerRole
from app.repository.daily_timetable_repository import (
    DailyTimetableRepository,
    owner_scope_columns,
    storage_errors,
    to_entry,
)
from app.schemas.daily_timetable import FacultyScope, HodScope, SlotIn, StudentScope
from app.services.conflict_engine import remove_slot, validate_new_or_replaced_entry

FACULTY = FacultyScope(department="CSE", faculty_id="FAC1")
STUDENT = StudentScope(department="CSE", section="A", semester="5")


def validated(*slots):
    result = validate_new_or_replaced_entry(
        [SlotIn(time=time, course_code="CS101", course_name="Intro", room_no=room) for time, room in slots],
        "Monday",
        FACULTY,
        None,
        [],
    )
    assert result.ok
    return result.slots


def test_owner_columns_leave_unused_parts_empty():
    assert owner_scope_columns(HodScope(department="CSE")) == {
        "role": OwnerRole.hod,
        "department": "CSE",
        "faculty_id": "",
        "section": "",
        "semester": "",
    }
    assert owner_scope_columns(STUDENT)["faculty_id"] == ""
    assert owner_scope_columns(FACULTY)["section"] == ""


def test_separator_characters_do_not_merge_owners(db_session):
    repository = DailyTimetableRepository(db_session)
    first_owner = FacultyScope(department="CSE|X", faculty_id="1")
    second_owner = FacultyScope(department="CSE", faculty_id="X|1")
    first = repository.upsert(
        day="Monday", scope=first_owner, slots=validated(("9:00 AM", "B101")), odd_even_term=None, duration=None
    )
    repository.commit()

    assert repository.find_by_scope("Monday", second_owner) is None
    second = repository.upsert(
        day="Monday", scope=second_owner, slots=validated(("10:00 AM", "C1")), odd_even_term=None, duration=None
    )
    repository.commit()

    assert second.id != first.id
    assert repository.find_by_scope("Monday", first_owner).id == first.id
    assert [slot.room_no for slot in first.slots] == ["B101"]


def test_upsert_find_and_round_trip(db_session):
    repository = DailyTimetableRepository(db_session)
    record = repository.upsert(
        day="Monday",
        scope=FACULTY,
        slots=validated(("9:00 AM", "B101"), ("1:30 PM", "B102")),
        odd_even_term="Odd",
        duration="9am-5pm",
    )
    repository.commit()

    found = repository.find_by_scope("Monday", FacultyScope(department="CSE", faculty_id="FAC1"))
    assert found is not None and found.id == record.id
    assert repository.find_by_scope("Tuesday", FACULTY) is None

    entry = to_entry(found)
    assert entry.owner_scope == FACULTY
    assert [slot.time for slot in entry.slots] == ["9:00 AM", "1:30 PM"]
    assert [item.normalized_time for item in found.slots] == ["09:00", "13:30"]
    assert entry.odd_even_term == "Odd"


def test_list_for_day_filters_by_exclusion_and_room_time(db_session):
    repository = DailyTimetableRepository(db_session)
    faculty = repository.upsert(
        day="Monday", scope=FACULTY, slots=validated(("9:00 AM", "B101")), odd_even_term=None, duration=None
    )
    student = repository.upsert(
        day="Monday", scope=STUDENT, slots=validated(("10:00 AM", "B101")), odd_even_term=None, duration=None
    )
    repository.commit()

    assert {item.id for item in repository.list_for_day("Monday")} == {faculty.id, student.id}
    assert [item.id for item in repository.list_for_day("Monday", exclude_entry_id=faculty.id)] == [student.id]
    assert [item.id for item in repository.list_for_day("Monday", time="09:00", room_no="B101")] == [faculty.id]
    assert repository.list_for_day("Monday", time="9:00 AM", room_no="B102") == []
    assert repository.list_for_day("Tuesday") == []


def test_replacing_slots_reuses_times(db_session):
    repository = DailyTimetableRepository(db_session)
    record = repository.upsert(
        day="Monday", scope=FACULTY, slots=validated(("9:00 AM", "B101")), odd_even_term=None, duration=None
    )
    repository.commit()

    repository.upsert(
        day="Monday",
        scope=FACULTY,
        slots=validated(("09:00", "B101"), ("10:00", "B101")),
        odd_even_term=None,
        duration=None,
        existing=record,
    )
    repository.commit()

    assert [slot.time for slot in to_entry(record).slots] == ["09:00", "10:00"]
    assert record.updated_at is not None


def test_slot_removal_deletes_empty_entry(db_session):
    repository = DailyTimetableRepository(db_session)
    record = repository.upsert(
        day="Monday", scope=FACULTY, slots=validated(("9:00 AM", "B101")), odd_even_term=None, duration=None
    )
    repository.commit()
    entry_id = record.id

    removal = remove_slot(to_entry(record), record.slots[0].id)
    assert repository.apply_slot_removal(record, removal) is True
    repository.commit()

    assert repository.get(entry_id) is None


def test_database_rejects_room_double_booking(db_session):
    repository = DailyTimetableRepository(db_session)
    repository.upsert(day="Monday", scope=FACULTY, slots=validated(("9:00 AM", "B101")), odd_even_term=None, duration=None)
    repository.commit()

    with pytest.raises(ConcurrentModificationError) as excinfo:
        repository.upsert(
            day="Monday", scope=STUDENT, slots=validated(("09:00", "B101")), odd_even_term=None, duration=None
        )
    assert excinfo.value.status_code == 409
    assert excinfo.value.kind == "ConcurrentModification"


def test_stale_snapshots_cannot_both_commit(tmp_path):
    """Two writers validate against the same empty day; the store lets only one through."""
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    first_session, second_session = SessionLocal(), SessionLocal()
    try:
        first, second = DailyTimetableRepository(first_session), DailyTimetableRepository(second_session)

        first_view = [to_entry(item) for item in first.list_for_day("Monday")]
        second_view = [to_entry(item) for item in second.list_for_day("Monday")]
        first_result = validate_new_or_replaced_entry(
            [SlotIn(time="9:00 AM", course_code="CS101", course_name="Intro", room_no="B101")],
            "Monday",
            FACULTY,
            None,
            first_view,
        )
        second_result = validate_new_or_replaced_entry(
            [SlotIn(time="09:00", course_code="CS301", course_name="OS", room_no="B101")],
            "Monday",
            STUDENT,
            None,
            second_view,
        )
        assert first_result.ok and second_result.ok

        first.upsert(day="Monday", scope=FACULTY, slots=first_result.slots, odd_even_term=None, duration=None)
        first.commit()

        with pytest.raises(ConcurrentModificationError):
            second.upsert(day="Monday", scope=STUDENT, slots=second_result.slots, odd_even_term=None, duration=None)
            second.commit()

        assert len(second.list_for_day("Monday")) == 1
    finally:
        first_session.close()
        second_session.close()
        engine.dispose()


def test_duplicate_scope_is_rejected_by_store(db_session):
    repository = DailyTimetableRepository(db_session)
    repository.upsert(day="Monday", scope=FACULTY, slots=validated(("9:00 AM", "B101")), odd_even_term=None, duration=None)
    repository.commit()

    with pytest.raises(ConcurrentModificationError):
        repository.upsert(
            day="Monday", scope=FACULTY, slots=validated(("11:00 AM", "C1")), odd_even_term=None, duration=None
        )


def test_storage_errors_become_storage_unavailable():
    with pytest.raises(StorageUnavailableError) as excinfo:
        with storage_errors():
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))
    assert excinfo.value.status_code == 503
    assert excinfo.value.kind == "StorageUnavailable"


def test_unreachable_store_surfaces_as_503(client, admin_headers, monkeypatch):
    def refuse(self, day, scope):
        with storage_errors():
            raise OperationalError("SELECT", {}, Exception("could not connect to server"))

    monkeypatch.setattr(DailyTimetableRepository, "find_by_scope", refuse)
    response = client.post(
        "/api/timetable/daily",
        json={
            "day": "Monday",
            "ownerScope": {"kind": "hod", "department": "CSE"},
            "slots": [{"time": "9:00 AM", "courseCode": "CS1", "courseName": "Intro", "roomNo": "B1"}],
        },
        headers=admin_headers,
    )
    assert response.status_code == 503
    assert response.json()["kind"] == "StorageUnavailable"
