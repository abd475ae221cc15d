from app.models.daily_timetable import DailyTimetable, OwnerRole, TimetableSlotRecord  # noqa: F401
