from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserRole(str, Enum):
    admin = "admin"
    hod = "hod"
    faculty = "faculty"
    student = "student"


class CurrentUser(BaseModel):
    """Caller identity as asserted by the identity service's token claims."""

    id: str = Field(alias="sub")
    role: UserRole
    department: str | None = None
    faculty_id: str | None = None
    section: str | None = None
    semester: str | None = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("department", "faculty_id", "section", "semester", mode="before")
    @classmethod
    def normalize_optional(cls, value: str | int | None) -> str | None:
        if value is None:
            return None
        trimmed = str(value).strip()
        return trimmed or None
