"""create daily timetables and timetable slots

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    owner_role = sa.Enum("hod", "faculty", "student", name="owner_role")

    op.create_table(
        "daily_timetables",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("day", sa.String(length=16), nullable=False),
        sa.Column("role", owner_role, nullable=False),
        sa.Column("department", sa.String(length=200), nullable=False),
        sa.Column("faculty_id", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("section", sa.String(length=50), nullable=False, server_default=""),
        sa.Column("semester", sa.String(length=20), nullable=False, server_default=""),
        sa.Column("odd_even_term", sa.String(length=50), nullable=True),
        sa.Column("duration", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "day",
            "role",
            "department",
            "faculty_id",
            "section",
            "semester",
            name="uq_daily_timetables_day_owner",
        ),
    )
    op.create_index("ix_daily_timetables_day", "daily_timetables", ["day"])
    op.create_index("ix_daily_timetables_department", "daily_timetables", ["department"])

    op.create_table(
        "timetable_slots",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "timetable_id",
            sa.String(length=36),
            sa.ForeignKey("daily_timetables.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("day", sa.String(length=16), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("time", sa.String(length=20), nullable=False),
        sa.Column("normalized_time", sa.String(length=5), nullable=False),
        sa.Column("course_code", sa.String(length=50), nullable=False),
        sa.Column("course_name", sa.String(length=200), nullable=False),
        sa.Column("faculty_name", sa.String(length=200), nullable=True),
        sa.Column("room_no", sa.String(length=50), nullable=False),
        sa.Column("roundings_time", sa.String(length=50), nullable=True),
        sa.UniqueConstraint("timetable_id", "normalized_time", name="uq_timetable_slots_entry_time"),
        sa.UniqueConstraint("day", "normalized_time", "room_no", name="uq_timetable_slots_day_time_room"),
    )
    op.create_index("ix_timetable_slots_timetable_id", "timetable_slots", ["timetable_id"])


def downgrade() -> None:
    op.drop_index("ix_timetable_slots_timetable_id", table_name="timetable_slots")
    op.drop_table("timetable_slots")
    op.drop_index("ix_daily_timetables_department", table_name="daily_timetables")
    op.drop_index("ix_daily_timetables_day", table_name="daily_timetables")
    op.drop_table("daily_timetables")
    sa.Enum(name="owner_role").drop(op.get_bind(), checkfirst=True)
