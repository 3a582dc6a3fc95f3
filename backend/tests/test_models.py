from app.db.base import Base
from app.db import models  # noqa: F401  ensure models are loaded


def test_metadata_contains_core_tables() -> None:
    table_names = set(Base.metadata.tables.keys())
    expected = {
        "users",
        "user_profiles",
        "tasks",
        "schedules",
        "schedule_items",
        "activity_log",
    }

    assert expected.issubset(table_names)


def test_schedule_item_task_reference_is_nullable() -> None:
    items = Base.metadata.tables["schedule_items"]

    assert items.c.task_id.nullable is True
    fk = next(iter(items.c.task_id.foreign_keys))
    assert fk.ondelete == "SET NULL"


def test_one_schedule_per_user_and_day() -> None:
    schedules = Base.metadata.tables["schedules"]
    unique_columns = [
        {column.name for column in constraint.columns}
        for constraint in schedules.constraints
        if constraint.__class__.__name__ == "UniqueConstraint"
    ]

    assert {"user_id", "date"} in unique_columns
