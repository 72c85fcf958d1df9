# Notes Feature - Models

from datetime import datetime
from typing import List
from beanie import Document, Indexed
from pydantic import Field
from app.shared.models import TimestampMixin


class Note(Document, TimestampMixin):
    """
    Note document model.
    A clinical note filed by a doctor for one patient. The note text is
    stored encrypted; checklist and plan items reference the note by id.
    """

    # Doctor who filed the note
    doctor_id: Indexed(str)

    # Patient this note is about
    patient_id: Indexed(str)

    encrypted_note: str

    # Soft delete (set by the owning patient)
    deleted: bool = False

    class Settings:
        name = "notes"
        use_state_management = True
        indexes = [
            [("patient_id", 1), ("deleted", 1)],
            [("doctor_id", 1), ("patient_id", 1), ("created_at", -1)],
        ]


class ChecklistItem(Document):
    """One-time task derived from a note."""

    note_id: Indexed(str)
    task: str
    due_date: datetime
    completed: bool = False
    deleted: bool = False

    class Settings:
        name = "checklist_items"
        indexes = [
            [("note_id", 1), ("completed", 1)],
        ]


class PlanItem(Document):
    """Recurring action derived from a note, tracked through check-ins."""

    note_id: Indexed(str)
    action: str
    frequency: str  # daily | weekly | as-needed | unknown
    duration: int  # days
    start_date: datetime
    check_ins: List[datetime] = Field(default_factory=list)
    completed: bool = False
    deleted: bool = False

    class Settings:
        name = "plan_items"
        indexes = [
            [("note_id", 1), ("completed", 1)],
            [("completed", 1), ("deleted", 1), ("start_date", 1)],
        ]

    class Config:
        json_schema_extra = {
            "example": {
                "note_id": "65a1f0c2e4b0a1b2c3d4e5f6",
                "action": "Walk for 30 minutes",
                "frequency": "daily",
                "duration": 14,
                "start_date": "2024-01-15T00:00:00",
                "check_ins": ["2024-01-15T08:12:00"],
                "completed": False,
                "deleted": False,
            }
        }
