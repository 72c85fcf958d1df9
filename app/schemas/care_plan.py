"""Pydantic schemas for care plans, stored records and sweep results."""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class Frequency(str, Enum):
    """How often a plan item's action should be performed."""
    DAILY = "daily"
    WEEKLY = "weekly"
    AS_NEEDED = "as-needed"
    UNKNOWN = "unknown"


DEFAULT_TASK = "Unspecified task"
DEFAULT_ACTION = "Unspecified action"
DEFAULT_DURATION_DAYS = 7


# ==================== Extraction Contract ====================

class ChecklistStep(BaseModel):
    """A one-time task extracted from a note."""
    task: str
    due_date: date = Field(..., alias="dueDate")

    class Config:
        populate_by_name = True


class PlanStep(BaseModel):
    """A recurring action extracted from a note."""
    action: str
    frequency: Frequency = Frequency.AS_NEEDED
    duration: int = Field(DEFAULT_DURATION_DAYS, gt=0)  # days
    start_date: date = Field(..., alias="startDate")

    class Config:
        populate_by_name = True


class ActionableSteps(BaseModel):
    """Normalized output of note extraction."""
    checklist: List[ChecklistStep] = Field(default_factory=list)
    plan: List[PlanStep] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.checklist and not self.plan

    class Config:
        json_schema_extra = {
            "example": {
                "checklist": [
                    {"task": "Book a blood test", "dueDate": "2024-01-15"}
                ],
                "plan": [
                    {
                        "action": "Walk for 30 minutes",
                        "frequency": "daily",
                        "duration": 14,
                        "startDate": "2024-01-15",
                    }
                ],
            }
        }


# ==================== Stored Records ====================

class ChecklistItemRecord(BaseModel):
    id: str
    note_id: str
    task: str
    due_date: datetime
    completed: bool = False
    deleted: bool = False


class PlanItemRecord(BaseModel):
    id: str
    note_id: str
    action: str
    frequency: str
    duration: int
    start_date: datetime
    check_ins: List[datetime] = Field(default_factory=list)
    completed: bool = False
    deleted: bool = False


class NoteRecord(BaseModel):
    id: str
    doctor_id: str
    patient_id: str
    encrypted_note: str
    deleted: bool = False
    created_at: datetime
    updated_at: datetime
    checklist: List[ChecklistItemRecord] = Field(default_factory=list)
    plan: List[PlanItemRecord] = Field(default_factory=list)


class PatientRecord(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    doctor_id: Optional[str] = None
    is_active: bool = True


class DoctorRecord(BaseModel):
    id: str
    name: str
    email: Optional[str] = None


class ActivePlanItem(BaseModel):
    """A plan item due for evaluation, joined with its owning patient."""
    item: PlanItemRecord
    patient_id: str
    patient_name: Optional[str] = None


# ==================== Sweep Results ====================

class Reminder(BaseModel):
    plan_item_id: str
    patient_id: str
    missed_days: int
    message: str


class SweepFailure(BaseModel):
    plan_item_id: str
    error: str


class SweepReport(BaseModel):
    """Outcome of one adherence sweep."""
    ran_at: datetime
    evaluated: int = 0
    completed: List[str] = Field(default_factory=list)
    reminders: List[Reminder] = Field(default_factory=list)
    failures: List[SweepFailure] = Field(default_factory=list)
    conflicts: List[str] = Field(default_factory=list)  # items changed mid-sweep
