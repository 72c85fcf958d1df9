# Notes Feature - Schemas

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


class FileNoteRequest(BaseModel):
    """Schema for filing a new note for a patient."""
    patient_id: str = Field(..., description="Patient ID")
    note: str = Field(..., min_length=1, description="Free-text clinical note")

    class Config:
        json_schema_extra = {
            "example": {
                "patient_id": "65a1f0c2e4b0a1b2c3d4e5f6",
                "note": "Mild hypertension. Walk 30 minutes daily for two weeks. Book a lipid panel.",
            }
        }


class ChecklistItemResponse(BaseModel):
    """Schema for a one-time task."""
    id: str
    note_id: str
    task: str
    due_date: datetime
    completed: bool
    deleted: bool


class PlanItemResponse(BaseModel):
    """Schema for a recurring plan action."""
    id: str
    note_id: str
    action: str
    frequency: str
    duration: int
    start_date: datetime
    check_ins: List[datetime]
    completed: bool
    deleted: bool


class NoteResponse(BaseModel):
    """Schema for note response, with the note text decrypted."""
    id: str
    doctor_id: str
    patient_id: str
    note: str
    deleted: bool
    checklist: List[ChecklistItemResponse]
    plan: List[PlanItemResponse]
    created_at: datetime
    updated_at: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "id": "65a1f0c2e4b0a1b2c3d4e5f6",
                "doctor_id": "65a1f0c2e4b0a1b2c3d4e5a1",
                "patient_id": "65a1f0c2e4b0a1b2c3d4e5b2",
                "note": "Walk 30 minutes daily for two weeks. Book a lipid panel.",
                "deleted": False,
                "checklist": [
                    {
                        "id": "65a1f0c2e4b0a1b2c3d4e5c3",
                        "note_id": "65a1f0c2e4b0a1b2c3d4e5f6",
                        "task": "Book a lipid panel",
                        "due_date": "2024-01-15T00:00:00",
                        "completed": False,
                        "deleted": False,
                    }
                ],
                "plan": [
                    {
                        "id": "65a1f0c2e4b0a1b2c3d4e5d4",
                        "note_id": "65a1f0c2e4b0a1b2c3d4e5f6",
                        "action": "Walk 30 minutes",
                        "frequency": "daily",
                        "duration": 14,
                        "start_date": "2024-01-15T00:00:00",
                        "check_ins": [],
                        "completed": False,
                        "deleted": False,
                    }
                ],
                "created_at": "2024-01-15T10:00:00Z",
                "updated_at": "2024-01-15T10:00:00Z",
            }
        }


class NoteListResponse(BaseModel):
    """Schema for a list of notes."""
    notes: List[NoteResponse]
    total: int


class MessageResponse(BaseModel):
    """Schema for simple acknowledgements."""
    message: str
    data: Optional[dict] = None
