# Notes Feature - Router

from fastapi import APIRouter, Depends, status
from app.dependencies import Principal, get_current_doctor, get_current_patient, get_note_service
from app.features.notes.schemas import (
    ChecklistItemResponse,
    FileNoteRequest,
    MessageResponse,
    NoteListResponse,
    NoteResponse,
    PlanItemResponse,
)
from app.features.notes.service import NoteService


router = APIRouter(prefix="/notes", tags=["Notes"])


# ==================== Doctor Endpoints ====================

@router.post("", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def file_note(
    request: FileNoteRequest,
    current_doctor: Principal = Depends(get_current_doctor),
    service: NoteService = Depends(get_note_service),
):
    """
    File a note for a patient.

    The note is turned into a checklist and a recurring plan. Everything the
    patient still had open from earlier notes is marked completed.

    - **patient_id**: Patient assigned to the current doctor
    - **note**: Free-text clinical note
    """
    return await service.file_note(
        doctor_id=current_doctor.id,
        patient_id=request.patient_id,
        note_text=request.note,
    )


# ==================== Patient Endpoints ====================
# NOTE: static routes must be defined before /patient/{patient_id} and /{note_id}

@router.get("/my-notes", response_model=NoteListResponse)
async def get_my_notes(
    current_patient: Principal = Depends(get_current_patient),
    service: NoteService = Depends(get_note_service),
):
    """Get the current patient's notes with their checklist and plan."""
    notes = await service.get_notes_for_patient(current_patient.id)
    return NoteListResponse(notes=notes, total=len(notes))


@router.post("/plan-items/{plan_item_id}/check-in", response_model=PlanItemResponse)
async def check_in(
    plan_item_id: str,
    current_patient: Principal = Depends(get_current_patient),
    service: NoteService = Depends(get_note_service),
):
    """Record a check-in for a plan item."""
    return await service.record_check_in(plan_item_id, current_patient.id)


@router.post("/checklist-items/{item_id}/complete", response_model=ChecklistItemResponse)
async def complete_task(
    item_id: str,
    current_patient: Principal = Depends(get_current_patient),
    service: NoteService = Depends(get_note_service),
):
    """Mark a checklist item as completed."""
    return await service.complete_task(item_id, current_patient.id)


@router.delete("/checklist-items/{item_id}", response_model=MessageResponse)
async def delete_checklist_item(
    item_id: str,
    current_patient: Principal = Depends(get_current_patient),
    service: NoteService = Depends(get_note_service),
):
    """Delete a checklist item (soft delete)."""
    await service.delete_checklist_item(item_id, current_patient.id)
    return MessageResponse(message="Checklist item deleted successfully")


@router.delete("/plan-items/{item_id}", response_model=MessageResponse)
async def delete_plan_item(
    item_id: str,
    current_patient: Principal = Depends(get_current_patient),
    service: NoteService = Depends(get_note_service),
):
    """Delete a plan item (soft delete). Deleted items are no longer tracked."""
    await service.delete_plan_item(item_id, current_patient.id)
    return MessageResponse(message="Plan item deleted successfully")


# ==================== More Doctor Endpoints ====================

@router.get("/patient/{patient_id}", response_model=NoteListResponse)
async def get_patient_notes(
    patient_id: str,
    current_doctor: Principal = Depends(get_current_doctor),
    service: NoteService = Depends(get_note_service),
):
    """
    Get the notes the current doctor filed for a patient, newest first.

    - **patient_id**: Patient ID
    """
    notes = await service.get_notes_for_doctor(current_doctor.id, patient_id)
    return NoteListResponse(notes=notes, total=len(notes))


@router.delete("/{note_id}", response_model=MessageResponse)
async def delete_note(
    note_id: str,
    current_patient: Principal = Depends(get_current_patient),
    service: NoteService = Depends(get_note_service),
):
    """
    Delete a note (soft delete).

    - **note_id**: Note ID to delete
    """
    await service.delete_note(note_id, current_patient.id)
    return MessageResponse(message="Note deleted successfully")
