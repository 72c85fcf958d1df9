# Notes Feature - Service

from datetime import date, datetime
from typing import List, Optional
from starlette.concurrency import run_in_threadpool

from app.core.logging import logger
from app.features.notes.schemas import (
    ChecklistItemResponse,
    NoteResponse,
    PlanItemResponse,
)
from app.schemas.care_plan import ChecklistItemRecord, NoteRecord, PlanItemRecord
from app.services.cipher_service import CipherService
from app.services.plan_supersession import PlanSupersessionManager
from app.services.record_store import RecordStore
from app.services.response_normalizer import ResponseNormalizer
from app.shared.exceptions import NotFoundException
from app.shared.models import utc_now


class NoteService:
    """Service class for note, checklist and plan operations."""

    def __init__(self, store: RecordStore, cipher: CipherService, normalizer: ResponseNormalizer):
        self.store = store
        self.cipher = cipher
        self.normalizer = normalizer
        self.supersession = PlanSupersessionManager(store, cipher)

    @staticmethod
    def _checklist_to_response(item: ChecklistItemRecord) -> ChecklistItemResponse:
        return ChecklistItemResponse(**item.model_dump())

    @staticmethod
    def _plan_to_response(item: PlanItemRecord) -> PlanItemResponse:
        return PlanItemResponse(**item.model_dump())

    def _note_to_response(self, note: NoteRecord, plaintext: Optional[str] = None) -> NoteResponse:
        """Convert a stored note to the response schema, decrypting its text."""
        return NoteResponse(
            id=note.id,
            doctor_id=note.doctor_id,
            patient_id=note.patient_id,
            note=plaintext if plaintext is not None else self.cipher.decrypt(note.encrypted_note),
            deleted=note.deleted,
            checklist=[self._checklist_to_response(i) for i in note.checklist],
            plan=[self._plan_to_response(i) for i in note.plan],
            created_at=note.created_at,
            updated_at=note.updated_at,
        )

    # ==================== Doctor Operations ====================

    async def file_note(
        self,
        doctor_id: str,
        patient_id: str,
        note_text: str,
        today: Optional[date] = None,
    ) -> NoteResponse:
        """
        Extract a care plan from a note and make it the patient's active plan.

        Args:
            doctor_id: Doctor filing the note
            patient_id: Patient the note is about
            note_text: Free-text clinical note
            today: Date anchor for extraction (defaults to the current UTC date)

        Returns:
            Created note response

        Raises:
            NotFoundException: If the patient is not assigned to the doctor
            ExtractionGatewayError / ExtractionFormatError: If extraction fails
        """
        patient = await self.store.get_patient(patient_id)
        if not patient or not patient.is_active or patient.doctor_id != doctor_id:
            raise NotFoundException("Patient not found or not assigned to you")

        today = today or utc_now().date()
        steps = await run_in_threadpool(self.normalizer.extract, note_text, today)

        note = await self.supersession.supersede_and_create(
            patient_id=patient_id,
            doctor_id=doctor_id,
            plaintext_note=note_text,
            steps=steps,
        )
        return self._note_to_response(note, note_text)

    async def get_notes_for_doctor(self, doctor_id: str, patient_id: str) -> List[NoteResponse]:
        """Notes the doctor filed for a patient, including soft-deleted ones."""
        notes = await self.store.list_notes_by_doctor(doctor_id, patient_id)
        return [self._note_to_response(n) for n in notes]

    # ==================== Patient Operations ====================

    async def get_notes_for_patient(self, patient_id: str) -> List[NoteResponse]:
        """Patient view: soft-deleted notes and items are hidden."""
        notes = await self.store.list_notes_for_patient(patient_id)
        logger.info(f"Found {len(notes)} notes for patient {patient_id}")
        return [self._note_to_response(n) for n in notes]

    async def record_check_in(
        self,
        plan_item_id: str,
        patient_id: str,
        at: Optional[datetime] = None,
    ) -> PlanItemResponse:
        """
        Append a check-in to a plan item.

        Repeated calls append repeated timestamps; every call counts.

        Raises:
            NotFoundException: If the item is missing, deleted, under a
                deleted note or owned by another patient
        """
        at = at or utc_now()
        item = await self.store.append_check_in(plan_item_id, patient_id, at)
        logger.info(f"Patient {patient_id} checked in on plan item {plan_item_id} ({len(item.check_ins)} total)")
        return self._plan_to_response(item)

    async def complete_task(self, checklist_item_id: str, patient_id: str) -> ChecklistItemResponse:
        """Mark a checklist item completed; completing it again is a no-op."""
        item = await self.store.complete_checklist_item(checklist_item_id, patient_id)
        logger.info(f"Patient {patient_id} completed checklist item {checklist_item_id}")
        return self._checklist_to_response(item)

    async def delete_note(self, note_id: str, patient_id: str) -> None:
        """Soft delete a note. Its items keep their own visibility."""
        await self.store.soft_delete_note(note_id, patient_id)
        logger.info(f"Patient {patient_id} deleted note {note_id}")

    async def delete_checklist_item(self, item_id: str, patient_id: str) -> None:
        await self.store.soft_delete_checklist_item(item_id, patient_id)
        logger.info(f"Patient {patient_id} deleted checklist item {item_id}")

    async def delete_plan_item(self, item_id: str, patient_id: str) -> None:
        await self.store.soft_delete_plan_item(item_id, patient_id)
        logger.info(f"Patient {patient_id} deleted plan item {item_id}")
