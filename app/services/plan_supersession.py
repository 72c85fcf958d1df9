"""Retires a patient's active care plan when a new note is filed."""

from app.core.logging import logger
from app.schemas.care_plan import ActionableSteps, NoteRecord
from app.services.cipher_service import CipherService
from app.services.record_store import RecordStore


class PlanSupersessionManager:
    """Files a new note and closes out everything the patient had open."""

    def __init__(self, store: RecordStore, cipher: CipherService):
        self.store = store
        self.cipher = cipher

    async def supersede_and_create(
        self,
        patient_id: str,
        doctor_id: str,
        plaintext_note: str,
        steps: ActionableSteps,
    ) -> NoteRecord:
        """
        Encrypt the note, complete the patient's open items and create the
        new note with its checklist and plan.

        Args:
            patient_id: Patient the note is about
            doctor_id: Doctor filing the note
            plaintext_note: Note text as written by the doctor
            steps: Normalized checklist and plan for the note

        Returns:
            The created note with its items

        Raises:
            CipherError: If the note cannot be encrypted
            StoreError: If supersession or creation fails
        """
        encrypted_note = self.cipher.encrypt(plaintext_note)

        note, superseded = await self.store.supersede_and_create(
            patient_id=patient_id,
            doctor_id=doctor_id,
            encrypted_note=encrypted_note,
            steps=steps,
        )

        logger.info(
            f"Filed note {note.id} for patient {patient_id} by doctor {doctor_id}: "
            f"{len(note.checklist)} checklist, {len(note.plan)} plan items, "
            f"{superseded} previous items superseded"
        )

        return note
