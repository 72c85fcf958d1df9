"""Persistence contract for notes, checklist items and plan items."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from beanie.operators import In
from pymongo.errors import PyMongoError

from app.config import settings
from app.core.logging import logger
from app.database import Database
from app.features.notes.models import ChecklistItem, Note, PlanItem
from app.features.patients.models import Doctor, Patient
from app.schemas.care_plan import (
    ActionableSteps,
    ActivePlanItem,
    ChecklistItemRecord,
    DoctorRecord,
    NoteRecord,
    PatientRecord,
    PlanItemRecord,
)
from app.shared.exceptions import NotFoundException, StoreError
from app.shared.models import start_of_day


class RecordStore(ABC):
    """
    Storage used by the care plan core.

    Ownership lookups raise NotFoundException; any other persistence failure
    raises StoreError.
    """

    @abstractmethod
    async def get_patient(self, patient_id: str) -> Optional[PatientRecord]:
        ...

    @abstractmethod
    async def list_patients_for_doctor(self, doctor_id: str) -> List[PatientRecord]:
        ...

    @abstractmethod
    async def list_doctors(self) -> List[DoctorRecord]:
        """Active doctors a patient can choose from."""

    @abstractmethod
    async def get_doctor(self, doctor_id: str) -> Optional[DoctorRecord]:
        """Active doctor by id, or None."""

    @abstractmethod
    async def assign_doctor(self, patient_id: str, doctor_id: str) -> PatientRecord:
        """
        Make ``doctor_id`` the patient's doctor, replacing any previous one.

        Raises:
            NotFoundException: If the patient or the doctor does not exist
        """

    @abstractmethod
    async def supersede_and_create(
        self,
        patient_id: str,
        doctor_id: str,
        encrypted_note: str,
        steps: ActionableSteps,
    ) -> Tuple[NoteRecord, int]:
        """
        Complete every open item of the patient's notes, then create the new
        note with its items, as one unit of work.

        Returns:
            Tuple of (created note, number of superseded items)
        """

    @abstractmethod
    async def list_notes_for_patient(self, patient_id: str) -> List[NoteRecord]:
        """Patient view: non-deleted notes with non-deleted items, newest first."""

    @abstractmethod
    async def list_notes_by_doctor(self, doctor_id: str, patient_id: str) -> List[NoteRecord]:
        """Doctor view: every note the doctor filed for the patient, newest first."""

    @abstractmethod
    async def append_check_in(self, plan_item_id: str, patient_id: str, at: datetime) -> PlanItemRecord:
        ...

    @abstractmethod
    async def complete_checklist_item(self, item_id: str, patient_id: str) -> ChecklistItemRecord:
        ...

    @abstractmethod
    async def soft_delete_note(self, note_id: str, patient_id: str) -> None:
        ...

    @abstractmethod
    async def soft_delete_checklist_item(self, item_id: str, patient_id: str) -> None:
        ...

    @abstractmethod
    async def soft_delete_plan_item(self, item_id: str, patient_id: str) -> None:
        ...

    @abstractmethod
    async def list_active_plan_items(self, now: datetime) -> List[ActivePlanItem]:
        """
        Plan items that are not deleted, not completed and already started.

        Item fields are passed through as stored; the adherence engine
        validates them one item at a time.
        """

    @abstractmethod
    async def complete_plan_item(self, plan_item_id: str, observed_check_ins: int) -> bool:
        """
        Mark a plan item completed if it still has exactly
        ``observed_check_ins`` check-ins and is not completed.

        Returns:
            True if the item was completed by this call
        """


@contextmanager
def translate_store_errors(operation: str):
    """Re-raise driver errors as StoreError."""
    try:
        yield
    except PyMongoError as e:
        logger.error(f"{operation} failed: {type(e).__name__}: {e}")
        raise StoreError(f"{operation} failed", e) from e


def _object_id(value: str, what: str) -> ObjectId:
    if not ObjectId.is_valid(value):
        raise NotFoundException(f"{what} not found")
    return ObjectId(value)


class BeanieRecordStore(RecordStore):
    """Record store backed by MongoDB through Beanie documents."""

    @staticmethod
    def _checklist_to_record(item: ChecklistItem) -> ChecklistItemRecord:
        return ChecklistItemRecord(
            id=str(item.id),
            note_id=item.note_id,
            task=item.task,
            due_date=item.due_date,
            completed=item.completed,
            deleted=item.deleted,
        )

    @staticmethod
    def _plan_to_record(item: PlanItem) -> PlanItemRecord:
        return PlanItemRecord(
            id=str(item.id),
            note_id=item.note_id,
            action=item.action,
            frequency=item.frequency,
            duration=item.duration,
            start_date=item.start_date,
            check_ins=list(item.check_ins),
            completed=item.completed,
            deleted=item.deleted,
        )

    @staticmethod
    def _note_to_record(note: Note, checklist: List[ChecklistItem], plan: List[PlanItem]) -> NoteRecord:
        return NoteRecord(
            id=str(note.id),
            doctor_id=note.doctor_id,
            patient_id=note.patient_id,
            encrypted_note=note.encrypted_note,
            deleted=note.deleted,
            created_at=note.created_at,
            updated_at=note.updated_at,
            checklist=[BeanieRecordStore._checklist_to_record(i) for i in checklist],
            plan=[BeanieRecordStore._plan_to_record(i) for i in plan],
        )

    @staticmethod
    def _patient_to_record(patient: Patient) -> PatientRecord:
        return PatientRecord(
            id=str(patient.id),
            name=patient.name,
            email=patient.email,
            doctor_id=patient.doctor_id,
            is_active=patient.is_active,
        )

    # ==================== Patients ====================

    async def get_patient(self, patient_id: str) -> Optional[PatientRecord]:
        if not ObjectId.is_valid(patient_id):
            return None
        with translate_store_errors("Patient lookup"):
            patient = await Patient.get(ObjectId(patient_id))
        return self._patient_to_record(patient) if patient else None

    async def list_patients_for_doctor(self, doctor_id: str) -> List[PatientRecord]:
        with translate_store_errors("Patient listing"):
            patients = await Patient.find(
                Patient.doctor_id == doctor_id,
                Patient.is_active == True
            ).sort(-Patient.created_at).to_list()
        return [self._patient_to_record(p) for p in patients]

    # ==================== Doctors ====================

    @staticmethod
    def _doctor_to_record(doctor: Doctor) -> DoctorRecord:
        return DoctorRecord(id=str(doctor.id), name=doctor.name, email=doctor.email)

    async def list_doctors(self) -> List[DoctorRecord]:
        with translate_store_errors("Doctor listing"):
            doctors = await Doctor.find(Doctor.is_active == True).sort([("name", 1)]).to_list()
        return [self._doctor_to_record(d) for d in doctors]

    async def get_doctor(self, doctor_id: str) -> Optional[DoctorRecord]:
        if not ObjectId.is_valid(doctor_id):
            return None
        with translate_store_errors("Doctor lookup"):
            doctor = await Doctor.get(ObjectId(doctor_id))
        if not doctor or not doctor.is_active:
            return None
        return self._doctor_to_record(doctor)

    async def assign_doctor(self, patient_id: str, doctor_id: str) -> PatientRecord:
        if await self.get_doctor(doctor_id) is None:
            raise NotFoundException("Doctor not found")

        with translate_store_errors("Doctor assignment"):
            patient = await Patient.get(_object_id(patient_id, "Patient"))
            if not patient:
                raise NotFoundException("Patient not found")
            patient.doctor_id = doctor_id
            patient.update_timestamp()
            await patient.save()
        return self._patient_to_record(patient)

    # ==================== Supersession ====================

    async def supersede_and_create(
        self,
        patient_id: str,
        doctor_id: str,
        encrypted_note: str,
        steps: ActionableSteps,
    ) -> Tuple[NoteRecord, int]:
        with translate_store_errors("Supersession"):
            if settings.MONGODB_USE_TRANSACTIONS and Database.client is not None:
                async with await Database.client.start_session() as session:
                    async with session.start_transaction():
                        return await self._supersede_and_create(
                            patient_id, doctor_id, encrypted_note, steps, session
                        )
            return await self._supersede_and_create(patient_id, doctor_id, encrypted_note, steps, None)

    async def _supersede_and_create(
        self,
        patient_id: str,
        doctor_id: str,
        encrypted_note: str,
        steps: ActionableSteps,
        session,
    ) -> Tuple[NoteRecord, int]:
        # Every note of the patient, deleted or not
        previous = await Note.find(Note.patient_id == patient_id, session=session).to_list()
        note_ids = [str(n.id) for n in previous]

        superseded = 0
        if note_ids:
            for model in (PlanItem, ChecklistItem):
                result = await model.find(
                    In(model.note_id, note_ids),
                    model.completed == False,
                    session=session,
                ).update({"$set": {"completed": True}}, session=session)
                superseded += result.modified_count if result else 0

        try:
            note = Note(doctor_id=doctor_id, patient_id=patient_id, encrypted_note=encrypted_note)
            await note.insert(session=session)

            checklist = []
            for step in steps.checklist:
                item = ChecklistItem(
                    note_id=str(note.id),
                    task=step.task,
                    due_date=start_of_day(step.due_date),
                )
                await item.insert(session=session)
                checklist.append(item)

            plan = []
            for step in steps.plan:
                item = PlanItem(
                    note_id=str(note.id),
                    action=step.action,
                    frequency=step.frequency.value,
                    duration=step.duration,
                    start_date=start_of_day(step.start_date),
                    check_ins=[],
                )
                await item.insert(session=session)
                plan.append(item)
        except PyMongoError:
            if session is None and superseded:
                logger.error(
                    f"Superseded {superseded} items for patient {patient_id} "
                    f"but failed to create the new note; superseded items were not restored"
                )
            raise

        return self._note_to_record(note, checklist, plan), superseded

    # ==================== Listing ====================

    async def _with_items(self, notes: List[Note], include_deleted_items: bool) -> List[NoteRecord]:
        note_ids = [str(n.id) for n in notes]
        if not note_ids:
            return []

        checklist_query = [In(ChecklistItem.note_id, note_ids)]
        plan_query = [In(PlanItem.note_id, note_ids)]
        if not include_deleted_items:
            checklist_query.append(ChecklistItem.deleted == False)
            plan_query.append(PlanItem.deleted == False)

        checklist = await ChecklistItem.find(*checklist_query).to_list()
        plan = await PlanItem.find(*plan_query).to_list()

        by_note_checklist: Dict[str, List[ChecklistItem]] = {}
        for item in checklist:
            by_note_checklist.setdefault(item.note_id, []).append(item)
        by_note_plan: Dict[str, List[PlanItem]] = {}
        for item in plan:
            by_note_plan.setdefault(item.note_id, []).append(item)

        return [
            self._note_to_record(
                note,
                by_note_checklist.get(str(note.id), []),
                by_note_plan.get(str(note.id), []),
            )
            for note in notes
        ]

    async def list_notes_for_patient(self, patient_id: str) -> List[NoteRecord]:
        with translate_store_errors("Note listing"):
            notes = await Note.find(
                Note.patient_id == patient_id,
                Note.deleted == False
            ).sort([("created_at", -1)]).to_list()
            return await self._with_items(notes, include_deleted_items=False)

    async def list_notes_by_doctor(self, doctor_id: str, patient_id: str) -> List[NoteRecord]:
        with translate_store_errors("Note listing"):
            notes = await Note.find(
                Note.doctor_id == doctor_id,
                Note.patient_id == patient_id
            ).sort([("created_at", -1)]).to_list()
            return await self._with_items(notes, include_deleted_items=True)

    # ==================== Patient Mutations ====================

    async def _owned_note(self, note_id: str, patient_id: str) -> Note:
        note = await Note.get(_object_id(note_id, "Note"))
        if not note or note.deleted or note.patient_id != patient_id:
            raise NotFoundException("Note not found")
        return note

    async def _owned_checklist_item(self, item_id: str, patient_id: str) -> ChecklistItem:
        item = await ChecklistItem.get(_object_id(item_id, "Checklist item"))
        if not item or item.deleted:
            raise NotFoundException("Checklist item not found")
        note = await Note.get(_object_id(item.note_id, "Checklist item"))
        if not note or note.deleted or note.patient_id != patient_id:
            raise NotFoundException("Checklist item not found")
        return item

    async def _owned_plan_item(self, item_id: str, patient_id: str) -> PlanItem:
        item = await PlanItem.get(_object_id(item_id, "Plan item"))
        if not item or item.deleted:
            raise NotFoundException("Plan item not found")
        note = await Note.get(_object_id(item.note_id, "Plan item"))
        if not note or note.deleted or note.patient_id != patient_id:
            raise NotFoundException("Plan item not found")
        return item

    async def append_check_in(self, plan_item_id: str, patient_id: str, at: datetime) -> PlanItemRecord:
        with translate_store_errors("Check-in"):
            item = await self._owned_plan_item(plan_item_id, patient_id)
            # Single $push so concurrent sweeps never lose a check-in
            result = await PlanItem.find_one(
                PlanItem.id == item.id,
                PlanItem.deleted == False
            ).update({"$push": {"check_ins": at}})
            if not result or not result.matched_count:
                raise NotFoundException("Plan item not found")
            item.check_ins.append(at)
        return self._plan_to_record(item)

    async def complete_checklist_item(self, item_id: str, patient_id: str) -> ChecklistItemRecord:
        with translate_store_errors("Task completion"):
            item = await self._owned_checklist_item(item_id, patient_id)
            if not item.completed:
                await ChecklistItem.find_one(ChecklistItem.id == item.id).update(
                    {"$set": {"completed": True}}
                )
                item.completed = True
        return self._checklist_to_record(item)

    async def soft_delete_note(self, note_id: str, patient_id: str) -> None:
        with translate_store_errors("Note deletion"):
            note = await self._owned_note(note_id, patient_id)
            note.deleted = True
            note.update_timestamp()
            await note.save()

    async def soft_delete_checklist_item(self, item_id: str, patient_id: str) -> None:
        with translate_store_errors("Checklist item deletion"):
            item = await self._owned_checklist_item(item_id, patient_id)
            await ChecklistItem.find_one(ChecklistItem.id == item.id).update(
                {"$set": {"deleted": True}}
            )

    async def soft_delete_plan_item(self, item_id: str, patient_id: str) -> None:
        with translate_store_errors("Plan item deletion"):
            item = await self._owned_plan_item(item_id, patient_id)
            await PlanItem.find_one(PlanItem.id == item.id).update(
                {"$set": {"deleted": True}}
            )

    # ==================== Sweep ====================

    @staticmethod
    def _raw_plan_item(doc: Dict[str, Any]) -> PlanItemRecord:
        # Not validated here: malformed fields surface per item in the sweep
        return PlanItemRecord.model_construct(
            id=str(doc.get("_id")),
            note_id=doc.get("note_id"),
            action=doc.get("action"),
            frequency=doc.get("frequency"),
            duration=doc.get("duration"),
            start_date=doc.get("start_date"),
            check_ins=doc.get("check_ins") or [],
            completed=doc.get("completed", False),
            deleted=doc.get("deleted", False),
        )

    async def list_active_plan_items(self, now: datetime) -> List[ActivePlanItem]:
        with translate_store_errors("Active plan item listing"):
            cursor = PlanItem.get_motor_collection().find({
                "deleted": False,
                "completed": False,
                "start_date": {"$lte": now},
            })
            raw_items = await cursor.to_list(length=None)

            note_ids = {doc.get("note_id") for doc in raw_items if ObjectId.is_valid(str(doc.get("note_id")))}
            notes = await Note.find(In(Note.id, [ObjectId(n) for n in note_ids])).to_list() if note_ids else []
            patient_by_note = {str(n.id): n.patient_id for n in notes}

            patient_ids = {p for p in patient_by_note.values() if ObjectId.is_valid(p)}
            patients = await Patient.find(In(Patient.id, [ObjectId(p) for p in patient_ids])).to_list() if patient_ids else []
            name_by_patient = {str(p.id): p.name for p in patients}

        active = []
        for doc in raw_items:
            patient_id = patient_by_note.get(str(doc.get("note_id")))
            if patient_id is None:
                logger.warning(f"Plan item {doc.get('_id')} has no owning note, skipping")
                continue
            active.append(ActivePlanItem(
                item=self._raw_plan_item(doc),
                patient_id=patient_id,
                patient_name=name_by_patient.get(patient_id),
            ))
        return active

    async def complete_plan_item(self, plan_item_id: str, observed_check_ins: int) -> bool:
        with translate_store_errors("Plan item completion"):
            result = await PlanItem.get_motor_collection().update_one(
                {
                    "_id": ObjectId(plan_item_id),
                    "completed": False,
                    "check_ins": {"$size": observed_check_ins},
                },
                {"$set": {"completed": True}},
            )
        return result.modified_count == 1
