"""Shared fixtures: in-memory record store, scripted gateway, services."""

import json
import os
import sys
from copy import deepcopy
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from bson import ObjectId
from cryptography.fernet import Fernet
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode("utf-8"))
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from app.features.notes.service import NoteService
from app.schemas.care_plan import (
    ActionableSteps,
    ActivePlanItem,
    ChecklistItemRecord,
    DoctorRecord,
    NoteRecord,
    PatientRecord,
    PlanItemRecord,
)
from app.services.cipher_service import CipherService
from app.services.record_store import RecordStore
from app.services.response_normalizer import ResponseNormalizer
from app.shared.exceptions import NotFoundException, StoreError
from app.shared.models import start_of_day, utc_now


DOCTOR_ID = "doctor-1"
PATIENT_ID = "patient-1"
OTHER_PATIENT_ID = "patient-2"
OTHER_DOCTOR_ID = "doctor-2"


class InMemoryRecordStore(RecordStore):
    """Record store fake keeping records in dicts."""

    def __init__(self):
        self.patients: Dict[str, PatientRecord] = {}
        self.doctors: Dict[str, DoctorRecord] = {}
        self.notes: Dict[str, NoteRecord] = {}
        self.checklist: Dict[str, ChecklistItemRecord] = {}
        self.plan: Dict[str, PlanItemRecord] = {}
        self.fail_on_create = False
        self.fail_on_list = False
        self.fail_completion_for: set = set()
        self.check_in_during_completion: set = set()

    # ----- seeding helpers -----

    def add_patient(self, patient_id: str, name: str, doctor_id: Optional[str] = DOCTOR_ID) -> PatientRecord:
        patient = PatientRecord(id=patient_id, name=name, doctor_id=doctor_id)
        self.patients[patient_id] = patient
        return patient

    def add_doctor(self, doctor_id: str, name: str) -> DoctorRecord:
        doctor = DoctorRecord(id=doctor_id, name=name, email=f"{doctor_id}@clinic.test")
        self.doctors[doctor_id] = doctor
        return doctor

    def add_note(self, patient_id: str, doctor_id: str = DOCTOR_ID, deleted: bool = False) -> NoteRecord:
        now = utc_now()
        note = NoteRecord(
            id=str(ObjectId()),
            doctor_id=doctor_id,
            patient_id=patient_id,
            encrypted_note="",
            deleted=deleted,
            created_at=now,
            updated_at=now,
        )
        self.notes[note.id] = note
        return note

    def add_plan_item(self, note_id: str, **fields) -> PlanItemRecord:
        values = {
            "id": str(ObjectId()),
            "note_id": note_id,
            "action": "Walk for 30 minutes",
            "frequency": "daily",
            "duration": 7,
            "start_date": start_of_day(utc_now().date()),
            "check_ins": [],
        }
        values.update(fields)
        item = PlanItemRecord.model_construct(**values)
        self.plan[item.id] = item
        return item

    def add_checklist_item(self, note_id: str, **fields) -> ChecklistItemRecord:
        values = {
            "id": str(ObjectId()),
            "note_id": note_id,
            "task": "Book a blood test",
            "due_date": start_of_day(utc_now().date()),
        }
        values.update(fields)
        item = ChecklistItemRecord(**values)
        self.checklist[item.id] = item
        return item

    # ----- helpers -----

    def _note_with_items(self, note: NoteRecord, include_deleted_items: bool) -> NoteRecord:
        checklist = [
            deepcopy(i) for i in self.checklist.values()
            if i.note_id == note.id and (include_deleted_items or not i.deleted)
        ]
        plan = [
            deepcopy(i) for i in self.plan.values()
            if i.note_id == note.id and (include_deleted_items or not i.deleted)
        ]
        return note.model_copy(update={"checklist": checklist, "plan": plan})

    def _owned_note(self, note_id: str, patient_id: str) -> NoteRecord:
        note = self.notes.get(note_id)
        if not note or note.deleted or note.patient_id != patient_id:
            raise NotFoundException("Note not found")
        return note

    # ----- RecordStore -----

    async def get_patient(self, patient_id: str) -> Optional[PatientRecord]:
        return self.patients.get(patient_id)

    async def list_patients_for_doctor(self, doctor_id: str) -> List[PatientRecord]:
        return [p for p in self.patients.values() if p.doctor_id == doctor_id and p.is_active]

    async def list_doctors(self) -> List[DoctorRecord]:
        return sorted(self.doctors.values(), key=lambda d: d.name)

    async def get_doctor(self, doctor_id: str) -> Optional[DoctorRecord]:
        return self.doctors.get(doctor_id)

    async def assign_doctor(self, patient_id: str, doctor_id: str) -> PatientRecord:
        if doctor_id not in self.doctors:
            raise NotFoundException("Doctor not found")
        patient = self.patients.get(patient_id)
        if not patient:
            raise NotFoundException("Patient not found")
        patient.doctor_id = doctor_id
        return patient.model_copy()

    async def supersede_and_create(
        self,
        patient_id: str,
        doctor_id: str,
        encrypted_note: str,
        steps: ActionableSteps,
    ) -> Tuple[NoteRecord, int]:
        note_ids = {n.id for n in self.notes.values() if n.patient_id == patient_id}
        superseded = 0
        for items in (self.plan, self.checklist):
            for item in items.values():
                if item.note_id in note_ids and not item.completed:
                    item.completed = True
                    superseded += 1

        if self.fail_on_create:
            raise StoreError("Note creation failed")

        note = self.add_note(patient_id, doctor_id)
        note.encrypted_note = encrypted_note
        for step in steps.checklist:
            self.add_checklist_item(note.id, task=step.task, due_date=start_of_day(step.due_date))
        for step in steps.plan:
            self.add_plan_item(
                note.id,
                action=step.action,
                frequency=step.frequency.value,
                duration=step.duration,
                start_date=start_of_day(step.start_date),
            )
        return self._note_with_items(note, include_deleted_items=True), superseded

    async def list_notes_for_patient(self, patient_id: str) -> List[NoteRecord]:
        notes = [n for n in self.notes.values() if n.patient_id == patient_id and not n.deleted]
        notes.sort(key=lambda n: n.created_at, reverse=True)
        return [self._note_with_items(n, include_deleted_items=False) for n in notes]

    async def list_notes_by_doctor(self, doctor_id: str, patient_id: str) -> List[NoteRecord]:
        notes = [n for n in self.notes.values() if n.doctor_id == doctor_id and n.patient_id == patient_id]
        notes.sort(key=lambda n: n.created_at, reverse=True)
        return [self._note_with_items(n, include_deleted_items=True) for n in notes]

    async def append_check_in(self, plan_item_id: str, patient_id: str, at: datetime) -> PlanItemRecord:
        item = self.plan.get(plan_item_id)
        if not item or item.deleted:
            raise NotFoundException("Plan item not found")
        self._owned_note(item.note_id, patient_id)
        item.check_ins.append(at)
        return deepcopy(item)

    async def complete_checklist_item(self, item_id: str, patient_id: str) -> ChecklistItemRecord:
        item = self.checklist.get(item_id)
        if not item or item.deleted:
            raise NotFoundException("Checklist item not found")
        self._owned_note(item.note_id, patient_id)
        item.completed = True
        return deepcopy(item)

    async def soft_delete_note(self, note_id: str, patient_id: str) -> None:
        self._owned_note(note_id, patient_id).deleted = True

    async def soft_delete_checklist_item(self, item_id: str, patient_id: str) -> None:
        item = self.checklist.get(item_id)
        if not item or item.deleted:
            raise NotFoundException("Checklist item not found")
        self._owned_note(item.note_id, patient_id)
        item.deleted = True

    async def soft_delete_plan_item(self, item_id: str, patient_id: str) -> None:
        item = self.plan.get(item_id)
        if not item or item.deleted:
            raise NotFoundException("Plan item not found")
        self._owned_note(item.note_id, patient_id)
        item.deleted = True

    async def list_active_plan_items(self, now: datetime) -> List[ActivePlanItem]:
        if self.fail_on_list:
            raise StoreError("Active plan item listing failed")
        active = []
        for item in self.plan.values():
            if item.deleted or item.completed or item.start_date > now:
                continue
            patient_id = self.notes[item.note_id].patient_id
            patient = self.patients.get(patient_id)
            active.append(ActivePlanItem(
                item=item.model_copy(update={"check_ins": list(item.check_ins)}),
                patient_id=patient_id,
                patient_name=patient.name if patient else None,
            ))
        return active

    async def complete_plan_item(self, plan_item_id: str, observed_check_ins: int) -> bool:
        if plan_item_id in self.fail_completion_for:
            raise StoreError("Plan item completion failed")
        item = self.plan[plan_item_id]
        if plan_item_id in self.check_in_during_completion:
            item.check_ins.append(utc_now())
        if item.completed or len(item.check_ins) != observed_check_ins:
            return False
        item.completed = True
        return True


class ScriptedGateway:
    """Extraction gateway that replays canned responses and records prompts."""

    def __init__(self, *responses: str):
        self.responses = list(responses)
        self.prompts: List[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.responses.pop(0)


def steps_json(checklist=None, plan=None) -> str:
    return json.dumps({"checklist": checklist or [], "plan": plan or []})


@pytest.fixture
def store() -> InMemoryRecordStore:
    store = InMemoryRecordStore()
    store.add_patient(PATIENT_ID, "Sarah Johnson")
    store.add_patient(OTHER_PATIENT_ID, "Tom Baker")
    store.add_doctor(DOCTOR_ID, "Dr. Amy Lee")
    store.add_doctor(OTHER_DOCTOR_ID, "Dr. Ben Okafor")
    return store


@pytest.fixture
def cipher() -> CipherService:
    return CipherService()


@pytest.fixture
def gateway() -> ScriptedGateway:
    return ScriptedGateway()


@pytest.fixture
def note_service(store, cipher, gateway) -> NoteService:
    return NoteService(store=store, cipher=cipher, normalizer=ResponseNormalizer(gateway))
