"""Tests for retiring a patient's active plan when a new note is filed."""

from datetime import date

import pytest

from app.schemas.care_plan import ActionableSteps, ChecklistStep, Frequency, PlanStep
from app.services.cipher_service import CipherService
from app.services.plan_supersession import PlanSupersessionManager
from app.shared.exceptions import CipherError, StoreError
from conftest import DOCTOR_ID, OTHER_PATIENT_ID, PATIENT_ID


TODAY = date(2024, 1, 15)


def make_steps() -> ActionableSteps:
    return ActionableSteps(
        checklist=[ChecklistStep(task="Book a lipid panel", due_date=TODAY)],
        plan=[
            PlanStep(action="Walk 30 minutes", frequency=Frequency.DAILY, duration=14, start_date=TODAY),
            PlanStep(action="Weigh yourself", frequency=Frequency.WEEKLY, duration=28, start_date=TODAY),
        ],
    )


@pytest.mark.asyncio
async def test_previous_items_are_completed_and_new_items_active(store, cipher):
    old_note = store.add_note(PATIENT_ID)
    old_plan = store.add_plan_item(old_note.id)
    old_task = store.add_checklist_item(old_note.id)
    older_note = store.add_note(PATIENT_ID)
    older_plan = store.add_plan_item(older_note.id, check_ins=[])
    manager = PlanSupersessionManager(store, cipher)

    note = await manager.supersede_and_create(PATIENT_ID, DOCTOR_ID, "Walk daily.", make_steps())

    assert store.plan[old_plan.id].completed
    assert store.checklist[old_task.id].completed
    assert store.plan[older_plan.id].completed

    new_items = [i for i in store.plan.values() if i.note_id == note.id]
    assert len(new_items) == 2
    assert all(not i.completed and not i.deleted and i.check_ins == [] for i in new_items)

    active = [i for i in store.plan.values() if not i.completed]
    assert {i.note_id for i in active} == {note.id}


@pytest.mark.asyncio
async def test_created_note_is_encrypted_and_populated(store, cipher):
    manager = PlanSupersessionManager(store, cipher)

    note = await manager.supersede_and_create(PATIENT_ID, DOCTOR_ID, "Walk daily.", make_steps())

    assert note.encrypted_note != "Walk daily."
    assert cipher.decrypt(note.encrypted_note) == "Walk daily."
    assert not note.deleted
    assert [c.task for c in note.checklist] == ["Book a lipid panel"]
    assert [p.frequency for p in note.plan] == ["daily", "weekly"]
    assert note.plan[0].start_date.date() == TODAY


@pytest.mark.asyncio
async def test_other_patients_are_untouched(store, cipher):
    other_note = store.add_note(OTHER_PATIENT_ID)
    other_plan = store.add_plan_item(other_note.id)
    manager = PlanSupersessionManager(store, cipher)

    await manager.supersede_and_create(PATIENT_ID, DOCTOR_ID, "Rest.", make_steps())

    assert not store.plan[other_plan.id].completed


@pytest.mark.asyncio
async def test_items_of_deleted_notes_are_superseded_too(store, cipher):
    deleted_note = store.add_note(PATIENT_ID, deleted=True)
    plan = store.add_plan_item(deleted_note.id)
    manager = PlanSupersessionManager(store, cipher)

    await manager.supersede_and_create(PATIENT_ID, DOCTOR_ID, "Rest.", make_steps())

    assert store.plan[plan.id].completed


@pytest.mark.asyncio
async def test_cipher_failure_leaves_store_untouched(store):
    class BrokenCipher(CipherService):
        def encrypt(self, plaintext: str) -> str:
            raise CipherError("Failed to encrypt note")

    note = store.add_note(PATIENT_ID)
    plan = store.add_plan_item(note.id)
    manager = PlanSupersessionManager(store, BrokenCipher())

    with pytest.raises(CipherError):
        await manager.supersede_and_create(PATIENT_ID, DOCTOR_ID, "Rest.", make_steps())

    assert not store.plan[plan.id].completed
    assert len(store.notes) == 1


@pytest.mark.asyncio
async def test_store_failure_propagates(store, cipher):
    store.fail_on_create = True
    manager = PlanSupersessionManager(store, cipher)

    with pytest.raises(StoreError):
        await manager.supersede_and_create(PATIENT_ID, DOCTOR_ID, "Rest.", make_steps())

    assert len(store.notes) == 0
