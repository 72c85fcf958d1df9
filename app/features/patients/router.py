# Patient Management Feature - Router

from fastapi import APIRouter, Depends
from app.core.logging import logger
from app.dependencies import Principal, get_current_doctor, get_current_patient, get_record_store
from app.features.patients.schemas import (
    DoctorListResponse,
    DoctorResponse,
    PatientListResponse,
    PatientResponse,
)
from app.services.record_store import RecordStore
from app.shared.exceptions import NotFoundException


router = APIRouter(prefix="/patients", tags=["Patients"])


# ==================== Patient Endpoints ====================
# NOTE: static routes must be defined before /{patient_id}

@router.get("/doctors", response_model=DoctorListResponse)
async def list_doctors(
    current_patient: Principal = Depends(get_current_patient),
    store: RecordStore = Depends(get_record_store),
):
    """List the doctors a patient can choose from."""
    doctors = await store.list_doctors()
    return DoctorListResponse(
        doctors=[DoctorResponse(**d.model_dump()) for d in doctors],
        total=len(doctors),
    )


@router.post("/select-doctor/{doctor_id}", response_model=PatientResponse)
async def select_doctor(
    doctor_id: str,
    current_patient: Principal = Depends(get_current_patient),
    store: RecordStore = Depends(get_record_store),
):
    """
    Choose the doctor allowed to file notes for the current patient.

    Replaces any previously selected doctor. Existing notes keep their author.

    - **doctor_id**: Doctor ID
    """
    patient = await store.assign_doctor(current_patient.id, doctor_id)
    logger.info(f"Patient {current_patient.id} selected doctor {doctor_id}")
    return PatientResponse(**patient.model_dump())


@router.get("/my-doctor", response_model=DoctorResponse)
async def get_my_doctor(
    current_patient: Principal = Depends(get_current_patient),
    store: RecordStore = Depends(get_record_store),
):
    """Get the current patient's doctor."""
    patient = await store.get_patient(current_patient.id)
    if not patient:
        raise NotFoundException("Patient not found")
    if not patient.doctor_id:
        raise NotFoundException("No doctor assigned")

    doctor = await store.get_doctor(patient.doctor_id)
    if not doctor:
        raise NotFoundException("No doctor assigned")
    return DoctorResponse(**doctor.model_dump())


# ==================== Doctor Endpoints ====================

@router.get("", response_model=PatientListResponse)
async def list_patients(
    current_doctor: Principal = Depends(get_current_doctor),
    store: RecordStore = Depends(get_record_store),
):
    """List the active patients assigned to the current doctor."""
    patients = await store.list_patients_for_doctor(current_doctor.id)
    return PatientListResponse(
        patients=[PatientResponse(**p.model_dump()) for p in patients],
        total=len(patients),
    )


@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(
    patient_id: str,
    current_doctor: Principal = Depends(get_current_doctor),
    store: RecordStore = Depends(get_record_store),
):
    """Get one patient assigned to the current doctor."""
    patient = await store.get_patient(patient_id)
    if not patient or patient.doctor_id != current_doctor.id:
        raise NotFoundException("Patient not found or not assigned to you")
    return PatientResponse(**patient.model_dump())
