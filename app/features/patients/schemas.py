# Patient Management Feature - Schemas

from typing import Optional, List
from pydantic import BaseModel


class PatientResponse(BaseModel):
    """Response schema for patient data."""
    id: str
    name: str
    email: Optional[str] = None
    doctor_id: Optional[str] = None
    is_active: bool


class PatientListResponse(BaseModel):
    """Response schema for list of patients."""
    patients: List[PatientResponse]
    total: int


class DoctorResponse(BaseModel):
    """Response schema for a doctor a patient can be assigned to."""
    id: str
    name: str
    email: Optional[str] = None


class DoctorListResponse(BaseModel):
    """Response schema for list of doctors."""
    doctors: List[DoctorResponse]
    total: int
