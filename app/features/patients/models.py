# Patient Management Feature - Models

from typing import Optional
from beanie import Document, Indexed
from pydantic import EmailStr
from app.shared.models import TimestampMixin


class Patient(Document, TimestampMixin):
    """Patient document model. Accounts are provisioned by the auth service."""

    email: Indexed(EmailStr)
    name: str

    # Doctor allowed to file notes for this patient
    doctor_id: Optional[str] = None

    is_active: bool = True

    class Settings:
        name = "patients"
        use_state_management = True
        indexes = [
            [("doctor_id", 1), ("is_active", 1)],
        ]

    class Config:
        json_schema_extra = {
            "example": {
                "email": "patient@email.com",
                "name": "Sarah Johnson",
                "doctor_id": "65a1f0c2e4b0a1b2c3d4e5f6",
                "is_active": True
            }
        }


class Doctor(Document, TimestampMixin):
    """Doctor directory entry. Accounts are provisioned by the auth service."""

    email: Indexed(EmailStr)
    name: str
    is_active: bool = True

    class Settings:
        name = "doctors"
        use_state_management = True

    class Config:
        json_schema_extra = {
            "example": {
                "email": "dr.lee@clinic.com",
                "name": "Dr. Amy Lee",
                "is_active": True
            }
        }
