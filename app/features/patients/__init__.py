# Patient Management Feature

from app.features.patients.models import Doctor, Patient

__all__ = ["Doctor", "Patient"]
