"""Pydantic schemas shared by the care plan services."""

from app.schemas.care_plan import (
    ActionableSteps,
    ChecklistStep,
    Frequency,
    PlanStep,
    Reminder,
    SweepReport,
)

__all__ = [
    "ActionableSteps",
    "ChecklistStep",
    "Frequency",
    "PlanStep",
    "Reminder",
    "SweepReport",
]
