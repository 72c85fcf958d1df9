"""Care plan core services."""

from app.services.adherence_engine import AdherenceEngine
from app.services.cipher_service import CipherService
from app.services.plan_supersession import PlanSupersessionManager
from app.services.reminder_scheduler import ReminderScheduler
from app.services.response_normalizer import ResponseNormalizer, normalize

__all__ = [
    "AdherenceEngine",
    "CipherService",
    "PlanSupersessionManager",
    "ReminderScheduler",
    "ResponseNormalizer",
    "normalize",
]
