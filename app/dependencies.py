"""
Shared dependencies across the application.

Callers are identified from bearer tokens issued by the auth service; the
care plan services are built once per process.
"""

from functools import lru_cache
from typing import Literal, Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from app.core.logging import logger
from app.core.security import decode_token
from app.features.notes.service import NoteService
from app.services.cipher_service import CipherService
from app.services.extraction_gateway import OpenAIExtractionGateway
from app.services.record_store import BeanieRecordStore, RecordStore
from app.services.response_normalizer import ResponseNormalizer
from app.shared.exceptions import CredentialsException


# HTTP Bearer security scheme
security = HTTPBearer()


class Principal(BaseModel):
    """Authenticated caller taken from token claims."""
    id: str
    role: Literal["doctor", "patient"]
    name: Optional[str] = None


def _principal_from_token(token: str, expected_role: str) -> Principal:
    payload = decode_token(token)
    if payload is None:
        raise CredentialsException("Invalid authentication credentials")

    token_type = payload.get("type")
    if token_type != expected_role:
        logger.warning(f"Invalid token type: {token_type}, expected '{expected_role}'")
        raise CredentialsException(f"Invalid token type. This endpoint requires {expected_role} authentication.")

    subject = payload.get("sub")
    if not subject:
        raise CredentialsException("Invalid authentication credentials")

    return Principal(id=subject, role=expected_role, name=payload.get("name"))


async def get_current_doctor(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Principal:
    """Dependency to get the authenticated doctor."""
    return _principal_from_token(credentials.credentials, "doctor")


async def get_current_patient(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Principal:
    """Dependency to get the authenticated patient."""
    return _principal_from_token(credentials.credentials, "patient")


@lru_cache
def get_record_store() -> RecordStore:
    return BeanieRecordStore()


@lru_cache
def get_note_service() -> NoteService:
    return NoteService(
        store=get_record_store(),
        cipher=CipherService(),
        normalizer=ResponseNormalizer(OpenAIExtractionGateway()),
    )
