from typing import Optional
from fastapi import HTTPException, status


class CredentialsException(HTTPException):
    """Exception for invalid credentials."""

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotFoundException(HTTPException):
    """Exception for resource not found (also raised on ownership mismatch)."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )


class ForbiddenException(HTTPException):
    """Exception for forbidden access."""

    def __init__(self, detail: str = "Forbidden"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )


# ==================== Domain Errors ====================

class CarePlanError(Exception):
    """Base class for care plan domain errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ExtractionFormatError(CarePlanError):
    """The language model output could not be recovered into actionable steps."""


class ExtractionGatewayError(CarePlanError):
    """The language model call failed or timed out."""


class StoreError(CarePlanError):
    """A persistence operation failed."""


class CipherError(CarePlanError):
    """Note text could not be encrypted or decrypted."""


class ItemSweepError(CarePlanError):
    """A single plan item could not be evaluated during a sweep."""

    def __init__(self, plan_item_id: str, message: str, original_error: Optional[Exception] = None):
        super().__init__(message, original_error)
        self.plan_item_id = plan_item_id
