"""
Pydantic response models for the ingestion API.
"""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Unified error response."""

    detail: str
    error_code: str = "INTERNAL_ERROR"


class StatusResponse(BaseModel):
    """Acknowledgement for requests whose work continues in the background."""

    status: str
    message: str = ""


class HealthResponse(BaseModel):
    status: str = "ok"
