"""Pydantic schemas used as views in the MVC architecture."""

from .common import ErrorResponse
from .inference import (
    CancelResponse,
    JobSummary,
    NormalizeRequest,
    NormalizeResponse,
    ProcessRequest,
    StageResponse,
    ValidateRequest,
)

__all__ = [
    "CancelResponse",
    "ErrorResponse",
    "JobSummary",
    "NormalizeRequest",
    "NormalizeResponse",
    "ProcessRequest",
    "StageResponse",
    "ValidateRequest",
]
