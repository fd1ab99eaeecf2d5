"""Common Pydantic schemas shared across the API."""

from typing import Any, Optional
from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Body of every error response."""

    code: str = Field(description="Error code for programmatic handling")
    message: str = Field(description="Human readable error message")
    path: str = Field(description="Request path")
    method: str = Field(description="Request method")
    details: Optional[Any] = Field(None, description="Validation errors or other context")


class ErrorResponse(BaseModel):
    """Error response model."""

    error: ErrorDetail


class SuccessResponse(BaseModel):
    success: bool = True


class MessageResponse(BaseModel):
    message: str
