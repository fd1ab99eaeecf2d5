"""Job-related Pydantic schemas."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from database.models.jobs import JobStatus


class JobCreate(BaseModel):
    """Schema for creating a job from a pasted description."""

    description: str = Field(min_length=1, max_length=50000, description="Raw job description text")
    title: Optional[str] = Field(None, max_length=255, description="Defaults to the first line of the description")

    @field_validator("description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Job description must not be empty")
        return v


class JobStatusUpdate(BaseModel):
    status: JobStatus


class AssessmentGenerateRequest(BaseModel):
    """Options for generating a draft assessment."""

    duration_seconds: Optional[int] = Field(None, ge=600, description="Time limit; defaults to 30 minutes")
    active_from: Optional[datetime] = Field(None, description="Invites are rejected before this instant")
    active_until: Optional[datetime] = Field(None, description="Invites are rejected after this instant")
    single_use_links: bool = Field(True, description="Default for invites issued for this assessment")

    @model_validator(mode="after")
    def window_order(self) -> "AssessmentGenerateRequest":
        if self.active_from and self.active_until and self.active_from >= self.active_until:
            raise ValueError("active_from must be before active_until")
        return self
