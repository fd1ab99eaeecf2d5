"""Submission review schemas."""

from pydantic import BaseModel

from database.models.test_instances import Recommendation


class OverrideRequest(BaseModel):
    recommendation: Recommendation


class OverrideResponse(BaseModel):
    success: bool
    effective_recommendation: Recommendation
