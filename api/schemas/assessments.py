"""Assessment-related Pydantic schemas."""

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field

from database.models.assessments import QuestionType


class AssessmentSettingsUpdate(BaseModel):
    """Partial update of assessment settings. Unset fields are left alone."""

    duration_seconds: Optional[int] = Field(None, description="Time limit in seconds")
    active_from: Optional[datetime] = None
    active_until: Optional[datetime] = None
    single_use_links: Optional[bool] = None


class PublishRequest(BaseModel):
    duration_seconds: Optional[int] = Field(None, description="Overrides the stored duration")


class QuestionOption(BaseModel):
    id: str = Field(min_length=1, max_length=50)
    label: str = Field(min_length=1)
    is_correct: bool = False


class QuestionUpdate(BaseModel):
    """Editable question fields. Grading metadata is not editable here."""

    prompt_text: Optional[str] = Field(None, min_length=1)
    options: Optional[list[QuestionOption]] = None
    char_limit: Optional[int] = Field(None, ge=1)
    question_type: Optional[QuestionType] = None

    def changes(self) -> dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        if "options" in data and data["options"] is None:
            data["options"] = []
        return data


class ReorderRequest(BaseModel):
    stage_index: int
    question_ids: list[str]


class InviteCreate(BaseModel):
    expires_in_hours: Optional[int] = Field(None, ge=1, le=8760, description="Defaults to 7 days")
    single_use: Optional[bool] = Field(None, description="Defaults to the assessment setting")
