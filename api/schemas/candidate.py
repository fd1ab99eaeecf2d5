"""Schemas for the unauthenticated candidate flow."""

from typing import Optional
from pydantic import BaseModel, Field, field_validator

from core.stage_access import AnswerInput


class StartTestRequest(BaseModel):
    token: str = Field(min_length=1, max_length=64)
    candidate_name: Optional[str] = Field(None, max_length=255)
    candidate_email: Optional[str] = Field(None, max_length=255)

    @field_validator("candidate_name", "candidate_email", mode="before")
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class AnswerIn(BaseModel):
    question_id: str
    answer_text: Optional[str] = None
    selected_option_id: Optional[str] = None

    def to_input(self) -> AnswerInput:
        return AnswerInput(
            question_id=self.question_id,
            answer_text=self.answer_text,
            selected_option_id=self.selected_option_id,
        )


class SubmitAnswersRequest(BaseModel):
    answers: list[AnswerIn] = Field(default_factory=list)
    advance: bool = False
