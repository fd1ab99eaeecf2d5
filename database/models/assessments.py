"""
Assessments Module

Staged assessments generated for a job, their questions, and the tokenized
invites candidates redeem to start an attempt.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from database.engine import Base
from database.types import UTCDateTime, enum_type, new_id, utcnow


# ==================== Assessment Enums ===================== #
class AssessmentStatus(str, PyEnum):
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"


class QuestionType(str, PyEnum):
    MCQ = "mcq"
    SHORT_STRUCTURED = "short_structured"
    HYBRID_CHOICE_JUSTIFICATION = "hybrid_choice_justification"


class InternalIntent(str, PyEnum):
    """What a question is meant to reveal. Never shown to candidates."""

    BASELINE = "baseline"
    APPLICATION = "application"
    JUDGMENT = "judgment"
    DEPTH = "depth"


# ==================== Models ===================== #
class Assessment(Base):
    __tablename__ = "assessments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    job_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[AssessmentStatus] = mapped_column(
        enum_type(AssessmentStatus),
        default=AssessmentStatus.DRAFT,
        nullable=False,
        index=True,
    )
    duration_seconds: Mapped[int] = mapped_column(Integer, default=1800, nullable=False)

    # Optional availability window
    active_from: Mapped[datetime | None] = mapped_column(UTCDateTime)
    active_until: Mapped[datetime | None] = mapped_column(UTCDateTime)

    single_use_links: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    closed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)


class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (
        UniqueConstraint(
            "assessment_id", "stage_index", "position", name="uq_questions_stage_position"
        ),
        Index("ix_questions_assessment_stage", "assessment_id", "stage_index"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    assessment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False
    )
    stage_index: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-4, 4 unused
    position: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-based within stage

    question_type: Mapped[QuestionType] = mapped_column(
        enum_type(QuestionType), nullable=False
    )
    prompt_text: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, default=list, nullable=False
    )  # [{id, label, is_correct?}]
    char_limit: Mapped[int | None] = mapped_column(Integer)
    scoring_hint: Mapped[str | None] = mapped_column(Text)
    internal_intent: Mapped[InternalIntent | None] = mapped_column(enum_type(InternalIntent))

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    @property
    def correct_option_id(self) -> str | None:
        for option in self.options or []:
            if option.get("is_correct"):
                return option.get("id")
        return None

    @property
    def option_ids(self) -> set[str]:
        return {option.get("id") for option in self.options or []}


class Invite(Base):
    __tablename__ = "invites"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    assessment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    single_use: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
