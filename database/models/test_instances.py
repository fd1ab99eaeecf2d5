"""
Test Instances Module

One candidate attempt at an assessment, the answers given during it and the
scoring outcome.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import (
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from database.engine import Base
from database.types import UTCDateTime, enum_type, new_id, utcnow


# ==================== Test Instance Enums ===================== #
class InstanceStatus(str, PyEnum):
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


class ScoringStatus(str, PyEnum):
    PENDING = "pending"
    SCORING = "scoring"
    SCORED = "scored"
    ERROR = "error"


class Recommendation(str, PyEnum):
    ADVANCE = "Advance"
    HOLD = "Hold"
    REJECT = "Reject"


# ==================== Models ===================== #
class TestInstance(Base):
    __tablename__ = "test_instances"
    __test__ = False  # not a pytest class

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    assessment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invite_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("invites.id", ondelete="SET NULL"), index=True
    )

    # Candidate
    candidate_name: Mapped[str] = mapped_column(String(255), nullable=False)
    candidate_email: Mapped[str] = mapped_column(String(255), nullable=False)
    session_meta: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    # Progress
    status: Mapped[InstanceStatus] = mapped_column(
        enum_type(InstanceStatus),
        default=InstanceStatus.IN_PROGRESS,
        nullable=False,
        index=True,
    )
    current_stage: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    time_taken_seconds: Mapped[int | None] = mapped_column(Integer)

    # Scoring
    scoring_status: Mapped[ScoringStatus | None] = mapped_column(
        enum_type(ScoringStatus), index=True
    )
    scoring_started_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    scored_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    overall_score: Mapped[float | None] = mapped_column(Float)
    recommendation: Mapped[Recommendation | None] = mapped_column(enum_type(Recommendation))
    hr_override: Mapped[Recommendation | None] = mapped_column(enum_type(Recommendation))
    scoring_breakdown: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    scoring_result: Mapped[str | None] = mapped_column(Text)  # raw scorer output, verbatim
    scoring_error: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    @property
    def effective_recommendation(self) -> Recommendation | None:
        return self.hr_override or self.recommendation


class Answer(Base):
    __tablename__ = "answers"
    __table_args__ = (
        UniqueConstraint("instance_id", "question_id", name="uq_answers_instance_question"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    instance_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("test_instances.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    answer_text: Mapped[str | None] = mapped_column(Text)
    selected_option_id: Mapped[str | None] = mapped_column(String(50))
    submitted_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
