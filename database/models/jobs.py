"""
Jobs Module

Job postings owned by an HR user, the structured hiring schema parsed from
each job description, and the per-job submission records behind dashboard
counts.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from database.engine import Base
from database.types import UTCDateTime, enum_type, new_id, utcnow


# ==================== Job Enums ===================== #
class JobStatus(str, PyEnum):
    """Job lifecycle status."""

    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"


class JobFunction(str, PyEnum):
    MARKETING = "Marketing"
    FINANCE = "Finance"
    HR = "HR"
    OPERATIONS = "Operations"
    ENGINEERING = "Engineering"
    DESIGN = "Design"
    SALES = "Sales"
    OTHER = "Other"


class Seniority(str, PyEnum):
    ENTRY = "Entry"
    MID = "Mid"
    SENIOR = "Senior"


# ==================== Models ===================== #
class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[JobStatus] = mapped_column(
        enum_type(JobStatus), default=JobStatus.DRAFT, nullable=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    last_activity_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )

    def touch(self, now: datetime | None = None) -> None:
        self.last_activity_at = now or utcnow()


class ParsedSchema(Base):
    """
    Structured hiring schema extracted from a job description.

    Function and seniority are kept as plain strings: an LLM answer outside
    the enums is stored as-is and flagged through ``validation_errors``.
    """

    __tablename__ = "parsed_schemas"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    job_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    function: Mapped[str | None] = mapped_column(String(50))
    role_family: Mapped[str | None] = mapped_column(String(255))
    seniority: Mapped[str | None] = mapped_column(String(50))
    decision_context: Mapped[str | None] = mapped_column(Text)
    core_competencies: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, default=list, nullable=False
    )  # [{name, weight}]
    tools: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    constraints: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    confidence_score: Mapped[float | None] = mapped_column(Float)

    validation_errors: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    validation_warnings: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    is_valid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    raw_response: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


class CandidateSubmission(Base):
    """One row per completed test instance, counted on the dashboard."""

    __tablename__ = "candidate_submissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    job_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    instance_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("test_instances.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
