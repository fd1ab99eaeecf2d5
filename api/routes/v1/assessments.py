"""
Assessment management endpoints for HR users.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_hr_user, get_db, get_settings_dep
from api.schemas.assessments import (
    AssessmentSettingsUpdate,
    InviteCreate,
    PublishRequest,
    QuestionUpdate,
    ReorderRequest,
)
from api.schemas.common import SuccessResponse
from api.services import assessments as assessment_service
from api.services import invites as invite_service
from core.config import Settings
from core.security import TokenPayload

router = APIRouter(prefix="/assessments", tags=["assessments"])


@router.get(
    "/{assessment_id}",
    summary="Get Assessment",
    description="Settings and questions grouped by stage, including grading hints.",
)
async def get_assessment(
    assessment_id: str = Path(..., description="Assessment ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
):
    return await assessment_service.get_assessment(db, assessment_id, user.subject)


@router.patch("/{assessment_id}", summary="Update Assessment Settings")
async def update_assessment(
    body: AssessmentSettingsUpdate,
    assessment_id: str = Path(..., description="Assessment ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
):
    return await assessment_service.update_assessment_settings(
        db, assessment_id, user.subject, body.model_dump(exclude_unset=True)
    )


@router.post(
    "/{assessment_id}/publish",
    summary="Publish Assessment",
    description="Make a complete draft assessment live. The job becomes active too.",
)
async def publish_assessment(
    body: PublishRequest | None = None,
    assessment_id: str = Path(..., description="Assessment ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
):
    duration = body.duration_seconds if body else None
    return await assessment_service.publish_assessment(db, assessment_id, user.subject, duration)


@router.post("/{assessment_id}/close", summary="Close Assessment")
async def close_assessment(
    assessment_id: str = Path(..., description="Assessment ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
):
    return await assessment_service.close_assessment(db, assessment_id, user.subject)


@router.patch("/{assessment_id}/questions/{question_id}", summary="Edit Question")
async def edit_question(
    body: QuestionUpdate,
    assessment_id: str = Path(..., description="Assessment ID"),
    question_id: str = Path(..., description="Question ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
):
    return await assessment_service.edit_question(
        db, assessment_id, question_id, user.subject, body.changes()
    )


@router.post("/{assessment_id}/reorder", response_model=SuccessResponse, summary="Reorder Stage")
async def reorder_stage(
    body: ReorderRequest,
    assessment_id: str = Path(..., description="Assessment ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
):
    return await assessment_service.reorder_stage(
        db, assessment_id, user.subject, body.stage_index, body.question_ids
    )


@router.post(
    "/{assessment_id}/invites",
    status_code=status.HTTP_201_CREATED,
    summary="Issue Invite",
    description="Create a tokenized invite link for a candidate.",
)
async def issue_invite(
    body: InviteCreate | None = None,
    assessment_id: str = Path(..., description="Assessment ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    body = body or InviteCreate()
    return await invite_service.issue_invite(
        db,
        assessment_id,
        user.subject,
        settings.public_base_url,
        expires_in_hours=body.expires_in_hours or settings.invite_default_expiry_hours,
        single_use=body.single_use,
    )
