"""
Submission review endpoints for HR users.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_hr_user, get_db
from api.schemas.submissions import OverrideRequest, OverrideResponse
from api.services import submissions as submission_service
from core.security import TokenPayload

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.get("/{instance_id}", summary="Get Submission")
async def get_submission(
    instance_id: str = Path(..., description="Test instance ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
):
    return await submission_service.get_submission(db, instance_id, user.subject)


@router.post(
    "/{instance_id}/override",
    response_model=OverrideResponse,
    summary="Override Recommendation",
)
async def override_recommendation(
    body: OverrideRequest,
    instance_id: str = Path(..., description="Test instance ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
):
    return await submission_service.override_recommendation(
        db, instance_id, user.subject, body.recommendation
    )
