"""
Public invite endpoints. The invite token is the credential.
"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db
from api.schemas.candidate import StartTestRequest
from api.services import invites as invite_service

router = APIRouter(prefix="/invites", tags=["invites"])


@router.get("/verify", summary="Verify Invite")
async def verify_invite(
    token: str = Query(..., min_length=1, max_length=64),
    db: AsyncSession = Depends(get_db),
):
    return await invite_service.verify_invite(db, token)


@router.post(
    "/start",
    status_code=status.HTTP_201_CREATED,
    summary="Start Test",
    description="Redeem an invite and open a test attempt at stage 1.",
)
async def start_test(
    body: StartTestRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    return await invite_service.start_test_instance(
        db,
        body.token,
        candidate_name=body.candidate_name,
        candidate_email=body.candidate_email,
        user_agent=request.headers.get("user-agent"),
    )
