"""
Authentication endpoints.

HR sign-in is passwordless; this service only issues magic links. Bearer
tokens are verified in ``api.dependencies``.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, get_settings_dep
from api.schemas.auth import MagicLinkRequest
from api.schemas.common import MessageResponse
from api.services import auth as auth_service
from core.config import Settings

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/magic-link", response_model=MessageResponse, summary="Request Magic Link")
async def request_magic_link(
    body: MagicLinkRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    return await auth_service.request_magic_link(
        db,
        body.email,
        settings.public_base_url,
        expire_minutes=settings.magic_link_expire_minutes,
    )
