"""
Magic-link sign-in requests.

The response never reveals whether an account exists for the email.
"""

import logging
from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.security import generate_magic_link_token, mask_pii
from database.models.users import MagicLinkToken, User
from database.types import utcnow

logger = logging.getLogger(__name__)

MAGIC_LINK_MESSAGE = "If an account exists, a magic link has been sent"


def build_magic_link_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/auth/verify?token={token}"


async def request_magic_link(
    session: AsyncSession,
    email: str,
    base_url: str,
    expire_minutes: int = 15,
) -> dict[str, str]:
    normalized = email.strip().lower()
    user = (
        await session.execute(select(User).where(func.lower(User.email) == normalized))
    ).scalar_one_or_none()

    if user is None:
        logger.info(f"Magic link requested for unknown account {mask_pii({'email': normalized})['email']}")
        return {"message": MAGIC_LINK_MESSAGE}

    token = MagicLinkToken(
        email=user.email,
        token=generate_magic_link_token(),
        expires_at=utcnow() + timedelta(minutes=expire_minutes),
    )
    session.add(token)
    await session.commit()

    # Delivery is the identity provider's job; the link is only logged masked
    link = build_magic_link_url(base_url, token.token)
    logger.info(
        f"Magic link issued for {mask_pii({'email': user.email})['email']}",
        extra={"user_id": user.id},
    )
    logger.debug(f"Magic link expires at {token.expires_at.isoformat()} ({len(link)} chars)")
    return {"message": MAGIC_LINK_MESSAGE}
