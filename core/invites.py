"""Invite usability checks."""

from datetime import datetime

from core.exceptions import (
    AssessmentNotActiveError,
    InviteAlreadyUsedError,
    InviteExpiredError,
    InviteInvalidError,
    InviteWindowClosedError,
    InviteWindowNotOpenError,
)
from database.models.assessments import Assessment, AssessmentStatus, Invite

MAX_INVITE_EXPIRY_HOURS = 24 * 365


def check_invite_usable(
    invite: Invite | None,
    assessment: Assessment | None,
    now: datetime,
) -> None:
    """
    Raise the first failing check, in order: exists, not expired, not used
    (single-use only), assessment active, window open, window not closed.
    """
    if invite is None or assessment is None:
        raise InviteInvalidError()

    if now > invite.expires_at:
        raise InviteExpiredError()

    if invite.single_use and invite.used_at is not None:
        raise InviteAlreadyUsedError()

    if assessment.status != AssessmentStatus.ACTIVE:
        raise AssessmentNotActiveError()

    if assessment.active_from is not None and now < assessment.active_from:
        raise InviteWindowNotOpenError()

    if assessment.active_until is not None and now > assessment.active_until:
        raise InviteWindowClosedError()


def build_invite_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/test/invite?token={token}"
