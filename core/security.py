"""
Security utilities: bearer token verification, opaque token generation and
structured audit logging.
"""

import json
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

import jwt

from core.exceptions import AuthenticationError

logger = logging.getLogger("security.audit")


class AuditAction(str, Enum):
    """Audit log action tags."""

    JOB_CREATED = "job.created"
    JOB_DELETED = "job.deleted"
    JOB_PARSED = "job.parsed"
    JOB_STATUS_CHANGED = "job.status_changed"
    JOB_STATUS_CASCADED = "job.status_cascaded"

    ASSESSMENT_GENERATED = "assessment.generated"
    ASSESSMENT_UPDATED = "assessment.updated"
    ASSESSMENT_PUBLISHED = "assessment.published"
    ASSESSMENT_CLOSED = "assessment.closed"
    ASSESSMENT_REORDERED = "assessment.reordered"
    QUESTION_EDITED = "question.edited"

    INVITE_GENERATED = "invite.generated"
    TEST_STARTED = "test.started"
    TEST_SUBMITTED = "test.submitted"
    SUBMISSION_OVERRIDE = "submission.override"


# PII fields that should be masked in audit payloads
PII_FIELDS = {"email", "candidate_email", "name", "candidate_name", "user_agent"}


def mask_pii(data: Any, depth: int = 0) -> Any:
    """
    Recursively mask PII fields in data structures.

    Strings are reduced to their first character and length.
    """
    if depth > 10:
        return "[MAX_DEPTH]"

    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if str(key).lower() in PII_FIELDS:
                if isinstance(value, str) and value:
                    masked[key] = f"{value[0]}***[{len(value)}]"
                else:
                    masked[key] = "[MASKED]"
            else:
                masked[key] = mask_pii(value, depth + 1)
        return masked
    if isinstance(data, list):
        return [mask_pii(item, depth + 1) for item in data]
    return data


def log_audit_event(
    action: AuditAction,
    actor_id: Optional[str],
    payload: Optional[dict[str, Any]] = None,
) -> None:
    """Emit an audit event as a single structured log line."""
    event = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": "AUDIT",
        "action": action.value,
        "actor_id": actor_id,
        "details": mask_pii(payload or {}),
    }
    logger.info(json.dumps(event, default=str))


# ==================== Tokens ===================== #

def generate_invite_token() -> str:
    """128 bits of randomness, hex encoded."""
    return secrets.token_hex(16)


def generate_magic_link_token() -> str:
    return secrets.token_urlsafe(32)


@dataclass(frozen=True)
class TokenPayload:
    """Claims this service reads from an HR bearer token."""

    subject: str
    email: Optional[str] = None


def create_access_token(
    subject: str,
    secret_key: str,
    algorithm: str = "HS256",
    email: Optional[str] = None,
    expires_minutes: int = 30,
) -> str:
    """Sign a short-lived access token. Used by tooling and tests."""
    now = datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": subject,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    if email:
        claims["email"] = email
    return jwt.encode(claims, secret_key, algorithm=algorithm)


def verify_jwt_token(token: str, secret_key: str, algorithm: str = "HS256") -> TokenPayload:
    """
    Verify a bearer token and return its claims.

    Raises:
        AuthenticationError: if the token is expired, malformed or has no subject
    """
    try:
        payload = jwt.decode(
            token,
            secret_key,
            algorithms=[algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Authentication token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid token: {type(e).__name__}")
        raise AuthenticationError("Invalid authentication token")

    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError("Invalid authentication token")

    return TokenPayload(subject=str(subject), email=payload.get("email"))
