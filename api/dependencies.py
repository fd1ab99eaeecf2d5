"""FastAPI dependencies for dependency injection.

Collaborators live on ``app.state`` (built in the lifespan or passed to
``create_app``); these helpers hand them to route handlers.
"""

from typing import AsyncGenerator, Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from agents import AgentSuite
from api.services.scoring import ScoringDispatcher
from core.config import Settings
from core.exceptions import AuthenticationError
from core.security import TokenPayload, verify_jwt_token


security = HTTPBearer(auto_error=False)


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session from the application's database handle."""
    async with request.app.state.database.session() as session:
        yield session


def get_agents(request: Request) -> AgentSuite:
    return request.app.state.agents


def get_dispatcher(request: Request) -> ScoringDispatcher:
    return request.app.state.dispatcher


async def get_current_hr_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings_dep),
) -> TokenPayload:
    """Require a valid HR bearer token; ``subject`` is the owner id."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Authentication required")

    return verify_jwt_token(
        credentials.credentials,
        settings.jwt_secret_key,
        settings.jwt_algorithm,
    )
