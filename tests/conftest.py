"""Shared fixtures and utilities for tests."""

import os

# Settings are read at import time; these must be in place first
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("SCORING_MODE", "inline")
os.environ.setdefault("JSON_LOGS", "false")

import httpx
import pytest
import pytest_asyncio

from api.main import create_app
from core.config import Settings
from core.security import create_access_token
from database.engine import Database
from tests.factories import ScriptedLLM, assessment_payload, jd_payload

HR_USER_ID = "hr-user-1"
OTHER_HR_USER_ID = "hr-user-2"


@pytest.fixture
def settings():
    return Settings(
        JWT_SECRET_KEY=os.environ["JWT_SECRET_KEY"],
        DATABASE_URL="sqlite+aiosqlite://",
        SCORING_MODE="inline",
        JSON_LOGS=False,
        PUBLIC_BASE_URL="https://assess.example.com",
    )


@pytest_asyncio.fixture
async def database():
    db = Database("sqlite+aiosqlite://")
    await db.init_models()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def session(database):
    async with database.session() as session:
        yield session


@pytest.fixture
def llm():
    return ScriptedLLM()


@pytest.fixture
def app(settings, database, llm):
    return create_app(settings=settings, database=database, llm=llm)


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def _bearer(settings, subject: str) -> dict:
    token = create_access_token(subject, settings.jwt_secret_key, settings.jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def hr_headers(settings):
    return _bearer(settings, HR_USER_ID)


@pytest.fixture
def other_hr_headers(settings):
    return _bearer(settings, OTHER_HR_USER_ID)


@pytest.fixture
def create_parsed_job(client, llm, hr_headers):
    """Create a job and parse its description through the API."""

    async def _create(description="Senior Backend Engineer\nRun our payments platform.", schema=None):
        response = await client.post("/api/v1/jobs", json={"description": description}, headers=hr_headers)
        assert response.status_code == 201, response.text
        job = response.json()

        llm.queue(schema or jd_payload())
        response = await client.post(f"/api/v1/jobs/{job['id']}/parse", headers=hr_headers)
        assert response.status_code == 200, response.text
        return job

    return _create


@pytest.fixture
def create_published_assessment(client, llm, hr_headers, create_parsed_job):
    """Job -> parse -> generate -> publish. Returns the ids involved."""

    async def _create(stage_types=None, single_use_links=True, **generate_options):
        job = await create_parsed_job()
        llm.queue(assessment_payload(stage_types))
        response = await client.post(
            f"/api/v1/jobs/{job['id']}/assessments",
            json={"single_use_links": single_use_links, **generate_options},
            headers=hr_headers,
        )
        assert response.status_code == 201, response.text
        assessment_id = response.json()["assessment_id"]

        response = await client.post(f"/api/v1/assessments/{assessment_id}/publish", headers=hr_headers)
        assert response.status_code == 200, response.text
        return {"job_id": job["id"], "assessment_id": assessment_id}

    return _create


@pytest.fixture
def start_instance(client, hr_headers):
    """Issue an invite for an assessment and redeem it."""

    async def _start(assessment_id, **invite_options):
        response = await client.post(
            f"/api/v1/assessments/{assessment_id}/invites",
            json=invite_options,
            headers=hr_headers,
        )
        assert response.status_code == 201, response.text
        invite = response.json()

        response = await client.post(
            "/api/v1/invites/start",
            json={"token": invite["token"], "candidate_name": "Ada Candidate", "candidate_email": "ada@example.com"},
        )
        assert response.status_code == 201, response.text
        return {"invite": invite, **response.json()}

    return _start
