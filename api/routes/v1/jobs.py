"""
Job endpoints for HR users.

Covers job creation, the dashboard listing, JD parsing, the job lifecycle,
assessment generation and the results listing.
"""

from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from agents import AgentSuite
from api.dependencies import get_agents, get_current_hr_user, get_db, get_settings_dep
from api.schemas.jobs import AssessmentGenerateRequest, JobCreate, JobStatusUpdate
from api.services import assessments as assessment_service
from api.services import jobs as job_service
from core.config import Settings
from core.security import TokenPayload

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create Job",
    description="Create a draft job from a pasted job description.",
)
async def create_job(
    body: JobCreate,
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
):
    job = await job_service.create_job(db, user.subject, body.description, body.title)
    return job_service.serialize_job(job)


@router.get("", summary="List Jobs", description="Dashboard listing of the caller's jobs.")
async def list_jobs(
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
):
    return await job_service.list_jobs(db, user.subject)


@router.get("/{job_id}", summary="Get Job Details")
async def get_job(
    job_id: str = Path(..., description="Job ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
):
    job = await job_service.get_owned_job(db, job_id, user.subject)
    return job_service.serialize_job(job)


@router.delete(
    "/{job_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Job",
    description="Delete a job together with its schema, assessments, invites and attempts.",
)
async def delete_job(
    job_id: str = Path(..., description="Job ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
):
    await job_service.delete_job(db, job_id, user.subject)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{job_id}/parse",
    summary="Parse Job Description",
    description="Extract a structured role schema from the job description.",
)
async def parse_job(
    job_id: str = Path(..., description="Job ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
    agents: AgentSuite = Depends(get_agents),
):
    return await job_service.parse_job_description(db, agents.jd_parser, job_id, user.subject)


@router.get("/{job_id}/schema", summary="Get Parsed Schema")
async def get_schema(
    job_id: str = Path(..., description="Job ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
):
    schema = await job_service.get_parsed_schema(db, job_id, user.subject)
    return job_service.serialize_schema(schema)


@router.post(
    "/{job_id}/status",
    summary="Change Job Status",
    description="Move a job through draft, active and closed. Assessments follow the job.",
)
async def set_job_status(
    body: JobStatusUpdate,
    job_id: str = Path(..., description="Job ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
):
    return await job_service.set_job_status(db, job_id, user.subject, body.status)


@router.post(
    "/{job_id}/assessments",
    status_code=status.HTTP_201_CREATED,
    summary="Generate Assessment",
    description="Generate a draft three-stage assessment from the job's parsed schema.",
)
async def generate_assessment(
    body: AssessmentGenerateRequest | None = None,
    job_id: str = Path(..., description="Job ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
    agents: AgentSuite = Depends(get_agents),
    settings: Settings = Depends(get_settings_dep),
):
    body = body or AssessmentGenerateRequest()
    return await assessment_service.generate_assessment(
        db,
        agents.assessment,
        job_id,
        user.subject,
        duration_seconds=body.duration_seconds,
        active_from=body.active_from,
        active_until=body.active_until,
        single_use_links=body.single_use_links,
        default_duration_seconds=settings.default_assessment_duration_seconds,
    )


@router.get(
    "/{job_id}/results",
    summary="Job Results",
    description="Submitted attempts for the job with their effective recommendation.",
)
async def get_results(
    job_id: str = Path(..., description="Job ID"),
    user: TokenPayload = Depends(get_current_hr_user),
    db: AsyncSession = Depends(get_db),
):
    return await job_service.get_job_results(db, job_id, user.subject)
