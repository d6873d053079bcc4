from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from jobboard.config import settings
from jobboard.database import get_db
from jobboard.dependencies import optional_user
from jobboard.models import UserInfo
from jobboard.schemas.catalogue import JobTagResponse, TagResponse
from jobboard.schemas.job import CategoryJobsResponse, JobListResponse, JobResponse
from jobboard.services.data_service import RecordNotFoundError, data_service
from jobboard.services.job_service import (
    LISTING_CATEGORIES,
    filter_jobs,
    is_new_in_24h,
    paginate,
    split_graduation_years,
)
from jobboard.services.membership_service import (
    COMMON_USER,
    category_view_limit,
    quick_view_limit,
    resolve_tier,
)
from jobboard.utils.timeutil import utcnow

router = APIRouter(prefix="/jobs", tags=["jobs"])


def job_to_response(
    job: dict,
    now: datetime | None = None,
    favorite_ids: list[int] | None = None,
    application_ids: list[int] | None = None,
    states: dict[int, int] | None = None,
) -> JobResponse:
    data = {**job}
    data["job_graduation_year"] = split_graduation_years(job.get("job_graduation_year"))
    data["category_id"] = job.get("category_id") or []
    data["is_24hnew"] = is_new_in_24h(job, now)
    if favorite_ids is not None:
        data["is_favorite"] = job["id"] in favorite_ids
    if application_ids is not None:
        data["is_applied"] = job["id"] in application_ids
    if states is not None:
        data["job_state"] = states.get(job["id"])
    return JobResponse(**data)


def viewer_tier(db: Session, user_id: int | None) -> str:
    if user_id is None:
        return COMMON_USER
    info = db.query(UserInfo).filter(UserInfo.user_id == user_id).first()
    return resolve_tier(info)


def _responses(db: Session, jobs: list[dict], user_id: int | None) -> list[JobResponse]:
    now = utcnow()
    if user_id is None:
        return [job_to_response(j, now) for j in jobs]
    favorites = data_service.get_favorite_job_ids(db, user_id)
    applications = data_service.get_application_job_ids(db, user_id)
    return [job_to_response(j, now, favorites, applications) for j in jobs]


@router.get("", response_model=JobListResponse)
async def list_jobs(
    location: list[str] = Query([]),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user_id: int | None = Depends(optional_user),
    db: Session = Depends(get_db),
):
    """Newest active jobs across all categories, capped by membership tier."""
    jobs = filter_jobs(data_service.get_jobs(db), locations=location)
    result = paginate(jobs, page, per_page, limit=quick_view_limit(viewer_tier(db, user_id)))
    return JobListResponse(
        jobs=_responses(db, result["jobs"], user_id),
        total=result["total"],
        page=page,
        per_page=per_page,
    )


@router.get("/category/{category_id}", response_model=CategoryJobsResponse)
async def list_category_jobs(
    category_id: int,
    location: list[str] = Query([]),
    hide_applied: bool = False,
    page: int = Query(1, ge=1),
    user_id: int | None = Depends(optional_user),
    db: Session = Depends(get_db),
):
    if category_id not in LISTING_CATEGORIES:
        raise HTTPException(status_code=404, detail="Category not found")

    exclude = None
    if hide_applied and user_id is not None:
        exclude = set(data_service.get_application_job_ids(db, user_id))

    jobs = filter_jobs(data_service.get_jobs(db), category_id, location, exclude)
    limit = category_view_limit(viewer_tier(db, user_id))
    result = paginate(jobs, page, settings.category_page_size, limit=limit)
    return CategoryJobsResponse(
        category_id=category_id,
        jobs=_responses(db, result["jobs"], user_id),
        total=result["total"],
        page=page,
        per_page=result["per_page"],
        has_more=result["has_more"],
        limited=result["limited"],
        view_limit=limit,
    )


def _find_active_job(db: Session, job_id: int) -> dict:
    job = next((j for j in data_service.get_jobs(db) if j["id"] == job_id), None)
    if job is None or not job.get("is_active"):
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: int,
    user_id: int | None = Depends(optional_user),
    db: Session = Depends(get_db),
):
    job = _find_active_job(db, job_id)
    if user_id is None:
        return job_to_response(job)
    return job_to_response(
        job,
        favorite_ids=data_service.get_favorite_job_ids(db, user_id),
        application_ids=data_service.get_application_job_ids(db, user_id),
        states=data_service.get_job_states(db, user_id),
    )


@router.post("/{job_id}/view")
async def record_view(
    job_id: int,
    request: Request,
    user_id: int | None = Depends(optional_user),
    db: Session = Depends(get_db),
):
    if user_id is not None:
        viewer = f"user-{user_id}"
    else:
        viewer = f"host-{request.client.host if request.client else 'unknown'}"
    try:
        counted = data_service.increment_job_views(db, job_id, viewer)
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    return {"counted": counted}


@router.get("/{job_id}/tags", response_model=JobTagResponse)
async def get_job_tags(job_id: int, db: Session = Depends(get_db)):
    _find_active_job(db, job_id)
    row = data_service.get_job_tags(db, job_id)
    response = JobTagResponse(job_id=job_id)
    if row is None:
        return response
    for slot in ("time_tag", "action_tag"):
        tag_id = row.get(f"{slot}_id")
        tag = data_service.get_tag_by_id(db, tag_id) if tag_id else None
        if tag and tag["is_active"]:
            setattr(response, slot, TagResponse(**tag))
    return response
