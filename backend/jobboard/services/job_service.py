import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from jobboard.models import Category, Job
from jobboard.services.validation import (
    NEW_IN_24H_CATEGORY,
    PREGRADUATION_CATEGORY,
    VALID_CATEGORIES,
    ValidationError,
    job_form_errors,
)
from jobboard.utils.timeutil import format_ts, now_str, parse_datetime, utcnow

logger = logging.getLogger(__name__)

LISTING_CATEGORIES = VALID_CATEGORIES + (NEW_IN_24H_CATEGORY, PREGRADUATION_CATEGORY)

JOB_FIELDS = (
    "job_title", "company", "description", "category_id", "post_time", "deadline",
    "job_location", "job_position", "job_major", "job_graduation_year",
    "job_education_requirement", "application_link", "is_pregraduation", "is_active",
)
NULLABLE_FIELDS = ("description", "job_major", "application_link")


def split_graduation_years(value: str | None) -> list[str]:
    return [y.strip() for y in (value or "").split(",") if y.strip()]


def _form_from_job(job: Job) -> dict:
    data = {field: getattr(job, field) for field in JOB_FIELDS}
    data["job_graduation_year"] = split_graduation_years(job.job_graduation_year)
    return data


def _apply_form(job: Job, data: dict):
    for field in JOB_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field in ("job_title", "company", "job_location", "job_position") and value:
            value = value.strip()
        setattr(job, field, value)
    job.category_id = [int(cid) for cid in data["category_id"]]
    job.job_graduation_year = ",".join(data["job_graduation_year"])
    job.post_time = format_ts(parse_datetime(data["post_time"]))
    job.deadline = format_ts(parse_datetime(data["deadline"]))


def recompute_category_counts(db: Session):
    """Set every category's active_job_count from the active jobs' category lists."""
    counts: dict[int, int] = {}
    for (category_ids,) in db.query(Job.category_id).filter(Job.is_active.is_(True)):
        for cid in set(category_ids or []):
            counts[cid] = counts.get(cid, 0) + 1
    for category in db.query(Category).all():
        count = counts.get(category.id, 0)
        if category.active_job_count != count:
            category.active_job_count = count
    db.commit()


def create_job(db: Session, data: dict) -> Job:
    errors = job_form_errors(data)
    if errors:
        raise ValidationError(errors)
    now = now_str()
    job = Job(
        is_active=True,
        is_pregraduation=False,
        views_count=0,
        favorites_count=0,
        applications_count=0,
        created_at=now,
        updated_at=now,
        last_update=now,
    )
    _apply_form(job, data)
    db.add(job)
    db.commit()
    db.refresh(job)
    recompute_category_counts(db)
    logger.info("Created job %s (%s)", job.id, job.job_title)
    return job


def update_job(db: Session, job: Job, changes: dict) -> Job:
    # A null for a required field leaves it unchanged
    changes = {k: v for k, v in changes.items() if v is not None or k in NULLABLE_FIELDS}
    data = {**_form_from_job(job), **changes}
    errors = job_form_errors(data)
    if errors:
        raise ValidationError(errors)
    _apply_form(job, data)
    now = now_str()
    job.updated_at = now
    job.last_update = now
    db.commit()
    db.refresh(job)
    recompute_category_counts(db)
    return job


def delete_job(db: Session, job: Job):
    job_id = job.id
    db.delete(job)
    db.commit()
    recompute_category_counts(db)
    logger.info("Deleted job %s", job_id)


def toggle_job_active(db: Session, job: Job) -> Job:
    job.is_active = not job.is_active
    job.updated_at = now_str()
    db.commit()
    db.refresh(job)
    recompute_category_counts(db)
    return job


def bulk_insert(db: Session, rows: list[dict]) -> int:
    now = now_str()
    for row in rows:
        db.add(Job(**row, created_at=now, updated_at=now, last_update=now))
    db.commit()
    recompute_category_counts(db)
    logger.info("Imported %d jobs", len(rows))
    return len(rows)


def admin_job_page(db: Session, q: str | None, page: int, per_page: int) -> tuple[list[Job], int]:
    query = db.query(Job)
    if q:
        query = query.filter(
            Job.job_title.ilike(f"%{q}%")
            | Job.company.ilike(f"%{q}%")
            | Job.job_location.ilike(f"%{q}%")
            | Job.job_position.ilike(f"%{q}%")
        )
    total = query.count()
    jobs = (
        query.order_by(Job.created_at.desc(), Job.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return jobs, total


# -- public listings (operate on cached job dicts) -------------------------

def is_new_in_24h(job: dict, now: datetime | None = None) -> bool:
    posted = parse_datetime(job.get("post_time"))
    if posted is None:
        return False
    now = now or utcnow()
    return now - timedelta(hours=24) <= posted <= now


def in_category(job: dict, category_id: int, now: datetime | None = None) -> bool:
    if category_id == NEW_IN_24H_CATEGORY:
        return is_new_in_24h(job, now)
    if category_id == PREGRADUATION_CATEGORY:
        return bool(job.get("is_pregraduation"))
    return category_id in (job.get("category_id") or [])


def filter_jobs(
    jobs: list[dict],
    category_id: int | None = None,
    locations: list[str] | None = None,
    exclude_ids: set[int] | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """Active jobs matching the listing filters, newest post first."""
    now = now or utcnow()
    wanted = [loc.strip().lower() for loc in (locations or []) if loc.strip()]
    result = []
    for job in jobs:
        if not job.get("is_active"):
            continue
        if category_id is not None and not in_category(job, category_id, now):
            continue
        if wanted and not any(loc in (job.get("job_location") or "").lower() for loc in wanted):
            continue
        if exclude_ids and job["id"] in exclude_ids:
            continue
        result.append(job)
    result.sort(key=lambda j: j.get("post_time") or "", reverse=True)
    return result


def paginate(jobs: list[dict], page: int, per_page: int, limit: int | None = None) -> dict:
    """Slice a listing page; a limit caps how deep a viewer may page."""
    visible = jobs if limit is None else jobs[:limit]
    start = (page - 1) * per_page
    items = visible[start:start + per_page]
    return {
        "jobs": items,
        "total": len(jobs),
        "page": page,
        "per_page": per_page,
        "has_more": start + per_page < len(visible),
        "limited": limit is not None and len(jobs) > limit,
    }
