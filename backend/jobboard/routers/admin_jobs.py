from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from jobboard.config import settings
from jobboard.database import get_db
from jobboard.dependencies import require_admin
from jobboard.models import Job, JobTag, Tag
from jobboard.routers.jobs import job_to_response
from jobboard.schemas.catalogue import JobTagResponse, JobTagUpdate, TagResponse
from jobboard.schemas.job import ImportResponse, JobCreate, JobListResponse, JobResponse, JobUpdate
from jobboard.services import csv_import_service, job_service
from jobboard.services.data_service import row_to_dict
from jobboard.services.validation import ValidationError

router = APIRouter(
    prefix="/admin/jobs",
    tags=["admin-jobs"],
    dependencies=[Depends(require_admin)],
)


def _get_job(db: Session, job_id: int) -> Job:
    job = db.query(Job).filter(Job.id == job_id).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.get("", response_model=JobListResponse)
async def list_jobs(
    q: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.admin_page_size, ge=1, le=100),
    db: Session = Depends(get_db),
):
    jobs, total = job_service.admin_job_page(db, q, page, per_page)
    return JobListResponse(
        jobs=[job_to_response(row_to_dict(j)) for j in jobs],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("", response_model=JobResponse, status_code=201)
async def create_job(req: JobCreate, db: Session = Depends(get_db)):
    try:
        job = job_service.create_job(db, req.model_dump())
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors)
    return job_to_response(row_to_dict(job))


@router.get("/import/template")
async def import_template():
    return Response(
        content=csv_import_service.template_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="job_import_template.csv"'},
    )


@router.post("/import", response_model=ImportResponse)
async def import_jobs(
    file: UploadFile = File(...),
    encoding: str = Form("GBK"),
    commit: bool = Form(False),
    db: Session = Depends(get_db),
):
    """Validate a job CSV; with commit set, insert it when every row is valid."""
    raw = await file.read(settings.max_upload_bytes + 1)
    if len(raw) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail=f"File too large (max {settings.max_upload_bytes} bytes)")
    if not raw:
        raise HTTPException(status_code=400, detail="Empty file")

    try:
        text = csv_import_service.decode_upload(raw, encoding)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors)

    rows, errors = csv_import_service.parse_jobs_csv(text)
    imported = 0
    if commit:
        if errors:
            raise HTTPException(status_code=400, detail=errors)
        imported = job_service.bulk_insert(db, rows)
    return ImportResponse(valid_rows=len(rows), errors=errors, imported=imported, preview=rows[:20])


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: int, db: Session = Depends(get_db)):
    return job_to_response(row_to_dict(_get_job(db, job_id)))


@router.put("/{job_id}", response_model=JobResponse)
async def update_job(job_id: int, req: JobUpdate, db: Session = Depends(get_db)):
    job = _get_job(db, job_id)
    try:
        job = job_service.update_job(db, job, req.model_dump(exclude_unset=True))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors)
    return job_to_response(row_to_dict(job))


@router.post("/{job_id}/toggle-active", response_model=JobResponse)
async def toggle_active(job_id: int, db: Session = Depends(get_db)):
    job = job_service.toggle_job_active(db, _get_job(db, job_id))
    return job_to_response(row_to_dict(job))


@router.delete("/{job_id}")
async def delete_job(job_id: int, db: Session = Depends(get_db)):
    job_service.delete_job(db, _get_job(db, job_id))
    return {"message": "Job deleted"}


def _tag_response(db: Session, tag_id: int | None) -> TagResponse | None:
    if tag_id is None:
        return None
    tag = db.query(Tag).filter(Tag.id == tag_id).first()
    return TagResponse(**row_to_dict(tag)) if tag else None


@router.put("/{job_id}/tags", response_model=JobTagResponse)
async def set_job_tags(job_id: int, req: JobTagUpdate, db: Session = Depends(get_db)):
    _get_job(db, job_id)
    for tag_id in (req.time_tag_id, req.action_tag_id):
        if tag_id is not None and not db.query(Tag.id).filter(Tag.id == tag_id).first():
            raise HTTPException(status_code=404, detail=f"Tag {tag_id} not found")

    row = db.query(JobTag).filter(JobTag.job_id == job_id).first()
    if req.time_tag_id is None and req.action_tag_id is None:
        if row:
            db.delete(row)
            db.commit()
        return JobTagResponse(job_id=job_id)

    if row is None:
        row = JobTag(job_id=job_id)
        db.add(row)
    row.time_tag_id = req.time_tag_id
    row.action_tag_id = req.action_tag_id
    db.commit()
    return JobTagResponse(
        job_id=job_id,
        time_tag=_tag_response(db, req.time_tag_id),
        action_tag=_tag_response(db, req.action_tag_id),
    )
