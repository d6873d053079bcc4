from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from jobboard.database import get_db
from jobboard.dependencies import require_admin
from jobboard.models import JobTag, Tag
from jobboard.schemas.catalogue import TagCreate, TagResponse, TagUpdate
from jobboard.services.data_service import data_service, row_to_dict
from jobboard.utils.timeutil import now_str

TAG_TYPES = (
    "general", "time_sensitive", "feature", "location",
    "education", "company_size", "company_type",
)

router = APIRouter(prefix="/tags", tags=["tags"])

admin_router = APIRouter(
    prefix="/admin/tags",
    tags=["admin-tags"],
    dependencies=[Depends(require_admin)],
)


def _check_type(tag_type: str):
    if tag_type not in TAG_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid tag_type. Must be one of: {', '.join(TAG_TYPES)}")


@router.get("", response_model=list[TagResponse])
async def list_tags(tag_type: str | None = None, db: Session = Depends(get_db)):
    tags = [t for t in data_service.get_tags(db) if t["is_active"]]
    if tag_type:
        tags = [t for t in tags if t["tag_type"] == tag_type]
    return tags


@admin_router.get("", response_model=list[TagResponse])
async def list_all_tags(q: str | None = None, tag_type: str | None = None, db: Session = Depends(get_db)):
    tags = data_service.get_tags(db)
    if tag_type:
        tags = [t for t in tags if t["tag_type"] == tag_type]
    if q:
        tags = [t for t in tags if q.lower() in t["tag_name"].lower()]
    return tags


@admin_router.post("", response_model=TagResponse, status_code=201)
async def create_tag(req: TagCreate, db: Session = Depends(get_db)):
    if not req.tag_name.strip():
        raise HTTPException(status_code=400, detail="Tag name cannot be empty")
    _check_type(req.tag_type)
    tag = Tag(
        tag_name=req.tag_name.strip(),
        tag_type=req.tag_type,
        is_active=req.is_active,
        created_at=now_str(),
    )
    db.add(tag)
    db.commit()
    db.refresh(tag)
    return TagResponse(**row_to_dict(tag))


@admin_router.put("/{tag_id}", response_model=TagResponse)
async def update_tag(tag_id: int, req: TagUpdate, db: Session = Depends(get_db)):
    tag = db.query(Tag).filter(Tag.id == tag_id).first()
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    if req.tag_name is not None:
        if not req.tag_name.strip():
            raise HTTPException(status_code=400, detail="Tag name cannot be empty")
        tag.tag_name = req.tag_name.strip()
    if req.tag_type is not None:
        _check_type(req.tag_type)
        tag.tag_type = req.tag_type
    if req.is_active is not None:
        tag.is_active = req.is_active
    db.commit()
    db.refresh(tag)
    return TagResponse(**row_to_dict(tag))


@admin_router.delete("/{tag_id}")
async def delete_tag(tag_id: int, db: Session = Depends(get_db)):
    tag = db.query(Tag).filter(Tag.id == tag_id).first()
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    for row in db.query(JobTag).filter((JobTag.time_tag_id == tag_id) | (JobTag.action_tag_id == tag_id)):
        if row.time_tag_id == tag_id:
            row.time_tag_id = None
        if row.action_tag_id == tag_id:
            row.action_tag_id = None
    db.delete(tag)
    db.commit()
    return {"message": "Tag deleted"}
