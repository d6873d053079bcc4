from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from jobboard.database import get_db
from jobboard.dependencies import require_admin
from jobboard.models import Category
from jobboard.schemas.catalogue import CategoryResponse, CategoryUpdate
from jobboard.services import job_service
from jobboard.services.data_service import data_service, row_to_dict

router = APIRouter(prefix="/categories", tags=["categories"])

admin_router = APIRouter(
    prefix="/admin/categories",
    tags=["admin-categories"],
    dependencies=[Depends(require_admin)],
)


@router.get("", response_model=list[CategoryResponse])
async def list_categories(db: Session = Depends(get_db)):
    return [c for c in data_service.get_categories(db) if c["is_active"]]


@admin_router.get("", response_model=list[CategoryResponse])
async def list_all_categories(db: Session = Depends(get_db)):
    return data_service.get_categories(db)


@admin_router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(category_id: int, req: CategoryUpdate, db: Session = Depends(get_db)):
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    if req.category is not None:
        if not req.category.strip():
            raise HTTPException(status_code=400, detail="Category name cannot be empty")
        category.category = req.category.strip()
    if req.is_active is not None:
        category.is_active = req.is_active
    db.commit()
    db.refresh(category)
    return CategoryResponse(**row_to_dict(category))


@admin_router.post("/recount", response_model=list[CategoryResponse])
async def recount_categories(db: Session = Depends(get_db)):
    job_service.recompute_category_counts(db)
    return data_service.get_categories(db, force_refresh=True)
