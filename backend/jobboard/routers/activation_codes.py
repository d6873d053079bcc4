from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from jobboard.config import settings
from jobboard.database import get_db
from jobboard.dependencies import require_admin
from jobboard.models import ActivationCode
from jobboard.schemas.activation_code import CodeGenerateRequest, CodeListResponse, CodeResponse
from jobboard.services import activation_code_service
from jobboard.services.data_service import data_service, row_to_dict
from jobboard.services.validation import ValidationError
from jobboard.utils.timeutil import utcnow

router = APIRouter(
    prefix="/admin/activation-codes",
    tags=["activation-codes"],
    dependencies=[Depends(require_admin)],
)


def _get_code(db: Session, code_id: int) -> ActivationCode:
    code = db.query(ActivationCode).filter(ActivationCode.id == code_id).first()
    if not code:
        raise HTTPException(status_code=404, detail="Activation code not found")
    return code


def _responses(db: Session, codes: list[ActivationCode]) -> list[CodeResponse]:
    names = activation_code_service.redeemed_by(db, codes)
    return [CodeResponse(**row_to_dict(c), redeemed_by=names.get(c.user_id)) for c in codes]


@router.get("", response_model=CodeListResponse)
async def list_codes(
    q: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.admin_page_size, ge=1, le=100),
    db: Session = Depends(get_db),
):
    codes, total = activation_code_service.code_page(db, q, page, per_page)
    return CodeListResponse(codes=_responses(db, codes), total=total, page=page, per_page=per_page)


@router.post("", response_model=list[CodeResponse], status_code=201)
async def generate_codes(req: CodeGenerateRequest, db: Session = Depends(get_db)):
    try:
        codes = activation_code_service.generate_codes(db, req.prefix, req.count, req.validity_days)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors)
    data_service.refresh_activation_codes(db)
    return _responses(db, codes)


@router.get("/export")
async def export_codes(db: Session = Depends(get_db)):
    stamp = utcnow().strftime("%Y-%m-%d")
    return Response(
        content=activation_code_service.export_unused_csv(db),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="activation_codes_{stamp}.csv"'},
    )


@router.post("/{code_id}/toggle-active", response_model=CodeResponse)
async def toggle_code(code_id: int, db: Session = Depends(get_db)):
    code = _get_code(db, code_id)
    code.is_active = not code.is_active
    db.commit()
    db.refresh(code)
    data_service.refresh_activation_codes(db)
    return _responses(db, [code])[0]


@router.delete("/{code_id}")
async def delete_code(code_id: int, db: Session = Depends(get_db)):
    db.delete(_get_code(db, code_id))
    db.commit()
    data_service.refresh_activation_codes(db)
    return {"message": "Activation code deleted"}
