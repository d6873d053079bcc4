from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from jobboard.config import settings
from jobboard.database import get_db
from jobboard.dependencies import require_admin
from jobboard.models import User
from jobboard.schemas.user import UserCreate, UserListResponse, UserResponse, UserUpdate
from jobboard.services.auth_service import ROLE_USER, auth_service, registration_errors
from jobboard.services.data_service import data_service, user_to_dict
from jobboard.utils.security import hash_password
from jobboard.utils.timeutil import now_str

router = APIRouter(
    prefix="/admin/users",
    tags=["admin-users"],
    dependencies=[Depends(require_admin)],
)


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _check_icon(icon: int):
    if not 1 <= icon <= 9:
        raise HTTPException(status_code=400, detail="Icon must be between 1 and 9")


@router.get("", response_model=UserListResponse)
async def list_users(
    q: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.admin_page_size, ge=1, le=100),
    force_refresh: bool = False,
    db: Session = Depends(get_db),
):
    users = data_service.get_users(db, force_refresh=force_refresh)
    if q:
        needle = q.lower()
        users = [u for u in users if needle in u["username"].lower() or needle in u["account"].lower()]
    start = (page - 1) * per_page
    return UserListResponse(users=users[start:start + per_page], total=len(users), page=page, per_page=per_page)


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(req: UserCreate, db: Session = Depends(get_db)):
    errors = registration_errors(req.username, req.account, req.password)
    if errors:
        raise HTTPException(status_code=400, detail=errors)
    _check_icon(req.icon)
    if db.query(User.id).filter(User.account == req.account.strip()).first():
        raise HTTPException(status_code=409, detail="This e-mail address is already registered")

    now = now_str()
    user = User(
        username=req.username.strip(),
        account=req.account.strip(),
        password_hash=hash_password(req.password),
        icon=req.icon,
        is_active=req.is_active,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    data_service.refresh_users(db)
    return UserResponse(**user_to_dict(user))


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(user_id: int, req: UserUpdate, db: Session = Depends(get_db)):
    user = _get_user(db, user_id)
    if req.account is not None and req.account.strip() != user.account:
        errors = registration_errors(req.username or user.username, req.account, "x" * 6)
        if errors:
            raise HTTPException(status_code=400, detail=errors)
        if db.query(User.id).filter(User.account == req.account.strip()).first():
            raise HTTPException(status_code=409, detail="This e-mail address is already registered")
        user.account = req.account.strip()
    if req.username is not None:
        if not req.username.strip():
            raise HTTPException(status_code=400, detail="Enter a username")
        user.username = req.username.strip()
    # Password only changes when a new one is supplied
    if req.password:
        if len(req.password) < 6:
            raise HTTPException(status_code=400, detail="Password must be at least 6 characters")
        user.password_hash = hash_password(req.password)
    if req.icon is not None:
        _check_icon(req.icon)
        user.icon = req.icon
    if req.is_active is not None:
        user.is_active = req.is_active
    user.updated_at = now_str()
    db.commit()
    db.refresh(user)
    if not user.is_active:
        auth_service.revoke_subject(ROLE_USER, user.id)
    data_service.refresh_users(db)
    return UserResponse(**user_to_dict(user))


@router.post("/{user_id}/toggle-active", response_model=UserResponse)
async def toggle_active(user_id: int, db: Session = Depends(get_db)):
    user = _get_user(db, user_id)
    user.is_active = not user.is_active
    user.updated_at = now_str()
    db.commit()
    db.refresh(user)
    if not user.is_active:
        auth_service.revoke_subject(ROLE_USER, user.id)
    data_service.refresh_users(db)
    return UserResponse(**user_to_dict(user))
