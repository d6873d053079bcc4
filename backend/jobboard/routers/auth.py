from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from jobboard.database import get_db
from jobboard.dependencies import require_session
from jobboard.models import Admin, User
from jobboard.schemas.auth import (
    AdminLoginRequest,
    LoginResponse,
    RegisterRequest,
    SessionResponse,
    ThrottleResponse,
    UserLoginRequest,
)
from jobboard.services.auth_service import ROLE_ADMIN, AccountExistsError, auth_service
from jobboard.services.cache_service import cache_service
from jobboard.services.membership_service import resolve_tier
from jobboard.services.validation import ValidationError

router = APIRouter(prefix="/auth", tags=["auth"])


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/register", response_model=SessionResponse, status_code=201)
async def register(req: RegisterRequest, db: Session = Depends(get_db)):
    if req.confirm_password is not None and req.confirm_password != req.password:
        raise HTTPException(status_code=400, detail=["The two passwords do not match"])
    try:
        user = auth_service.register_user(db, req.username, req.account, req.password)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors)
    except AccountExistsError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    cache_service.clear_type("users")
    db.refresh(user)
    return SessionResponse(
        role="user",
        id=user.id,
        name=user.username,
        account=user.account,
        icon=user.icon,
        membership_type=resolve_tier(user.info),
    )


@router.post("/login", response_model=LoginResponse | ThrottleResponse)
async def login(req: UserLoginRequest, request: Request, db: Session = Depends(get_db)):
    result = auth_service.login_user(db, req.account, req.password, throttle_key=f"login:{_client_host(request)}")
    if result is None:
        raise HTTPException(status_code=401, detail="Incorrect account or password")
    if "error" in result:
        raise HTTPException(status_code=429, detail=result)
    return LoginResponse(**result)


@router.post("/admin/login", response_model=LoginResponse | ThrottleResponse)
async def admin_login(req: AdminLoginRequest, request: Request, db: Session = Depends(get_db)):
    result = auth_service.login_admin(
        db, req.username, req.password, throttle_key=f"admin-login:{_client_host(request)}",
    )
    if result is None:
        raise HTTPException(status_code=401, detail="Incorrect username or password")
    if "error" in result:
        raise HTTPException(status_code=429, detail=result)
    return LoginResponse(**result)


@router.post("/logout")
async def logout(session: dict = Depends(require_session)):
    auth_service.revoke(session["token"])
    return {"message": "Logged out"}


@router.get("/me", response_model=SessionResponse)
async def whoami(session: dict = Depends(require_session), db: Session = Depends(get_db)):
    if session["role"] == ROLE_ADMIN:
        admin = db.query(Admin).filter(Admin.id == session["subject_id"]).first()
        if not admin or not admin.is_active:
            raise HTTPException(status_code=401, detail="Account no longer active")
        return SessionResponse(role=ROLE_ADMIN, id=admin.id, name=admin.admin_username)

    user = db.query(User).filter(User.id == session["subject_id"]).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Account no longer active")
    return SessionResponse(
        role="user",
        id=user.id,
        name=user.username,
        account=user.account,
        icon=user.icon,
        membership_type=resolve_tier(user.info),
    )
