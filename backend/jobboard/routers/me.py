from contextlib import contextmanager

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from jobboard.config import settings
from jobboard.database import get_db
from jobboard.dependencies import require_user
from jobboard.models import UserInfo
from jobboard.routers.jobs import job_to_response
from jobboard.schemas.job import JobResponse
from jobboard.schemas.user import JobStateRequest, MembershipResponse, RedeemRequest, ToggleResponse
from jobboard.services.cache_service import cache_service
from jobboard.services.data_service import JOB_STATES, RecordNotFoundError, data_service
from jobboard.services.membership_service import (
    ActivationError,
    ActivationRateLimitError,
    category_view_limit,
    membership_service,
    membership_status,
    quick_view_limit,
)

router = APIRouter(prefix="/me", tags=["me"])


@contextmanager
def _debounced(user_id: int, action: str, job_id: int):
    """Reject a repeat of the same action on the same job inside the debounce window.

    The lock is released when the action fails.
    """
    if settings.action_debounce_seconds <= 0:
        yield
        return
    key = f"actionLock:{user_id}:{action}:{job_id}"
    if cache_service.get(key) is not None:
        raise HTTPException(status_code=429, detail="Action already submitted, please wait")
    cache_service.set(key, True, expires_in=settings.action_debounce_seconds)
    try:
        yield
    except Exception:
        cache_service.remove(key)
        raise


def _membership(db: Session, user_id: int) -> MembershipResponse:
    info = db.query(UserInfo).filter(UserInfo.user_id == user_id).first()
    status = membership_status(info)
    return MembershipResponse(
        **status,
        category_view_limit=category_view_limit(status["membership_type"]),
        quick_view_limit=quick_view_limit(status["membership_type"]),
    )


@router.get("/membership", response_model=MembershipResponse)
async def get_membership(user_id: int = Depends(require_user), db: Session = Depends(get_db)):
    return _membership(db, user_id)


@router.post("/membership/redeem", response_model=MembershipResponse)
async def redeem_code(req: RedeemRequest, user_id: int = Depends(require_user), db: Session = Depends(get_db)):
    try:
        membership_service.redeem(db, user_id, req.code)
    except ActivationRateLimitError as exc:
        raise HTTPException(status_code=429, detail=str(exc))
    except ActivationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _membership(db, user_id)


@router.get("/favorites", response_model=list[JobResponse])
async def list_favorites(user_id: int = Depends(require_user), db: Session = Depends(get_db)):
    favorites = data_service.get_favorite_job_ids(db, user_id)
    applications = data_service.get_application_job_ids(db, user_id)
    return [
        job_to_response(j, favorite_ids=favorites, application_ids=applications)
        for j in data_service.get_user_favorite_jobs(db, user_id)
    ]


@router.get("/favorites/ids", response_model=list[int])
async def favorite_ids(user_id: int = Depends(require_user), db: Session = Depends(get_db)):
    return data_service.get_favorite_job_ids(db, user_id)


@router.post("/favorites/{job_id}", response_model=ToggleResponse)
async def toggle_favorite(job_id: int, user_id: int = Depends(require_user), db: Session = Depends(get_db)):
    with _debounced(user_id, "favorite", job_id):
        try:
            is_favorite = data_service.toggle_favorite(db, user_id, job_id)
        except RecordNotFoundError:
            raise HTTPException(status_code=404, detail="Job not found")
    return ToggleResponse(job_id=job_id, value=is_favorite)


@router.get("/applications", response_model=list[JobResponse])
async def list_applications(user_id: int = Depends(require_user), db: Session = Depends(get_db)):
    favorites = data_service.get_favorite_job_ids(db, user_id)
    applications = data_service.get_application_job_ids(db, user_id)
    states = data_service.get_job_states(db, user_id)
    return [
        job_to_response(j, favorite_ids=favorites, application_ids=applications, states=states)
        for j in data_service.get_user_application_jobs(db, user_id)
    ]


@router.get("/applications/ids", response_model=list[int])
async def application_ids(user_id: int = Depends(require_user), db: Session = Depends(get_db)):
    return data_service.get_application_job_ids(db, user_id)


@router.post("/applications/{job_id}", response_model=ToggleResponse)
async def add_application(job_id: int, user_id: int = Depends(require_user), db: Session = Depends(get_db)):
    with _debounced(user_id, "apply", job_id):
        try:
            data_service.add_application(db, user_id, job_id)
        except RecordNotFoundError:
            raise HTTPException(status_code=404, detail="Job not found")
    return ToggleResponse(job_id=job_id, value=True)


@router.delete("/applications/{job_id}", response_model=ToggleResponse)
async def remove_application(job_id: int, user_id: int = Depends(require_user), db: Session = Depends(get_db)):
    with _debounced(user_id, "unapply", job_id):
        try:
            data_service.remove_application(db, user_id, job_id)
        except RecordNotFoundError:
            raise HTTPException(status_code=404, detail="Job not found")
    return ToggleResponse(job_id=job_id, value=False)


@router.get("/job-states")
async def get_job_states(user_id: int = Depends(require_user), db: Session = Depends(get_db)):
    return {
        "states": {str(job_id): state for job_id, state in data_service.get_job_states(db, user_id).items()},
        "labels": JOB_STATES,
    }


@router.put("/job-states/{job_id}")
async def set_job_state(
    job_id: int,
    req: JobStateRequest,
    user_id: int = Depends(require_user),
    db: Session = Depends(get_db),
):
    try:
        data_service.set_job_state(db, user_id, job_id, req.state_id)
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"job_id": job_id, "state_id": req.state_id, "label": JOB_STATES[req.state_id]}
