from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from jobboard.database import get_db
from jobboard.dependencies import optional_user, require_admin
from jobboard.models import Message
from jobboard.schemas.feedback import FeedbackCreate, FeedbackResponse
from jobboard.services.data_service import row_to_dict
from jobboard.utils.timeutil import now_str

MAX_FEEDBACK_LENGTH = 2000

router = APIRouter(prefix="/feedback", tags=["feedback"])


@router.post("", response_model=FeedbackResponse, status_code=201)
async def submit_feedback(
    req: FeedbackCreate,
    user_id: int | None = Depends(optional_user),
    db: Session = Depends(get_db),
):
    content = req.content.strip()
    if not content:
        raise HTTPException(status_code=400, detail="Feedback cannot be empty")
    if len(content) > MAX_FEEDBACK_LENGTH:
        raise HTTPException(status_code=400, detail=f"Feedback is limited to {MAX_FEEDBACK_LENGTH} characters")
    message = Message(content=content, user_id=user_id, created_at=now_str())
    db.add(message)
    db.commit()
    db.refresh(message)
    return FeedbackResponse(**row_to_dict(message))


@router.get("", response_model=list[FeedbackResponse], dependencies=[Depends(require_admin)])
async def list_feedback(limit: int = Query(100, ge=1, le=500), db: Session = Depends(get_db)):
    messages = db.query(Message).order_by(Message.created_at.desc(), Message.id.desc()).limit(limit).all()
    return [FeedbackResponse(**row_to_dict(m)) for m in messages]
