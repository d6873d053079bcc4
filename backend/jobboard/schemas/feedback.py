from pydantic import BaseModel


class FeedbackCreate(BaseModel):
    content: str


class FeedbackResponse(BaseModel):
    id: int
    content: str
    user_id: int | None
    created_at: str
