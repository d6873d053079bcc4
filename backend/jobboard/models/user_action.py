from sqlalchemy import JSON, Column, ForeignKey, Integer, Text
from jobboard.database import Base


class UserAction(Base):
    __tablename__ = "user_actions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    # Job id lists are kept most-recent-first
    favorite_job_ids = Column(JSON, nullable=False, default=list)
    application_job_ids = Column(JSON, nullable=False, default=list)
    # [[job_id, state_id], ...]
    job_state = Column(JSON, nullable=False, default=list)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
