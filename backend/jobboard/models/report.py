from sqlalchemy import Column, ForeignKey, Integer, Text
from jobboard.database import Base


class StatisticSnapshot(Base):
    __tablename__ = "statistics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    stat_date = Column(Text, nullable=False, unique=True)
    total_users = Column(Integer, nullable=False, default=0)
    active_users = Column(Integer, nullable=False, default=0)
    total_jobs = Column(Integer, nullable=False, default=0)
    active_jobs = Column(Integer, nullable=False, default=0)
    total_applications = Column(Integer, nullable=False, default=0)
    total_favorites = Column(Integer, nullable=False, default=0)


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    content = Column(Text, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(Text, nullable=False)
