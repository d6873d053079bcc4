from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from jobboard.database import Base


class Job(Base):
    __tablename__ = "job_recruitments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_title = Column(Text, nullable=False)
    company = Column(Text, nullable=False)
    description = Column(Text)
    category_id = Column(JSON, nullable=False, default=list)
    post_time = Column(Text, nullable=False)
    deadline = Column(Text, nullable=False)
    job_location = Column(Text, nullable=False)
    job_position = Column(Text, nullable=False)
    job_major = Column(Text)
    job_graduation_year = Column(Text, nullable=False)
    job_education_requirement = Column(Text, nullable=False)
    application_link = Column(Text)
    views_count = Column(Integer, nullable=False, default=0)
    favorites_count = Column(Integer, nullable=False, default=0)
    applications_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    is_pregraduation = Column(Boolean, nullable=False, default=False)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
    last_update = Column(Text, nullable=False)

    job_tag = relationship("JobTag", uselist=False, cascade="all, delete-orphan")


class JobTag(Base):
    __tablename__ = "job_tags"

    job_id = Column(Integer, ForeignKey("job_recruitments.id", ondelete="CASCADE"), primary_key=True)
    time_tag_id = Column(Integer, ForeignKey("tags.id", ondelete="SET NULL"))
    action_tag_id = Column(Integer, ForeignKey("tags.id", ondelete="SET NULL"))
