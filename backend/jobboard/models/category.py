from sqlalchemy import Boolean, Column, Integer, Text
from jobboard.database import Base


class Category(Base):
    __tablename__ = "job_categories"

    id = Column(Integer, primary_key=True)
    category = Column(Text, nullable=False)
    category_number = Column(Integer, nullable=False)
    active_job_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
