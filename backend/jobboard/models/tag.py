from sqlalchemy import Boolean, Column, Integer, Text
from jobboard.database import Base


class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tag_name = Column(Text, nullable=False)
    tag_type = Column(Text, nullable=False, default="general")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(Text, nullable=False)
