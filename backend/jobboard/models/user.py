from sqlalchemy import Boolean, Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from jobboard.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(Text, nullable=False)
    account = Column(Text, nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    icon = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    info = relationship("UserInfo", back_populates="user", uselist=False, cascade="all, delete-orphan")


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    admin_username = Column(Text, nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    admin_permissions = Column(Text, nullable=False, default="all")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(Text, nullable=False)


class UserInfo(Base):
    __tablename__ = "user_info"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    membership_type = Column(Text, nullable=False, default="common_user")
    membership_code = Column(Text)
    membership_start_date = Column(Text)
    membership_end_date = Column(Text)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    user = relationship("User", back_populates="info")
