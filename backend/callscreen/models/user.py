import enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from callscreen.core.clock import utcnow
from callscreen.core.database import Base


class UserRole(enum.Enum):
    ADMIN = "ADMIN"
    RECRUITER = "RECRUITER"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(150), unique=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    email = Column(String(255))
    role = Column(String(20), nullable=False, default=UserRole.RECRUITER.value)
    is_active = Column(Boolean, default=True)
    must_change_password = Column(Boolean, default=True)
    # scheduled reports
    email_notifications = Column(Boolean, default=True, nullable=False)
    # qualified-candidate alerts
    receive_notifications = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
