from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String
from db.database import Base


class Profile(Base):
    __tablename__ = "profiles"

    # user id issued by the auth provider (token "sub")
    id = Column(String(36), primary_key=True, index=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    stay_signed_in = Column(Boolean, default=False, nullable=False)
    theme = Column(String(10), default="system", nullable=False)  # light / dark / system
