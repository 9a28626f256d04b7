from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from clientgallery.models.user import Base


class RateLimitCounter(Base):
    __tablename__ = "RateLimitCounter"

    Key = Column(String(255), primary_key=True)
    Window = Column(Integer, primary_key=True)
    Count = Column(Integer, nullable=False, default=0)
    UpdatedAt = Column(DateTime, server_default=func.now(), onupdate=func.now())
