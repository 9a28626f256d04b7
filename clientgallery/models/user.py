import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class User(Base):
    __tablename__ = "Users"
    UserID = Column(Integer, primary_key=True, autoincrement=True)
    Email = Column(String(255), nullable=False, unique=True)
    FullName = Column(String(200), nullable=False, default="")
    HashedPassword = Column(String(255), nullable=False)
    DateCreated = Column(DateTime, server_default=func.now())
    LastUpdated = Column(DateTime, server_default=func.now(), onupdate=func.now())
    LastLogin = Column(DateTime, nullable=True)
    IsActive = Column(Boolean, default=True)
    # Admin role flag; checked once by the admin router dependency
    IsAdmin = Column(Boolean, default=False)

    galleries = relationship("Gallery", back_populates="owner")


class UserSession(Base):
    __tablename__ = "UserSession"
    SessionID = Column(Uuid, primary_key=True, default=uuid.uuid4)
    UserID = Column(Integer, ForeignKey("Users.UserID", ondelete="CASCADE"), nullable=False)
    CreatedAt = Column(DateTime, server_default=func.now())
    ExpiresAt = Column(DateTime, nullable=True)
    IsActive = Column(Boolean, default=True)
    LastSeen = Column(DateTime, server_default=func.now())
    IPAddress = Column(String(45), nullable=True)
    UserAgent = Column(String(255), nullable=True)
