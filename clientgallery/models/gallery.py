from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from clientgallery.models.user import Base


class Gallery(Base):
    __tablename__ = "Gallery"
    GalleryID = Column(Integer, primary_key=True, autoincrement=True)
    UserID = Column(Integer, ForeignKey("Users.UserID", ondelete="CASCADE"), nullable=False)
    Title = Column(String(255), nullable=False)
    Description = Column(Text, nullable=True)
    Slug = Column(String(64), nullable=False, unique=True)
    HashedPassword = Column(String(255), nullable=False)
    ClientName = Column(String(255), nullable=False)
    ClientEmail = Column(String(255), nullable=False)
    EventType = Column(String(64), nullable=False, default="other")
    EventDate = Column(DateTime, nullable=True)
    IsActive = Column(Boolean, nullable=False, default=True)
    ExpiryDate = Column(DateTime, nullable=True)
    DownloadLimit = Column(Integer, nullable=False, default=50)
    CreatedAt = Column(DateTime, server_default=func.now())
    UpdatedAt = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('"DownloadLimit" >= 0', name="ck_gallery_download_limit"),
    )

    owner = relationship("User", back_populates="galleries")
    images = relationship(
        "GalleryImage",
        back_populates="gallery",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="GalleryImage.Order",
    )


class GalleryImage(Base):
    __tablename__ = "GalleryImage"
    ImageID = Column(Integer, primary_key=True, autoincrement=True)
    GalleryID = Column(
        Integer, ForeignKey("Gallery.GalleryID", ondelete="CASCADE"), nullable=False, index=True
    )
    FileName = Column(String(255), nullable=False)  # generated <uuid><ext>
    OriginalName = Column(String(255), nullable=False)  # as uploaded; display only
    FilePath = Column(String(512), nullable=False)  # storage key of the full variant
    ThumbnailPath = Column(String(512), nullable=True)
    WatermarkPath = Column(String(512), nullable=True)
    FileSize = Column(Integer, nullable=False)  # bytes of the full variant
    Width = Column(Integer, nullable=False)
    Height = Column(Integer, nullable=False)
    Order = Column(Integer, nullable=False, default=0)
    IsPublic = Column(Boolean, nullable=False, default=True)
    CreatedAt = Column(DateTime, server_default=func.now())
    UpdatedAt = Column(DateTime, server_default=func.now(), onupdate=func.now())

    gallery = relationship("Gallery", back_populates="images")


class Download(Base):
    __tablename__ = "Download"
    DownloadID = Column(Integer, primary_key=True, autoincrement=True)
    GalleryID = Column(
        Integer, ForeignKey("Gallery.GalleryID", ondelete="CASCADE"), nullable=False, index=True
    )
    ImageID = Column(
        Integer, ForeignKey("GalleryImage.ImageID", ondelete="CASCADE"), nullable=False
    )
    ClientIP = Column(String(45), nullable=False)
    UserAgent = Column(String(255), nullable=True)
    DownloadedAt = Column(DateTime, server_default=func.now())


class Favorite(Base):
    __tablename__ = "Favorite"
    FavoriteID = Column(Integer, primary_key=True, autoincrement=True)
    GalleryID = Column(
        Integer, ForeignKey("Gallery.GalleryID", ondelete="CASCADE"), nullable=False
    )
    ImageID = Column(
        Integer, ForeignKey("GalleryImage.ImageID", ondelete="CASCADE"), nullable=False
    )
    ClientIP = Column(String(45), nullable=False)
    CreatedAt = Column(DateTime, server_default=func.now())

    __table_args__ = (UniqueConstraint("ClientIP", "ImageID", name="uq_favorite_client_image"),)


class GalleryAccess(Base):
    __tablename__ = "GalleryAccess"
    AccessID = Column(Integer, primary_key=True, autoincrement=True)
    GalleryID = Column(
        Integer, ForeignKey("Gallery.GalleryID", ondelete="CASCADE"), nullable=False
    )
    ClientIP = Column(String(45), nullable=False)
    UserAgent = Column(String(255), nullable=True)
    AccessedAt = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_galleryaccess_gallery", "GalleryID"),
        Index("ix_galleryaccess_client", "ClientIP"),
    )
