"""initial gallery schema

Revision ID: 20260301_0001
Revises:
Create Date: 2026-03-01 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20260301_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "Users",
        sa.Column("UserID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("Email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("FullName", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("HashedPassword", sa.String(length=255), nullable=False),
        sa.Column("DateCreated", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("LastUpdated", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("LastLogin", sa.DateTime(), nullable=True),
        sa.Column("IsActive", sa.Boolean(), nullable=True),
        sa.Column("IsAdmin", sa.Boolean(), nullable=True),
    )
    op.create_table(
        "UserSession",
        sa.Column("SessionID", sa.Uuid(), primary_key=True),
        sa.Column(
            "UserID",
            sa.Integer(),
            sa.ForeignKey("Users.UserID", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("CreatedAt", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("ExpiresAt", sa.DateTime(), nullable=True),
        sa.Column("IsActive", sa.Boolean(), nullable=True),
        sa.Column("LastSeen", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("IPAddress", sa.String(length=45), nullable=True),
        sa.Column("UserAgent", sa.String(length=255), nullable=True),
    )
    op.create_table(
        "Gallery",
        sa.Column("GalleryID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "UserID",
            sa.Integer(),
            sa.ForeignKey("Users.UserID", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("Title", sa.String(length=255), nullable=False),
        sa.Column("Description", sa.Text(), nullable=True),
        sa.Column("Slug", sa.String(length=64), nullable=False, unique=True),
        sa.Column("HashedPassword", sa.String(length=255), nullable=False),
        sa.Column("ClientName", sa.String(length=255), nullable=False),
        sa.Column("ClientEmail", sa.String(length=255), nullable=False),
        sa.Column("EventType", sa.String(length=64), nullable=False, server_default="other"),
        sa.Column("EventDate", sa.DateTime(), nullable=True),
        sa.Column("IsActive", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("ExpiryDate", sa.DateTime(), nullable=True),
        sa.Column("DownloadLimit", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("CreatedAt", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("UpdatedAt", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint('"DownloadLimit" >= 0', name="ck_gallery_download_limit"),
    )
    op.create_table(
        "GalleryImage",
        sa.Column("ImageID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "GalleryID",
            sa.Integer(),
            sa.ForeignKey("Gallery.GalleryID", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("FileName", sa.String(length=255), nullable=False),
        sa.Column("OriginalName", sa.String(length=255), nullable=False),
        sa.Column("FilePath", sa.String(length=512), nullable=False),
        sa.Column("ThumbnailPath", sa.String(length=512), nullable=True),
        sa.Column("WatermarkPath", sa.String(length=512), nullable=True),
        sa.Column("FileSize", sa.Integer(), nullable=False),
        sa.Column("Width", sa.Integer(), nullable=False),
        sa.Column("Height", sa.Integer(), nullable=False),
        sa.Column("Order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("IsPublic", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("CreatedAt", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("UpdatedAt", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_GalleryImage_GalleryID", "GalleryImage", ["GalleryID"])
    op.create_table(
        "Download",
        sa.Column("DownloadID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "GalleryID",
            sa.Integer(),
            sa.ForeignKey("Gallery.GalleryID", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "ImageID",
            sa.Integer(),
            sa.ForeignKey("GalleryImage.ImageID", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("ClientIP", sa.String(length=45), nullable=False),
        sa.Column("UserAgent", sa.String(length=255), nullable=True),
        sa.Column("DownloadedAt", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_Download_GalleryID", "Download", ["GalleryID"])
    op.create_table(
        "Favorite",
        sa.Column("FavoriteID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "GalleryID",
            sa.Integer(),
            sa.ForeignKey("Gallery.GalleryID", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "ImageID",
            sa.Integer(),
            sa.ForeignKey("GalleryImage.ImageID", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("ClientIP", sa.String(length=45), nullable=False),
        sa.Column("CreatedAt", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.UniqueConstraint("ClientIP", "ImageID", name="uq_favorite_client_image"),
    )
    op.create_table(
        "GalleryAccess",
        sa.Column("AccessID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "GalleryID",
            sa.Integer(),
            sa.ForeignKey("Gallery.GalleryID", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("ClientIP", sa.String(length=45), nullable=False),
        sa.Column("UserAgent", sa.String(length=255), nullable=True),
        sa.Column("AccessedAt", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_galleryaccess_gallery", "GalleryAccess", ["GalleryID"])
    op.create_index("ix_galleryaccess_client", "GalleryAccess", ["ClientIP"])
    op.create_table(
        "RateLimitCounter",
        sa.Column("Key", sa.String(length=255), primary_key=True, nullable=False),
        sa.Column("Window", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("Count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("UpdatedAt", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_table(
        "AppErrorLog",
        sa.Column("ErrorID", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("OccurredAt", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("RequestID", sa.String(length=64), nullable=True),
        sa.Column("Path", sa.String(length=500), nullable=True),
        sa.Column("Method", sa.String(length=16), nullable=True),
        sa.Column("StatusCode", sa.Integer(), nullable=True),
        sa.Column("UserID", sa.Integer(), nullable=True),
        sa.Column("ClientIP", sa.String(length=45), nullable=True),
        sa.Column("UserAgent", sa.String(length=255), nullable=True),
        sa.Column("Referer", sa.String(length=500), nullable=True),
        sa.Column("Message", sa.Text(), nullable=True),
        sa.Column("StackTrace", sa.Text(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("AppErrorLog")
    op.drop_table("RateLimitCounter")
    op.drop_index("ix_galleryaccess_client", table_name="GalleryAccess")
    op.drop_index("ix_galleryaccess_gallery", table_name="GalleryAccess")
    op.drop_table("GalleryAccess")
    op.drop_table("Favorite")
    op.drop_index("ix_Download_GalleryID", table_name="Download")
    op.drop_table("Download")
    op.drop_index("ix_GalleryImage_GalleryID", table_name="GalleryImage")
    op.drop_table("GalleryImage")
    op.drop_table("Gallery")
    op.drop_table("UserSession")
    op.drop_table("Users")
