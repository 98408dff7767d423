"""
SQLAlchemy Database Models
"""

import uuid
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from docshare.db.base import Base, TimestampMixin, UUIDMixin

ACCESS_LEVELS = ("read", "edit")


class User(TimestampMixin, Base):
    """Profile mirrored from the identity provider"""

    __tablename__ = "users"

    # Issued by the identity provider, never generated here
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)


class Document(UUIDMixin, TimestampMixin, Base):
    """Document SQLAlchemy model"""

    __tablename__ = "documents"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Storage key in the blob store; written once at creation
    file_url: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True)
    original_filename: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    content_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_size_bytes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class AccessGrant(UUIDMixin, TimestampMixin, Base):
    """Non-owner access to a document (ACL row)"""

    __tablename__ = "access_control"
    __table_args__ = (
        UniqueConstraint("document_id", "user_id", name="uq_access_control_document_user"),
        CheckConstraint("access_level IN ('read', 'edit')", name="ck_access_control_level"),
    )

    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    access_level: Mapped[str] = mapped_column(String(10), nullable=False, default="read")


class Identity(UUIDMixin, TimestampMixin, Base):
    """Credential record owned by LocalIdentityProvider"""

    __tablename__ = "identities"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
