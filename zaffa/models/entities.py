from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zaffa.db.base import Base, TimestampMixin, UUIDMixin, utcnow

ROLE_GROOM = "groom"
ROLE_BRIDE = "bride"
ROLES = (ROLE_GROOM, ROLE_BRIDE)

PRIORITIES = ("low", "medium", "high")

NAME_MAX_LENGTH = 128

INVITATION_PENDING = "pending"
INVITATION_ACCEPTED = "accepted"
INVITATION_DECLINED = "declined"

MAX_HOUSEHOLD_MEMBERS = 2


class Household(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "households"

    hero_title: Mapped[Optional[str]] = mapped_column(String(50), default=None)
    hero_subtitle: Mapped[Optional[str]] = mapped_column(String(100), default=None)
    hero_image_url: Mapped[Optional[str]] = mapped_column(Text, default=None)

    members: Mapped[List[User]] = relationship(
        "User", back_populates="household", passive_deletes=True, order_by="User.created_at"
    )
    categories: Mapped[List[Category]] = relationship(
        "Category", back_populates="household", cascade="all, delete-orphan", passive_deletes=True
    )
    items: Mapped[List[ChecklistItem]] = relationship(
        "ChecklistItem", back_populates="household", cascade="all, delete-orphan", passive_deletes=True
    )
    analyses: Mapped[List[Analysis]] = relationship(
        "Analysis", back_populates="household", cascade="all, delete-orphan", passive_deletes=True
    )
    activity_logs: Mapped[List[ActivityLog]] = relationship(
        "ActivityLog", back_populates="household", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def member_ids(self) -> list[uuid.UUID]:
        return [member.id for member in self.members]


class User(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(254), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    first_name: Mapped[str] = mapped_column(String(64), nullable=False)
    last_name: Mapped[str] = mapped_column(String(64), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=ROLE_GROOM)
    household_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("households.id", ondelete="SET NULL"), nullable=True, index=True
    )
    theme: Mapped[Optional[str]] = mapped_column(String(16), default=None)
    theme_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")

    household: Mapped[Optional[Household]] = relationship("Household", back_populates="members")

    @property
    def effective_theme(self) -> str:
        if self.theme_override and self.theme:
            return self.theme
        return self.role or ROLE_GROOM


class Category(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "categories"

    household_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("categories.id", ondelete="CASCADE"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(NAME_MAX_LENGTH), nullable=False)

    household: Mapped[Household] = relationship("Household", back_populates="categories")

    @property
    def is_section(self) -> bool:
        return self.parent_id is None


class ChecklistItem(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "checklist_items"

    household_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(NAME_MAX_LENGTH), nullable=False)
    min_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    max_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_purchased: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    final_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True, default=None)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")

    household: Mapped[Household] = relationship("Household", back_populates="items")
    category: Mapped[Category] = relationship("Category")


class Invitation(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "invitations"

    inviter_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    inviter_name: Mapped[str] = mapped_column(String(64), nullable=False)
    inviter_role: Mapped[str] = mapped_column(String(16), nullable=False)
    invitee_email: Mapped[str] = mapped_column(String(254), nullable=False, index=True)
    household_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("households.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=INVITATION_PENDING, index=True)

    household: Mapped[Household] = relationship("Household")


class Analysis(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "analyses"

    household_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(NAME_MAX_LENGTH), nullable=False)
    category_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")

    household: Mapped[Household] = relationship("Household", back_populates="analyses")


class ActivityLog(UUIDMixin, Base):
    __tablename__ = "activity_logs"

    household_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    user_name: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")
    payload_json: Mapped[Optional[str]] = mapped_column(Text, default=None)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    reverted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=None)

    household: Mapped[Household] = relationship("Household", back_populates="activity_logs")


class AuditLog(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "audit_log"

    actor_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    entity: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, default=None)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
    ip: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    payload_json: Mapped[Optional[str]] = mapped_column(Text, default=None)
