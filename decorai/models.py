# models.py
"""
Database models for DecorAI.

This file defines all SQLAlchemy models used by the application,
providing a single source of truth for the database schema.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, DateTime, Text, Float, ForeignKey, JSON, Uuid
)
from sqlalchemy.orm import relationship

from decorai.db import Base

# --- Project lifecycle ---
STATUS_DRAFT = "draft"
STATUS_ANALYZING = "analyzing"
STATUS_COMPLETED = "completed"
PROJECT_STATUSES = (STATUS_DRAFT, STATUS_ANALYZING, STATUS_COMPLETED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -----------------------
# Models
# -----------------------
class Profile(Base):
    __tablename__ = "profiles"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(320), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    hashed_password = Column(String(512), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    projects = relationship("Project", back_populates="owner", cascade="all, delete-orphan")


class Project(Base):
    __tablename__ = "projects"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    original_image_url = Column(String(1024), nullable=False)
    analyzed_data = Column(JSON, nullable=True)
    status = Column(String(16), nullable=False, default=STATUS_DRAFT)  # see PROJECT_STATUSES
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    owner = relationship("Profile", back_populates="projects")
    suggestions = relationship("DesignSuggestion", back_populates="project", cascade="all, delete-orphan")

    def advance_status(self, new_status: str) -> None:
        """Moves the project forward through draft -> analyzing -> completed."""
        if new_status not in PROJECT_STATUSES:
            raise ValueError(f"Unknown project status: {new_status!r}")
        current = PROJECT_STATUSES.index(self.status or STATUS_DRAFT)
        if PROJECT_STATUSES.index(new_status) < current:
            raise ValueError(f"Project status cannot move from {self.status!r} back to {new_status!r}")
        self.status = new_status


class DesignSuggestion(Base):
    __tablename__ = "design_suggestions"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("projects.id"), nullable=False, index=True)
    suggestion_text = Column(Text, nullable=False)
    items = Column(JSON, nullable=False, default=list)  # raw item snapshots from the model
    total_estimated_cost = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    project = relationship("Project", back_populates="suggestions")
    decoration_items = relationship("DecorationItem", back_populates="suggestion", cascade="all, delete-orphan")


class DecorationItem(Base):
    __tablename__ = "decoration_items"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    suggestion_id = Column(Uuid(as_uuid=True), ForeignKey("design_suggestions.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(128), nullable=False)
    estimated_price = Column(Float, nullable=True)
    store_name = Column(String(255), nullable=True)
    store_location = Column(String(512), nullable=True)
    store_distance = Column(Float, nullable=True)
    image_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    suggestion = relationship("DesignSuggestion", back_populates="decoration_items")
