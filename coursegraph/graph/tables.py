"""
Relational table mappings.

Mirrors the course-management schema the engine reads from. Only
`course_dependencies` is written by the engine.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .schema import utc_now


class Base(DeclarativeBase):
    pass


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True)
    name: Mapped[str] = mapped_column(String(255))
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    daily_capacity_hours: Mapped[float] = mapped_column(Float, default=8.0)


class CourseRow(Base):
    __tablename__ = "courses"
    __table_args__ = (
        CheckConstraint("priority IN ('low', 'medium', 'high', 'critical')", name="valid_priority"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    priority: Mapped[str] = mapped_column(String(20), default="medium")
    status: Mapped[str] = mapped_column(String(50), default="draft")
    calculated_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    completion_percentage: Mapped[int] = mapped_column(Integer, default=0)
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    estimated_hours: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class CourseAssignmentRow(Base):
    __tablename__ = "course_assignments"
    __table_args__ = (
        UniqueConstraint("course_id", "user_id", "role", name="unique_course_user_role"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"))
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    role: Mapped[str] = mapped_column(String(50))


class CourseDependencyRow(Base):
    __tablename__ = "course_dependencies"
    __table_args__ = (
        CheckConstraint("course_id != depends_on_course_id", name="no_self_dependency"),
        UniqueConstraint("course_id", "depends_on_course_id", name="unique_dependency"),
        Index("idx_course_dependencies_course", "course_id"),
        Index("idx_course_dependencies_blocks", "depends_on_course_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"))
    depends_on_course_id: Mapped[int] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"))
    dependency_type: Mapped[str] = mapped_column(String(50), default="blocks")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
