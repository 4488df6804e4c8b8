"""
Resource Conflict Detector

Finds assignees whose workload is squeezed by a schedule change: people
spread over many affected courses, or holding affected deadlines that land
within a few days of each other.
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from config.rules import ResourceRules
from ..graph.base import DependencyStore
from ..graph.schema import Severity
from .impact import ImpactedCourse

logger = logging.getLogger(__name__)


class AffectedAssignment(BaseModel):
    course_id: int
    title: str
    roles: List[str] = Field(default_factory=list)
    current_due_date: Optional[date] = None
    proposed_due_date: Optional[date] = None

    @property
    def effective_due_date(self) -> Optional[date]:
        return self.proposed_due_date or self.current_due_date


class AffectedUser(BaseModel):
    user_id: int
    name: str
    email: str
    daily_capacity: float
    affected_courses: List[AffectedAssignment] = Field(default_factory=list)
    conflict_severity: Severity = Severity.LOW


class ResourceSummary(BaseModel):
    total_users_affected: int = 0
    high_conflict_users: int = 0
    medium_conflict_users: int = 0


class ResourceImpact(BaseModel):
    affected_users: List[AffectedUser] = Field(default_factory=list)
    conflicts: List[AffectedUser] = Field(default_factory=list)
    summary: ResourceSummary = Field(default_factory=ResourceSummary)


class ResourceConflictDetector:
    """
    Usage:
        detector = ResourceConflictDetector(store, settings.rules.resources)
        resource_impact = await detector.analyze(12, date(2024, 6, 24), impacted)
    """

    def __init__(self, store: DependencyStore, rules: ResourceRules = None):
        self.store = store
        self.rules = rules or ResourceRules()

    async def analyze(
        self,
        course_id: int,
        new_due_date: date,
        impacted_courses: List[ImpactedCourse],
    ) -> Optional[ResourceImpact]:
        """
        Group assignees of the root and impacted courses by user and grade each.

        Returns None when the assignment data cannot be read; resource data
        is supplementary and must not fail the surrounding analysis.
        """
        try:
            proposed_by_course: Dict[int, Optional[date]] = {}
            for impacted in impacted_courses:
                proposed_by_course.setdefault(impacted.id, impacted.proposed_due_date)
            proposed_by_course[course_id] = new_due_date

            records = await self.store.get_assignees(proposed_by_course.keys())

            users: Dict[int, AffectedUser] = {}
            for record in records:
                user = users.get(record.user_id)
                if user is None:
                    user = users[record.user_id] = AffectedUser(
                        user_id=record.user_id,
                        name=record.name,
                        email=record.email,
                        daily_capacity=record.daily_capacity_hours,
                    )

                # One entry per course, whatever the number of roles held on it
                existing = next((a for a in user.affected_courses if a.course_id == record.course_id), None)
                if existing:
                    existing.roles.append(record.role)
                    continue

                user.affected_courses.append(AffectedAssignment(
                    course_id=record.course_id,
                    title=record.course_title,
                    roles=[record.role],
                    current_due_date=record.current_due_date,
                    proposed_due_date=proposed_by_course.get(record.course_id),
                ))

            for user in users.values():
                user.conflict_severity = self.grade(user.affected_courses)

            affected = list(users.values())
            conflicts = [u for u in affected if u.conflict_severity != Severity.LOW]

            return ResourceImpact(
                affected_users=affected,
                conflicts=conflicts,
                summary=ResourceSummary(
                    total_users_affected=len(affected),
                    high_conflict_users=sum(1 for u in affected if u.conflict_severity == Severity.HIGH),
                    medium_conflict_users=sum(1 for u in affected if u.conflict_severity == Severity.MEDIUM),
                ),
            )

        except Exception as e:
            logger.error(f"Resource impact analysis failed for course {course_id}: {e}")
            return None

    def grade(self, assignments: List[AffectedAssignment]) -> Severity:
        count = len(assignments)
        if count > self.rules.busy_course_count or self.has_overlapping_deadlines(assignments):
            return Severity.HIGH
        if count > 1:
            return Severity.MEDIUM
        return Severity.LOW

    def has_overlapping_deadlines(self, assignments: List[AffectedAssignment]) -> bool:
        """True when two deadlines, after sorting, fall within the overlap window"""
        deadlines = sorted(a.effective_due_date for a in assignments if a.effective_due_date)

        for current, following in zip(deadlines, deadlines[1:]):
            if (following - current).days < self.rules.overlap_window_days:
                return True

        return False
