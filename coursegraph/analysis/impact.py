"""
Impact Analyzer

Projects a proposed due-date change of one course onto its downstream
closure and grades how hard each dependent is hit.
"""

import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, List, Optional, Union

from pydantic import BaseModel, Field

from config.rules import PropagationRules
from ..errors import ValidationError
from ..graph.schema import (
    ChangeType,
    DependencyType,
    Priority,
    PropagationType,
    Severity,
    TraversalNode,
)

DateLike = Union[date, datetime, str]

SECONDS_PER_DAY = 24 * 60 * 60


class ImpactedCourse(BaseModel):
    """Projected effect of the change on one downstream course"""
    id: int
    title: str
    current_due_date: Optional[date] = None
    proposed_due_date: Optional[date] = None
    days_difference: int
    impact_severity: Severity = Severity.LOW
    depth: int
    dependency_type: DependencyType
    current_status: str
    completion_percentage: int = 0
    priority: Priority
    time_until_due: Optional[int] = Field(default=None, description="Days from now to the current due date")
    recommendations: List[str] = Field(default_factory=list)


def to_datetime(value: DateLike) -> datetime:
    """Normalize a date, datetime or ISO string to a naive datetime"""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError as e:
            raise ValidationError(f"Invalid date: {value}") from e
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return datetime.combine(value, time.min)


def days_between(current: DateLike, proposed: DateLike) -> int:
    """Whole days from `current` to `proposed`, rounding any partial day up"""
    delta = to_datetime(proposed) - to_datetime(current)
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def change_type(days_difference: int) -> ChangeType:
    if days_difference > 0:
        return ChangeType.DELAY
    if days_difference < 0:
        return ChangeType.ACCELERATION
    return ChangeType.NO_CHANGE


class ImpactAnalyzer:
    """
    Usage:
        analyzer = ImpactAnalyzer(settings.rules.propagation)
        impacted = analyzer.project(14, downstream_nodes, PropagationType.PUSH)
    """

    def __init__(self, rules: PropagationRules = None, clock: Callable[[], datetime] = datetime.now):
        self.rules = rules or PropagationRules()
        self.clock = clock

    def project(
        self,
        days_difference: int,
        downstream: List[TraversalNode],
        propagation_type: PropagationType,
    ) -> List[ImpactedCourse]:
        """One impact record per downstream entry, in closure order"""
        now = self.clock()
        return [self._project_one(node, days_difference, propagation_type, now) for node in downstream]

    def push_severity(self, days_difference: int) -> Severity:
        magnitude = abs(days_difference)
        if magnitude > self.rules.critical_days:
            return Severity.CRITICAL
        if magnitude > self.rules.high_days:
            return Severity.HIGH
        if magnitude > self.rules.medium_days:
            return Severity.MEDIUM
        return Severity.LOW

    def _project_one(
        self,
        node: TraversalNode,
        days_difference: int,
        propagation_type: PropagationType,
        now: datetime,
    ) -> ImpactedCourse:
        course = node.course
        recommendations = []
        severity = Severity.LOW
        proposed = course.due_date

        if propagation_type == PropagationType.PUSH:
            if course.due_date is not None:
                proposed = course.due_date + timedelta(days=days_difference)
            severity = self.push_severity(days_difference)
        elif days_difference > 0:
            # Compress: the dependent keeps its date and has to absorb the slip
            severity = Severity.MEDIUM
            recommendations.append("Consider accelerating development or reducing scope")

        time_until_due = None
        if course.due_date is not None:
            time_until_due = days_between(now, course.due_date)

        if time_until_due is not None and time_until_due < self.rules.near_deadline_days and days_difference > 0:
            severity = Severity.CRITICAL
            recommendations.append(
                f"Course due within {self.rules.near_deadline_days} days - critical timing conflict"
            )

        if course.priority == Priority.CRITICAL and days_difference > 0:
            severity = Severity.CRITICAL
            recommendations.append("Critical priority course affected")

        return ImpactedCourse(
            id=course.id,
            title=course.title,
            current_due_date=course.due_date,
            proposed_due_date=proposed,
            days_difference=days_difference,
            impact_severity=severity,
            depth=node.depth,
            dependency_type=node.dependency_type,
            current_status=course.current_status,
            completion_percentage=course.completion_percentage,
            priority=course.priority,
            time_until_due=time_until_due,
            recommendations=recommendations,
        )
