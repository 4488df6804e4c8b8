"""Result records of a schedule impact analysis"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..graph.schema import ChangeType, PropagationType, Severity, utc_now
from .impact import ImpactedCourse
from .resources import ResourceImpact
from .severity import Recommendation


class OriginalCourseChange(BaseModel):
    id: int
    title: str
    current_due_date: date
    proposed_due_date: date
    days_difference: int
    change_type: ChangeType


class ImpactSummary(BaseModel):
    total_courses_affected: int
    critical_impacts: int
    resource_conflicts: int
    estimated_effort: str


class AnalysisOptions(BaseModel):
    propagation_type: PropagationType
    max_depth: int
    include_resource_impact: bool
    analyzed_at: datetime = Field(default_factory=utc_now)


class ScheduleImpactReport(BaseModel):
    original_course: OriginalCourseChange
    impacted_courses: List[ImpactedCourse]
    resource_impact: Optional[ResourceImpact] = None
    severity: Severity
    recommendations: List[Recommendation]
    summary: ImpactSummary
    options: AnalysisOptions
