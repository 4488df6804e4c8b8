"""
Severity Scorer & Recommendation Generator

Turns raw impact data into one qualitative verdict and a list of
follow-up actions for the operator.
"""

from typing import List, Optional

from pydantic import BaseModel

from config.rules import EffortRules, SeverityRules
from ..graph.schema import Priority, Severity
from .impact import ImpactedCourse
from .resources import ResourceImpact


class Recommendation(BaseModel):
    type: str
    priority: Severity
    title: str
    description: str


class SeverityScorer:
    """
    Additive point score over the size of the change, the number of
    dependents hit, critical dependents and resource conflicts.

    Usage:
        scorer = SeverityScorer(settings.rules.severity)
        severity = scorer.calculate_impact_severity(14, impacted, resource_impact)
    """

    def __init__(self, rules: SeverityRules = None):
        self.rules = rules or SeverityRules()

    def score(
        self,
        days_difference: int,
        impacted_courses: List[ImpactedCourse],
        resource_impact: Optional[ResourceImpact],
    ) -> int:
        score = self._points(abs(days_difference), self.rules.day_breakpoints)
        score += self._points(len(impacted_courses), self.rules.count_breakpoints)

        critical = sum(1 for c in impacted_courses if c.impact_severity == Severity.CRITICAL)
        score += critical * self.rules.critical_course_points

        if resource_impact:
            high = sum(1 for u in resource_impact.conflicts if u.conflict_severity == Severity.HIGH)
            score += high * self.rules.high_conflict_points
            score += len(resource_impact.conflicts) * self.rules.conflict_points

        return score

    def tier(self, score: int) -> Severity:
        thresholds = self.rules.tier_thresholds
        for severity in (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM):
            if score >= thresholds[severity.value]:
                return severity
        return Severity.LOW

    def calculate_impact_severity(
        self,
        days_difference: int,
        impacted_courses: List[ImpactedCourse],
        resource_impact: Optional[ResourceImpact],
    ) -> Severity:
        return self.tier(self.score(days_difference, impacted_courses, resource_impact))

    @staticmethod
    def _points(value: float, breakpoints) -> int:
        for breakpoint in sorted(breakpoints, key=lambda b: b.above, reverse=True):
            if value > breakpoint.above:
                return breakpoint.points
        return 0


def generate_recommendations(
    severity: Severity,
    days_difference: int,
    impacted_courses: List[ImpactedCourse],
    resource_impact: Optional[ResourceImpact],
) -> List[Recommendation]:
    """Follow-up actions for a scored change; no side effects"""
    recommendations = []

    if severity == Severity.CRITICAL:
        recommendations.append(Recommendation(
            type="critical_alert",
            priority=Severity.CRITICAL,
            title="Critical Impact Detected",
            description="This schedule change has critical impact across multiple courses and resources.",
        ))

    if abs(days_difference) > 14:
        recommendations.append(Recommendation(
            type="stakeholder_communication",
            priority=Severity.HIGH,
            title="Stakeholder Communication Required",
            description=f"Significant schedule change ({abs(days_difference)} days) requires stakeholder notification.",
        ))

    if impacted_courses:
        recommendations.append(Recommendation(
            type="dependency_review",
            priority=Severity.MEDIUM,
            title="Review Dependent Courses",
            description=f"{len(impacted_courses)} dependent courses need schedule review and possible adjustment.",
        ))

    if resource_impact and resource_impact.conflicts:
        recommendations.append(Recommendation(
            type="resource_reallocation",
            priority=Severity.HIGH,
            title="Resource Conflicts Detected",
            description=f"{len(resource_impact.conflicts)} team members have scheduling conflicts that need resolution.",
        ))

    critical_courses = [c for c in impacted_courses if c.priority == Priority.CRITICAL]
    if critical_courses:
        recommendations.append(Recommendation(
            type="priority_escalation",
            priority=Severity.CRITICAL,
            title="Critical Priority Courses Affected",
            description=f"{len(critical_courses)} critical priority courses are impacted.",
        ))

    return recommendations


def estimate_effort(
    impacted_courses: List[ImpactedCourse],
    resource_impact: Optional[ResourceImpact],
    rules: EffortRules = None,
) -> str:
    """Rough low/medium/high estimate of the work needed to absorb the change"""
    rules = rules or EffortRules()

    effort = rules.base
    effort += len(impacted_courses) * rules.per_impacted_course
    effort += sum(1 for c in impacted_courses if c.impact_severity == Severity.CRITICAL) * rules.per_critical_impact
    if resource_impact:
        effort += len(resource_impact.conflicts) * rules.per_conflict

    if effort <= rules.low_max:
        return "low"
    if effort <= rules.medium_max:
        return "medium"
    return "high"
