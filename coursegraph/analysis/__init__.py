"""
Analysis module - Projects schedule changes onto dependents and scores them
"""

from .impact import ImpactAnalyzer, ImpactedCourse
from .resources import ResourceConflictDetector, ResourceImpact
from .severity import SeverityScorer, generate_recommendations, estimate_effort
from .report import ScheduleImpactReport

__all__ = [
    "ImpactAnalyzer",
    "ImpactedCourse",
    "ResourceConflictDetector",
    "ResourceImpact",
    "SeverityScorer",
    "generate_recommendations",
    "estimate_effort",
    "ScheduleImpactReport",
]
