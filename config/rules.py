"""
Rule Tables

Thresholds and weights used by the impact analyzer and the severity scorer.
Kept as data so operators can retune them through settings without touching
the analysis code.
"""

from typing import List, Dict
from pydantic import BaseModel, Field


class Breakpoint(BaseModel):
    """Awards `points` when a measured value is strictly greater than `above`"""
    above: float
    points: int


def _day_breakpoints() -> List[Breakpoint]:
    return [
        Breakpoint(above=30, points=4),
        Breakpoint(above=14, points=3),
        Breakpoint(above=7, points=2),
        Breakpoint(above=0, points=1),
    ]


def _count_breakpoints() -> List[Breakpoint]:
    return [
        Breakpoint(above=5, points=3),
        Breakpoint(above=2, points=2),
        Breakpoint(above=0, points=1),
    ]


def _tier_thresholds() -> Dict[str, int]:
    return {"critical": 10, "high": 6, "medium": 3}


class PropagationRules(BaseModel):
    """Per-course severity bands used when a schedule change is pushed downstream"""
    critical_days: int = Field(default=21, description="|days| above this is critical")
    high_days: int = Field(default=7, description="|days| above this is high")
    medium_days: int = Field(default=3, description="|days| above this is medium")
    near_deadline_days: int = Field(default=14, description="Due sooner than this escalates a slip")


class ResourceRules(BaseModel):
    """Assignee conflict rules"""
    busy_course_count: int = Field(default=3, description="More affected courses than this is high")
    overlap_window_days: int = Field(default=7, description="Deadlines closer than this overlap")


class SeverityRules(BaseModel):
    """Additive score for the overall verdict"""
    day_breakpoints: List[Breakpoint] = Field(default_factory=_day_breakpoints)
    count_breakpoints: List[Breakpoint] = Field(default_factory=_count_breakpoints)
    critical_course_points: int = 2
    high_conflict_points: int = 2
    conflict_points: int = 1
    tier_thresholds: Dict[str, int] = Field(default_factory=_tier_thresholds)


class EffortRules(BaseModel):
    """Rough estimate of the work needed to absorb a change"""
    base: float = 1.0
    per_impacted_course: float = 0.5
    per_critical_impact: float = 1.0
    per_conflict: float = 0.5
    low_max: float = 2.0
    medium_max: float = 5.0


class AnalysisRules(BaseModel):
    """All rule tables, passed explicitly into the analysis components"""
    propagation: PropagationRules = Field(default_factory=PropagationRules)
    resources: ResourceRules = Field(default_factory=ResourceRules)
    severity: SeverityRules = Field(default_factory=SeverityRules)
    effort: EffortRules = Field(default_factory=EffortRules)
