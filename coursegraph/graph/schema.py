"""
Graph Schema Definitions

Defines the records the dependency engine reads and produces.
Courses, users and assignments belong to the course-management side;
the engine only owns dependency edges.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import date, datetime, timezone
from enum import Enum

from config.settings import TERMINAL_STATUSES, DELETED_STATUS, PRIORITY_ORDER


def utc_now() -> datetime:
    """Current time as naive UTC, the form stored and compared throughout"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return PRIORITY_ORDER[self.value]


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return PRIORITY_ORDER[self.value]


class DependencyType(str, Enum):
    BLOCKS = "blocks"       # Must precede
    INFORMS = "informs"     # Should precede


class PropagationType(str, Enum):
    PUSH = "push"           # Shift every dependent by the same delta
    COMPRESS = "compress"   # Hold dependent dates, flag for compression


class ChangeType(str, Enum):
    DELAY = "delay"
    ACCELERATION = "acceleration"
    NO_CHANGE = "no_change"


class Course(BaseModel):
    """
    A course row as read from the course-management tables.

    Example:
        id: 12
        title: "Onboarding Essentials"
        due_date: 2024-06-10
        priority: "high"
        status: "in_progress"
    """
    id: int
    title: str
    due_date: Optional[date] = None
    start_date: Optional[date] = None
    priority: Priority = Priority.MEDIUM
    status: str = "draft"
    calculated_status: Optional[str] = None
    completion_percentage: int = 0
    estimated_hours: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_deleted(self) -> bool:
        return self.status == DELETED_STATUS

    @property
    def current_status(self) -> str:
        return self.calculated_status or self.status


class Dependency(BaseModel):
    """
    Directed edge: `course_id` depends on `depends_on_course_id`.

    Edges are never updated in place; a change is a delete plus a create.
    """
    id: int
    course_id: int
    depends_on_course_id: int
    dependency_type: DependencyType = DependencyType.BLOCKS
    created_at: datetime = Field(default_factory=utc_now)


class User(BaseModel):
    """An assignable team member"""
    id: int
    name: str
    email: str
    daily_capacity_hours: float = 8.0
    active: bool = True


class Assignment(BaseModel):
    """A user holding a role on a course"""
    course_id: int
    user_id: int
    role: str


class AssigneeRecord(BaseModel):
    """Assignment joined with its user and course, as the conflict detector needs it"""
    user_id: int
    name: str
    email: str
    daily_capacity_hours: float = 8.0
    course_id: int
    role: str
    course_title: str
    current_due_date: Optional[date] = None


class TraversalNode(BaseModel):
    """One entry of an upstream or downstream closure"""
    course: Course
    dependency_type: DependencyType
    depth: int = Field(..., ge=1, description="1 for direct neighbours")
    via_course_id: int = Field(..., description="Course this entry was reached from")


class DependencyMetadata(BaseModel):
    """Edge counts around a single course"""
    depends_on_count: int = 0
    dependents_count: int = 0
    indirect_dependencies: int = 0


class DependencyGraph(BaseModel):
    """Result of get_dependency_graph"""
    course_id: int
    upstream: List[TraversalNode] = Field(default_factory=list)
    downstream: List[TraversalNode] = Field(default_factory=list)
    metadata: Optional[DependencyMetadata] = None
    passed_through: List[int] = Field(
        default_factory=list,
        description="Terminal courses the closures crossed without reporting",
    )

    def member_ids(self) -> List[int]:
        """Every course id the closures touched, the root and unreported terminal courses included"""
        ids = {self.course_id}
        ids.update(node.course.id for node in self.upstream)
        ids.update(node.course.id for node in self.downstream)
        ids.update(self.passed_through)
        return sorted(ids)


class AuditEvent(BaseModel):
    """Description of an edge mutation, persisted by the caller"""
    entity_type: str = "dependency"
    entity_id: int
    action: str
    changes: Dict[str, Any]
    user_id: Optional[int] = None
    created_at: datetime = Field(default_factory=utc_now)


class DependencyRemoval(BaseModel):
    """Result of remove_dependency"""
    success: bool = True
    message: str = "Dependency removed successfully"
    dependency: Dependency
