"""
In-Memory Store

NetworkX-backed store for development, tests and workbook analysis.

Edge direction follows the data model: A -> B means A depends on B,
so dependencies are outgoing edges and dependents are incoming edges.
"""

import itertools
from datetime import date
from typing import Dict, Iterable, List, Optional

import networkx as nx

from ..errors import ValidationError
from .base import DependencyStore
from .schema import (
    AssigneeRecord,
    Assignment,
    Course,
    Dependency,
    DependencyMetadata,
    DependencyType,
    User,
    utc_now,
)


class MemoryGraphStore(DependencyStore):
    """
    Keeps courses as nodes and dependencies as edges of a DiGraph.

    Usage:
        store = MemoryGraphStore()
        await store.upsert_course(Course(id=1, title="Intro", due_date=date(2024, 6, 10)))
        await store.upsert_course(Course(id=2, title="Advanced", due_date=date(2024, 6, 20)))
        await store.insert_dependency(2, 1, DependencyType.BLOCKS)
    """

    def __init__(self):
        self.G = nx.DiGraph()
        self.users: Dict[int, User] = {}
        self.assignments: List[Assignment] = []
        self._edges_by_id: Dict[int, tuple] = {}
        self._ids = itertools.count(1)

    # ==========================================
    # COURSES & RESOURCES
    # ==========================================

    async def get_course(self, course_id: int) -> Optional[Course]:
        if course_id in self.G.nodes:
            return self.G.nodes[course_id].get("course")
        return None

    async def get_courses(self, course_ids: Iterable[int]) -> Dict[int, Course]:
        courses = {}
        for course_id in set(course_ids):
            course = await self.get_course(course_id)
            if course:
                courses[course_id] = course
        return courses

    async def get_assignees(self, course_ids: Iterable[int]) -> List[AssigneeRecord]:
        wanted = set(course_ids)
        records = []
        seen = set()

        for assignment in self.assignments:
            if assignment.course_id not in wanted:
                continue
            user = self.users.get(assignment.user_id)
            course = await self.get_course(assignment.course_id)
            if not user or not user.active or not course:
                continue

            key = (user.id, course.id, assignment.role)
            if key in seen:
                continue
            seen.add(key)

            records.append(AssigneeRecord(
                user_id=user.id,
                name=user.name,
                email=user.email,
                daily_capacity_hours=user.daily_capacity_hours,
                course_id=course.id,
                role=assignment.role,
                course_title=course.title,
                current_due_date=course.due_date,
            ))

        records.sort(key=lambda r: (r.name, r.current_due_date or date.max))
        return records

    async def get_user_capacity(self, user_id: int) -> Optional[float]:
        user = self.users.get(user_id)
        return user.daily_capacity_hours if user else None

    # ==========================================
    # DEPENDENCY EDGES
    # ==========================================

    async def get_dependency(self, dependency_id: int) -> Optional[Dependency]:
        pair = self._edges_by_id.get(dependency_id)
        if pair is None:
            return None
        return self.G.edges[pair]["dependency"]

    async def find_dependency(self, course_id: int, depends_on_course_id: int) -> Optional[Dependency]:
        if self.G.has_edge(course_id, depends_on_course_id):
            return self.G.edges[course_id, depends_on_course_id]["dependency"]
        return None

    async def insert_dependency(
        self,
        course_id: int,
        depends_on_course_id: int,
        dependency_type: DependencyType,
    ) -> Dependency:
        if self.G.has_edge(course_id, depends_on_course_id):
            raise ValidationError("Dependency already exists")

        dependency = Dependency(
            id=next(self._ids),
            course_id=course_id,
            depends_on_course_id=depends_on_course_id,
            dependency_type=dependency_type,
            created_at=utc_now(),
        )
        self.G.add_edge(course_id, depends_on_course_id, dependency=dependency)
        self._edges_by_id[dependency.id] = (course_id, depends_on_course_id)
        return dependency

    async def delete_dependency(self, dependency_id: int) -> bool:
        pair = self._edges_by_id.pop(dependency_id, None)
        if pair is None:
            return False
        self.G.remove_edge(*pair)
        return True

    async def get_dependents(self, course_ids: Iterable[int]) -> List[Dependency]:
        edges = []
        for course_id in set(course_ids):
            if course_id not in self.G:
                continue
            for _, _, data in self.G.in_edges(course_id, data=True):
                edges.append(data["dependency"])
        return edges

    async def get_dependencies(self, course_ids: Iterable[int]) -> List[Dependency]:
        edges = []
        for course_id in set(course_ids):
            if course_id not in self.G:
                continue
            for _, _, data in self.G.out_edges(course_id, data=True):
                edges.append(data["dependency"])
        return edges

    async def get_dependency_metadata(self, course_id: int) -> DependencyMetadata:
        if course_id not in self.G:
            return DependencyMetadata()

        # Edges pointing at one of this course's direct dependents
        indirect = sum(self.G.in_degree(dependent) for dependent in self.G.predecessors(course_id))

        return DependencyMetadata(
            depends_on_count=self.G.out_degree(course_id),
            dependents_count=self.G.in_degree(course_id),
            indirect_dependencies=indirect,
        )

    async def list_dependencies(self) -> List[Dependency]:
        return sorted(
            (data["dependency"] for _, _, data in self.G.edges(data=True)),
            key=lambda d: d.id,
        )

    # ==========================================
    # SEEDING
    # ==========================================

    async def upsert_course(self, course: Course) -> Course:
        self.G.add_node(course.id, course=course)
        return course

    async def upsert_user(self, user: User) -> User:
        self.users[user.id] = user
        return user

    async def add_assignment(self, assignment: Assignment) -> Assignment:
        if assignment in self.assignments:
            raise ValidationError("Assignment already exists")
        self.assignments.append(assignment)
        return assignment
