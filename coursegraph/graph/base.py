"""
Store contract shared by the relational and in-memory backends.

Reads are batched by id set so the traversal engine can expand a whole
level of the graph with one round-trip.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from .schema import (
    AssigneeRecord,
    Assignment,
    Course,
    Dependency,
    DependencyMetadata,
    DependencyType,
    User,
)


class DependencyStore(ABC):
    """Graph Store Accessor: edge reads/writes plus the course data the engine consumes"""

    # Course-management side (read-only for the engine)

    @abstractmethod
    async def get_course(self, course_id: int) -> Optional[Course]:
        ...

    @abstractmethod
    async def get_courses(self, course_ids: Iterable[int]) -> Dict[int, Course]:
        ...

    @abstractmethod
    async def get_assignees(self, course_ids: Iterable[int]) -> List[AssigneeRecord]:
        """Assignments of active users on the given courses, ordered by user name then due date"""

    @abstractmethod
    async def get_user_capacity(self, user_id: int) -> Optional[float]:
        ...

    # Dependency edges

    @abstractmethod
    async def get_dependency(self, dependency_id: int) -> Optional[Dependency]:
        ...

    @abstractmethod
    async def find_dependency(self, course_id: int, depends_on_course_id: int) -> Optional[Dependency]:
        ...

    @abstractmethod
    async def insert_dependency(
        self,
        course_id: int,
        depends_on_course_id: int,
        dependency_type: DependencyType,
    ) -> Dependency:
        """Persist one edge; raises ValidationError if the pair already exists"""

    @abstractmethod
    async def delete_dependency(self, dependency_id: int) -> bool:
        ...

    @abstractmethod
    async def get_dependents(self, course_ids: Iterable[int]) -> List[Dependency]:
        """Edges whose `depends_on_course_id` is in `course_ids`"""

    @abstractmethod
    async def get_dependencies(self, course_ids: Iterable[int]) -> List[Dependency]:
        """Edges whose `course_id` is in `course_ids`"""

    @abstractmethod
    async def get_dependency_metadata(self, course_id: int) -> DependencyMetadata:
        ...

    @abstractmethod
    async def list_dependencies(self) -> List[Dependency]:
        ...

    # Seeding (fixtures, workbook loader)

    @abstractmethod
    async def upsert_course(self, course: Course) -> Course:
        ...

    @abstractmethod
    async def upsert_user(self, user: User) -> User:
        ...

    @abstractmethod
    async def add_assignment(self, assignment: Assignment) -> Assignment:
        ...

    async def close(self):
        """Release backend resources"""
