"""
Graph Traversal

Bounded upstream/downstream closure over the dependency edges.

The closure is built one level at a time: all branches of the current level
are expanded with a single edge query and a single batch of course loads.
Each branch carries the set of courses on its own path (not everything
explored so far), so a diamond A -> {B, C} -> D reports D under both B and C
while a persisted cycle still terminates.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, List, Optional, Set, Tuple
import logging

from config.settings import get_settings
from ..graph.base import DependencyStore
from ..graph.schema import Course, Dependency, DependencyType, TraversalNode

logger = logging.getLogger(__name__)

UPSTREAM = "upstream"
DOWNSTREAM = "downstream"


@dataclass
class _Branch:
    """One node of the expansion tree"""
    course_id: int
    depth: int
    path: FrozenSet[int]
    dependency_type: Optional[DependencyType] = None
    via_course_id: Optional[int] = None
    children: List["_Branch"] = field(default_factory=list)


class GraphTraversal:
    """
    Computes dependency closures against a store.

    Usage:
        traversal = GraphTraversal(store)

        # Courses that depend on course 12, up to 3 hops away
        dependents = await traversal.downstream(12, max_depth=3)

        # Courses course 12 depends on
        prerequisites = await traversal.upstream(12)
    """

    def __init__(self, store: DependencyStore, max_depth: int = None):
        self.store = store
        self.max_depth = max_depth or get_settings().max_depth

    async def upstream(self, course_id: int, max_depth: int = None) -> List[TraversalNode]:
        """Courses this course depends on, directly or transitively"""
        nodes, _ = await self.walk(course_id, UPSTREAM, max_depth)
        return nodes

    async def downstream(self, course_id: int, max_depth: int = None) -> List[TraversalNode]:
        """Courses that depend on this course, directly or transitively"""
        nodes, _ = await self.walk(course_id, DOWNSTREAM, max_depth)
        return nodes

    async def walk(
        self,
        course_id: int,
        direction: str,
        max_depth: int = None,
    ) -> Tuple[List[TraversalNode], Set[int]]:
        """
        Closure in one direction plus the ids of terminal courses it crossed.

        Terminal courses are not reported, but an edge change at one of them
        can still alter the closure, so cache invalidation needs them.
        """
        return await self._closure(course_id, self._depth(max_depth), direction)

    async def reaches(self, source_id: int, target_id: int, direction: str = DOWNSTREAM) -> bool:
        """
        Unbounded reachability test.

        Ignores course status and depth limits; only the edges matter.
        """
        visited: Set[int] = {source_id}
        frontier = [source_id]

        while frontier:
            neighbours = await self._neighbours(frontier, direction)
            frontier = []
            for pairs in neighbours.values():
                for neighbour_id, _ in pairs:
                    if neighbour_id == target_id:
                        return True
                    if neighbour_id not in visited:
                        visited.add(neighbour_id)
                        frontier.append(neighbour_id)

        return False

    def _depth(self, max_depth: Optional[int]) -> int:
        return self.max_depth if max_depth is None else max_depth

    async def _closure(
        self,
        course_id: int,
        max_depth: int,
        direction: str,
    ) -> Tuple[List[TraversalNode], Set[int]]:
        arena: Dict[int, Course] = {}
        root = _Branch(course_id=course_id, depth=0, path=frozenset([course_id]))
        frontier = [root]

        while frontier:
            expandable = [branch for branch in frontier if branch.depth < max_depth]
            if not expandable:
                break

            neighbours = await self._neighbours({b.course_id for b in expandable}, direction)

            missing = {n for pairs in neighbours.values() for n, _ in pairs} - arena.keys()
            if missing:
                arena.update(await self.store.get_courses(missing))

            frontier = []
            for branch in expandable:
                pairs = [
                    (neighbour_id, dependency_type)
                    for neighbour_id, dependency_type in neighbours.get(branch.course_id, [])
                    if neighbour_id in arena and neighbour_id not in branch.path
                ]
                pairs.sort(key=lambda p: (arena[p[0]].due_date or date.max, p[0]))

                for neighbour_id, dependency_type in pairs:
                    child = _Branch(
                        course_id=neighbour_id,
                        depth=branch.depth + 1,
                        path=branch.path | {neighbour_id},
                        dependency_type=dependency_type,
                        via_course_id=branch.course_id,
                    )
                    branch.children.append(child)
                    frontier.append(child)

        results = self._flatten(root, arena)
        passed_through = {cid for cid, course in arena.items() if course.is_terminal}
        logger.debug(f"{direction} closure of course {course_id}: {len(results)} entries (max_depth={max_depth})")
        return results, passed_through

    def _flatten(self, root: _Branch, arena: Dict[int, Course]) -> List[TraversalNode]:
        """
        Emit each branch's direct children, then each child's own results in order.

        Terminal courses are left out of the output but their children are not.
        """
        results = []
        stack = [root]

        while stack:
            branch = stack.pop()
            for child in branch.children:
                course = arena[child.course_id]
                if course.is_terminal:
                    continue
                results.append(TraversalNode(
                    course=course,
                    dependency_type=child.dependency_type,
                    depth=child.depth,
                    via_course_id=child.via_course_id,
                ))
            stack.extend(reversed(branch.children))

        return results

    async def _neighbours(self, course_ids, direction: str) -> Dict[int, List[Tuple[int, DependencyType]]]:
        """Map each course id to its (neighbour id, edge type) pairs in one store round-trip"""
        if direction == DOWNSTREAM:
            edges: List[Dependency] = await self.store.get_dependents(course_ids)
        else:
            edges = await self.store.get_dependencies(course_ids)

        neighbours = defaultdict(list)
        for edge in edges:
            if direction == DOWNSTREAM:
                neighbours[edge.depends_on_course_id].append((edge.course_id, edge.dependency_type))
            else:
                neighbours[edge.course_id].append((edge.depends_on_course_id, edge.dependency_type))
        return neighbours
