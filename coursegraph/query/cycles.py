"""
Cycle Guard

Decides whether a new edge would close a cycle in the dependency graph.
"""

import logging

from .traversal import GraphTraversal, DOWNSTREAM

logger = logging.getLogger(__name__)


class CycleGuard:
    """
    Adding `course_id -> depends_on_course_id` closes a cycle exactly when
    `depends_on_course_id` already depends, directly or transitively, on
    `course_id`, i.e. when it sits in the downstream closure of `course_id`.

    The search is unbounded and ignores course status, so neither a long
    chain nor a cancelled course in the middle can hide a cycle.
    """

    def __init__(self, traversal: GraphTraversal):
        self.traversal = traversal

    async def would_create_cycle(self, course_id: int, depends_on_course_id: int) -> bool:
        if course_id == depends_on_course_id:
            return True

        closes_cycle = await self.traversal.reaches(course_id, depends_on_course_id, direction=DOWNSTREAM)
        if closes_cycle:
            logger.info(
                f"Edge {course_id} -> {depends_on_course_id} rejected: "
                f"course {depends_on_course_id} already depends on course {course_id}"
            )
        return closes_cycle
