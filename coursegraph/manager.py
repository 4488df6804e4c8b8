"""
Dependency Manager

Entry point for callers (course edit flow, bulk-update wizard): manages
course dependency edges and analyzes the cascade of a schedule change.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional, Type

from config.rules import AnalysisRules
from config.settings import Settings, get_settings
from .analysis.impact import ImpactAnalyzer, DateLike, change_type, days_between, to_datetime
from .analysis.report import AnalysisOptions, ImpactSummary, OriginalCourseChange, ScheduleImpactReport
from .analysis.resources import ResourceConflictDetector
from .analysis.severity import SeverityScorer, estimate_effort, generate_recommendations
from .errors import CourseGraphError, NotFoundError, ValidationError
from .graph.base import DependencyStore
from .graph.cache import GraphCache, MemoryCache, NullCache, RedisCache
from .graph.memory import MemoryGraphStore
from .graph.schema import (
    AuditEvent,
    Dependency,
    DependencyGraph,
    DependencyRemoval,
    DependencyType,
    PropagationType,
    Severity,
)
from .graph.store import SQLGraphStore
from .query.cycles import CycleGuard
from .query.traversal import DOWNSTREAM, UPSTREAM, GraphTraversal

logger = logging.getLogger(__name__)

AuditSink = Callable[[AuditEvent], Awaitable[None]]


async def log_audit_event(event: AuditEvent):
    """Default audit sink: the request layer is expected to supply a persistent one"""
    logger.info(f"Audit {event.entity_type} {event.entity_id} {event.action}: {event.changes}")


def _coerce(enum_cls: Type[Enum], value, label: str):
    try:
        return enum_cls(value)
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {label} '{value}' (expected one of: {allowed})") from e


class DependencyManager:
    """
    Dependency management and schedule-impact analysis.

    Usage:
        manager = await DependencyManager.from_settings()

        dependency = await manager.create_dependency(20, 12, "blocks", user_id=3)
        graph = await manager.get_dependency_graph(12, max_depth=5)
        report = await manager.analyze_schedule_impact(12, date(2024, 6, 24))

        await manager.close()
    """

    def __init__(
        self,
        store: DependencyStore,
        cache: GraphCache = None,
        rules: AnalysisRules = None,
        max_depth: int = None,
        audit_sink: AuditSink = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        settings = get_settings()
        self.store = store
        self.cache = cache or NullCache()
        self.rules = rules or settings.rules
        self.max_depth = max_depth or settings.max_depth
        self.audit_sink = audit_sink or log_audit_event

        self.traversal = GraphTraversal(store, self.max_depth)
        self.cycle_guard = CycleGuard(self.traversal)
        self.impact_analyzer = ImpactAnalyzer(self.rules.propagation, clock)
        self.resource_detector = ResourceConflictDetector(store, self.rules.resources)
        self.scorer = SeverityScorer(self.rules.severity)

        # Check-then-insert on edges runs under a single writer
        self._write_lock = asyncio.Lock()

    @classmethod
    async def from_settings(cls, settings: Settings = None, **kwargs) -> "DependencyManager":
        """Build a manager with the store and cache backends named in settings"""
        settings = settings or get_settings()

        if settings.store_backend == "memory":
            store = MemoryGraphStore()
            logger.info("✓ Using in-memory graph store")
        else:
            store = await SQLGraphStore(settings.database_url, settings.database_echo).connect()
            logger.info("✓ Using SQL graph store")

        cache = await _build_cache(settings)

        return cls(
            store,
            cache=cache,
            rules=settings.rules,
            max_depth=settings.max_depth,
            **kwargs,
        )

    async def close(self):
        await self.cache.close()
        await self.store.close()

    # ==========================================
    # EDGE MUTATION
    # ==========================================

    async def would_create_cycle(self, course_id: int, depends_on_course_id: int) -> bool:
        return await self.cycle_guard.would_create_cycle(course_id, depends_on_course_id)

    async def create_dependency(
        self,
        course_id: int,
        depends_on_course_id: int,
        dependency_type="blocks",
        user_id: Optional[int] = None,
    ) -> Dependency:
        """
        Record that `course_id` depends on `depends_on_course_id`.

        Raises:
            ValidationError: self-reference, missing or deleted course,
                duplicate edge, unknown type, or the edge would close a cycle
        """
        try:
            dependency_type = _coerce(DependencyType, dependency_type, "dependency type")

            if course_id == depends_on_course_id:
                raise ValidationError("A course cannot depend on itself")

            async with self._write_lock:
                courses = await self.store.get_courses([course_id, depends_on_course_id])
                live = [c for c in courses.values() if not c.is_deleted]
                if len(live) != 2:
                    raise ValidationError("One or both courses not found")

                if await self.store.find_dependency(course_id, depends_on_course_id):
                    raise ValidationError("Dependency already exists")

                if await self.cycle_guard.would_create_cycle(course_id, depends_on_course_id):
                    raise ValidationError("Cannot create dependency - would create circular reference")

                dependency = await self.store.insert_dependency(course_id, depends_on_course_id, dependency_type)
                await self._invalidate(course_id, depends_on_course_id)

            await self._audit(AuditEvent(
                entity_id=dependency.id,
                action="created",
                changes={
                    "course_id": course_id,
                    "depends_on_course_id": depends_on_course_id,
                    "dependency_type": dependency_type.value,
                },
                user_id=user_id,
            ))

            logger.info(
                f"Course dependency created: id={dependency.id} {course_id} -> {depends_on_course_id} "
                f"({dependency_type.value}) by user {user_id}"
            )
            return dependency

        except CourseGraphError as e:
            logger.warning(f"create_dependency({course_id}, {depends_on_course_id}) rejected: {e}")
            raise
        except Exception as e:
            logger.error(f"create_dependency({course_id}, {depends_on_course_id}) failed: {e}")
            raise

    async def remove_dependency(self, dependency_id: int, user_id: Optional[int] = None) -> DependencyRemoval:
        """
        Delete one edge.

        Raises:
            NotFoundError: no dependency with this id
        """
        try:
            async with self._write_lock:
                dependency = await self.store.get_dependency(dependency_id)
                if dependency is None:
                    raise NotFoundError("Dependency not found")

                if not await self.store.delete_dependency(dependency_id):
                    raise NotFoundError("Dependency not found")
                await self._invalidate(dependency.course_id, dependency.depends_on_course_id)

            await self._audit(AuditEvent(
                entity_id=dependency_id,
                action="deleted",
                changes=dependency.model_dump(mode="json"),
                user_id=user_id,
            ))

            logger.info(
                f"Course dependency removed: id={dependency_id} {dependency.course_id} -> "
                f"{dependency.depends_on_course_id} by user {user_id}"
            )
            return DependencyRemoval(dependency=dependency)

        except CourseGraphError as e:
            logger.warning(f"remove_dependency({dependency_id}) rejected: {e}")
            raise
        except Exception as e:
            logger.error(f"remove_dependency({dependency_id}) failed: {e}")
            raise

    # ==========================================
    # GRAPH QUERIES
    # ==========================================

    async def get_dependency_graph(
        self,
        course_id: int,
        include_upstream: bool = True,
        include_downstream: bool = True,
        max_depth: int = None,
        include_metadata: bool = True,
    ) -> DependencyGraph:
        """Upstream and downstream closures of a course, served from cache when fresh"""
        max_depth = self.max_depth if max_depth is None else max_depth
        if max_depth < 1:
            raise ValidationError("max_depth must be at least 1")

        try:
            key = self.cache.graph_key(course_id, include_upstream, include_downstream, max_depth, include_metadata)
            cached = await self.cache.get_graph(key)
            if cached:
                return cached

            upstream, downstream, passed_through = [], [], set()
            if include_upstream:
                upstream, crossed = await self.traversal.walk(course_id, UPSTREAM, max_depth)
                passed_through |= crossed
            if include_downstream:
                downstream, crossed = await self.traversal.walk(course_id, DOWNSTREAM, max_depth)
                passed_through |= crossed

            graph = DependencyGraph(
                course_id=course_id,
                upstream=upstream,
                downstream=downstream,
                metadata=await self._metadata(course_id) if include_metadata else None,
                passed_through=sorted(passed_through),
            )

            # A graph whose metadata lookup failed is served but not cached
            if graph.metadata is not None or not include_metadata:
                await self.cache.set_graph(key, graph)
            return graph

        except Exception as e:
            logger.error(f"get_dependency_graph({course_id}) failed: {e}")
            raise

    async def get_user_capacity(self, user_id: int) -> float:
        """Daily hours the user can give to course work"""
        capacity = await self.store.get_user_capacity(user_id)
        if capacity is None:
            raise NotFoundError("User not found")
        return capacity

    # ==========================================
    # IMPACT ANALYSIS
    # ==========================================

    async def analyze_schedule_impact(
        self,
        course_id: int,
        new_due_date: DateLike,
        max_depth: int = None,
        propagation_type="push",
        include_resource_impact: bool = True,
    ) -> ScheduleImpactReport:
        """
        What happens to everything downstream if this course's due date becomes `new_due_date`.

        Raises:
            NotFoundError: the course does not exist
            ValidationError: unknown propagation type, bad date, or the course has no due date
        """
        max_depth = self.max_depth if max_depth is None else max_depth

        try:
            if max_depth < 1:
                raise ValidationError("max_depth must be at least 1")
            propagation = _coerce(PropagationType, propagation_type, "propagation type")

            course = await self.store.get_course(course_id)
            if course is None:
                raise NotFoundError("Course not found")
            if course.due_date is None:
                raise ValidationError("Course has no due date to reschedule")

            days_difference = days_between(course.due_date, new_due_date)
            proposed_due_date = to_datetime(new_due_date).date()

            # Uncached: course rows change without an edge mutation to invalidate on
            downstream = await self.traversal.downstream(course_id, max_depth)

            impacted = self.impact_analyzer.project(days_difference, downstream, propagation)

            resource_impact = None
            if include_resource_impact:
                resource_impact = await self.resource_detector.analyze(course_id, proposed_due_date, impacted)

            severity = self.scorer.calculate_impact_severity(days_difference, impacted, resource_impact)
            recommendations = generate_recommendations(severity, days_difference, impacted, resource_impact)

            report = ScheduleImpactReport(
                original_course=OriginalCourseChange(
                    id=course.id,
                    title=course.title,
                    current_due_date=course.due_date,
                    proposed_due_date=proposed_due_date,
                    days_difference=days_difference,
                    change_type=change_type(days_difference),
                ),
                impacted_courses=impacted,
                resource_impact=resource_impact,
                severity=severity,
                recommendations=recommendations,
                summary=ImpactSummary(
                    total_courses_affected=len(impacted),
                    critical_impacts=sum(1 for c in impacted if c.impact_severity == Severity.CRITICAL),
                    resource_conflicts=len(resource_impact.conflicts) if resource_impact else 0,
                    estimated_effort=estimate_effort(impacted, resource_impact, self.rules.effort),
                ),
                options=AnalysisOptions(
                    propagation_type=propagation,
                    max_depth=max_depth,
                    include_resource_impact=include_resource_impact,
                ),
            )

            logger.info(
                f"Schedule impact for course {course_id}: {days_difference:+d} days, "
                f"{len(impacted)} dependents, severity {severity.value}"
            )
            return report

        except CourseGraphError as e:
            logger.warning(f"analyze_schedule_impact({course_id}, {new_due_date}) rejected: {e}")
            raise
        except Exception as e:
            logger.error(f"analyze_schedule_impact({course_id}, {new_due_date}) failed: {e}")
            raise

    # ==========================================
    # HELPERS
    # ==========================================

    async def _metadata(self, course_id: int):
        try:
            return await self.store.get_dependency_metadata(course_id)
        except Exception as e:
            logger.error(f"Dependency metadata unavailable for course {course_id}: {e}")
            return None

    async def _invalidate(self, *course_ids: int):
        for course_id in course_ids:
            await self.cache.invalidate_course(course_id)

    async def _audit(self, event: AuditEvent):
        try:
            await self.audit_sink(event)
        except Exception as e:
            logger.error(f"Audit sink failed for {event.entity_type} {event.entity_id} {event.action}: {e}")


async def _build_cache(settings: Settings) -> GraphCache:
    if settings.cache_backend == "redis":
        cache = RedisCache(settings.redis_url, settings.cache_prefix, settings.cache_ttl_seconds)
        try:
            await cache.client.ping()
            logger.info(f"✓ Connected to Redis at {settings.redis_url}")
            return cache
        except Exception as e:
            logger.warning(f"Failed to connect to Redis - running without caching: {e}")
            await cache.close()
            return NullCache(settings.cache_prefix, settings.cache_ttl_seconds)

    if settings.cache_backend == "memory":
        return MemoryCache(settings.cache_prefix, settings.cache_ttl_seconds)

    return NullCache(settings.cache_prefix, settings.cache_ttl_seconds)
