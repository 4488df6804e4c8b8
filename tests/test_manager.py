"""
Tests for the dependency manager
"""

import asyncio
from datetime import date, datetime

import pytest

from config.settings import Settings
from coursegraph.errors import NotFoundError, ValidationError
from coursegraph.graph.cache import MemoryCache, NullCache
from coursegraph.graph.memory import MemoryGraphStore
from coursegraph.graph.schema import (
    Assignment,
    ChangeType,
    Course,
    DependencyType,
    Priority,
    PropagationType,
    Severity,
    User,
)
from coursegraph.manager import DependencyManager


def fixed_clock():
    return datetime(2024, 5, 1, 9, 0)


def course(course_id, due=None, **fields):
    return Course(id=course_id, title=f"Course {course_id}", due_date=due, **fields)


async def seed(store, *courses):
    for c in courses:
        await store.upsert_course(c)


class TestCreateDependency:
    """Tests for DependencyManager.create_dependency"""

    async def test_creates_edge_and_audits(self, manager, store, audit_log):
        await seed(store, course(1), course(2))

        dependency = await manager.create_dependency(2, 1, "informs", user_id=7)

        assert dependency.course_id == 2
        assert dependency.depends_on_course_id == 1
        assert dependency.dependency_type == DependencyType.INFORMS
        [event] = audit_log
        assert (event.entity_type, event.entity_id, event.action, event.user_id) == (
            "dependency", dependency.id, "created", 7,
        )
        assert event.changes == {"course_id": 2, "depends_on_course_id": 1, "dependency_type": "informs"}

    async def test_default_type_is_blocks(self, manager, store):
        await seed(store, course(1), course(2))

        dependency = await manager.create_dependency(2, 1)

        assert dependency.dependency_type == DependencyType.BLOCKS

    async def test_unknown_type(self, manager, store):
        await seed(store, course(1), course(2))

        with pytest.raises(ValidationError, match="dependency type"):
            await manager.create_dependency(2, 1, "requires")

    async def test_self_dependency(self, manager, store):
        await seed(store, course(1))

        with pytest.raises(ValidationError, match="itself"):
            await manager.create_dependency(1, 1)

    async def test_missing_course(self, manager, store):
        await seed(store, course(1))

        with pytest.raises(ValidationError, match="not found"):
            await manager.create_dependency(1, 2)

    async def test_deleted_course(self, manager, store):
        await seed(store, course(1), course(2, status="deleted"))

        with pytest.raises(ValidationError, match="not found"):
            await manager.create_dependency(1, 2)

    async def test_cancelled_course_allowed(self, manager, store):
        await seed(store, course(1), course(2, status="cancelled"))

        assert await manager.create_dependency(1, 2)

    async def test_duplicate(self, manager, store, audit_log):
        await seed(store, course(1), course(2))
        await manager.create_dependency(2, 1)

        with pytest.raises(ValidationError, match="already exists"):
            await manager.create_dependency(2, 1, "informs")
        assert len(audit_log) == 1

    async def test_cycle_rejected(self, manager, store):
        await seed(store, course(1), course(2), course(3))
        await manager.create_dependency(1, 2)
        await manager.create_dependency(2, 3)

        with pytest.raises(ValidationError, match="circular reference") as exc_info:
            await manager.create_dependency(3, 1)

        assert exc_info.value.status_code == 400
        assert exc_info.value.to_dict()["error"]["code"] == "VALIDATION_ERROR"
        assert await manager.would_create_cycle(3, 1)

    async def test_concurrent_opposite_edges(self, manager, store):
        await seed(store, course(1), course(2))

        results = await asyncio.gather(
            manager.create_dependency(1, 2),
            manager.create_dependency(2, 1),
            return_exceptions=True,
        )

        assert sum(isinstance(r, ValidationError) for r in results) == 1
        assert len(await store.list_dependencies()) == 1

    async def test_audit_failure_does_not_undo_edge(self, store):
        async def broken_sink(event):
            raise RuntimeError("audit table locked")

        manager = DependencyManager(store, audit_sink=broken_sink, clock=fixed_clock)
        await seed(store, course(1), course(2))

        dependency = await manager.create_dependency(2, 1)

        assert await store.get_dependency(dependency.id) is not None


class TestRemoveDependency:
    """Tests for DependencyManager.remove_dependency"""

    async def test_removes_edge(self, manager, store, audit_log):
        await seed(store, course(1), course(2))
        dependency = await manager.create_dependency(2, 1)

        result = await manager.remove_dependency(dependency.id, user_id=3)

        assert result.success
        assert result.message == "Dependency removed successfully"
        assert result.dependency.id == dependency.id
        assert await store.find_dependency(2, 1) is None
        assert audit_log[-1].action == "deleted"
        assert audit_log[-1].changes["course_id"] == 2

    async def test_unknown_dependency(self, manager):
        with pytest.raises(NotFoundError) as exc_info:
            await manager.remove_dependency(404)

        assert exc_info.value.status_code == 404


class TestDependencyGraph:
    """Tests for DependencyManager.get_dependency_graph"""

    async def test_both_directions_with_metadata(self, manager, store):
        await seed(store, course(1), course(2), course(3))
        await manager.create_dependency(2, 1)
        await manager.create_dependency(1, 3)

        graph = await manager.get_dependency_graph(1)

        assert [n.course.id for n in graph.downstream] == [2]
        assert [n.course.id for n in graph.upstream] == [3]
        assert graph.metadata.depends_on_count == 1
        assert graph.metadata.dependents_count == 1

    async def test_direction_flags(self, manager, store):
        await seed(store, course(1), course(2), course(3))
        await manager.create_dependency(2, 1)
        await manager.create_dependency(1, 3)

        graph = await manager.get_dependency_graph(1, include_upstream=False, include_metadata=False)

        assert graph.upstream == []
        assert [n.course.id for n in graph.downstream] == [2]
        assert graph.metadata is None

    async def test_served_from_cache(self, manager, store, cache):
        await seed(store, course(1), course(2))
        await manager.create_dependency(2, 1)
        await manager.get_dependency_graph(1)

        # Edge written behind the manager's back is not seen until invalidation
        await seed(store, course(3))
        await store.insert_dependency(3, 1, DependencyType.BLOCKS)
        graph = await manager.get_dependency_graph(1)
        assert [n.course.id for n in graph.downstream] == [2]

        await cache.invalidate_course(1)
        graph = await manager.get_dependency_graph(1)
        assert [n.course.id for n in graph.downstream] == [2, 3]

    async def test_removal_visible_immediately(self, manager, store):
        await seed(store, course(1), course(2), course(3))
        await manager.create_dependency(2, 1)
        last = await manager.create_dependency(3, 2)

        before = await manager.get_dependency_graph(1)
        await manager.remove_dependency(last.id)
        after = await manager.get_dependency_graph(1)

        assert [n.course.id for n in before.downstream] == [2, 3]
        assert [n.course.id for n in after.downstream] == [2]

    async def test_creation_visible_immediately(self, manager, store):
        await seed(store, course(1), course(2), course(3))
        await manager.create_dependency(2, 1)
        await manager.get_dependency_graph(1)

        await manager.create_dependency(3, 2)
        graph = await manager.get_dependency_graph(1)

        assert [n.course.id for n in graph.downstream] == [2, 3]

    async def test_edge_change_behind_terminal_courses(self, manager, store):
        await seed(store, course(1), course(2, status="cancelled"), course(3, status="cancelled"), course(4))
        await manager.create_dependency(2, 1)
        hidden = await manager.create_dependency(3, 2)
        await manager.create_dependency(4, 3)

        before = await manager.get_dependency_graph(1)
        await manager.remove_dependency(hidden.id)
        after = await manager.get_dependency_graph(1)

        assert [n.course.id for n in before.downstream] == [4]
        assert before.passed_through == [2, 3]
        assert after.downstream == []

    async def test_metadata_failure(self, manager, store, cache):
        await seed(store, course(1))

        async def broken(course_id):
            raise RuntimeError("query timeout")

        store.get_dependency_metadata = broken

        graph = await manager.get_dependency_graph(1)

        assert graph.metadata is None
        assert cache.entries == {}

    async def test_invalid_depth(self, manager):
        with pytest.raises(ValidationError):
            await manager.get_dependency_graph(1, max_depth=0)


class TestAnalyzeScheduleImpact:
    """Tests for DependencyManager.analyze_schedule_impact"""

    async def test_two_week_push(self, manager, store):
        await seed(store, course(1, date(2024, 6, 10)), course(2, date(2024, 6, 20), priority=Priority.HIGH))
        await manager.create_dependency(2, 1)

        report = await manager.analyze_schedule_impact(1, date(2024, 6, 24))

        original = report.original_course
        assert original.days_difference == 14
        assert original.proposed_due_date == date(2024, 6, 24)
        assert original.change_type == ChangeType.DELAY

        [b] = report.impacted_courses
        assert b.id == 2
        assert b.proposed_due_date == date(2024, 7, 4)
        assert b.days_difference == 14
        assert b.impact_severity == Severity.HIGH

        assert report.severity == Severity.MEDIUM
        assert [r.type for r in report.recommendations] == ["dependency_review"]
        assert report.summary.total_courses_affected == 1
        assert report.summary.critical_impacts == 0
        assert report.summary.resource_conflicts == 0
        assert report.summary.estimated_effort == "low"
        assert report.resource_impact.affected_users == []
        assert report.options.propagation_type == PropagationType.PUSH
        assert report.options.max_depth == 10

    async def test_near_deadline_dependent(self, manager, store):
        await seed(store, course(1, date(2024, 5, 5)), course(2, date(2024, 5, 10)))
        await manager.create_dependency(2, 1)

        report = await manager.analyze_schedule_impact(1, "2024-05-08")

        assert report.impacted_courses[0].impact_severity == Severity.CRITICAL
        assert report.summary.critical_impacts == 1

    async def test_compress(self, manager, store):
        await seed(store, course(1, date(2024, 6, 10)), course(2, date(2024, 8, 1)))
        await manager.create_dependency(2, 1)

        report = await manager.analyze_schedule_impact(1, date(2024, 6, 15), propagation_type="compress")

        [b] = report.impacted_courses
        assert b.proposed_due_date == date(2024, 8, 1)
        assert b.impact_severity == Severity.MEDIUM
        assert report.options.propagation_type == PropagationType.COMPRESS

    async def test_no_change(self, manager, store):
        await seed(store, course(1, date(2024, 6, 10)), course(2, date(2024, 5, 3)))
        await manager.create_dependency(2, 1)

        report = await manager.analyze_schedule_impact(1, date(2024, 6, 10))

        assert report.original_course.change_type == ChangeType.NO_CHANGE
        assert report.impacted_courses[0].impact_severity == Severity.LOW
        assert report.severity == Severity.LOW

    async def test_depth_limit(self, manager, store):
        await seed(store, *[course(i, date(2024, 9, i)) for i in range(1, 6)])
        for i in range(1, 5):
            await manager.create_dependency(i + 1, i)

        report = await manager.analyze_schedule_impact(1, date(2024, 9, 3), max_depth=2)

        assert [c.id for c in report.impacted_courses] == [2, 3]
        assert report.options.max_depth == 2

    async def test_resource_conflicts_raise_severity(self, manager, store):
        await seed(store, course(1, date(2024, 6, 10)), course(2, date(2024, 7, 1)))
        await store.upsert_user(User(id=1, name="Ana", email="ana@example.com"))
        await store.add_assignment(Assignment(course_id=1, user_id=1, role="designer"))
        await store.add_assignment(Assignment(course_id=2, user_id=1, role="designer"))
        await manager.create_dependency(2, 1)

        with_resources = await manager.analyze_schedule_impact(1, date(2024, 6, 28))
        without = await manager.analyze_schedule_impact(1, date(2024, 6, 28), include_resource_impact=False)

        # Both courses are pushed 18 days: 6/28 and 7/19 do not overlap
        assert with_resources.resource_impact.conflicts[0].conflict_severity == Severity.MEDIUM
        assert with_resources.summary.resource_conflicts == 1
        assert without.resource_impact is None
        assert without.summary.resource_conflicts == 0
        assert with_resources.severity.rank >= without.severity.rank

    async def test_reads_current_course_rows(self, manager, store):
        await seed(store, course(1, date(2024, 6, 10)), course(2, date(2024, 6, 20)))
        await manager.create_dependency(2, 1)
        await manager.get_dependency_graph(1, include_upstream=False, include_metadata=False)
        await manager.analyze_schedule_impact(1, date(2024, 6, 24))

        # Edited on the course-management side, no edge mutation
        await store.upsert_course(course(2, date(2024, 8, 1), priority=Priority.CRITICAL))
        report = await manager.analyze_schedule_impact(1, date(2024, 6, 24))

        [b] = report.impacted_courses
        assert b.current_due_date == date(2024, 8, 1)
        assert b.proposed_due_date == date(2024, 8, 15)
        assert b.priority == Priority.CRITICAL

    async def test_cancelled_dependent_leaves_the_report(self, manager, store):
        await seed(store, course(1, date(2024, 6, 10)), course(2, date(2024, 6, 20)))
        await manager.create_dependency(2, 1)
        first = await manager.analyze_schedule_impact(1, date(2024, 6, 24))

        await store.upsert_course(course(2, date(2024, 6, 20), status="cancelled"))
        second = await manager.analyze_schedule_impact(1, date(2024, 6, 24))

        assert [c.id for c in first.impacted_courses] == [2]
        assert second.impacted_courses == []
        assert second.summary.total_courses_affected == 0

    async def test_invalid_depth(self, manager, store):
        await seed(store, course(1, date(2024, 6, 10)))

        with pytest.raises(ValidationError, match="max_depth"):
            await manager.analyze_schedule_impact(1, date(2024, 6, 24), max_depth=0)

    async def test_unknown_course(self, manager):
        with pytest.raises(NotFoundError):
            await manager.analyze_schedule_impact(99, date(2024, 6, 24))

    async def test_course_without_due_date(self, manager, store):
        await seed(store, course(1))

        with pytest.raises(ValidationError, match="no due date"):
            await manager.analyze_schedule_impact(1, date(2024, 6, 24))

    async def test_bad_propagation_type(self, manager, store):
        await seed(store, course(1, date(2024, 6, 10)))

        with pytest.raises(ValidationError, match="propagation type"):
            await manager.analyze_schedule_impact(1, date(2024, 6, 24), propagation_type="stretch")

    async def test_bad_date(self, manager, store):
        await seed(store, course(1, date(2024, 6, 10)))

        with pytest.raises(ValidationError, match="Invalid date"):
            await manager.analyze_schedule_impact(1, "24/06/2024")

    async def test_on_sql_store(self, sql_store, cache):
        manager = DependencyManager(sql_store, cache=cache, clock=fixed_clock)
        await seed(sql_store, course(1, date(2024, 6, 10)), course(2, date(2024, 6, 20), priority=Priority.HIGH))
        await sql_store.upsert_user(User(id=1, name="Ana", email="ana@example.com"))
        await sql_store.add_assignment(Assignment(course_id=2, user_id=1, role="developer"))
        await manager.create_dependency(2, 1)

        report = await manager.analyze_schedule_impact(1, date(2024, 6, 24))

        assert report.impacted_courses[0].proposed_due_date == date(2024, 7, 4)
        [ana] = report.resource_impact.affected_users
        assert ana.affected_courses[0].proposed_due_date == date(2024, 7, 4)
        assert report.severity == Severity.MEDIUM


class TestUserCapacity:
    """Tests for DependencyManager.get_user_capacity"""

    async def test_capacity(self, manager, store):
        await store.upsert_user(User(id=1, name="Ana", email="ana@example.com", daily_capacity_hours=6.5))

        assert await manager.get_user_capacity(1) == 6.5

    async def test_unknown_user(self, manager):
        with pytest.raises(NotFoundError):
            await manager.get_user_capacity(1)


class TestFromSettings:
    """Tests for DependencyManager.from_settings"""

    async def test_memory_backends(self):
        manager = await DependencyManager.from_settings(Settings(store_backend="memory", cache_backend="memory"))

        assert isinstance(manager.store, MemoryGraphStore)
        assert isinstance(manager.cache, MemoryCache)
        await manager.close()

    async def test_caching_disabled(self):
        settings = Settings(store_backend="memory", cache_backend="none", max_depth=4)

        manager = await DependencyManager.from_settings(settings)

        assert isinstance(manager.cache, NullCache)
        assert manager.max_depth == 4
        await manager.close()
