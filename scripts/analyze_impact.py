#!/usr/bin/env python3
"""
Analyze Impact Script

Shows what moving one course's due date does to its dependents.

Usage:
    # Push every dependent by the same number of days
    python scripts/analyze_impact.py 12 2024-06-24

    # Hold dependent dates instead
    python scripts/analyze_impact.py 12 2024-06-24 --propagation compress

    # Show the dependency graph only
    python scripts/analyze_impact.py 12 --graph

    # Raw JSON output
    python scripts/analyze_impact.py 12 2024-06-24 --json
"""

import sys
import asyncio
import argparse
import logging
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from config.settings import get_settings
from coursegraph.errors import CourseGraphError
from coursegraph.graph.schema import DependencyGraph
from coursegraph.analysis.report import ScheduleImpactReport
from coursegraph.manager import DependencyManager

console = Console()

SEVERITY_STYLES = {
    "low": "green",
    "medium": "yellow",
    "high": "red",
    "critical": "bold red",
}


def main():
    parser = argparse.ArgumentParser(description="Analyze the schedule impact of a due-date change")
    parser.add_argument("course_id", type=int, help="Course being rescheduled")
    parser.add_argument("new_due_date", nargs="?", default=None, help="Proposed due date (YYYY-MM-DD)")
    parser.add_argument(
        "--propagation",
        choices=["push", "compress"],
        default="push",
        help="How the change reaches dependents (default: push)"
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Traversal depth bound (default: from settings)"
    )
    parser.add_argument(
        "--no-resources",
        action="store_true",
        help="Skip resource conflict detection"
    )
    parser.add_argument(
        "--graph",
        action="store_true",
        help="Print the dependency graph instead of an impact report"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print raw JSON"
    )

    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    if not args.graph and args.new_due_date is None:
        parser.error("new_due_date is required unless --graph is given")

    try:
        asyncio.run(run(args))
    except CourseGraphError as e:
        console.print(f"\n[red]Error ({e.code}): {e.message}[/]\n")
        sys.exit(1)


async def run(args):
    manager = await DependencyManager.from_settings()

    try:
        if args.graph:
            graph = await manager.get_dependency_graph(args.course_id, max_depth=args.max_depth)
            if args.json:
                console.print_json(graph.model_dump_json())
            else:
                print_graph(graph)
            return

        report = await manager.analyze_schedule_impact(
            args.course_id,
            args.new_due_date,
            max_depth=args.max_depth,
            propagation_type=args.propagation,
            include_resource_impact=not args.no_resources,
        )
        if args.json:
            console.print_json(report.model_dump_json())
        else:
            print_report(report)
    finally:
        await manager.close()


def print_graph(graph: DependencyGraph):
    """Print upstream and downstream closures as trees"""
    for label, nodes in (("Depends on", graph.upstream), ("Dependents", graph.downstream)):
        tree = Tree(f"[bold]{label}[/] of course {graph.course_id}")
        branches = {graph.course_id: tree}
        for node in nodes:
            parent = branches.get(node.via_course_id, tree)
            branches[node.course.id] = parent.add(
                f"[cyan]{node.course.id}[/] {node.course.title} "
                f"({node.dependency_type.value}, due {node.course.due_date or '-'})"
            )
        console.print(tree)

    if graph.metadata:
        m = graph.metadata
        console.print(
            f"\nDirect dependencies: {m.depends_on_count}  "
            f"Dependents: {m.dependents_count}  "
            f"Indirect: {m.indirect_dependencies}\n"
        )


def print_report(report: ScheduleImpactReport):
    """Print a schedule impact report"""
    original = report.original_course
    style = SEVERITY_STYLES[report.severity.value]

    console.print(Panel(
        f"[bold]{original.title}[/] (course {original.id})\n"
        f"{original.current_due_date} → {original.proposed_due_date} "
        f"({original.days_difference:+d} days, {original.change_type.value})\n"
        f"Severity: [{style}]{report.severity.value.upper()}[/]  "
        f"Effort: {report.summary.estimated_effort}",
        title="Schedule Impact",
    ))

    if report.impacted_courses:
        table = Table(title=f"{report.summary.total_courses_affected} dependent courses")
        table.add_column("Course")
        table.add_column("Depth", justify="right")
        table.add_column("Type")
        table.add_column("Current")
        table.add_column("Proposed")
        table.add_column("Severity")
        for course in report.impacted_courses:
            severity = course.impact_severity.value
            table.add_row(
                f"{course.id} {course.title}",
                str(course.depth),
                course.dependency_type.value,
                str(course.current_due_date or "-"),
                str(course.proposed_due_date or "-"),
                f"[{SEVERITY_STYLES[severity]}]{severity}[/]",
            )
        console.print(table)

    if report.resource_impact and report.resource_impact.conflicts:
        console.print("\n[bold]Resource conflicts:[/]")
        for user in report.resource_impact.conflicts:
            courses = ", ".join(str(a.course_id) for a in user.affected_courses)
            severity = user.conflict_severity.value
            console.print(f"  [{SEVERITY_STYLES[severity]}]{severity}[/] {user.name} <{user.email}>: {courses}")

    if report.recommendations:
        console.print("\n[bold]Recommendations:[/]")
        for rec in report.recommendations:
            console.print(f"  [{SEVERITY_STYLES[rec.priority.value]}]•[/] {rec.title}: {rec.description}")
    console.print()


if __name__ == "__main__":
    main()
