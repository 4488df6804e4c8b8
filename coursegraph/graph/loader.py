"""
Graph Loader

Seeds a store from workbook sheets:
- courses → Course rows
- users → User rows
- assignments → course/user/role links
- dependencies → dependency edges, created through the manager so the
  duplicate and cycle checks apply to seed data too
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import pandas as pd
from pydantic import BaseModel, Field
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from ..errors import CourseGraphError
from .schema import Assignment, Course, User

if TYPE_CHECKING:
    from ..manager import DependencyManager

console = Console()
logger = logging.getLogger(__name__)

SHEETS = ("courses", "users", "assignments", "dependencies")


class LoadStats(BaseModel):
    """Row counts of a load"""
    courses: int = 0
    users: int = 0
    assignments: int = 0
    dependencies: int = 0
    skipped_rows: int = 0
    rejected_dependencies: List[str] = Field(default_factory=list)


class GraphLoader:
    """
    Loads a course dependency graph from a workbook or DataFrames.

    Usage:
        loader = GraphLoader(manager)
        await loader.load_from_excel("data/course_graph.xlsx")
        print(loader.stats.dependencies)
    """

    def __init__(self, manager: "DependencyManager"):
        self.manager = manager
        self.store = manager.store
        self.stats = LoadStats()

    async def load_from_excel(self, excel_path: str) -> "GraphLoader":
        """
        Load every known sheet present in the workbook.

        Args:
            excel_path: Path to the .xlsx seed file

        Returns:
            self for chaining
        """
        console.print(f"\n[bold blue]Loading graph from:[/] {excel_path}\n")

        xlsx = pd.ExcelFile(excel_path)
        frames = {
            name: pd.read_excel(xlsx, sheet_name=name)
            for name in SHEETS
            if name in xlsx.sheet_names
        }
        return await self.load_from_frames(frames)

    async def load_from_frames(self, frames: Dict[str, pd.DataFrame]) -> "GraphLoader":
        """Load sheets given as DataFrames keyed by sheet name"""
        self.stats = LoadStats()
        empty = pd.DataFrame()

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console
        ) as progress:
            task1 = progress.add_task("Loading courses...", total=None)
            self.stats.courses = await self._load_courses(frames.get("courses", empty))
            progress.update(task1, completed=True, description=f"✓ Loaded {self.stats.courses} courses")

            task2 = progress.add_task("Loading users...", total=None)
            self.stats.users = await self._load_users(frames.get("users", empty))
            progress.update(task2, completed=True, description=f"✓ Loaded {self.stats.users} users")

            task3 = progress.add_task("Loading assignments...", total=None)
            self.stats.assignments = await self._load_assignments(frames.get("assignments", empty))
            progress.update(task3, completed=True, description=f"✓ Loaded {self.stats.assignments} assignments")

            task4 = progress.add_task("Creating dependencies...", total=None)
            self.stats.dependencies = await self._load_dependencies(frames.get("dependencies", empty))
            progress.update(task4, completed=True, description=f"✓ Created {self.stats.dependencies} dependencies")

        self._print_stats()
        return self

    async def _load_courses(self, df: pd.DataFrame) -> int:
        count = 0
        for idx, row in df.iterrows():
            try:
                course = Course(
                    id=int(row["id"]),
                    title=str(row["title"]),
                    due_date=_date(_value(row, "due_date")),
                    start_date=_date(_value(row, "start_date")),
                    priority=_value(row, "priority", "medium"),
                    status=_value(row, "status", "draft"),
                    calculated_status=_value(row, "calculated_status"),
                    completion_percentage=int(_value(row, "completion_percentage", 0)),
                    estimated_hours=_int(_value(row, "estimated_hours")),
                )
            except (KeyError, TypeError, ValueError) as e:
                self._skip("courses", idx, e)
                continue

            await self.store.upsert_course(course)
            count += 1

        return count

    async def _load_users(self, df: pd.DataFrame) -> int:
        count = 0
        for idx, row in df.iterrows():
            try:
                user = User(
                    id=int(row["id"]),
                    name=str(row["name"]),
                    email=str(row["email"]),
                    daily_capacity_hours=float(_value(row, "daily_capacity_hours", 8.0)),
                    active=_bool(_value(row, "active", True)),
                )
            except (KeyError, TypeError, ValueError) as e:
                self._skip("users", idx, e)
                continue

            await self.store.upsert_user(user)
            count += 1

        return count

    async def _load_assignments(self, df: pd.DataFrame) -> int:
        count = 0
        for idx, row in df.iterrows():
            try:
                assignment = Assignment(
                    course_id=int(row["course_id"]),
                    user_id=int(row["user_id"]),
                    role=str(row["role"]),
                )
            except (KeyError, TypeError, ValueError) as e:
                self._skip("assignments", idx, e)
                continue

            try:
                await self.store.add_assignment(assignment)
            except CourseGraphError as e:
                self._skip("assignments", idx, e)
                continue

            count += 1

        return count

    async def _load_dependencies(self, df: pd.DataFrame) -> int:
        count = 0
        for idx, row in df.iterrows():
            try:
                course_id = int(row["course_id"])
                depends_on = int(row["depends_on_course_id"])
                dependency_type = _value(row, "dependency_type", "blocks")
            except (KeyError, TypeError, ValueError) as e:
                self._skip("dependencies", idx, e)
                continue

            try:
                await self.manager.create_dependency(course_id, depends_on, dependency_type)
            except CourseGraphError as e:
                self.stats.rejected_dependencies.append(f"{course_id} -> {depends_on}: {e}")
                continue

            count += 1

        return count

    def _skip(self, sheet: str, idx, error: Exception):
        logger.warning(f"Skipping {sheet} row {idx}: {error}")
        self.stats.skipped_rows += 1

    def _print_stats(self):
        console.print("\n[bold green]Graph Loaded Successfully![/]\n")
        console.print(f"  Courses: [cyan]{self.stats.courses}[/]")
        console.print(f"  Users: [cyan]{self.stats.users}[/]")
        console.print(f"  Assignments: [cyan]{self.stats.assignments}[/]")
        console.print(f"  Dependencies: [cyan]{self.stats.dependencies}[/]")
        if self.stats.skipped_rows:
            console.print(f"  Skipped rows: [yellow]{self.stats.skipped_rows}[/]")
        if self.stats.rejected_dependencies:
            console.print("\n  [bold]Rejected dependencies:[/]")
            for reason in self.stats.rejected_dependencies:
                console.print(f"    [red]✗[/] {reason}")
        console.print()


def _value(row: pd.Series, column: str, default: Any = None) -> Any:
    """Cell value, or `default` when the column is absent or the cell empty"""
    if column not in row.index:
        return default
    value = row[column]
    if pd.isna(value):
        return default
    return value


def _date(value) -> Optional[date]:
    if value is None:
        return None
    return pd.to_datetime(value).date()


def _int(value) -> Optional[int]:
    return None if value is None else int(value)


def _bool(value) -> bool:
    """Workbook flag: real booleans and numbers as-is, text as yes/no words"""
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "yes", "y", "1"):
            return True
        if text in ("false", "no", "n", "0"):
            return False
        raise ValueError(f"Not a boolean: {value!r}")
    return bool(value)
