#!/usr/bin/env python3
"""
Load Graph Script

Seeds the configured store with courses, users, assignments and
dependencies from a workbook.

Usage:
    # Load into the configured database (default)
    python scripts/load_graph.py

    # Create tables first
    python scripts/load_graph.py --create-schema

    # Specify workbook and database
    python scripts/load_graph.py --excel data/course_graph.xlsx --database-url sqlite+aiosqlite:///./dev.db
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
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from config.settings import get_settings
from coursegraph.graph.cache import NullCache
from coursegraph.graph.loader import GraphLoader
from coursegraph.graph.memory import MemoryGraphStore
from coursegraph.graph.store import SQLGraphStore
from coursegraph.manager import DependencyManager

console = Console()


def main():
    parser = argparse.ArgumentParser(description="Load a course dependency graph")
    parser.add_argument(
        "--store",
        choices=["sql", "memory"],
        default=None,
        help="Store backend (default: from settings)"
    )
    parser.add_argument(
        "--excel",
        default=None,
        help="Path to workbook (default: from settings)"
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy async URL (default: from settings)"
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create tables before loading (sql only)"
    )
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Drop and recreate tables before loading (sql only)"
    )

    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    backend = args.store or settings.store_backend
    excel_path = args.excel or settings.workbook_path
    database_url = args.database_url or settings.database_url

    console.print(f"\n[bold]Course Graph - Loader[/bold]")
    console.print(f"Store: [cyan]{backend}[/]")
    console.print(f"Workbook: [cyan]{excel_path}[/]")

    if not Path(excel_path).exists():
        console.print(f"\n[red]Error: Workbook not found: {excel_path}[/]")
        console.print("Expected sheets: courses, users, assignments, dependencies.")
        sys.exit(1)

    asyncio.run(load(backend, excel_path, database_url, args.create_schema, args.clear))

    console.print("\n[bold green]Done![/]\n")


async def load(backend: str, excel_path: str, database_url: str, create_schema: bool, clear: bool):
    if backend == "memory":
        store = MemoryGraphStore()
    else:
        store = SQLGraphStore(database_url)
        try:
            await store.connect()
            console.print(f"Connected to: [cyan]{database_url}[/]")
        except Exception as e:
            console.print(f"[red]Failed to connect: {e}[/]")
            sys.exit(1)

        if clear:
            console.print("[yellow]Dropping existing tables...[/]")
            await store.drop_schema()
        if create_schema or clear:
            console.print("Creating tables...")
            await store.create_schema()

    # Seeding never reads closures, so there is nothing to cache
    manager = DependencyManager(store, cache=NullCache())

    try:
        loader = GraphLoader(manager)
        await loader.load_from_excel(excel_path)
    finally:
        await manager.close()


if __name__ == "__main__":
    main()
