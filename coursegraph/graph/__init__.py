"""
Graph module - Handles course records, dependency storage, caching and loading
"""

from .schema import Course, Dependency, DependencyGraph, TraversalNode
from .base import DependencyStore
from .memory import MemoryGraphStore
from .store import SQLGraphStore
from .cache import GraphCache, MemoryCache, RedisCache, NullCache
from .loader import GraphLoader

__all__ = [
    "Course",
    "Dependency",
    "DependencyGraph",
    "TraversalNode",
    "DependencyStore",
    "MemoryGraphStore",
    "SQLGraphStore",
    "GraphCache",
    "MemoryCache",
    "RedisCache",
    "NullCache",
    "GraphLoader",
]
