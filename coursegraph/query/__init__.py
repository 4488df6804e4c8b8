"""
Query module - Handles closure traversal and cycle detection
"""

from .traversal import GraphTraversal
from .cycles import CycleGuard

__all__ = ["GraphTraversal", "CycleGuard"]
