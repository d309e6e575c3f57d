"""
Puzzle dependency graph engine.

Catalog, prerequisite DAG, completion ledger and the views derived from them.
"""
from .access import AccessEvaluator
from .catalog import PuzzleCatalog
from .dependency_store import CycleGuard, DependencyGraphStore
from .engine import PuzzleGraphEngine
from .events import CompletionEventBus
from .exceptions import (
    AccessDeniedError,
    ConflictError,
    CyclicDependencyError,
    DuplicateCodeError,
    InvalidEdgeError,
    InvalidPuzzleError,
    NotFoundError,
    PuzzleGraphError,
    StorageUnavailableError,
)
from .inspector import GraphInspector
from .ledger import CompletionLedger
from .models import (
    AccessCheck,
    CompletionEvent,
    DependencyGraph,
    GraphEdge,
    GraphNode,
    GraphValidation,
    PuzzleState,
    UserProgress,
)
from .progress import ProgressReporter

__all__ = [
    "AccessCheck",
    "AccessDeniedError",
    "AccessEvaluator",
    "CompletionEvent",
    "CompletionEventBus",
    "CompletionLedger",
    "ConflictError",
    "CycleGuard",
    "CyclicDependencyError",
    "DependencyGraph",
    "DependencyGraphStore",
    "DuplicateCodeError",
    "GraphEdge",
    "GraphInspector",
    "GraphNode",
    "GraphValidation",
    "InvalidEdgeError",
    "InvalidPuzzleError",
    "NotFoundError",
    "ProgressReporter",
    "PuzzleCatalog",
    "PuzzleGraphEngine",
    "PuzzleGraphError",
    "PuzzleState",
    "StorageUnavailableError",
    "UserProgress",
]
