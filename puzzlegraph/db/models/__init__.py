# SQLAlchemy models
from .base import Base
from .puzzles import (
    Puzzle,
    PuzzleDependency,
    UserPuzzleCompletion,
)

__all__ = [
    # Base
    "Base",
    # Dependency graph
    "Puzzle",
    "PuzzleDependency",
    "UserPuzzleCompletion",
]
