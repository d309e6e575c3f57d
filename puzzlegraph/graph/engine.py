"""
PuzzleGraphEngine - one object wiring every component to a shared session factory.

Usage:
    from puzzlegraph.graph import PuzzleGraphEngine

    engine = PuzzleGraphEngine()
    intro = engine.catalog.create_puzzle("intro", "Introduction")
    loops = engine.catalog.create_puzzle("loops", "Loops", difficulty=2)
    engine.store.add_dependency(loops.id, intro.id)
    engine.ledger.complete_puzzle(user_id=1, puzzle_id=intro.id, score=90)
    engine.progress.get_user_progress(1)
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from puzzlegraph.db.database import get_session_factory

from .access import AccessEvaluator
from .catalog import PuzzleCatalog
from .dependency_store import CycleGuard, DependencyGraphStore
from .events import CompletionEventBus
from .inspector import GraphInspector
from .ledger import CompletionLedger
from .progress import ProgressReporter


class PuzzleGraphEngine:
    """Facade over the catalog, edge store, ledger and the derived views."""

    def __init__(
        self,
        session_factory: Optional[sessionmaker[Session]] = None,
        events: Optional[CompletionEventBus] = None,
    ):
        self.session_factory = session_factory or get_session_factory()
        self.events = events or CompletionEventBus()

        self.catalog = PuzzleCatalog(self.session_factory)
        self.cycle_guard = CycleGuard()
        self.store = DependencyGraphStore(self.session_factory, self.cycle_guard)
        self.ledger = CompletionLedger(self.store, self.session_factory, self.events)
        self.access: AccessEvaluator = self.ledger.access
        self.progress = ProgressReporter(self.catalog, self.ledger, self.access, self.session_factory)
        self.inspector = GraphInspector(self.catalog, self.store, self.ledger, self.session_factory)

    def resolve_puzzle_id(self, ref: str | int) -> int:
        """Accept a numeric id or a puzzle code and return the id."""
        if isinstance(ref, int):
            return self.catalog.get_puzzle(ref).id
        if ref.isdigit():
            return self.catalog.get_puzzle(int(ref)).id
        return self.catalog.get_puzzle_by_code(ref).id
