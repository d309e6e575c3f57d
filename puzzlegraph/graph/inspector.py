"""
Read-only view of the whole dependency graph, for visualisation and debugging.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from .base import GraphComponent
from .catalog import PuzzleCatalog
from .dependency_store import DependencyGraphStore
from .ledger import CompletionLedger
from .models import DependencyGraph, GraphEdge, GraphNode


class GraphInspector(GraphComponent):

    def __init__(
        self,
        catalog: PuzzleCatalog,
        store: DependencyGraphStore,
        ledger: CompletionLedger,
        session_factory=None,
    ):
        super().__init__(session_factory)
        self.catalog = catalog
        self.store = store
        self.ledger = ledger

    def get_dependency_graph(
        self,
        user_id: Optional[int] = None,
        session: Optional[Session] = None,
    ) -> DependencyGraph:
        """
        Active puzzles as nodes and the edges between them.

        Edges touching a retired puzzle are left out. With a `user_id`, each
        node carries that user's completion flag.
        """
        with self._read(session) as db:
            puzzles = self.catalog.list_puzzles(session=db)
            edges = self.store.get_edges(session=db)
            completed = (
                self.ledger.completed_puzzle_ids(user_id, session=db) if user_id is not None else set()
            )

        active = {p.id for p in puzzles}
        return DependencyGraph(
            nodes=[
                GraphNode(
                    id=p.id,
                    code=p.code,
                    title=p.title,
                    difficulty=p.difficulty,
                    points=p.points,
                    completed=p.id in completed,
                )
                for p in puzzles
            ],
            edges=[
                GraphEdge(
                    puzzle_id=e.puzzle_id,
                    prerequisite_id=e.prerequisite_id,
                    is_required=e.is_required,
                )
                for e in edges
                if e.puzzle_id in active and e.prerequisite_id in active
            ],
            user_id=user_id,
        )
