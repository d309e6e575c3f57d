"""
Dependency graph store: the only writer of prerequisite edges.

Every insert goes through CycleGuard inside the same transaction and under
the graph write lock, so the reachability check and the write form one
atomic unit and two concurrent inserts can never jointly close a cycle.

Edge direction: `puzzle_id -> prerequisite_id` ("puzzle requires prerequisite").
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from puzzlegraph.db.models import Puzzle, PuzzleDependency

from .base import GraphComponent
from .dag import (
    build_adjacency,
    cycle_through,
    find_cycle,
    topological_order,
    transitive_prerequisites,
)
from .exceptions import ConflictError, CyclicDependencyError, InvalidEdgeError, NotFoundError
from .models import GraphValidation


class StoredAdjacency(Mapping):
    """
    Read-through view of the stored edge set as `{puzzle_id: [prerequisite_ids]}`.

    Prerequisites are fetched per node on first access, so a reachability
    search only touches the part of the graph it walks. `pending` edges are
    treated as if they were already stored.
    """

    def __init__(self, db: Session, pending: Iterable[tuple[int, int]] = ()):
        self._db = db
        self._pending = build_adjacency(pending)
        self._cache: dict[int, list[int]] = {}

    def __getitem__(self, puzzle_id: int) -> list[int]:
        if puzzle_id not in self._cache:
            stored = self._db.scalars(
                select(PuzzleDependency.prerequisite_id)
                .where(PuzzleDependency.puzzle_id == puzzle_id)
                .order_by(PuzzleDependency.id)
            ).all()
            self._cache[puzzle_id] = [*stored, *self._pending.get(puzzle_id, [])]
        return self._cache[puzzle_id]

    def __iter__(self) -> Iterator[int]:
        stored = self._db.scalars(select(PuzzleDependency.puzzle_id).distinct()).all()
        return iter(dict.fromkeys([*stored, *self._pending]))

    def __len__(self) -> int:
        return sum(1 for _ in self)


class CycleGuard:
    """
    Reachability check run before persisting a new prerequisite edge.

    Adding `prerequisite_id` as a prerequisite of `puzzle_id` closes a cycle
    exactly when `puzzle_id` is already reachable from `prerequisite_id` by
    following existing edges from a node to its prerequisites.
    """

    def cycle_path(
        self,
        db: Session,
        puzzle_id: int,
        prerequisite_id: int,
        pending: Sequence[tuple[int, int]] = (),
    ) -> Optional[list[int]]:
        return cycle_through(StoredAdjacency(db, pending), puzzle_id, prerequisite_id)

    def would_create_cycle(
        self,
        db: Session,
        puzzle_id: int,
        prerequisite_id: int,
        pending: Sequence[tuple[int, int]] = (),
    ) -> bool:
        return self.cycle_path(db, puzzle_id, prerequisite_id, pending) is not None

    def ensure_acyclic(
        self,
        db: Session,
        puzzle_id: int,
        prerequisite_id: int,
        pending: Sequence[tuple[int, int]] = (),
    ) -> None:
        """Raise CyclicDependencyError if the edge would close a cycle."""
        path = self.cycle_path(db, puzzle_id, prerequisite_id, pending)
        if path is not None:
            logger.warning(
                f"Rejected edge {puzzle_id} -> {prerequisite_id}: cycle {' -> '.join(map(str, path))}"
            )
            raise CyclicDependencyError(puzzle_id, prerequisite_id, path=path)


class DependencyGraphStore(GraphComponent):
    """Prerequisite edge storage and graph queries."""

    def __init__(self, session_factory=None, cycle_guard: Optional[CycleGuard] = None):
        super().__init__(session_factory)
        self.cycle_guard = cycle_guard or CycleGuard()

    # ========================================
    # Writes
    # ========================================

    def add_dependency(
        self,
        puzzle_id: int,
        prerequisite_id: int,
        is_required: bool = True,
        session: Optional[Session] = None,
    ) -> PuzzleDependency:
        """
        Make `prerequisite_id` a prerequisite of `puzzle_id`.

        Raises:
            InvalidEdgeError: If both ids are the same puzzle
            NotFoundError: If either puzzle does not exist
            ConflictError: If the edge already exists
            CyclicDependencyError: If the edge would close a cycle
        """
        if puzzle_id == prerequisite_id:
            raise InvalidEdgeError("A puzzle cannot depend on itself")

        edges = self._add_edges(puzzle_id, [prerequisite_id], is_required, session)
        return edges[0]

    def add_multiple_dependencies(
        self,
        puzzle_id: int,
        prerequisite_ids: Sequence[int],
        is_required: bool = True,
        session: Optional[Session] = None,
    ) -> list[PuzzleDependency]:
        """
        Add several prerequisites to one puzzle, all or nothing.

        Every member is validated, including the cycle check against the
        stored graph plus the earlier members of the batch, before anything
        is inserted. Any failure leaves the edge set unchanged.
        """
        prerequisite_ids = list(prerequisite_ids)
        if not prerequisite_ids:
            raise InvalidEdgeError("At least one prerequisite is required")
        if puzzle_id in prerequisite_ids:
            raise InvalidEdgeError("A puzzle cannot depend on itself")
        if len(set(prerequisite_ids)) != len(prerequisite_ids):
            raise InvalidEdgeError("Duplicate prerequisite ids in batch")

        return self._add_edges(puzzle_id, prerequisite_ids, is_required, session)

    def _add_edges(
        self,
        puzzle_id: int,
        prerequisite_ids: list[int],
        is_required: bool,
        session: Optional[Session],
    ) -> list[PuzzleDependency]:
        try:
            with self._graph_write(session) as db:
                self._require_puzzles(db, [puzzle_id, *prerequisite_ids])

                existing = db.scalars(
                    select(PuzzleDependency.prerequisite_id).where(
                        PuzzleDependency.puzzle_id == puzzle_id,
                        PuzzleDependency.prerequisite_id.in_(prerequisite_ids),
                    )
                ).all()
                if existing:
                    raise ConflictError(
                        f"Dependency already exists: {puzzle_id} -> {sorted(existing)}"
                    )

                pending: list[tuple[int, int]] = []
                for prerequisite_id in prerequisite_ids:
                    self.cycle_guard.ensure_acyclic(db, puzzle_id, prerequisite_id, pending)
                    pending.append((puzzle_id, prerequisite_id))

                edges = [
                    PuzzleDependency(
                        puzzle_id=puzzle_id,
                        prerequisite_id=prerequisite_id,
                        is_required=is_required,
                    )
                    for prerequisite_id in prerequisite_ids
                ]
                db.add_all(edges)
                db.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Dependency already exists for puzzle {puzzle_id}") from exc

        kind = "required" if is_required else "advisory"
        for edge in edges:
            logger.info(f"Added {kind} dependency {edge.puzzle_id} -> {edge.prerequisite_id}")
        return edges

    def remove_dependency(
        self,
        puzzle_id: int,
        prerequisite_id: int,
        session: Optional[Session] = None,
    ) -> None:
        """Delete an edge. Removing an edge can never introduce a cycle."""
        with self._graph_write(session) as db:
            edge = db.scalar(
                select(PuzzleDependency).where(
                    PuzzleDependency.puzzle_id == puzzle_id,
                    PuzzleDependency.prerequisite_id == prerequisite_id,
                )
            )
            if edge is None:
                raise NotFoundError(f"Dependency {puzzle_id} -> {prerequisite_id} not found")
            db.delete(edge)

        logger.info(f"Removed dependency {puzzle_id} -> {prerequisite_id}")

    # ========================================
    # Reads
    # ========================================

    def get_direct_prerequisites(
        self,
        puzzle_id: int,
        required_only: bool = True,
        session: Optional[Session] = None,
    ) -> list[Puzzle]:
        """Prerequisites one edge away from `puzzle_id`, in edge creation order."""
        with self._read(session) as db:
            return [puzzle for _, puzzle in self.prerequisite_edges(db, puzzle_id, required_only)]

    def prerequisite_edges(
        self,
        db: Session,
        puzzle_id: int,
        required_only: bool = False,
    ) -> list[tuple[PuzzleDependency, Puzzle]]:
        """Outgoing edges of `puzzle_id` joined with their prerequisite puzzle."""
        self._require_puzzles(db, [puzzle_id])
        query = (
            select(PuzzleDependency, Puzzle)
            .join(Puzzle, Puzzle.id == PuzzleDependency.prerequisite_id)
            .where(PuzzleDependency.puzzle_id == puzzle_id)
            .order_by(PuzzleDependency.id)
        )
        if required_only:
            query = query.where(PuzzleDependency.is_required.is_(True))
        return [(edge, puzzle) for edge, puzzle in db.execute(query)]

    def get_dependents(
        self,
        prerequisite_id: int,
        required_only: bool = False,
        session: Optional[Session] = None,
    ) -> list[Puzzle]:
        """Puzzles that list `prerequisite_id` as a direct prerequisite."""
        query = (
            select(Puzzle)
            .join(PuzzleDependency, PuzzleDependency.puzzle_id == Puzzle.id)
            .where(PuzzleDependency.prerequisite_id == prerequisite_id)
            .order_by(PuzzleDependency.id)
        )
        if required_only:
            query = query.where(PuzzleDependency.is_required.is_(True))
        with self._read(session) as db:
            self._require_puzzles(db, [prerequisite_id])
            return list(db.scalars(query))

    def get_edges(self, session: Optional[Session] = None) -> list[PuzzleDependency]:
        with self._read(session) as db:
            return list(db.scalars(select(PuzzleDependency).order_by(PuzzleDependency.id)))

    def adjacency(
        self,
        required_only: bool = False,
        session: Optional[Session] = None,
    ) -> dict[int, list[int]]:
        """The whole edge set as `{puzzle_id: [prerequisite_ids]}`."""
        return build_adjacency(
            (edge.puzzle_id, edge.prerequisite_id)
            for edge in self.get_edges(session)
            if edge.is_required or not required_only
        )

    def get_all_prerequisites(
        self,
        puzzle_id: int,
        required_only: bool = False,
        session: Optional[Session] = None,
    ) -> list[Puzzle]:
        """Direct and indirect prerequisites of a puzzle, nearest first."""
        with self._read(session) as db:
            self._require_puzzles(db, [puzzle_id])
            adjacency = self.adjacency(required_only, session=db)
            ordered_ids = transitive_prerequisites(adjacency, puzzle_id)
            puzzles = {p.id: p for p in db.scalars(select(Puzzle).where(Puzzle.id.in_(ordered_ids)))}
            return [puzzles[pid] for pid in ordered_ids]

    def topological_order(
        self,
        include_inactive: bool = True,
        session: Optional[Session] = None,
    ) -> list[Puzzle]:
        """All puzzles with every prerequisite listed before its dependents."""
        query = select(Puzzle).order_by(Puzzle.difficulty, Puzzle.id)
        if not include_inactive:
            query = query.where(Puzzle.is_active.is_(True))
        with self._read(session) as db:
            puzzles = list(db.scalars(query))
            by_id = {p.id: p for p in puzzles}
            ordered = topological_order(by_id, self.adjacency(session=db))
            return [by_id[pid] for pid in ordered]

    def validate_graph(self, session: Optional[Session] = None) -> GraphValidation:
        """
        Scan the stored edge set for problems that bypassed the engine.

        Use this for periodic health checks; the engine itself never persists
        a self-loop, a dangling edge or a cycle.
        """
        errors: list[str] = []
        with self._read(session) as db:
            puzzle_ids = set(db.scalars(select(Puzzle.id)))
            edges = list(db.scalars(select(PuzzleDependency).order_by(PuzzleDependency.id)))

        for edge in edges:
            if edge.puzzle_id == edge.prerequisite_id:
                errors.append(f"Puzzle {edge.puzzle_id} depends on itself")
            for end in (edge.puzzle_id, edge.prerequisite_id):
                if end not in puzzle_ids:
                    errors.append(f"Dependency {edge.id} references non-existent puzzle {end}")

        cycle = find_cycle(build_adjacency((e.puzzle_id, e.prerequisite_id) for e in edges))
        if cycle and len(cycle) > 2:
            errors.append(f"Circular dependency detected: {' -> '.join(map(str, cycle))}")

        if errors:
            logger.warning(f"Dependency graph validation found {len(errors)} problem(s)")
        return GraphValidation(is_valid=not errors, errors=errors)

    @staticmethod
    def _require_puzzles(db: Session, puzzle_ids: Iterable[int]) -> None:
        wanted = set(puzzle_ids)
        found = set(db.scalars(select(Puzzle.id).where(Puzzle.id.in_(wanted))))
        missing = sorted(wanted - found)
        if missing:
            label = "Puzzle" if len(missing) == 1 else "Puzzles"
            raise NotFoundError(f"{label} with ID {', '.join(map(str, missing))} not found")
