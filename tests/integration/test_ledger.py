"""
Integration tests for CompletionLedger and AccessEvaluator.
"""
import pytest
from sqlalchemy import func, select

from puzzlegraph.db.models import UserPuzzleCompletion
from puzzlegraph.graph import (
    AccessDeniedError,
    InvalidPuzzleError,
    NotFoundError,
    PuzzleState,
)
from puzzlegraph.graph.ledger import CompletionLedger

USER = 42


def completion_rows(session_factory, user_id=USER):
    with session_factory() as session:
        return session.scalar(
            select(func.count()).select_from(UserPuzzleCompletion).where(
                UserPuzzleCompletion.user_id == user_id
            )
        )


class TestCheckAccess:

    def test_no_prerequisites(self, graph, make_puzzle):
        puzzle = make_puzzle("intro")
        check = graph.access.check_access(USER, puzzle.id)

        assert check.has_access
        assert check.message == "Access granted - no prerequisites required"
        assert check.missing_prerequisites == []

    def test_missing_prerequisite(self, graph, chain):
        a, b, c = chain
        check = graph.access.check_access(USER, b.id)

        assert not check.has_access
        assert check.missing_prerequisites == ["C"]
        assert check.message == "Access denied - missing prerequisites: C"

    def test_all_prerequisites_completed(self, graph, chain):
        a, b, c = chain
        graph.ledger.complete_puzzle(USER, c.id)
        check = graph.access.check_access(USER, b.id)

        assert check.has_access
        assert check.completed_prerequisites == ["C"]
        assert check.message == "Access granted - all prerequisites completed"

    def test_direct_prerequisites_only(self, graph, chain, session_factory):
        """A completed direct prerequisite is enough even if its own chain was bypassed."""
        a, b, c = chain
        with session_factory.begin() as session:
            session.add(UserPuzzleCompletion(user_id=USER, puzzle_id=b.id))

        assert graph.access.check_access(USER, a.id).has_access

    def test_missing_listed_in_edge_order(self, graph, make_puzzle):
        x = make_puzzle("X")
        y = make_puzzle("Y")
        z = make_puzzle("Z")
        graph.store.add_multiple_dependencies(z.id, [y.id, x.id])

        assert graph.access.check_access(USER, z.id).missing_prerequisites == ["Y", "X"]

    def test_advisory_never_gates(self, graph, make_puzzle):
        base = make_puzzle("base")
        top = make_puzzle("top")
        graph.store.add_dependency(top.id, base.id, is_required=False)

        check = graph.access.check_access(USER, top.id)
        assert check.has_access
        assert check.message == "Access granted - no prerequisites required"
        assert check.advisory_prerequisites == ["base"]

        graph.ledger.complete_puzzle(USER, base.id)
        assert graph.access.check_access(USER, top.id).advisory_prerequisites == []

    def test_inactive_prerequisite_still_gates(self, graph, chain):
        a, b, c = chain
        graph.catalog.deactivate_puzzle(c.id)

        check = graph.access.check_access(USER, b.id)
        assert not check.has_access
        assert check.missing_prerequisites == ["C"]

    def test_retired_middle_link_does_not_open_chain(self, graph, make_puzzle):
        """Q <- P <- A with P retired: A stays locked while Q and P are unsolved."""
        q = make_puzzle("Q")
        p = make_puzzle("P")
        a = make_puzzle("A")
        graph.store.add_dependency(p.id, q.id)
        graph.store.add_dependency(a.id, p.id)
        graph.catalog.deactivate_puzzle(p.id)

        check = graph.access.check_access(USER, a.id)
        assert not check.has_access
        assert check.missing_prerequisites == ["P"]
        with pytest.raises(AccessDeniedError):
            graph.ledger.complete_puzzle(USER, a.id)
        assert not graph.ledger.has_completed(USER, a.id)

    def test_inactive_puzzle_denied(self, graph, make_puzzle):
        puzzle = make_puzzle("retired")
        graph.catalog.deactivate_puzzle(puzzle.id)

        check = graph.access.check_access(USER, puzzle.id)
        assert not check.has_access
        assert "inactive" in check.message

    def test_unknown_puzzle(self, graph):
        with pytest.raises(NotFoundError):
            graph.access.check_access(USER, 999)

    def test_puzzle_state(self, graph, chain):
        a, b, c = chain
        assert graph.access.puzzle_state(USER, c.id) == PuzzleState.AVAILABLE
        assert graph.access.puzzle_state(USER, b.id) == PuzzleState.LOCKED

        graph.ledger.complete_puzzle(USER, c.id)

        assert graph.access.puzzle_state(USER, c.id) == PuzzleState.COMPLETED
        assert graph.access.puzzle_state(USER, b.id) == PuzzleState.AVAILABLE


class TestCompletePuzzle:

    def test_records_completion(self, graph, make_puzzle):
        puzzle = make_puzzle("intro")
        record = graph.ledger.complete_puzzle(
            USER, puzzle.id, score=90, time_spent_seconds=120, solution="print('hi')"
        )

        assert record.id is not None
        assert record.score == 90
        assert record.time_spent == 120
        assert record.completed_at is not None
        assert graph.ledger.has_completed(USER, puzzle.id)

    def test_locked_puzzle_denied(self, graph, chain, session_factory):
        a, b, c = chain
        with pytest.raises(AccessDeniedError) as exc_info:
            graph.ledger.complete_puzzle(USER, b.id)

        assert exc_info.value.missing_prerequisites == ["C"]
        assert completion_rows(session_factory) == 0

    def test_inactive_puzzle_denied(self, graph, make_puzzle):
        puzzle = make_puzzle("retired")
        graph.catalog.deactivate_puzzle(puzzle.id)
        with pytest.raises(AccessDeniedError):
            graph.ledger.complete_puzzle(USER, puzzle.id)

    def test_unknown_puzzle(self, graph):
        with pytest.raises(NotFoundError):
            graph.ledger.complete_puzzle(USER, 999)

    def test_negative_score(self, graph, make_puzzle):
        puzzle = make_puzzle("intro")
        with pytest.raises(InvalidPuzzleError):
            graph.ledger.complete_puzzle(USER, puzzle.id, score=-1)

    def test_resubmission_overwrites(self, graph, make_puzzle, session_factory):
        puzzle = make_puzzle("intro")
        first = graph.ledger.complete_puzzle(USER, puzzle.id, score=50)
        second = graph.ledger.complete_puzzle(USER, puzzle.id, score=80, time_spent_seconds=30)

        assert second.id == first.id
        assert second.score == 80
        assert second.completed_at >= first.completed_at
        assert completion_rows(session_factory) == 1

    def test_users_are_independent(self, graph, make_puzzle):
        puzzle = make_puzzle("intro")
        graph.ledger.complete_puzzle(1, puzzle.id)
        assert not graph.ledger.has_completed(2, puzzle.id)

    def test_completions_newest_first(self, graph, make_puzzle):
        first = make_puzzle("first")
        second = make_puzzle("second")
        graph.ledger.complete_puzzle(USER, first.id)
        graph.ledger.complete_puzzle(USER, second.id)

        puzzle_ids = [c.puzzle_id for c in graph.ledger.get_completions(USER)]
        assert puzzle_ids == [second.id, first.id]
        assert graph.ledger.completed_puzzle_ids(USER) == {first.id, second.id}

    def test_lost_insert_race_becomes_update(self, graph, make_puzzle, session_factory, monkeypatch):
        """A row inserted between our lookup and our insert is updated, not duplicated."""
        puzzle = make_puzzle("intro")
        original_find = CompletionLedger._find
        calls = {"n": 0}

        def racing_find(db, user_id, puzzle_id):
            calls["n"] += 1
            if calls["n"] == 1:
                # Concurrent submission commits first
                with session_factory.begin() as other:
                    other.add(UserPuzzleCompletion(user_id=user_id, puzzle_id=puzzle_id, score=10))
                return None
            return original_find(db, user_id, puzzle_id)

        monkeypatch.setattr(CompletionLedger, "_find", staticmethod(racing_find))

        record = graph.ledger.complete_puzzle(USER, puzzle.id, score=99)

        assert record.score == 99
        assert completion_rows(session_factory) == 1


class TestCompletionEvents:

    def test_event_lists_newly_available(self, graph, make_puzzle):
        base = make_puzzle("base")
        other = make_puzzle("other")
        single = make_puzzle("single")
        double = make_puzzle("double")
        graph.store.add_dependency(single.id, base.id)
        graph.store.add_multiple_dependencies(double.id, [base.id, other.id])

        events = []
        graph.events.subscribe(events.append)

        graph.ledger.complete_puzzle(USER, base.id)
        assert events[-1].newly_available_puzzle_ids == [single.id]

        graph.ledger.complete_puzzle(USER, other.id)
        assert events[-1].newly_available_puzzle_ids == [double.id]

    def test_resubmission_unlocks_nothing(self, graph, chain):
        a, b, c = chain
        events = []
        graph.events.subscribe(events.append)

        graph.ledger.complete_puzzle(USER, c.id)
        graph.ledger.complete_puzzle(USER, c.id)

        assert events[0].newly_available_puzzle_ids == [b.id]
        assert events[1].newly_available_puzzle_ids == []

    def test_advisory_dependents_not_reported(self, graph, make_puzzle):
        base = make_puzzle("base")
        top = make_puzzle("top")
        graph.store.add_dependency(top.id, base.id, is_required=False)

        events = []
        graph.events.subscribe(events.append)
        graph.ledger.complete_puzzle(USER, base.id)

        assert events[0].newly_available_puzzle_ids == []

    def test_already_completed_dependent_not_reported(self, graph, make_puzzle):
        base = make_puzzle("base")
        top = make_puzzle("top")
        graph.ledger.complete_puzzle(USER, top.id)
        # Edge added after the user already solved the dependent
        graph.store.add_dependency(top.id, base.id)

        events = []
        graph.events.subscribe(events.append)
        graph.ledger.complete_puzzle(USER, base.id)

        assert events[0].newly_available_puzzle_ids == []

    def test_failing_handler_does_not_fail_completion(self, graph, make_puzzle):
        puzzle = make_puzzle("intro")

        def broken(_event):
            raise RuntimeError("boom")

        graph.events.subscribe(broken)
        graph.ledger.complete_puzzle(USER, puzzle.id)

        assert graph.ledger.has_completed(USER, puzzle.id)

    def test_denied_completion_publishes_nothing(self, graph, chain):
        a, b, c = chain
        events = []
        graph.events.subscribe(events.append)

        with pytest.raises(AccessDeniedError):
            graph.ledger.complete_puzzle(USER, a.id)
        assert events == []

    def test_caller_session_publishes_after_commit(self, graph, make_puzzle, session_factory):
        puzzle = make_puzzle("intro")
        events = []
        graph.events.subscribe(events.append)

        with session_factory() as session:
            graph.ledger.complete_puzzle(USER, puzzle.id, session=session)
            assert events == []
            session.commit()

        assert len(events) == 1
        assert graph.ledger.has_completed(USER, puzzle.id)
