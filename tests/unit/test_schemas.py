"""
Tests for input validation models.
"""
import pytest

from puzzlegraph.graph.exceptions import InvalidPuzzleError, PuzzleGraphError
from puzzlegraph.graph.schemas import CompletionSubmission, PuzzleCreate, PuzzleUpdate, validate


class TestPuzzleCreate:

    def test_defaults(self):
        data = validate(PuzzleCreate, code="intro", title="Introduction")
        assert data.difficulty == 1
        assert data.points == 0
        assert data.description is None

    def test_strips_code_and_title(self):
        data = validate(PuzzleCreate, code="  intro ", title=" Introduction  ")
        assert data.code == "intro"
        assert data.title == "Introduction"

    def test_blank_code_rejected(self):
        with pytest.raises(InvalidPuzzleError) as exc_info:
            validate(PuzzleCreate, code="   ", title="Introduction")
        assert "code" in str(exc_info.value)

    @pytest.mark.parametrize("difficulty", [0, 11, -3])
    def test_difficulty_out_of_range(self, difficulty):
        with pytest.raises(InvalidPuzzleError):
            validate(PuzzleCreate, code="x", title="X", difficulty=difficulty)

    @pytest.mark.parametrize("difficulty", [1, 5, 10])
    def test_difficulty_bounds_inclusive(self, difficulty):
        assert validate(PuzzleCreate, code="x", title="X", difficulty=difficulty).difficulty == difficulty

    def test_negative_points_rejected(self):
        with pytest.raises(InvalidPuzzleError) as exc_info:
            validate(PuzzleCreate, code="x", title="X", points=-1)
        assert exc_info.value.errors
        assert exc_info.value.errors[0]["loc"] == ("points",)


class TestPuzzleUpdate:

    def test_only_set_fields_dumped(self):
        data = validate(PuzzleUpdate, points=25)
        assert data.model_dump(exclude_unset=True) == {"points": 25}

    def test_code_is_not_updatable(self):
        with pytest.raises(InvalidPuzzleError):
            validate(PuzzleUpdate, code="renamed")


class TestCompletionSubmission:

    def test_all_optional(self):
        data = validate(CompletionSubmission)
        assert data.score is None and data.time_spent_seconds is None

    def test_negative_score_rejected(self):
        with pytest.raises(InvalidPuzzleError):
            validate(CompletionSubmission, score=-5)

    def test_negative_time_rejected(self):
        with pytest.raises(InvalidPuzzleError):
            validate(CompletionSubmission, time_spent_seconds=-1)

    def test_is_domain_error(self):
        with pytest.raises(PuzzleGraphError):
            validate(CompletionSubmission, score=-1)
