"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Integration tests run against a throwaway SQLite file per test.
"""
import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from loguru import logger

from puzzlegraph.db.database import build_engine, create_session_factory, init_db
from puzzlegraph.graph import PuzzleGraphEngine


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (require database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def db_url(tmp_path):
    """SQLite file URL unique to the test."""
    return f"sqlite:///{tmp_path / 'puzzlegraph.db'}"


@pytest.fixture
def db_engine(db_url):
    """SQLAlchemy engine with all tables created."""
    engine = build_engine(db_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def graph(session_factory):
    """A PuzzleGraphEngine bound to the test database."""
    return PuzzleGraphEngine(session_factory)


@pytest.fixture
def make_puzzle(graph):
    """Factory creating puzzles with sensible defaults."""

    def _make(code, title=None, difficulty=1, points=10, **kwargs):
        return graph.catalog.create_puzzle(
            code,
            title or code.replace("_", " ").title(),
            difficulty=difficulty,
            points=points,
            **kwargs,
        )

    return _make


@pytest.fixture
def chain(graph, make_puzzle):
    """A -> B -> C where A requires B and B requires C."""
    c = make_puzzle("C", difficulty=1)
    b = make_puzzle("B", difficulty=2)
    a = make_puzzle("A", difficulty=3)
    graph.store.add_dependency(b.id, c.id)
    graph.store.add_dependency(a.id, b.id)
    return a, b, c


@pytest.fixture
def log_messages():
    """Capture loguru output as a list of formatted messages."""
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
