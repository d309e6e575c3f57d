from puzzlegraph.db.database import (
    build_engine,
    create_session_factory,
    get_engine,
    get_session_factory,
    init_db,
)

__all__ = [
    "build_engine",
    "create_session_factory",
    "get_engine",
    "get_session_factory",
    "init_db",
]
