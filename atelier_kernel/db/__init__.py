"""Database layer - engine and base class.

The key-value persistence port lives in ``atelier_kernel.db.store``; it is
not re-exported here because it depends on ``atelier_kernel.models``.
"""

from atelier_kernel.db.base import Base
from atelier_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
