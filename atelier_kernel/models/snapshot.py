"""
Module: atelier_kernel.models.snapshot
Responsibility: ORM persistence for whole-collection JSON snapshots.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per storage key; writes replace the whole payload (no
      partial updates, no diffing).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from atelier_kernel.db.base import Base


class StoredSnapshot(Base):
    """A JSON value stored under a string key."""

    __tablename__ = "kv_snapshots"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    payload: Mapped[Any] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<StoredSnapshot {self.key}>"
