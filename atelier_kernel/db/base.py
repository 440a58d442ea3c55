"""
Module: atelier_kernel.db.base
Responsibility: Declarative base class for the kernel's SQLAlchemy models.
Architecture position: Kernel > DB.  Lowest-level import target for ORM
    models.  MUST NOT import from models/, services/ or domain/.

Invariants enforced:
    - Timestamps are always timezone-aware (DateTime(timezone=True)).
    - JSON payload columns use the generic JSON type so SQLite (tests) and
      PostgreSQL (deployments) share one schema.
"""

from datetime import datetime
from typing import ClassVar

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - datetime maps to DateTime(timezone=True).
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
    }
