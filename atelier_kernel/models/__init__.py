"""ORM models for the atelier kernel."""

from atelier_kernel.models.snapshot import StoredSnapshot

__all__ = ["StoredSnapshot"]
