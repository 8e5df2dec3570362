"""Transactional boundary shared by all multi-step use-cases."""
from __future__ import annotations

from sqlalchemy.orm import Session


class UnitOfWork:
    """Commit every write of an operation together, or none of them."""

    def __init__(self, db: Session):
        self.db = db

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.db.rollback()
            return False
        self.db.commit()
        return False
