"""
Module: inventory_kernel.repositories.base
Responsibility: Abstract base class for the stock repositories.  A repository
    wraps one aggregate table behind named queries and the few writes the
    service layer needs.
Architecture position: Kernel > Repositories.  May import from db/ and
    models/.  MUST NOT import from inventory_services or outer layers.

Invariants enforced:
    - Session ownership: repositories accept a Session from the caller and
      NEVER call session.commit() or session.rollback(); they flush at most.
    - Locking reads (``for_update=True``) render SELECT ... FOR UPDATE on
      PostgreSQL and refresh identity-map state so the caller sees the
      latest committed row after acquiring the lock.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(ABC, Generic[ModelType]):
    """
    Abstract base class for all repositories.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def _locking(stmt: Select, for_update: bool) -> Select:
        if not for_update:
            return stmt
        return stmt.with_for_update().execution_options(populate_existing=True)
