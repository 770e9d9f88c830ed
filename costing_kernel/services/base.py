"""
BaseService -- abstract base for all kernel write services.

Responsibility:
    Provides the common constructor and session-handling contract for every
    write service.  Services receive a SQLAlchemy ``Session`` and use
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back themselves.  The
      CostingEngine facade (or a test harness) owns commit/rollback, which
      is what makes a production one all-or-nothing unit.
"""

from abc import ABC

from sqlalchemy.orm import Session

from costing_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` (and a Clock) from the caller and
        uses ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read models; those belong in selectors/.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
