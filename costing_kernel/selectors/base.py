"""
Module: costing_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/,
    domain/ and costing_engines.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors accept a Session from the caller but MUST
      NOT call session.add(), session.delete(), session.commit() or
      session.flush().
    - Fresh reads: queries that feed a derivation use populate_existing so
      that identity-map state left over from earlier work in the same
      session is never trusted.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return ORM rows to services or frozen DTOs to callers.

    Non-goals:
        - BaseSelector does NOT define query methods.
    """

    def __init__(self, session: Session):
        self.session = session
