"""
ORM-Level Append-Only Enforcement for the Stock Ledgers.

===============================================================================
WHY THIS EXISTS
===============================================================================

On-hand quantities and weighted-average unit costs are derived from the full
ledger of each stocked item.  Editing or deleting a ledger row would silently
rewrite every cost and stock figure derived from it.  Corrections are new
entries (adjustments, sale voids), never edits.

SQLAlchemy fires mapper events before UPDATE/DELETE statements are sent:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                  | When Immutable           | Mutable fields
------------------------|--------------------------|-------------------------------
StockEntry              | ALWAYS (from creation)   | none
FinishedGoodStockEntry  | ALWAYS (from creation)   | none
Sale                    | ALWAYS (from creation)   | voided_at, void_reason (once),
                        |                          | updated_at
Sale                    | DELETE always blocked    | -

===============================================================================
USAGE
===============================================================================

    from costing_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup, idempotent

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
===============================================================================
"""

from sqlalchemy import event, inspect

from costing_kernel.exceptions import ImmutabilityViolationError
from costing_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_SALE_MUTABLE_FIELDS = frozenset({"voided_at", "void_reason", "updated_at"})


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _changed_fields(target) -> list[str]:
    return [attr.key for attr in inspect(target).attrs if attr.history.has_changes()]


def _check_stock_entry_immutability(mapper, connection, target):
    """Ledger entries are append-only: any UPDATE is rejected."""
    changed = _changed_fields(target)
    if changed:
        _block(
            type(target).__name__,
            target,
            "UPDATE",
            f"Ledger entries are append-only (attempted to change '{changed[0]}')",
            field=changed[0],
        )


def _check_stock_entry_delete(mapper, connection, target):
    """Ledger entries are append-only: DELETE is rejected."""
    _block(
        type(target).__name__,
        target,
        "DELETE",
        "Ledger entries are append-only and cannot be deleted",
    )


def _check_sale_immutability(mapper, connection, target):
    """Sales may only be voided, and only once."""
    insp = inspect(target)
    for attr in insp.attrs:
        hist = attr.history
        if not hist.has_changes():
            continue
        if attr.key not in _SALE_MUTABLE_FIELDS:
            _block(
                "Sale",
                target,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on a registered sale",
                field=attr.key,
            )
        if attr.key == "voided_at" and hist.deleted and hist.deleted[0] is not None:
            _block(
                "Sale",
                target,
                "UPDATE",
                "Sale is already voided",
                field="voided_at",
            )


def _check_sale_delete(mapper, connection, target):
    """Sales are voided, never deleted."""
    _block("Sale", target, "DELETE", "Sales cannot be deleted; void them instead")


def _listeners():
    from costing_kernel.models.finished_good import FinishedGoodStockEntry
    from costing_kernel.models.raw_material import StockEntry
    from costing_kernel.models.sale import Sale

    return [
        (StockEntry, "before_update", _check_stock_entry_immutability),
        (StockEntry, "before_delete", _check_stock_entry_delete),
        (FinishedGoodStockEntry, "before_update", _check_stock_entry_immutability),
        (FinishedGoodStockEntry, "before_delete", _check_stock_entry_delete),
        (Sale, "before_update", _check_sale_immutability),
        (Sale, "before_delete", _check_sale_delete),
    ]


def register_immutability_listeners():
    """
    Register all append-only enforcement event listeners.

    Idempotent: listeners already registered are skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove append-only enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate the rules.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
