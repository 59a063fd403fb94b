"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Posted journal entries are the ledger's history.  JournalService refuses to
edit or delete them, but any other code holding a Session could still assign
to an attribute and flush.  These listeners are the backstop: they intercept
UPDATE/DELETE at flush time, before the SQL reaches the database.

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutableEntryError
         |
         v
    [before_delete event] --> _check_*_delete() --------> ImmutableEntryError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity           | When Immutable                         | Allowed change
-----------------|----------------------------------------|-------------------------
JournalEntry     | status posted                          | posted -> cancelled
                 | status cancelled                       | none
JournalItem      | parent entry posted or cancelled       | none
AuditLog         | always                                 | none
Account          | code/category_id once referenced by    | name, description,
                 | a posted or cancelled item             | is_active
AccountCategory  | account_type once any of its accounts  | name
                 | is referenced by a posted/cancelled    |
                 | item                                   |

updated_at/updated_by_id are audit metadata and may always change.

===============================================================================
USAGE
===============================================================================

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

    unregister_immutability_listeners()  # tests only
"""

from sqlalchemy import event, inspect, text
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutableEntryError, ReferencedAccountError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

AUDIT_METADATA_FIELDS = frozenset({"updated_at", "updated_by_id"})

# Fields a posted entry may change while moving to cancelled
CANCELLATION_FIELDS = frozenset({"status", "cancelled_at", "cancelled_by_id"})

ACCOUNT_STRUCTURAL_FIELDS = frozenset({"code", "category_id"})


def _blocked(entity_type: str, entity_id, operation: str, reason: str, **fields):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **fields,
        },
    )
    return ImmutableEntryError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _changed_fields(target) -> list[str]:
    return [
        attr.key
        for attr in inspect(target).attrs
        if attr.key not in AUDIT_METADATA_FIELDS and attr.history.has_changes()
    ]


def _check_journal_entry_immutability(mapper, connection, target):
    """
    Block updates to posted and cancelled JournalEntry rows.

    Uses attribute history to tell the posting or cancelling flush itself
    (status changing FROM draft or posted) apart from later edits.
    """
    from ledger_kernel.models.journal import JournalEntryStatus

    status_history = get_history(target, "status")
    if status_history.deleted:
        old_status = JournalEntryStatus(status_history.deleted[0])
    else:
        old_status = JournalEntryStatus(target.status)
    new_status = JournalEntryStatus(target.status)

    if old_status == JournalEntryStatus.DRAFT:
        if new_status == JournalEntryStatus.CANCELLED:
            raise _blocked(
                "JournalEntry", target.id, "UPDATE",
                "Draft journal entries cannot be cancelled",
            )
        return

    if old_status == JournalEntryStatus.POSTED and new_status == JournalEntryStatus.CANCELLED:
        allowed = CANCELLATION_FIELDS
    else:
        allowed = frozenset()

    if new_status == JournalEntryStatus.DRAFT and old_status != new_status:
        raise _blocked(
            "JournalEntry", target.id, "UPDATE",
            f"Cannot move a {old_status.value} journal entry back to draft",
            field="status",
        )

    for field in _changed_fields(target):
        if field not in allowed:
            raise _blocked(
                "JournalEntry", target.id, "UPDATE",
                f"Cannot modify field '{field}' on {old_status.value} journal entry",
                field=field,
            )


def _check_journal_entry_delete(mapper, connection, target):
    """Only drafts can be deleted."""
    from ledger_kernel.models.journal import JournalEntryStatus

    status = JournalEntryStatus(target.status)
    if status != JournalEntryStatus.DRAFT:
        raise _blocked(
            "JournalEntry", target.id, "DELETE",
            f"{status.value.capitalize()} journal entries cannot be deleted",
        )


def _parent_is_frozen(target) -> bool:
    from ledger_kernel.models.journal import JournalEntryStatus

    entry = target.entry
    return entry is not None and JournalEntryStatus(entry.status) != JournalEntryStatus.DRAFT


def _check_journal_item_immutability(mapper, connection, target):
    """Items of posted or cancelled entries cannot be modified."""
    if _parent_is_frozen(target):
        raise _blocked(
            "JournalItem", target.id, "UPDATE",
            "Journal items cannot be modified after the entry is posted",
        )


def _check_journal_item_delete(mapper, connection, target):
    """Items of posted or cancelled entries cannot be deleted."""
    if _parent_is_frozen(target):
        raise _blocked(
            "JournalItem", target.id, "DELETE",
            "Journal items cannot be deleted after the entry is posted",
        )


def _check_audit_log_immutability(mapper, connection, target):
    raise _blocked("AuditLog", target.id, "UPDATE", "Audit log rows are append-only")


def _check_audit_log_delete(mapper, connection, target):
    raise _blocked("AuditLog", target.id, "DELETE", "Audit log rows are append-only")


def account_has_history(connection, account_id) -> bool:
    """True if any posted or cancelled journal item references the account."""
    result = connection.execute(
        text("""
            SELECT EXISTS (
                SELECT 1 FROM journal_items ji
                JOIN journal_entries je ON ji.journal_entry_id = je.id
                WHERE ji.account_id = :account_id
                AND je.status IN ('posted', 'cancelled')
            )
        """),
        {"account_id": str(account_id)},
    )
    return bool(result.scalar())


def category_has_history(connection, category_id) -> bool:
    """True if any account in the category has posted or cancelled items."""
    result = connection.execute(
        text("""
            SELECT EXISTS (
                SELECT 1 FROM journal_items ji
                JOIN journal_entries je ON ji.journal_entry_id = je.id
                JOIN accounts a ON ji.account_id = a.id
                WHERE a.category_id = :category_id
                AND je.status IN ('posted', 'cancelled')
            )
        """),
        {"category_id": str(category_id)},
    )
    return bool(result.scalar())


def _check_account_structural_immutability(mapper, connection, target):
    """Code and category are frozen once the account has posting history."""
    changed = sorted(
        field for field in ACCOUNT_STRUCTURAL_FIELDS
        if get_history(target, field).has_changes()
    )
    if not changed:
        return

    if account_has_history(connection, target.id):
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "Account",
                "entity_id": str(target.id),
                "operation": "UPDATE",
                "fields": changed,
            },
        )
        raise ReferencedAccountError(
            account_id=str(target.id),
            operation=f"modify {', '.join(changed)} of account",
        )


def _check_category_type_immutability(mapper, connection, target):
    """A category's account type is frozen once its accounts have history."""
    if not get_history(target, "account_type").has_changes():
        return

    if category_has_history(connection, target.id):
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "AccountCategory",
                "entity_id": str(target.id),
                "operation": "UPDATE",
                "fields": ["account_type"],
            },
        )
        raise ReferencedAccountError(
            account_id=str(target.id),
            operation="change the account type of category",
        )


def _listeners():
    from ledger_kernel.models.account import Account, AccountCategory
    from ledger_kernel.models.audit_log import AuditLog
    from ledger_kernel.models.journal import JournalEntry, JournalItem

    return (
        (JournalEntry, "before_update", _check_journal_entry_immutability),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (JournalItem, "before_update", _check_journal_item_immutability),
        (JournalItem, "before_delete", _check_journal_item_delete),
        (AuditLog, "before_update", _check_audit_log_immutability),
        (AuditLog, "before_delete", _check_audit_log_delete),
        (Account, "before_update", _check_account_structural_immutability),
        (AccountCategory, "before_update", _check_category_type_immutability),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once; already-registered listeners are skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate immutability.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
