"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every rejection the ledger produces is a per-request failure that a caller
(an HTTP handler, a script, a test) has to translate into a response.  Callers
must be able to do that without parsing message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE class attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        journal_service.post(entry_id, actor_id)
    except UnbalancedEntryError as e:
        return {"error": e.code, "debits": e.debits, "credits": e.credits}
    except ClosedPeriodError as e:
        return {"error": e.code, "entry_date": e.entry_date}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerError:

    LedgerError (base)
    |
    +-- ValidationError                 malformed input, never retried
    |   +-- InvalidAmountError
    |   +-- NoFinancialYearError
    |   +-- AccountInactiveError
    |   +-- AccountNotFoundError        (also a NotFoundError)
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- CategoryNotFoundError
    |   +-- FinancialYearNotFoundError
    |   +-- JournalEntryNotFoundError
    |
    +-- InvariantViolation              rejected transition, never coerced
    |   +-- UnbalancedEntryError
    |   +-- EmptyEntryError
    |   +-- ClosedPeriodError
    |   +-- ImmutableEntryError
    |   +-- InvalidTransitionError
    |   |   +-- AlreadyCancelledError
    |   +-- DuplicateCodeError
    |   +-- DuplicateNameError
    |   +-- OverlappingPeriodError
    |   +-- ReferencedAccountError
    |   +-- CategoryInUseError
    |   +-- FinancialYearInUseError
    |
    +-- ConcurrencyConflict             retryable by the caller
    |
    +-- AuthorizationError
    |   +-- PermissionDeniedError
    |
    +-- AuditChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                        | When Raised
--------------|-----------------------------|-------------------------------------------
Validation    | VALIDATION_ERROR            | Missing/blank field, bad date range
              | INVALID_AMOUNT              | Amount <= 0, float, or too many places
              | NO_FINANCIAL_YEAR           | Entry date outside every financial year
              | ACCOUNT_INACTIVE            | Item references a deactivated account
--------------|-----------------------------|-------------------------------------------
Not found     | ACCOUNT_NOT_FOUND           | Account id/code doesn't exist
              | CATEGORY_NOT_FOUND          | Category id doesn't exist
              | FINANCIAL_YEAR_NOT_FOUND    | Financial year id doesn't exist
              | JOURNAL_ENTRY_NOT_FOUND     | Journal entry id doesn't exist
--------------|-----------------------------|-------------------------------------------
Invariant     | UNBALANCED_ENTRY            | Debits != credits at post time
              | EMPTY_ENTRY                 | No debit line or no credit line
              | CLOSED_PERIOD               | Year not open for the entry date, or
              |                             | reactivating an ended year
              | IMMUTABLE_ENTRY             | Editing/deleting a non-draft entry
              | INVALID_TRANSITION          | e.g. posting a posted entry
              | ALREADY_CANCELLED           | Cancelling an entry that is not posted
              | DUPLICATE_CODE              | Account code already exists
              | DUPLICATE_NAME              | Year or category name already exists
              | OVERLAPPING_PERIOD          | Year date range intersects another
              | REFERENCED_ACCOUNT          | Account history forbids the change
              | CATEGORY_IN_USE             | Deleting a category that has accounts
              | FINANCIAL_YEAR_IN_USE       | Deleting an active year or one with entries
--------------|-----------------------------|-------------------------------------------
Concurrency   | CONCURRENCY_CONFLICT        | Racing activation detected at commit
--------------|-----------------------------|-------------------------------------------
Authorization | PERMISSION_DENIED           | (role, operation) not granted
--------------|-----------------------------|-------------------------------------------
Audit         | AUDIT_CHAIN_BROKEN          | Stored audit hash does not match recomputed

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY INHERIT FROM Exception (not ValueError, etc.)?
   Domain errors are catchable as a group without also catching
   programming errors.

2. WHY code CLASS ATTRIBUTE (not instance)?
   Codes are static per exception type: ClosedPeriodError.code works without
   instantiation and can be listed for API documentation.

3. WHY STORE ALL CONTEXT AS ATTRIBUTES?
   Exceptions are logged by StructuredFormatter, which copies public
   attributes into the JSON record as exc_<name>.

===============================================================================
"""


class LedgerError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_ERROR"


# Validation errors


class ValidationError(LedgerError):
    """Malformed input: missing field, negative amount, bad date range."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class InvalidAmountError(ValidationError):
    """Item amount is not a strictly positive fixed-point value."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str, reason: str):
        self.amount = amount
        super().__init__("amount", f"{amount!s} {reason}")


class NoFinancialYearError(ValidationError):
    """No financial year contains the entry date."""

    code: str = "NO_FINANCIAL_YEAR"

    def __init__(self, entry_date: str):
        self.entry_date = entry_date
        super().__init__(
            "entry_date", f"{entry_date} does not fall within any financial year"
        )


class AccountInactiveError(ValidationError):
    """Journal item references a deactivated account."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__("account_id", f"account {account_id} is inactive")


# Lookup errors


class NotFoundError(LedgerError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class AccountNotFoundError(NotFoundError, ValidationError):
    """Account was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        self.field = "account_id"
        self.reason = "account does not exist"
        Exception.__init__(self, f"Account not found: {account_id}")


class CategoryNotFoundError(NotFoundError):
    """Account category was not found."""

    code: str = "CATEGORY_NOT_FOUND"

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Account category not found: {category_id}")


class FinancialYearNotFoundError(NotFoundError):
    """Financial year was not found."""

    code: str = "FINANCIAL_YEAR_NOT_FOUND"

    def __init__(self, year_id: str):
        self.year_id = year_id
        super().__init__(f"Financial year not found: {year_id}")


class JournalEntryNotFoundError(NotFoundError):
    """Journal entry was not found (or has been deleted)."""

    code: str = "JOURNAL_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


# Invariant violations


class InvariantViolation(LedgerError):
    """Base exception for rejected state transitions."""

    code: str = "INVARIANT_VIOLATION"


class UnbalancedEntryError(InvariantViolation):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, entry_id: str, debits: str, credits: str):
        self.entry_id = entry_id
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Unbalanced entry {entry_id}: debits={debits}, credits={credits}"
        )


class EmptyEntryError(InvariantViolation):
    """Journal entry lacks a debit line or a credit line."""

    code: str = "EMPTY_ENTRY"

    def __init__(self, entry_id: str, debit_lines: int, credit_lines: int):
        self.entry_id = entry_id
        self.debit_lines = debit_lines
        self.credit_lines = credit_lines
        super().__init__(
            f"Entry {entry_id} needs at least one debit and one credit line "
            f"(debits={debit_lines}, credits={credit_lines})"
        )


class ClosedPeriodError(InvariantViolation):
    """Financial year does not accept the requested posting or activation."""

    code: str = "CLOSED_PERIOD"

    def __init__(self, year_name: str | None, entry_date: str, reason: str):
        self.year_name = year_name
        self.entry_date = entry_date
        self.reason = reason
        super().__init__(
            f"Financial year {year_name or '<none>'} is closed for {entry_date}: {reason}"
        )


class ImmutableEntryError(InvariantViolation):
    """Attempted to modify or delete a journal entry that is no longer a draft."""

    code: str = "IMMUTABLE_ENTRY"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Immutable {entity_type} {entity_id}: {reason}")


class InvalidTransitionError(InvariantViolation):
    """Requested status transition is not allowed from the current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entry_id: str, from_status: str, to_status: str):
        self.entry_id = entry_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Journal entry {entry_id} cannot move from {from_status} to {to_status}"
        )


class AlreadyCancelledError(InvalidTransitionError):
    """Cancel requested for an entry that is not currently posted."""

    code: str = "ALREADY_CANCELLED"

    def __init__(self, entry_id: str, from_status: str):
        super().__init__(entry_id, from_status, "cancelled")


class DuplicateCodeError(InvariantViolation):
    """Account code already exists."""

    code: str = "DUPLICATE_CODE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account code already exists: {account_code}")


class DuplicateNameError(InvariantViolation):
    """Name of a financial year or category already exists."""

    code: str = "DUPLICATE_NAME"

    def __init__(self, entity_type: str, name: str):
        self.entity_type = entity_type
        self.name = name
        super().__init__(f"{entity_type} name already exists: {name}")


class OverlappingPeriodError(InvariantViolation):
    """New financial year date range overlaps an existing year."""

    code: str = "OVERLAPPING_PERIOD"

    def __init__(
        self,
        new_year_name: str,
        existing_year_name: str,
        overlap_start: str,
        overlap_end: str,
    ):
        self.new_year_name = new_year_name
        self.existing_year_name = existing_year_name
        self.overlap_start = overlap_start
        self.overlap_end = overlap_end
        super().__init__(
            f"Financial year {new_year_name} overlaps with {existing_year_name} "
            f"({overlap_start} to {overlap_end})"
        )


class ReferencedAccountError(InvariantViolation):
    """Account history forbids the requested change or removal."""

    code: str = "REFERENCED_ACCOUNT"

    def __init__(self, account_id: str, operation: str):
        self.account_id = account_id
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {account_id}: referenced by journal items"
        )


class CategoryInUseError(InvariantViolation):
    """Category cannot be deleted while accounts belong to it."""

    code: str = "CATEGORY_IN_USE"

    def __init__(self, category_id: str, account_count: int):
        self.category_id = category_id
        self.account_count = account_count
        super().__init__(
            f"Category {category_id} has {account_count} account(s) and cannot be deleted"
        )


class FinancialYearInUseError(InvariantViolation):
    """Financial year cannot be deleted (active, or has journal entries)."""

    code: str = "FINANCIAL_YEAR_IN_USE"

    def __init__(self, year_name: str, reason: str):
        self.year_name = year_name
        self.reason = reason
        super().__init__(f"Financial year {year_name} cannot be deleted: {reason}")


# Concurrency


class ConcurrencyConflict(LedgerError):
    """
    A concurrent transaction changed the same state first.

    The core never retries; the caller rolls back and may retry the whole
    operation.
    """

    code: str = "CONCURRENCY_CONFLICT"
    retryable: bool = True

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Concurrency conflict on {entity_type} {entity_id}: "
            "state was modified by another transaction"
        )


# Authorization


class AuthorizationError(LedgerError):
    """Base exception for authorization failures."""

    code: str = "AUTHORIZATION_ERROR"


class PermissionDeniedError(AuthorizationError):
    """Role is not granted the requested operation."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, role: str, operation: str, reason: str):
        self.role = role
        self.operation = operation
        self.reason = reason
        super().__init__(reason)


# Audit


class AuditChainBrokenError(LedgerError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_log_id: str, expected_hash: str, actual_hash: str):
        self.audit_log_id = audit_log_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_log_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )
