"""
JournalService -- journal entry lifecycle and the posting state machine.

Responsibility:
    Creates and edits draft journal entries, posts them, cancels posted
    entries and deletes drafts.  Posting is the only point where the
    double-entry balance rule is enforced.

Architecture position:
    Kernel > Services.  Uses FinancialYearService for year assignment and
    open-period checks, SequenceService for per-year reference numbers and
    AuditService for the audit trail.

Invariants enforced:
    - draft -> posted -> cancelled, and draft -> deleted.  Nothing else.
    - A posted entry has at least one debit and one credit item, and its
      debit total equals its credit total exactly (Decimal comparison, no
      tolerance, no auto-balancing).
    - A posted entry's date lies in a year that is open for posting, read
      in the same transaction as the status write.
    - Item amounts are Decimals > 0 with at most ``money_decimal_places``
      decimal places.  Floats are rejected.
    - Posted and cancelled entries are never edited or deleted (checked
      here first, ORM listeners in db/immutability.py are the backstop).

Failure modes:
    - ValidationError family on create/update: NoFinancialYearError,
      AccountNotFoundError, AccountInactiveError, InvalidAmountError.
    - InvalidTransitionError, EmptyEntryError, UnbalancedEntryError,
      ClosedPeriodError on post.
    - AlreadyCancelledError on cancel.
    - ImmutableEntryError on update/delete of a non-draft.

Audit relevance:
    entry_created, entry_updated, entry_posted, entry_cancelled and
    entry_deleted audit actions.  Rejections are logged at WARNING level
    before the exception is raised.
"""

from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm.attributes import set_committed_value

from ledger_kernel.config import LedgerConfig
from ledger_kernel.db.types import decimal_places
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import ItemSpec, JournalEntryInfo
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    AlreadyCancelledError,
    EmptyEntryError,
    ImmutableEntryError,
    InvalidAmountError,
    InvalidTransitionError,
    JournalEntryNotFoundError,
    NoFinancialYearError,
    UnbalancedEntryError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.audit_log import AuditAction
from ledger_kernel.models.financial_year import FinancialYear
from ledger_kernel.models.journal import ItemType, JournalEntry, JournalEntryStatus, JournalItem
from ledger_kernel.services.audit_service import AuditService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.financial_year_service import FinancialYearService
from ledger_kernel.services.sequence_service import SequenceService, journal_reference_name

logger = get_logger("services.journal")


class JournalService(BaseService):
    """
    Write side of the journal.

    Contract:
        Every public method returns a JournalEntryInfo DTO (or None for
        delete) and flushes without committing.
    """

    def __init__(
        self,
        session,
        config: LedgerConfig | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._config = config or LedgerConfig()
        self._clock = clock or SystemClock()
        self._years = FinancialYearService(session, self._config, self._clock)
        self._sequences = SequenceService(session)
        self._audit = AuditService(session, self._clock)

    # ------------------------------------------------------------------
    # Draft lifecycle
    # ------------------------------------------------------------------

    def create(
        self,
        entry_date: date,
        narration: str,
        items: Iterable[ItemSpec | Mapping],
        actor_id: UUID,
    ) -> JournalEntryInfo:
        """
        Create a draft entry in the year containing ``entry_date``.

        The entry gets the next reference number of that year.  Drafts may
        be unbalanced or empty; those rules apply when posting.
        """
        narration = self._validate_narration(narration)
        year = self._containing_year(entry_date)
        new_items = self._build_items(items, actor_id)

        sequence_number = self._sequences.next_value(journal_reference_name(year.id))
        entry = JournalEntry(
            reference_number=self._format_reference(year, sequence_number),
            financial_year_id=year.id,
            sequence_number=sequence_number,
            entry_date=entry_date,
            narration=narration,
            status=JournalEntryStatus.DRAFT.value,
            created_by_id=actor_id,
        )
        entry.financial_year = year
        entry.items = new_items
        self.session.add(entry)
        self.session.flush()

        self._audit.record(
            "JournalEntry", entry.id, AuditAction.ENTRY_CREATED, actor_id,
            {
                "reference_number": entry.reference_number,
                "entry_date": entry_date,
                "item_count": len(new_items),
            },
        )
        logger.info(
            "journal_entry_created",
            extra={
                "entry_id": str(entry.id),
                "reference_number": entry.reference_number,
                "entry_date": str(entry_date),
                "item_count": len(new_items),
            },
        )
        return JournalEntryInfo.from_model(entry)

    def update(
        self,
        entry_id: UUID,
        actor_id: UUID,
        entry_date: date | None = None,
        narration: str | None = None,
        items: Iterable[ItemSpec | Mapping] | None = None,
    ) -> JournalEntryInfo:
        """
        Edit a draft.  ``items`` replaces the whole item list.

        Moving the date into another financial year gives the entry a new
        reference number from that year.

        Raises:
            ImmutableEntryError: The entry is not a draft.
        """
        with LogContext.bind(entry_id=entry_id):
            entry = self._get_entry_orm(entry_id, for_update=True)
            self._require_draft(entry, "modified")
            changes: dict = {}

            if narration is not None:
                narration = self._validate_narration(narration)
                if narration != entry.narration:
                    entry.narration = narration
                    changes["narration"] = narration

            if entry_date is not None and entry_date != entry.entry_date:
                year = self._containing_year(entry_date)
                if year.id != entry.financial_year_id:
                    sequence_number = self._sequences.next_value(
                        journal_reference_name(year.id)
                    )
                    entry.financial_year = year
                    entry.sequence_number = sequence_number
                    entry.reference_number = self._format_reference(year, sequence_number)
                    changes["reference_number"] = entry.reference_number
                entry.entry_date = entry_date
                changes["entry_date"] = entry_date

            if items is not None:
                entry.items = self._build_items(items, actor_id)
                changes["item_count"] = len(entry.items)

            if changes:
                entry.updated_by_id = actor_id
                self.session.flush()
                self._audit.record(
                    "JournalEntry", entry.id, AuditAction.ENTRY_UPDATED, actor_id, changes,
                )
                logger.info(
                    "journal_entry_updated",
                    extra={"reference_number": entry.reference_number, "fields": sorted(changes)},
                )
            return JournalEntryInfo.from_model(entry)

    def delete(self, entry_id: UUID, actor_id: UUID) -> None:
        """Discard a draft and its items."""
        with LogContext.bind(entry_id=entry_id):
            entry = self._get_entry_orm(entry_id, for_update=True)
            self._require_draft(entry, "deleted")

            self._audit.record(
                "JournalEntry", entry.id, AuditAction.ENTRY_DELETED, actor_id,
                {"reference_number": entry.reference_number},
            )
            self.session.delete(entry)
            self.session.flush()
            logger.info(
                "journal_entry_deleted",
                extra={"reference_number": entry.reference_number},
            )

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def post(self, entry_id: UUID, actor_id: UUID) -> JournalEntryInfo:
        """
        draft -> posted.

        Checks run in this order: status, one debit and one credit line,
        exact balance, open financial year.  The entry row is locked for the
        rest of the transaction.
        """
        with LogContext.bind(entry_id=entry_id):
            entry = self._get_entry_orm(entry_id, for_update=True)

            status = JournalEntryStatus(entry.status)
            if status != JournalEntryStatus.DRAFT:
                logger.warning(
                    "invalid_transition_rejected",
                    extra={"from_status": status.value, "to_status": "posted"},
                )
                raise InvalidTransitionError(str(entry.id), status.value, "posted")

            debit_lines = sum(1 for i in entry.items if i.item_type == ItemType.DEBIT)
            credit_lines = sum(1 for i in entry.items if i.item_type == ItemType.CREDIT)
            if not debit_lines or not credit_lines:
                logger.warning(
                    "empty_entry_rejected",
                    extra={"debit_lines": debit_lines, "credit_lines": credit_lines},
                )
                raise EmptyEntryError(str(entry.id), debit_lines, credit_lines)

            debits = entry.total_debits
            credits = entry.total_credits
            if debits != credits:
                logger.warning(
                    "unbalanced_entry_rejected",
                    extra={"debits": str(debits), "credits": str(credits)},
                )
                raise UnbalancedEntryError(str(entry.id), str(debits), str(credits))

            self._years.ensure_open_for(entry.entry_date)

            entry.status = JournalEntryStatus.POSTED.value
            entry.posted_at = self._clock.now()
            entry.posted_by_id = actor_id
            entry.updated_by_id = actor_id
            self.session.flush()

            self._audit.record(
                "JournalEntry", entry.id, AuditAction.ENTRY_POSTED, actor_id,
                {
                    "reference_number": entry.reference_number,
                    "entry_date": entry.entry_date,
                    "total": debits,
                    "item_count": len(entry.items),
                },
            )
            logger.info(
                "journal_entry_posted",
                extra={
                    "reference_number": entry.reference_number,
                    "entry_date": str(entry.entry_date),
                    "total": str(debits),
                },
            )
            return JournalEntryInfo.from_model(entry)

    def cancel(self, entry_id: UUID, actor_id: UUID) -> JournalEntryInfo:
        """
        posted -> cancelled.

        Items stay as they are; balances exclude the entry from now on.

        Raises:
            AlreadyCancelledError: The entry is not posted.
        """
        with LogContext.bind(entry_id=entry_id):
            entry = self._get_entry_orm(entry_id, for_update=True)

            status = JournalEntryStatus(entry.status)
            if status != JournalEntryStatus.POSTED:
                logger.warning(
                    "invalid_transition_rejected",
                    extra={"from_status": status.value, "to_status": "cancelled"},
                )
                raise AlreadyCancelledError(str(entry.id), status.value)

            entry.status = JournalEntryStatus.CANCELLED.value
            entry.cancelled_at = self._clock.now()
            entry.cancelled_by_id = actor_id
            entry.updated_by_id = actor_id
            self.session.flush()

            self._audit.record(
                "JournalEntry", entry.id, AuditAction.ENTRY_CANCELLED, actor_id,
                {"reference_number": entry.reference_number},
            )
            logger.info(
                "journal_entry_cancelled",
                extra={"reference_number": entry.reference_number},
            )
            return JournalEntryInfo.from_model(entry)

    def get(self, entry_id: UUID) -> JournalEntryInfo:
        return JournalEntryInfo.from_model(self._get_entry_orm(entry_id))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_entry_orm(self, entry_id: UUID, for_update: bool = False) -> JournalEntry:
        query = select(JournalEntry).where(JournalEntry.id == entry_id)
        if for_update:
            # OF keeps the lock off the eagerly joined financial_years row
            query = query.with_for_update(of=JournalEntry).execution_options(
                populate_existing=True
            )
        entry = self.session.execute(query).unique().scalar_one_or_none()
        if entry is None:
            raise JournalEntryNotFoundError(str(entry_id))
        return entry

    def _require_draft(self, entry: JournalEntry, verb: str) -> None:
        status = JournalEntryStatus(entry.status)
        if status != JournalEntryStatus.DRAFT:
            logger.warning(
                "immutable_entry_rejected",
                extra={"status": status.value, "reference_number": entry.reference_number},
            )
            raise ImmutableEntryError(
                "JournalEntry",
                str(entry.id),
                f"{status.value} journal entries cannot be {verb}",
            )

    def _containing_year(self, entry_date: date) -> FinancialYear:
        if entry_date is None:
            raise ValidationError("entry_date", "is required")
        year = self.session.execute(
            select(FinancialYear).where(
                FinancialYear.start_date <= entry_date,
                FinancialYear.end_date > entry_date,
            )
        ).scalar_one_or_none()
        if year is None:
            logger.warning("no_financial_year_for_date", extra={"entry_date": str(entry_date)})
            raise NoFinancialYearError(str(entry_date))
        return year

    def _format_reference(self, year: FinancialYear, sequence_number: int) -> str:
        padding = self._config.reference_padding
        return f"{self._config.reference_prefix}-{year.name}-{sequence_number:0{padding}d}"

    @staticmethod
    def _validate_narration(narration: str | None) -> str:
        if narration is None or not narration.strip():
            raise ValidationError("narration", "must not be blank")
        return narration.strip()

    def _validate_amount(self, raw) -> Decimal:
        if isinstance(raw, (float, bool)):
            raise InvalidAmountError(str(raw), "must be a Decimal, not a float")
        try:
            amount = raw if isinstance(raw, Decimal) else Decimal(str(raw))
        except (InvalidOperation, ValueError):
            raise InvalidAmountError(str(raw), "is not a number") from None
        if not amount.is_finite():
            raise InvalidAmountError(str(raw), "is not a finite number")
        if amount <= 0:
            raise InvalidAmountError(str(raw), "must be greater than zero")
        places = self._config.money_decimal_places
        if decimal_places(amount) > places:
            raise InvalidAmountError(str(raw), f"has more than {places} decimal places")
        return amount

    def _build_items(
        self,
        items: Iterable[ItemSpec | Mapping] | None,
        actor_id: UUID,
    ) -> list[JournalItem]:
        built = []
        for line_no, item_spec in enumerate(items or (), start=1):
            if isinstance(item_spec, Mapping):
                try:
                    item_spec = ItemSpec(**item_spec)
                except TypeError as exc:
                    raise ValidationError("items", f"line {line_no}: {exc}") from None

            try:
                item_type = ItemType(item_spec.item_type)
            except ValueError:
                raise ValidationError(
                    "item_type", f"{item_spec.item_type!r} is not 'debit' or 'credit'"
                ) from None

            amount = self._validate_amount(item_spec.amount)

            account = self.session.get(Account, item_spec.account_id)
            if account is None:
                logger.warning(
                    "unknown_account_rejected",
                    extra={"account_id": str(item_spec.account_id), "line_no": line_no},
                )
                raise AccountNotFoundError(str(item_spec.account_id))
            if not account.is_active:
                logger.warning(
                    "inactive_account_rejected",
                    extra={"account_id": str(account.id), "account_code": account.code},
                )
                raise AccountInactiveError(str(account.id))

            item = JournalItem(
                account_id=account.id,
                item_type=item_type.value,
                amount=amount,
                description=item_spec.description,
                line_no=line_no,
                created_by_id=actor_id,
            )
            # Loaded for the DTO; no backref event into the dynamic Account.journal_items
            set_committed_value(item, "account", account)
            built.append(item)
        return built
