"""
FinancialYearService -- financial year lifecycle and posting-date control.

Responsibility:
    Creates, updates and deletes financial years, activates exactly one of
    them, toggles the per-year unlock flag, and answers whether a date is
    open for posting.

Architecture position:
    Kernel > Services.  Called by JournalService when assigning a year to a
    draft and when posting.

Invariants enforced:
    - Years are half-open ranges [start_date, end_date) that never overlap.
    - At most one year is active.  LedgerState.active_year_id is the
      explicit record of it and changes in the same transaction as the
      is_active flags.
    - Activation locks LedgerState and the affected year rows FOR UPDATE,
      so concurrent activations serialize.  A transaction that acted on a
      stale LedgerState version fails with ConcurrencyConflict.
    - A year that has ended cannot be activated unless
      ``allow_reactivating_closed_years`` is set.

Failure modes:
    - OverlappingPeriodError, DuplicateNameError, ValidationError on create
      and update.
    - FinancialYearInUseError on delete of an active or non-empty year.
    - ClosedPeriodError when activating an ended year, or from
      ensure_open_for() when a date is not open for posting.
    - ConcurrencyConflict on a racing activation.  The session must be
      rolled back by the caller.

Audit relevance:
    year_created, year_updated, year_deleted, year_activated, year_unlocked
    and year_locked audit actions.
"""

from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ledger_kernel.config import BackdatedPostingPolicy, LedgerConfig
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import FinancialYearInfo
from ledger_kernel.exceptions import (
    ClosedPeriodError,
    ConcurrencyConflict,
    DuplicateNameError,
    FinancialYearInUseError,
    FinancialYearNotFoundError,
    NoFinancialYearError,
    OverlappingPeriodError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.audit_log import AuditAction
from ledger_kernel.models.financial_year import FinancialYear, LedgerState
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.services.audit_service import AuditService
from ledger_kernel.services.base import BaseService

logger = get_logger("services.financial_year")


def generate_name(start_date: date, end_date: date) -> str:
    """
    Default year name: "2024" for a calendar year, "2024-2025" otherwise.

    end_date is exclusive, so the name uses the last day inside the year.
    """
    last_day = end_date - timedelta(days=1)
    if start_date.year == last_day.year:
        return f"{start_date.year}"
    return f"{start_date.year}-{last_day.year}"


class FinancialYearService(BaseService):
    """
    Service for financial years and the active-year pointer.

    Contract:
        Returns FinancialYearInfo DTOs.  ensure_open_for() returns the ORM
        year for JournalService, which runs in the same session.
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
        self._audit = AuditService(session, self._clock)

    generate_name = staticmethod(generate_name)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(
        self,
        name: str | None,
        start_date: date,
        end_date: date,
        actor_id: UUID,
    ) -> FinancialYearInfo:
        """
        Create an inactive, locked financial year.

        A blank name defaults to generate_name(start_date, end_date).

        Raises:
            ValidationError: start_date is not before end_date.
            DuplicateNameError: Name already used.
            OverlappingPeriodError: Range intersects an existing year.
        """
        self._validate_range(start_date, end_date)
        name = (name or "").strip() or generate_name(start_date, end_date)
        self._check_name_free(name)
        self._validate_no_overlap(name, start_date, end_date)

        year = FinancialYear(
            name=name,
            start_date=start_date,
            end_date=end_date,
            is_active=False,
            is_unlocked=False,
            created_by_id=actor_id,
        )
        self.session.add(year)
        self.session.flush()

        self._audit.record(
            "FinancialYear", year.id, AuditAction.YEAR_CREATED, actor_id,
            {"name": name, "start_date": start_date, "end_date": end_date},
        )
        logger.info(
            "financial_year_created",
            extra={
                "year_id": str(year.id),
                "year_name": name,
                "start_date": str(start_date),
                "end_date": str(end_date),
            },
        )
        return FinancialYearInfo.from_model(year)

    def update(
        self,
        year_id: UUID,
        actor_id: UUID,
        name: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> FinancialYearInfo:
        """
        Rename a year or move its boundaries.

        The new range must not overlap another year and must still contain
        every journal entry already assigned to this year.
        """
        year = self._get_year_orm(year_id, for_update=True)
        new_start = start_date or year.start_date
        new_end = end_date or year.end_date
        changes = {}

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("name", "must not be blank")
            if name != year.name:
                self._check_name_free(name, exclude_id=year.id)
                changes["name"] = name

        if (new_start, new_end) != (year.start_date, year.end_date):
            self._validate_range(new_start, new_end)
            self._validate_no_overlap(
                changes.get("name", year.name), new_start, new_end, exclude_id=year.id
            )
            outside = self.session.execute(
                select(JournalEntry.entry_date)
                .where(JournalEntry.financial_year_id == year.id)
                .where((JournalEntry.entry_date < new_start) | (JournalEntry.entry_date >= new_end))
                .limit(1)
            ).scalar_one_or_none()
            if outside is not None:
                raise ValidationError(
                    "date_range",
                    f"journal entry dated {outside} would fall outside "
                    f"[{new_start}, {new_end})",
                )
            changes["start_date"] = new_start
            changes["end_date"] = new_end

        if changes:
            for field, value in changes.items():
                setattr(year, field, value)
            year.updated_by_id = actor_id
            self.session.flush()
            self._audit.record(
                "FinancialYear", year.id, AuditAction.YEAR_UPDATED, actor_id, changes,
            )
            logger.info(
                "financial_year_updated",
                extra={"year_id": str(year.id), "fields": sorted(changes)},
            )

        return FinancialYearInfo.from_model(year)

    def delete(self, year_id: UUID, actor_id: UUID) -> None:
        year = self._get_year_orm(year_id, for_update=True)
        state = self._get_state()

        if year.is_active or (state is not None and state.active_year_id == year.id):
            raise FinancialYearInUseError(year.name, "year is active")

        has_entries = self.session.execute(
            select(exists().where(JournalEntry.financial_year_id == year.id))
        ).scalar()
        if has_entries:
            raise FinancialYearInUseError(year.name, "year has journal entries")

        self._audit.record(
            "FinancialYear", year.id, AuditAction.YEAR_DELETED, actor_id,
            {"name": year.name},
        )
        self.session.delete(year)
        self.session.flush()
        logger.info("financial_year_deleted", extra={"year_id": str(year_id)})

    def activate(self, year_id: UUID, actor_id: UUID) -> FinancialYearInfo:
        """
        Make ``year_id`` the single active year.

        Every other year is deactivated and LedgerState.active_year_id is
        updated in the same transaction.  Activating the already-active year
        is a no-op.

        Raises:
            ClosedPeriodError: The year has ended and reactivating closed
                years is not allowed.
            ConcurrencyConflict: Another transaction changed the active year
                first.  Roll back and retry.
        """
        with LogContext.bind(year_id=year_id):
            state = self._get_state_for_update()
            year = self._get_year_orm(year_id, for_update=True)

            if year.is_active and state.active_year_id == year.id:
                logger.info("financial_year_already_active", extra={"year_name": year.name})
                return FinancialYearInfo.from_model(year)

            today = self._clock.today()
            if year.has_ended(today) and not self._config.allow_reactivating_closed_years:
                logger.warning(
                    "closed_year_activation_rejected",
                    extra={"year_name": year.name, "end_date": str(year.end_date)},
                )
                raise ClosedPeriodError(
                    year.name, str(today), f"year ended on {year.end_date}"
                )

            previous_id = state.active_year_id
            # A failed flush expires these rows; the handlers must not touch them
            year_name, year_key, state_key = year.name, str(year.id), state.key
            try:
                others = self.session.execute(
                    select(FinancialYear)
                    .where(FinancialYear.is_active.is_(True))
                    .where(FinancialYear.id != year.id)
                    .with_for_update()
                ).scalars().all()
                for other in others:
                    other.is_active = False
                    other.updated_by_id = actor_id
                # Deactivations must reach the database before the
                # single-active index sees the new active row.
                self.session.flush()

                year.is_active = True
                year.updated_by_id = actor_id
                state.active_year_id = year.id
                self.session.flush()
            except StaleDataError as exc:
                logger.warning(
                    "financial_year_activation_conflict",
                    extra={"year_name": year_name, "cause": "stale_ledger_state"},
                )
                raise ConcurrencyConflict("LedgerState", state_key) from exc
            except IntegrityError as exc:
                logger.warning(
                    "financial_year_activation_conflict",
                    extra={"year_name": year_name, "cause": "single_active_index"},
                )
                raise ConcurrencyConflict("FinancialYear", year_key) from exc

            self._audit.record(
                "FinancialYear", year.id, AuditAction.YEAR_ACTIVATED, actor_id,
                {
                    "name": year.name,
                    "previous_active_year_id": str(previous_id) if previous_id else None,
                },
            )
            logger.info(
                "financial_year_activated",
                extra={
                    "year_name": year.name,
                    "previous_active_year_id": str(previous_id) if previous_id else None,
                },
            )
            return FinancialYearInfo.from_model(year)

    def unlock(self, year_id: UUID, actor_id: UUID) -> FinancialYearInfo:
        """Allow backdated postings into this year under ``unlocked_only``."""
        return self._set_unlocked(year_id, actor_id, True)

    def lock(self, year_id: UUID, actor_id: UUID) -> FinancialYearInfo:
        return self._set_unlocked(year_id, actor_id, False)

    def _set_unlocked(self, year_id: UUID, actor_id: UUID, unlocked: bool) -> FinancialYearInfo:
        year = self._get_year_orm(year_id, for_update=True)
        if year.is_unlocked == unlocked:
            return FinancialYearInfo.from_model(year)

        year.is_unlocked = unlocked
        year.updated_by_id = actor_id
        self.session.flush()

        action = AuditAction.YEAR_UNLOCKED if unlocked else AuditAction.YEAR_LOCKED
        self._audit.record("FinancialYear", year.id, action, actor_id, {"name": year.name})
        logger.info(
            "financial_year_unlocked" if unlocked else "financial_year_locked",
            extra={"year_id": str(year.id), "year_name": year.name},
        )
        return FinancialYearInfo.from_model(year)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def active_year(self) -> FinancialYearInfo | None:
        state = self._get_state()
        if state is None or state.active_year_id is None:
            return None
        year = self.session.get(FinancialYear, state.active_year_id)
        return FinancialYearInfo.from_model(year) if year else None

    def year_for_date(self, check_date: date) -> FinancialYearInfo | None:
        year = self._year_for_date_orm(check_date)
        return FinancialYearInfo.from_model(year) if year else None

    def get(self, year_id: UUID) -> FinancialYearInfo:
        return FinancialYearInfo.from_model(self._get_year_orm(year_id))

    def list(self) -> list[FinancialYearInfo]:
        years = self.session.execute(
            select(FinancialYear).order_by(FinancialYear.start_date)
        ).scalars().all()
        return [FinancialYearInfo.from_model(y) for y in years]

    def is_open_for(self, check_date: date) -> bool:
        """
        True iff a year contains ``check_date`` and accepts postings.

        The active year always does.  Other years follow the backdated
        posting policy: never under ``forbid``, while unlocked under
        ``unlocked_only``, always under ``allow``.
        """
        year = self._year_for_date_orm(check_date)
        return year is not None and self._closed_reason(year) is None

    def ensure_open_for(self, check_date: date) -> FinancialYear:
        """
        Return the year containing ``check_date`` if it accepts postings.

        The year row is read with a shared lock and refreshed, so the answer
        holds until the caller's transaction ends.

        Raises:
            NoFinancialYearError: No year contains the date.
            ClosedPeriodError: The containing year is closed for postings.
        """
        year = self._year_for_date_orm(check_date, lock=True)
        if year is None:
            logger.warning("no_financial_year_for_date", extra={"entry_date": str(check_date)})
            raise NoFinancialYearError(str(check_date))

        reason = self._closed_reason(year)
        if reason is not None:
            logger.warning(
                "closed_period_rejected",
                extra={
                    "year_name": year.name,
                    "entry_date": str(check_date),
                    "policy": self._config.backdated_posting_policy.value,
                },
            )
            raise ClosedPeriodError(year.name, str(check_date), reason)
        return year

    def _closed_reason(self, year: FinancialYear) -> str | None:
        state = self._get_state()
        if state is not None and state.active_year_id == year.id:
            return None

        policy = self._config.backdated_posting_policy
        if policy == BackdatedPostingPolicy.ALLOW:
            return None
        if policy == BackdatedPostingPolicy.UNLOCKED_ONLY:
            if year.is_unlocked:
                return None
            return "year is not active and is locked"
        return "year is not the active year"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_year_orm(self, year_id: UUID, for_update: bool = False) -> FinancialYear:
        query = select(FinancialYear).where(FinancialYear.id == year_id)
        if for_update:
            query = query.with_for_update()
        year = self.session.execute(query).scalar_one_or_none()
        if year is None:
            raise FinancialYearNotFoundError(str(year_id))
        return year

    def _year_for_date_orm(self, check_date: date, lock: bool = False) -> FinancialYear | None:
        query = select(FinancialYear).where(
            FinancialYear.start_date <= check_date,
            FinancialYear.end_date > check_date,
        )
        if lock:
            query = query.with_for_update(read=True).execution_options(
                populate_existing=True
            )
        return self.session.execute(query).scalar_one_or_none()

    def _get_state(self) -> LedgerState | None:
        return self.session.execute(
            select(LedgerState).where(LedgerState.key == LedgerState.STATE_KEY)
        ).scalar_one_or_none()

    def _get_state_for_update(self) -> LedgerState:
        """
        Lock the LedgerState row, creating it on first use.

        The row is not refreshed if this session already holds it, so a
        version read earlier in the session is the one checked at flush.
        """
        query = (
            select(LedgerState)
            .where(LedgerState.key == LedgerState.STATE_KEY)
            .with_for_update()
        )
        state = self.session.execute(query).scalar_one_or_none()
        if state is not None:
            return state

        savepoint = self.session.begin_nested()
        try:
            state = LedgerState(key=LedgerState.STATE_KEY, active_year_id=None)
            self.session.add(state)
            self.session.flush()
            savepoint.commit()
            return state
        except IntegrityError:
            savepoint.rollback()
            return self.session.execute(query).scalar_one()

    def _validate_range(self, start_date: date, end_date: date) -> None:
        if start_date is None or end_date is None:
            raise ValidationError("date_range", "start_date and end_date are required")
        if start_date >= end_date:
            raise ValidationError(
                "date_range",
                f"start_date ({start_date}) must be before end_date ({end_date})",
            )

    def _check_name_free(self, name: str, exclude_id: UUID | None = None) -> None:
        query = select(FinancialYear.id).where(FinancialYear.name == name)
        if exclude_id is not None:
            query = query.where(FinancialYear.id != exclude_id)
        if self.session.execute(query).first() is not None:
            raise DuplicateNameError("FinancialYear", name)

    def _validate_no_overlap(
        self,
        new_name: str,
        start_date: date,
        end_date: date,
        exclude_id: UUID | None = None,
    ) -> None:
        """
        Half-open ranges overlap iff each starts before the other ends.

        Raises:
            OverlappingPeriodError: If overlap is detected.
        """
        query = select(FinancialYear).where(
            FinancialYear.start_date < end_date,
            start_date < FinancialYear.end_date,
        )
        if exclude_id is not None:
            query = query.where(FinancialYear.id != exclude_id)
        overlapping = self.session.execute(
            query.order_by(FinancialYear.start_date).limit(1)
        ).scalar_one_or_none()

        if overlapping is not None:
            overlap_start = max(start_date, overlapping.start_date)
            overlap_end = min(end_date, overlapping.end_date)
            logger.warning(
                "overlapping_financial_year_rejected",
                extra={"year_name": new_name, "existing_year_name": overlapping.name},
            )
            raise OverlappingPeriodError(
                new_year_name=new_name,
                existing_year_name=overlapping.name,
                overlap_start=str(overlap_start),
                overlap_end=str(overlap_end),
            )
