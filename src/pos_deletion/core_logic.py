"""Business logic layer for sale deletion.

This module holds the rules that decide whether a recorded sale may be removed
and the orchestration that removes it while keeping the stock levels, the
double-entry journal, the chart of accounts and the deletion audit trail in
step. It consumes the repositories for all I/O.

The underlying store offers no transactions. Each step commits as it runs, so
a failure part-way through leaves earlier steps applied unless snapshot
rollback is enabled in ``config.ini``; such failures are logged at
``CRITICAL`` with the list of steps already applied. The pipeline assumes a
single writer per sale at a time.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Generic, List, Mapping, Optional, Sequence, TypeVar

from . import LOG_DIR, configure_logging, data_manager, log
from .constants import (
    EXPECTED_SCHEMA_VERSION,
    MAX_REASON_LENGTH,
    CollectionKey,
    DeletionErrorKind,
    DeletionStage,
    PaymentMethod,
)
from .data_manager import CollectionStore, StorageWriteError
from .repositories import (
    AuditRepository,
    LedgerRepository,
    SaleRepository,
    ShiftRepository,
    StockRepository,
)


T = TypeVar("T")

SUCCESS_MESSAGE = "Sale deleted successfully"
DELETE_FAILED_MESSAGE = "Failed to delete the sale from storage"

# Collections a deletion may touch, in the order they are written.
MUTATED_COLLECTIONS: tuple[CollectionKey, ...] = (
    CollectionKey.STOCK,
    CollectionKey.JOURNAL,
    CollectionKey.CHART_OF_ACCOUNTS,
    CollectionKey.SALES,
    CollectionKey.DELETION_LOG,
)

_STAGE_LABELS: Dict[DeletionStage, str] = {
    DeletionStage.VALIDATING: "reading the sale record",
    DeletionStage.RESTORING: "restoring stock",
    DeletionStage.POSTING: "posting reversal journals",
    DeletionStage.DELETING: "deleting the sale record",
    DeletionStage.LOGGING: "writing the deletion log",
}


@dataclass(frozen=True)
class DeletionError:
    """Structured description of why a deletion was refused or failed."""

    kind: DeletionErrorKind
    message: str
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a validation step: a value on success, an error otherwise."""

    ok: bool
    message: str
    value: Optional[T] = None
    error: Optional[DeletionError] = None

    @classmethod
    def success(cls, value: Optional[T], message: str) -> "Result[T]":
        return cls(ok=True, message=message, value=value)

    @classmethod
    def failure(cls, error: DeletionError) -> "Result[T]":
        return cls(ok=False, message=error.message, error=error)


@dataclass(frozen=True)
class RestorationReport:
    """Outcome of returning a sale's quantities to stock.

    ``ok`` is always ``True``: unknown items only produce warnings.
    """

    ok: bool
    warnings: tuple[str, ...] = ()
    restored_item_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReversalReport:
    """Outcome of posting the compensating journal entries for a sale."""

    ok: bool
    posted_journal_ids: tuple[str, ...]
    total_cost: Decimal


@dataclass(frozen=True)
class DeletionResult:
    """Caller-facing result of :meth:`DeletionOrchestrator.delete_sale`.

    ``warnings`` is ``None`` unless stock restoration reported missing items.
    """

    success: bool
    message: str
    warnings: Optional[tuple[str, ...]] = None
    error: Optional[DeletionError] = None
    sale_id: Optional[str] = None
    posted_journal_ids: tuple[str, ...] = ()
    log_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Render the ``{success, message, warnings?}`` shape used by front-ends."""

        payload: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.warnings:
            payload["warnings"] = list(self.warnings)
        return payload


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` when given, otherwise the current UTC datetime."""

    return candidate if candidate is not None else datetime.now(UTC)


def generate_record_id(*, prefix: str = "J", when: Optional[datetime] = None) -> str:
    """Generate a sortable identifier for journal postings and audit records.

    Args:
        prefix (str): Designator prepended to the identifier, ``"J"`` for
            journal postings and ``"D"`` for deletion-log entries.
        when (datetime | None): Timestamp the identifier is derived from. When
            ``None`` the current UTC time is used.

    Returns:
        str: Identifier formed as ``{prefix}{YYYYMMDDHHMMSSffffff}-{random}``.
            The random suffix keeps postings created within the same
            microsecond distinct.
    """

    when = when or _resolve_timestamp(None)
    return f"{prefix}{when.strftime('%Y%m%d%H%M%S%f')}-{uuid.uuid4().hex[:8]}"


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


class EligibilityValidator:
    """Decide whether a sale may be deleted and whether a reason is acceptable."""

    def __init__(self, sales: SaleRepository, shifts: ShiftRepository, *, max_reason_length: int = MAX_REASON_LENGTH) -> None:
        self.sales = sales
        self.shifts = shifts
        self.max_reason_length = max_reason_length

    def validate_deletion(self, sale_id: str) -> Result[Dict[str, Any]]:
        """Check that ``sale_id`` names an existing sale outside closed shifts.

        Args:
            sale_id (str): Internal id or external sale number.

        Returns:
            Result[dict]: On success the stored sale document; on failure a
                ``NOT_FOUND`` or ``CLOSED_SHIFT_VIOLATION`` error.
        """

        document = self.sales.get_document(sale_id)
        if document is None:
            log.warning("Deletion refused: sale '%s' not found", sale_id)
            return Result.failure(DeletionError(
                kind=DeletionErrorKind.NOT_FOUND,
                message=f"Sale not found: {sale_id}",
                details={"saleId": sale_id},
            ))

        shift = self.find_closed_shift(document)
        if shift is not None:
            sale_number = document.get("saleNumber") or document.get("id")
            log.warning(
                "Deletion refused: sale '%s' falls inside closed shift '%s'",
                sale_number,
                shift.shift_id,
            )
            return Result.failure(DeletionError(
                kind=DeletionErrorKind.CLOSED_SHIFT_VIOLATION,
                message=(
                    f"Sale {sale_number} is already included in a closed cashier shift "
                    f"report (shift {shift.shift_id}) and cannot be deleted"
                ),
                details={
                    "saleId": document.get("id"),
                    "shiftId": shift.shift_id,
                    "openedAt": shift.opened_at,
                    "closedAt": shift.closed_at,
                },
            ))

        return Result.success(document, "Sale can be deleted")

    def find_closed_shift(self, document: Mapping[str, Any]) -> Optional[data_manager.ShiftRecord]:
        """Return the first closed shift whose ``[openedAt, closedAt]`` holds the sale.

        A sale or shift whose timestamps cannot be read is treated as outside
        that shift.
        """

        try:
            sold_at = data_manager.parse_timestamp(str(document.get("date") or ""))
        except ValueError:
            log.warning("Sale '%s' has an unreadable date; closed-shift check skipped", document.get("id"))
            return None

        for shift in self.shifts.get_closed():
            if not shift.closed_at:
                continue
            try:
                opened_at = data_manager.parse_timestamp(shift.opened_at)
                closed_at = data_manager.parse_timestamp(shift.closed_at)
            except ValueError:
                log.warning("Shift '%s' has unreadable boundaries; ignored", shift.shift_id)
                continue
            if opened_at <= sold_at <= closed_at:
                return shift
        return None

    def validate_reason(self, reason: Optional[str]) -> Result[str]:
        """Check a deletion reason; the accepted value is returned untouched.

        Whitespace is stripped only to decide emptiness. Exactly
        ``max_reason_length`` characters is accepted.
        """

        if reason is None or reason.strip() == "":
            return Result.failure(DeletionError(
                kind=DeletionErrorKind.EMPTY_REASON,
                message="A deletion reason is required",
            ))

        if len(reason) > self.max_reason_length:
            return Result.failure(DeletionError(
                kind=DeletionErrorKind.REASON_TOO_LONG,
                message=f"Deletion reason must be at most {self.max_reason_length} characters",
                details={"length": len(reason), "maximum": self.max_reason_length},
            ))

        return Result.success(reason, "Reason accepted")


# ---------------------------------------------------------------------------
# Stock restoration
# ---------------------------------------------------------------------------


class StockRestorer:
    """Return the quantities of a deleted sale to stock."""

    def __init__(self, stock: StockRepository) -> None:
        self.stock = stock

    def restore(self, line_items: Sequence[data_manager.LineItem]) -> RestorationReport:
        """Increment stock for every line item, one line at a time.

        Lines repeating an item id are applied in sequence so their quantities
        accumulate. Unknown items produce a warning and never fail the call.

        Raises:
            StorageWriteError: If the store rejects a stock write.
        """

        warnings: List[str] = []
        restored: List[str] = []
        for line in line_items:
            if self.stock.increment(line.item_id, line.quantity):
                restored.append(line.item_id)
                continue
            log.warning("Stock item '%s' (%s) not found during restoration", line.item_id, line.name)
            warnings.append(f"Item {line.name} was not found; its stock could not be restored")
        return RestorationReport(ok=True, warnings=tuple(warnings), restored_item_ids=tuple(restored))


# ---------------------------------------------------------------------------
# Journal reversal
# ---------------------------------------------------------------------------


def calculate_total_cost(line_items: Sequence[data_manager.LineItem]) -> Decimal:
    """Sum the historical cost basis (``unit_cost * quantity``) of a sale."""

    return sum((line.unit_cost * line.quantity for line in line_items), Decimal("0"))


def build_revenue_reversal(
    sale: data_manager.Sale,
    codes: data_manager.AccountCodes,
    *,
    posting_id: str,
    timestamp: datetime,
) -> data_manager.JournalPosting:
    """Build the posting that undoes a sale's revenue.

    Revenue is debited for the sale total. Cash sales credit the cash account;
    credit sales credit the member-receivable account.
    """

    counter_account = codes.cash if sale.payment_method is PaymentMethod.CASH else codes.member_receivable
    return data_manager.JournalPosting(
        posting_id=posting_id,
        date_iso=timestamp.isoformat(),
        description=f"Sale deletion reversal {sale.sale_number}",
        entries=(
            data_manager.JournalEntryLine(account_code=codes.revenue, debit=sale.total, credit=Decimal("0")),
            data_manager.JournalEntryLine(account_code=counter_account, debit=Decimal("0"), credit=sale.total),
        ),
    )


def build_cost_reversal(
    sale: data_manager.Sale,
    codes: data_manager.AccountCodes,
    total_cost: Decimal,
    *,
    posting_id: str,
    timestamp: datetime,
) -> data_manager.JournalPosting:
    """Build the posting that moves a sale's cost of goods back into inventory."""

    return data_manager.JournalPosting(
        posting_id=posting_id,
        date_iso=timestamp.isoformat(),
        description=f"Sale deletion HPP (cost of goods) reversal {sale.sale_number}",
        entries=(
            data_manager.JournalEntryLine(account_code=codes.inventory, debit=total_cost, credit=Decimal("0")),
            data_manager.JournalEntryLine(account_code=codes.cost_of_goods, debit=Decimal("0"), credit=total_cost),
        ),
    )


class ReversalPoster:
    """Post the compensating journal entries for a deleted sale."""

    def __init__(self, ledger: LedgerRepository, codes: data_manager.AccountCodes = data_manager.DEFAULT_CODES) -> None:
        self.ledger = ledger
        self.codes = codes

    def post(self, sale: data_manager.Sale, *, timestamp: Optional[datetime] = None) -> ReversalReport:
        """Post the revenue reversal and, when the sale had a cost basis, the cost reversal.

        Both postings are dated ``timestamp`` (now by default), not the sale's
        own date.

        Args:
            sale (data_manager.Sale): The sale being deleted.
            timestamp (datetime | None): Posting date override.

        Returns:
            ReversalReport: Identifiers of the postings written, in order.

        Raises:
            StorageWriteError: If the journal or chart-of-accounts write fails.
        """

        timestamp = _resolve_timestamp(timestamp)
        total_cost = calculate_total_cost(sale.line_items)
        posted: List[str] = []

        revenue = build_revenue_reversal(
            sale,
            self.codes,
            posting_id=generate_record_id(prefix="J", when=timestamp),
            timestamp=timestamp,
        )
        self.ledger.append(revenue)
        posted.append(revenue.posting_id)
        log.info("Posted revenue reversal '%s' for sale '%s' (%s)", revenue.posting_id, sale.sale_number, sale.total)

        if total_cost > 0:
            cost = build_cost_reversal(
                sale,
                self.codes,
                total_cost,
                posting_id=generate_record_id(prefix="J", when=timestamp),
                timestamp=timestamp,
            )
            self.ledger.append(cost)
            posted.append(cost.posting_id)
            log.info("Posted cost reversal '%s' for sale '%s' (%s)", cost.posting_id, sale.sale_number, total_cost)

        return ReversalReport(ok=True, posted_journal_ids=tuple(posted), total_cost=total_cost)


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


class DeletionOrchestrator:
    """Sequence validation, restoration, reversal, removal and audit for one sale.

    States run strictly in the order ``VALIDATING -> RESTORING -> POSTING ->
    DELETING -> LOGGING -> DONE``. Validation failures move to ``ABORTED``
    before anything is written.

    When ``rollback_on_failure`` is set and a ``store`` is supplied, the raw
    text of every collection in :data:`MUTATED_COLLECTIONS` is captured before
    the first write and written back if a later step fails.
    """

    def __init__(
        self,
        sales: SaleRepository,
        validator: EligibilityValidator,
        restorer: StockRestorer,
        poster: ReversalPoster,
        audit: AuditRepository,
        *,
        store: Optional[CollectionStore] = None,
        rollback_on_failure: bool = False,
    ) -> None:
        self.sales = sales
        self.validator = validator
        self.restorer = restorer
        self.poster = poster
        self.audit = audit
        self.store = store
        self.rollback_on_failure = rollback_on_failure
        self.stage = DeletionStage.VALIDATING

    def delete_sale(self, sale_id: str, reason: str, deleted_by: str) -> DeletionResult:
        """Permanently delete a sale and record why.

        Args:
            sale_id (str): Internal id or external sale number.
            reason (str): Operator-supplied reason, stored verbatim.
            deleted_by (str): Identifier of the operator.

        Returns:
            DeletionResult: ``success`` with any restoration warnings, or a
                failure carrying a :class:`DeletionError`.
        """

        self.stage = DeletionStage.VALIDATING
        log.info("Deletion requested for sale '%s' by '%s'", sale_id, deleted_by)

        snapshot = self._capture_snapshot()
        applied: List[DeletionStage] = []
        sale: Optional[data_manager.Sale] = None

        try:
            eligibility = self.validator.validate_deletion(sale_id)
            if not eligibility.ok:
                return self._abort(eligibility.error)

            reason_check = self.validator.validate_reason(reason)
            if not reason_check.ok:
                log.warning("Deletion of sale '%s' refused: %s", sale_id, reason_check.message)
                return self._abort(reason_check.error)

            sale = self.sales.get_by_id(sale_id)
            if sale is None:
                log.warning("Sale '%s' vanished after validation", sale_id)
                return self._abort(DeletionError(
                    kind=DeletionErrorKind.NOT_FOUND,
                    message=f"Sale not found: {sale_id}",
                    details={"saleId": sale_id},
                ))
            timestamp = _resolve_timestamp(None)

            self.stage = DeletionStage.RESTORING
            restoration = self.restorer.restore(sale.line_items)
            applied.append(DeletionStage.RESTORING)
            log.info(
                "Restored stock for sale '%s' (%d line(s), %d warning(s))",
                sale.sale_number,
                len(sale.line_items),
                len(restoration.warnings),
            )

            self.stage = DeletionStage.POSTING
            reversal = self.poster.post(sale, timestamp=timestamp)
            applied.append(DeletionStage.POSTING)

            self.stage = DeletionStage.DELETING
            # Exact id only: another sale may use this id as its sale number.
            if not self.sales.delete(sale.sale_id, match_number=False):
                return self._fail_after_mutation(
                    DeletionError(
                        kind=DeletionErrorKind.STORAGE_WRITE_FAILURE,
                        message=DELETE_FAILED_MESSAGE,
                        details={"saleId": sale.sale_id, "stage": self.stage.value},
                    ),
                    applied,
                    snapshot,
                )
            applied.append(DeletionStage.DELETING)

            self.stage = DeletionStage.LOGGING
            entry = data_manager.DeletionLogEntry(
                log_id=generate_record_id(prefix="D", when=timestamp),
                sale_id=sale.sale_id,
                sale_number=sale.sale_number,
                sale_snapshot=data_manager.loads(data_manager.dumps(sale.document)),
                reason=reason,
                deleted_by=deleted_by,
                deleted_at=timestamp.isoformat(),
                stock_restored=True,
                journal_reversed=True,
                warnings=restoration.warnings,
            )
            self.audit.append(entry)
        except StorageWriteError as exc:
            return self._fail_after_mutation(
                DeletionError(
                    kind=DeletionErrorKind.STORAGE_WRITE_FAILURE,
                    message=f"Storage write failed while {_STAGE_LABELS[self.stage]}: {exc}",
                    details={"saleId": sale.sale_id if sale is not None else sale_id, "stage": self.stage.value},
                ),
                applied,
                snapshot,
            )
        except Exception as exc:
            return self._fail_after_mutation(
                DeletionError(
                    kind=DeletionErrorKind.UNEXPECTED_ERROR,
                    message=f"Unexpected error while {_STAGE_LABELS[self.stage]}: {exc}",
                    details={
                        "saleId": sale.sale_id if sale is not None else sale_id,
                        "stage": self.stage.value,
                        "exception": type(exc).__name__,
                    },
                ),
                applied,
                snapshot,
                exc_info=True,
            )

        self.stage = DeletionStage.DONE
        log.info(
            "Deleted sale '%s' (audit entry '%s', journals %s)",
            sale.sale_number,
            entry.log_id,
            ", ".join(reversal.posted_journal_ids),
        )
        return DeletionResult(
            success=True,
            message=SUCCESS_MESSAGE,
            warnings=restoration.warnings or None,
            sale_id=sale.sale_id,
            posted_journal_ids=reversal.posted_journal_ids,
            log_id=entry.log_id,
        )

    def _abort(self, error: Optional[DeletionError]) -> DeletionResult:
        if error is None:
            raise ValueError("A refused deletion must carry a DeletionError")
        self.stage = DeletionStage.ABORTED
        return DeletionResult(success=False, message=error.message, error=error)

    def _capture_snapshot(self) -> Optional[Dict[str, Optional[str]]]:
        if not self.rollback_on_failure or self.store is None:
            return None
        return {key.value: self.store.get(key.value) for key in MUTATED_COLLECTIONS}

    def _fail_after_mutation(
        self,
        error: DeletionError,
        applied: Sequence[DeletionStage],
        snapshot: Optional[Dict[str, Optional[str]]],
        *,
        exc_info: bool = False,
    ) -> DeletionResult:
        failed_stage = self.stage
        self.stage = DeletionStage.ABORTED
        rolled_back = self._rollback(snapshot) if snapshot is not None else False
        # Nothing written yet means the store is consistent.
        level = logging.CRITICAL if applied else logging.ERROR
        log.log(
            level,
            "Deletion of sale '%s' failed while %s; steps already applied: %s; rolled back: %s",
            error.details.get("saleId"),
            _STAGE_LABELS.get(failed_stage, failed_stage.value),
            ", ".join(stage.value for stage in applied) or "none",
            rolled_back,
            exc_info=exc_info,
        )
        details = dict(error.details)
        details["appliedSteps"] = [stage.value for stage in applied]
        details["rolledBack"] = rolled_back
        error = DeletionError(kind=error.kind, message=error.message, details=details)
        return DeletionResult(success=False, message=error.message, error=error, sale_id=details.get("saleId"))

    def _rollback(self, snapshot: Dict[str, Optional[str]]) -> bool:
        """Write captured collection texts back; ``False`` if any write fails."""

        if self.store is None:
            raise RuntimeError("Rollback requires a collection store")
        restored = True
        for key, text in snapshot.items():
            current = self.store.get(key)
            if current == text:
                continue
            try:
                self.store.set(key, text if text is not None else "[]")
            except (StorageWriteError, ValueError) as exc:
                log.critical("Rollback could not restore collection '%s': %s", key, exc)
                restored = False
        return restored


# ---------------------------------------------------------------------------
# Runtime wiring
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration and the store used by the business layer."""

    settings: data_manager.ConfigSettings
    store: CollectionStore


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and open the workbook-backed store.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer searches upward from the current
            working directory.

    Returns:
        RuntimeContext: Context ready for :func:`delete_sale`.

    Raises:
        FileNotFoundError: If the configuration file or workbook is missing.
        KeyError: When mandatory configuration options are missing.
    """

    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    configure_logging(settings.log_dir or LOG_DIR, settings.log_level)
    store = data_manager.WorkbookCollectionStore(settings.data_file)
    log.info("Loaded runtime context for store '%s'", settings.data_file)
    return RuntimeContext(settings=settings, store=store)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Raise ``RuntimeError`` when the configured schema is not the expected one."""

    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Store schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Store schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def build_orchestrator(context: RuntimeContext) -> DeletionOrchestrator:
    """Wire repositories and services around the context's store."""

    store = context.store
    sales = SaleRepository(store)
    return DeletionOrchestrator(
        sales=sales,
        validator=EligibilityValidator(sales, ShiftRepository(store)),
        restorer=StockRestorer(StockRepository(store)),
        poster=ReversalPoster(LedgerRepository(store), context.settings.account_codes),
        audit=AuditRepository(store),
        store=store,
        rollback_on_failure=context.settings.rollback_on_failure,
    )


def delete_sale(context: RuntimeContext, sale_id: str, reason: str, deleted_by: str) -> DeletionResult:
    """Delete one sale through a freshly wired :class:`DeletionOrchestrator`."""

    return build_orchestrator(context).delete_sale(sale_id, reason, deleted_by)


def list_deletion_history(context: RuntimeContext) -> List[data_manager.DeletionLogEntry]:
    """Return every deletion-log entry, newest first."""

    entries = AuditRepository(context.store).get_all()
    return sorted(entries, key=lambda entry: entry.deleted_at, reverse=True)


def verify_deletion(context: RuntimeContext, result: DeletionResult) -> List[str]:
    """Cross-check the store after a successful deletion.

    Args:
        context (RuntimeContext): Context whose store is inspected.
        result (DeletionResult): Result returned by :func:`delete_sale`.

    Returns:
        list[str]: Human-readable problems; empty when the sale is gone, every
            reported posting exists and balances, and the audit entry exists.
    """

    if not result.success or result.sale_id is None:
        return [f"Deletion did not complete: {result.message}"]

    problems: List[str] = []
    if SaleRepository(context.store).get_by_id(result.sale_id) is not None:
        problems.append(f"Sale {result.sale_id} is still present after deletion")

    ledger = LedgerRepository(context.store)
    for posting_id in result.posted_journal_ids:
        posting = ledger.get_posting(posting_id)
        if posting is None:
            problems.append(f"Journal posting {posting_id} is missing")
        elif not posting.is_balanced:
            problems.append(f"Journal posting {posting_id} does not balance")
    if not result.posted_journal_ids:
        problems.append("No reversal journal was posted")

    audit_entries = [entry for entry in AuditRepository(context.store).get_all() if entry.log_id == result.log_id]
    if not audit_entries:
        problems.append(f"Deletion log entry {result.log_id} is missing")

    for problem in problems:
        log.error("Integrity check for sale '%s': %s", result.sale_id, problem)
    return problems
