"""Data access layer for the POS deletion subsystem.

This module provides the low-level helpers that read from and write to the
persistent collection store. Business rules belong elsewhere.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Store lifecycle: the :class:`CollectionStore` protocol, an in-memory
   implementation, and a workbook-backed implementation that keeps each
   collection on its own worksheet of an ``.xlsx`` file, one document per row.
3. Record codecs: converting the JSON documents held by each collection into
   typed, immutable dataclasses and back.
"""


from __future__ import annotations

import configparser
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from openpyxl.styles import Font
from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet
import openpyxl

from . import log
from .constants import (
    DEFAULT_ACCOUNT_CODES,
    AccountType,
    CollectionKey,
    MemberType,
    PaymentMethod,
    ShiftStatus,
)


CONFIG_FILE_NAME = "config.ini"
DOCUMENT_COLUMNS = ("DocumentID", "Payload")
# Fields tried, in order, for the readable DocumentID column.
DOCUMENT_ID_FIELDS = ("id", "itemId", "code")
# Maximum number of characters Excel accepts in a single cell.
EXCEL_CELL_LIMIT = 32_767


class StorageWriteError(RuntimeError):
    """Raised when the underlying store rejects a write (quota, IO, size)."""


@dataclass(frozen=True)
class AccountCodes:
    """Chart-of-accounts codes the reversal postings are written against."""

    revenue: str
    cash: str
    member_receivable: str
    inventory: str
    cost_of_goods: str


DEFAULT_CODES = AccountCodes(
    revenue=DEFAULT_ACCOUNT_CODES["Revenue"],
    cash=DEFAULT_ACCOUNT_CODES["Cash"],
    member_receivable=DEFAULT_ACCOUNT_CODES["MemberReceivable"],
    inventory=DEFAULT_ACCOUNT_CODES["Inventory"],
    cost_of_goods=DEFAULT_ACCOUNT_CODES["CostOfGoods"],
)


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    store_name: str
    schema_version: str
    account_codes: AccountCodes = DEFAULT_CODES
    rollback_on_failure: bool = False
    # ``None`` keeps the package default directory under the project root.
    log_dir: Optional[Path] = None
    log_level: int = logging.INFO


@dataclass(frozen=True)
class LineItem:
    """One product line embedded in a sale."""

    item_id: str
    name: str
    unit_price: Decimal
    unit_cost: Decimal
    quantity: Decimal
    stock_snapshot: Optional[Decimal] = None


@dataclass(frozen=True)
class Sale:
    """In-memory view of a document from the ``sales`` collection.

    ``document`` keeps the stored JSON object verbatim so the audit trail can
    preserve fields this module does not model.
    """

    sale_id: str
    sale_number: str
    date_iso: str
    cashier_id: Optional[str]
    member_id: Optional[str]
    member_type: MemberType
    payment_method: PaymentMethod
    line_items: tuple[LineItem, ...]
    total: Decimal
    amount_paid: Decimal
    change: Decimal
    status: Optional[str]
    document: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class StockItem:
    """In-memory view of a document from the ``stock`` collection."""

    item_id: str
    name: str
    quantity_on_hand: Decimal


@dataclass(frozen=True)
class JournalEntryLine:
    """A single debit/credit line of a journal posting."""

    account_code: str
    debit: Decimal
    credit: Decimal


@dataclass(frozen=True)
class JournalPosting:
    """In-memory view of a document from the ``journal`` collection."""

    posting_id: str
    date_iso: str
    description: str
    entries: tuple[JournalEntryLine, ...]

    @property
    def total_debit(self) -> Decimal:
        return sum((entry.debit for entry in self.entries), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((entry.credit for entry in self.entries), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit


@dataclass(frozen=True)
class Account:
    """In-memory view of a chart-of-accounts row."""

    code: str
    name: str
    account_type: AccountType
    balance: Decimal


@dataclass(frozen=True)
class ShiftRecord:
    """In-memory view of a cash-register shift owned by shift management."""

    shift_id: str
    opened_at: str
    closed_at: Optional[str]
    cashier_id: Optional[str]
    status: str


@dataclass(frozen=True)
class DeletionLogEntry:
    """Append-only audit record written once per completed deletion."""

    log_id: str
    sale_id: str
    sale_number: str
    sale_snapshot: Mapping[str, Any]
    reason: str
    deleted_by: str
    deleted_at: str
    stock_restored: bool
    journal_reversed: bool
    warnings: tuple[str, ...] = ()


def find_config_file(explicit_path: Optional[Path] = None, *, start: Optional[Path] = None) -> Path:
    """Return the ``config.ini`` this process should use.

    An ``explicit_path`` must exist. Otherwise the search starts at ``start``
    (the working directory by default) and climbs one parent at a time; the
    nearest ``CONFIG_FILE_NAME`` wins, so a store folder can shadow a
    workspace-wide configuration.

    Args:
        explicit_path (Path | None): Configuration chosen by the caller.
        start (Path | None): Directory the upward search begins in.

    Returns:
        Path: Path of the configuration file.

    Raises:
        FileNotFoundError: If ``explicit_path`` is missing, or no directory
            between ``start`` and the filesystem root holds the file.
    """

    if explicit_path:
        explicit_path = Path(explicit_path)
        if not explicit_path.expanduser().is_file():
            raise FileNotFoundError(f"Configuration file not found: {explicit_path}")
        return explicit_path

    origin = Path(start) if start is not None else Path.cwd()
    for folder in (origin, *origin.parents):
        candidate = folder / CONFIG_FILE_NAME
        if candidate.is_file():
            log.debug("Using configuration '%s'", candidate)
            return candidate

    raise FileNotFoundError(
        f"No {CONFIG_FILE_NAME} found in '{origin}' or any parent directory")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Parse ``config_path`` as UTF-8 INI text.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        configparser.Error: If the file is not valid INI syntax.
    """

    config_path = Path(config_path).expanduser().resolve()
    parser = configparser.ConfigParser()
    try:
        with config_path.open(encoding="utf-8") as handle:
            parser.read_file(handle, source=str(config_path))
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {config_path}") from None
    return parser


def _parse_log_level(raw: str) -> int:
    level = logging.getLevelName(raw.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown logging level in configuration: {raw!r}")
    return level


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    ``[System]`` entries are mandatory. ``[Accounts]``, ``[Deletion]`` and
    ``[Logging]`` are optional and fall back to :data:`DEFAULT_CODES`, a
    disabled rollback and ``INFO`` logging into the package log directory.
    Relative ``DataFile`` and ``[Logging] Directory`` entries are anchored to
    ``base_path`` (or the current working directory) and resolved.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory used as anchor for relative
            ``DataFile`` entries.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If a required ``[System]`` entry is missing.
        ValueError: If ``RollbackOnFailure`` is not a recognised boolean or
            ``[Logging] Level`` is not a logging level name.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        store_name = parser.get("System", "StoreName")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    anchor = base_path if base_path is not None else Path.cwd()
    data_file_path = _anchored(data_file_raw, anchor)

    account_codes = AccountCodes(
        revenue=parser.get("Accounts", "Revenue", fallback=DEFAULT_CODES.revenue),
        cash=parser.get("Accounts", "Cash", fallback=DEFAULT_CODES.cash),
        member_receivable=parser.get(
            "Accounts", "MemberReceivable", fallback=DEFAULT_CODES.member_receivable),
        inventory=parser.get("Accounts", "Inventory", fallback=DEFAULT_CODES.inventory),
        cost_of_goods=parser.get("Accounts", "CostOfGoods", fallback=DEFAULT_CODES.cost_of_goods),
    )
    rollback_on_failure = parser.getboolean(
        "Deletion", "RollbackOnFailure", fallback=False)
    log_dir_raw = parser.get("Logging", "Directory", fallback=None)
    log_level = _parse_log_level(parser.get("Logging", "Level", fallback="INFO"))

    return ConfigSettings(
        data_file=data_file_path,
        store_name=store_name,
        schema_version=schema_version,
        account_codes=account_codes,
        rollback_on_failure=rollback_on_failure,
        log_dir=_anchored(log_dir_raw, anchor) if log_dir_raw else None,
        log_level=log_level,
    )


def _anchored(raw: str, anchor: Path) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = anchor / path
    return path.resolve()


# ---------------------------------------------------------------------------
# Collection stores
# ---------------------------------------------------------------------------


class CollectionStore(Protocol):
    """Synchronous key to JSON-text storage shared by every repository."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, text: str) -> None:
        ...


def _key_name(key: Union[str, CollectionKey]) -> str:
    return key.value if isinstance(key, CollectionKey) else str(key)


class MemoryCollectionStore:
    """Dictionary-backed store for tests and embedding callers.

    When ``capacity`` is set, a write that would push the combined length of
    all stored texts above it raises :class:`StorageWriteError` and leaves the
    previous value in place, mirroring a browser storage quota.
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None, *, capacity: Optional[int] = None) -> None:
        self._data: Dict[str, str] = {
            _key_name(key): text for key, text in (initial or {}).items()}
        self.capacity = capacity

    def get(self, key: str) -> Optional[str]:
        return self._data.get(_key_name(key))

    def set(self, key: str, text: str) -> None:
        name = _key_name(key)
        if self.capacity is not None:
            projected = sum(len(value) for other, value in self._data.items() if other != name) + len(text)
            if projected > self.capacity:
                log.error("Store quota exceeded writing '%s' (%d > %d)", name, projected, self.capacity)
                raise StorageWriteError(
                    f"Storage quota exceeded while writing '{name}'")
        self._data[name] = text

    def snapshot(self) -> Dict[str, str]:
        """Return a shallow copy of every stored key and its raw text."""

        return dict(self._data)


def add_collection_sheet(workbook: Workbook, key: Union[str, CollectionKey]) -> Worksheet:
    """Create the worksheet holding one collection, with a bold header row."""

    sheet = workbook.create_sheet(title=_key_name(key))
    bold_font = Font(bold=True)
    for column_index, column_name in enumerate(DOCUMENT_COLUMNS, start=1):
        cell = sheet.cell(row=1, column=column_index, value=column_name)
        cell.font = bold_font
    return sheet


def open_store_workbook(data_file: Path) -> Workbook:
    """Load a store workbook created by :mod:`pos_deletion.setup_workbook`.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist.
        ValueError: If the workbook has none of the collection sheets, which
            means it is not a store workbook at all.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.is_file():
        raise FileNotFoundError(f"Store workbook not found: {data_file}")

    workbook = openpyxl.load_workbook(data_file)
    known = {key.value for key in CollectionKey}
    if not known.intersection(workbook.sheetnames):
        raise ValueError(
            f"Workbook '{data_file}' has none of the collection sheets: {', '.join(sorted(known))}")
    return workbook


def save_store_workbook(workbook: Workbook, destination: Path) -> None:
    """Write ``workbook`` beside ``destination`` and move it into place.

    A failure while writing leaves the previous file at ``destination``
    untouched.
    """

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    staging = dest.with_name(f".{dest.name}.saving")
    workbook.save(staging)
    os.replace(staging, dest)


def _document_id(document: Any) -> Optional[str]:
    if isinstance(document, Mapping):
        for name in DOCUMENT_ID_FIELDS:
            if document.get(name) is not None:
                return str(document[name])
    return None


class WorkbookCollectionStore:
    """Persist every collection as its own worksheet, one document per row.

    Each row holds the document's identifier (``id``, ``itemId`` or ``code``,
    for readability) and its JSON text. :meth:`get` rebuilds the collection's
    JSON array from the rows; :meth:`set` rewrites the rows of one sheet. The
    Excel cell limit therefore applies to single documents, not to whole
    collections.

    Every :meth:`set` writes through to disk unless ``autosave`` is disabled,
    in which case callers flush with :meth:`save`. A failed save puts the
    sheet's previous rows back so the in-memory workbook matches the file.
    """

    def __init__(self, data_file: Path, workbook: Optional[Workbook] = None, *, autosave: bool = True) -> None:
        self.data_file = Path(data_file).expanduser().resolve()
        self.workbook = workbook if workbook is not None else open_store_workbook(self.data_file)
        self.autosave = autosave

    def get(self, key: str) -> Optional[str]:
        name = _key_name(key)
        if name not in self.workbook.sheetnames:
            return None
        payloads = [payload for _, payload in _sheet_rows(self.workbook[name])]
        return "[" + ", ".join(payloads) + "]"

    def set(self, key: str, text: str) -> None:
        name = _key_name(key)
        documents = loads(text) if text else []
        if not isinstance(documents, list):
            raise ValueError(f"Collection '{name}' must be a JSON array")

        rows: List[tuple[Optional[str], str]] = []
        for document in documents:
            payload = dumps(document)
            if len(payload) > EXCEL_CELL_LIMIT:
                log.error("Document '%s' in '%s' exceeds the workbook cell limit (%d chars)",
                          _document_id(document), name, len(payload))
                raise StorageWriteError(
                    f"A document in '{name}' is too large to store ({len(payload)} > {EXCEL_CELL_LIMIT} characters)")
            rows.append((_document_id(document), payload))

        created = name not in self.workbook.sheetnames
        sheet = add_collection_sheet(self.workbook, name) if created else self.workbook[name]
        previous = _sheet_rows(sheet)
        _replace_rows(sheet, rows)

        if not self.autosave:
            return
        try:
            self.save()
        except StorageWriteError:
            if created:
                self.workbook.remove(sheet)
            else:
                _replace_rows(sheet, previous)
            raise

    def save(self) -> None:
        try:
            save_store_workbook(self.workbook, self.data_file)
        except OSError as exc:
            log.error("Unable to save store workbook '%s': %s", self.data_file, exc)
            raise StorageWriteError(
                f"Unable to save store workbook '{self.data_file}': {exc}") from exc
        log.debug("Saved store workbook '%s'", self.data_file)


def _sheet_rows(sheet: Worksheet) -> List[tuple[Optional[str], str]]:
    return [
        (document_id, str(payload))
        for document_id, payload in sheet.iter_rows(min_row=2, max_col=2, values_only=True)
        if payload is not None
    ]


def _replace_rows(sheet: Worksheet, rows: Sequence[tuple[Optional[str], str]]) -> None:
    if sheet.max_row > 1:
        sheet.delete_rows(2, sheet.max_row - 1)
    for document_id, payload in rows:
        sheet.append([document_id, payload])


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(document: Any) -> str:
    """Serialize a JSON document, encoding :class:`Decimal` as JSON numbers."""

    return json.dumps(document, default=_json_default)


def loads(text: str) -> Any:
    """Parse a JSON document, reading fractional numbers as :class:`Decimal`."""

    return json.loads(text, parse_float=Decimal)


def load_collection(store: CollectionStore, key: Union[str, CollectionKey]) -> List[Dict[str, Any]]:
    """Read a collection as a list of JSON objects; absent keys read as empty.

    Raises:
        ValueError: If the stored document is not a JSON array.
    """

    name = _key_name(key)
    text = store.get(name)
    if text is None or text == "":
        return []
    documents = loads(text)
    if not isinstance(documents, list):
        raise ValueError(f"Collection '{name}' does not hold a JSON array")
    return documents


def save_collection(store: CollectionStore, key: Union[str, CollectionKey], documents: Sequence[Mapping[str, Any]]) -> None:
    """Serialize and write a whole collection back to the store."""

    name = _key_name(key)
    store.set(name, dumps(list(documents)))
    log.debug("Wrote %d documents to collection '%s'", len(documents), name)


# ---------------------------------------------------------------------------
# Record codecs
# ---------------------------------------------------------------------------


def _decimal(raw: Any, default: str = "0") -> Decimal:
    return Decimal(str(raw)) if raw is not None and raw != "" else Decimal(default)


def _optional_text(raw: Any) -> Optional[str]:
    return str(raw) if raw is not None else None


def deserialize_line_item(raw: Mapping[str, Any]) -> LineItem:
    """Convert a stored line item into a :class:`LineItem`.

    A missing ``unitCost`` is read as zero so old sales without a cost basis do
    not produce a cost-of-goods reversal.
    """

    snapshot = raw.get("stockSnapshot")
    return LineItem(
        item_id=str(raw.get("itemId")),
        name=str(raw.get("name") or raw.get("itemId")),
        unit_price=_decimal(raw.get("unitPrice")),
        unit_cost=_decimal(raw.get("unitCost")),
        quantity=_decimal(raw.get("quantity")),
        stock_snapshot=_decimal(snapshot) if snapshot is not None else None,
    )


def deserialize_sale(raw: Mapping[str, Any]) -> Sale:
    """Convert a stored sale document into a :class:`Sale`.

    Args:
        raw (Mapping[str, Any]): JSON object from the ``sales`` collection.

    Returns:
        Sale: Typed view of the sale; the original mapping is kept on
            :attr:`Sale.document`.

    Raises:
        ValueError: If the payment method is not a recognised label.
    """

    sale_id = str(raw.get("id"))
    member_id = _optional_text(raw.get("memberId"))
    member_type_raw = raw.get("memberType")
    if member_type_raw is not None:
        member_type = MemberType(str(member_type_raw))
    else:
        member_type = MemberType.MEMBER if member_id else MemberType.GUEST

    return Sale(
        sale_id=sale_id,
        sale_number=str(raw.get("saleNumber") or sale_id),
        date_iso=str(raw.get("date") or ""),
        cashier_id=_optional_text(raw.get("cashierId")),
        member_id=member_id,
        member_type=member_type,
        payment_method=PaymentMethod.parse(raw.get("paymentMethod")),
        line_items=tuple(deserialize_line_item(item) for item in raw.get("lineItems") or []),
        total=_decimal(raw.get("total")),
        amount_paid=_decimal(raw.get("amountPaid")),
        change=_decimal(raw.get("change")),
        status=_optional_text(raw.get("status")),
        document=raw,
    )


def deserialize_stock_item(raw: Mapping[str, Any]) -> StockItem:
    return StockItem(
        item_id=str(raw.get("itemId")),
        name=str(raw.get("name") or ""),
        quantity_on_hand=_decimal(raw.get("quantityOnHand")),
    )


def serialize_journal_posting(record: JournalPosting) -> Dict[str, Any]:
    """Convert a journal posting into its stored JSON shape."""

    return {
        "id": record.posting_id,
        "date": record.date_iso,
        "description": record.description,
        "entries": [
            {"accountCode": entry.account_code, "debit": entry.debit, "credit": entry.credit}
            for entry in record.entries
        ],
    }


def deserialize_journal_posting(raw: Mapping[str, Any]) -> JournalPosting:
    return JournalPosting(
        posting_id=str(raw.get("id")),
        date_iso=str(raw.get("date") or ""),
        description=str(raw.get("description") or ""),
        entries=tuple(
            JournalEntryLine(
                account_code=str(entry.get("accountCode")),
                debit=_decimal(entry.get("debit")),
                credit=_decimal(entry.get("credit")),
            )
            for entry in raw.get("entries") or []
        ),
    )


def serialize_account(record: Account) -> Dict[str, Any]:
    return {
        "code": record.code,
        "name": record.name,
        "type": record.account_type.value,
        "balance": record.balance,
    }


def deserialize_account(raw: Mapping[str, Any]) -> Account:
    return Account(
        code=str(raw.get("code")),
        name=str(raw.get("name") or ""),
        account_type=AccountType(str(raw.get("type")).lower()),
        balance=_decimal(raw.get("balance")),
    )


def deserialize_shift(raw: Mapping[str, Any]) -> ShiftRecord:
    return ShiftRecord(
        shift_id=str(raw.get("id")),
        opened_at=str(raw.get("openedAt") or ""),
        closed_at=_optional_text(raw.get("closedAt")),
        cashier_id=_optional_text(raw.get("cashierId")),
        status=str(raw.get("status") or ShiftStatus.CLOSED.value).lower(),
    )


def serialize_deletion_log_entry(record: DeletionLogEntry) -> Dict[str, Any]:
    """Convert an audit record into its stored JSON shape."""

    return {
        "id": record.log_id,
        "saleId": record.sale_id,
        "saleNumber": record.sale_number,
        "saleSnapshot": record.sale_snapshot,
        "reason": record.reason,
        "deletedBy": record.deleted_by,
        "deletedAt": record.deleted_at,
        "stockRestored": record.stock_restored,
        "journalReversed": record.journal_reversed,
        "warnings": list(record.warnings),
    }


def deserialize_deletion_log_entry(raw: Mapping[str, Any]) -> DeletionLogEntry:
    return DeletionLogEntry(
        log_id=str(raw.get("id")),
        sale_id=str(raw.get("saleId")),
        sale_number=str(raw.get("saleNumber") or raw.get("saleId")),
        sale_snapshot=raw.get("saleSnapshot") or {},
        reason=str(raw.get("reason") or ""),
        deleted_by=str(raw.get("deletedBy") or ""),
        deleted_at=str(raw.get("deletedAt") or ""),
        stock_restored=bool(raw.get("stockRestored")),
        journal_reversed=bool(raw.get("journalReversed")),
        warnings=tuple(str(w) for w in raw.get("warnings") or []),
    )


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware datetime.

    Naive values are interpreted as UTC so they compare cleanly against the
    aware timestamps this package writes.

    Raises:
        ValueError: If ``text`` is not ISO-8601.
    """

    moment = datetime.fromisoformat(text.strip())
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment
