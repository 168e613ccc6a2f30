"""Repositories over the keyed collections of the persistent store.

Each repository receives the :class:`~pos_deletion.data_manager.CollectionStore`
it works against; none of them reach for ambient state. Reads never write.
Writes replace the whole collection document, so every mutating method either
completes its single ``set`` call or raises
:class:`~pos_deletion.data_manager.StorageWriteError` with the collection left
as it was.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Union

from . import data_manager, log
from .constants import DEBIT_NORMAL_TYPES, AccountType, CollectionKey, PaymentMethod, ShiftStatus
from .data_manager import CollectionStore


def _matches_sale(document: Mapping[str, Any], sale_id: str) -> bool:
    return document.get("id") == sale_id or document.get("saleNumber") == sale_id


def _as_datetime(value: Union[date, datetime, str], *, end_of_day: bool) -> datetime:
    if isinstance(value, str):
        value = data_manager.parse_timestamp(value)
    if isinstance(value, datetime):
        value = value.date()
    bound = time.max if end_of_day else time.min
    return datetime.combine(value, bound, tzinfo=UTC)


def _within(sale: data_manager.Sale, lower: Optional[datetime], upper: Optional[datetime]) -> bool:
    try:
        moment = data_manager.parse_timestamp(sale.date_iso)
    except ValueError:
        log.warning("Sale '%s' has an unreadable date '%s'", sale.sale_id, sale.date_iso)
        return False
    if lower is not None and moment < lower:
        return False
    if upper is not None and moment > upper:
        return False
    return True


class SaleRepository:
    """CRUD and filtering over the ``sales`` collection."""

    def __init__(self, store: CollectionStore) -> None:
        self.store = store

    def _documents(self) -> List[Dict[str, Any]]:
        return data_manager.load_collection(self.store, CollectionKey.SALES)

    def get_all(self) -> List[data_manager.Sale]:
        return [data_manager.deserialize_sale(doc) for doc in self._documents()]

    def get_document(self, sale_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored JSON object whose ``id`` or ``saleNumber`` matches.

        An ``id`` match wins over a ``saleNumber`` match.
        """

        documents = self._documents()
        for document in documents:
            if document.get("id") == sale_id:
                return document
        for document in documents:
            if document.get("saleNumber") == sale_id:
                return document
        log.debug("Sale lookup found nothing for '%s'", sale_id)
        return None

    def get_by_id(self, sale_id: str) -> Optional[data_manager.Sale]:
        document = self.get_document(sale_id)
        return data_manager.deserialize_sale(document) if document is not None else None

    def delete(self, sale_id: str, *, match_number: bool = True) -> bool:
        """Remove every sale whose ``id`` or ``saleNumber`` equals ``sale_id``.

        With ``match_number=False`` only documents whose ``id`` equals
        ``sale_id`` are removed.

        Returns:
            bool: ``True`` when at least one document was removed, ``False``
                when nothing matched (no write is attempted in that case).

        Raises:
            StorageWriteError: If the store rejects the rewritten collection.
        """

        documents = self._documents()
        if match_number:
            remaining = [doc for doc in documents if not _matches_sale(doc, sale_id)]
        else:
            remaining = [doc for doc in documents if doc.get("id") != sale_id]
        if len(remaining) == len(documents):
            log.warning("Sale '%s' not found for deletion", sale_id)
            return False

        data_manager.save_collection(self.store, CollectionKey.SALES, remaining)
        log.debug("Removed %d sale document(s) for '%s'", len(documents) - len(remaining), sale_id)
        return True

    def filter(
        self,
        *,
        search: Optional[str] = None,
        payment_method: Union[PaymentMethod, str, None] = None,
        start_date: Union[date, datetime, str, None] = None,
        end_date: Union[date, datetime, str, None] = None,
    ) -> List[data_manager.Sale]:
        """Return sales matching every supplied criterion, in stored order.

        Args:
            search (str | None): Case-insensitive substring looked up in the
                sale number, the id and the cashier id.
            payment_method (PaymentMethod | str | None): Restrict to one
                payment method. ``None`` or ``"all"`` disables the filter.
            start_date (date | datetime | str | None): Keep sales on or after
                the start of this day (UTC).
            end_date (date | datetime | str | None): Keep sales on or before the
                end of this day (UTC).

        Returns:
            list[data_manager.Sale]: Matching sales.
        """

        sales = self.get_all()

        if search:
            query = search.lower()
            sales = [
                sale for sale in sales
                if query in sale.sale_number.lower()
                or query in sale.sale_id.lower()
                or (sale.cashier_id is not None and query in sale.cashier_id.lower())
            ]

        if payment_method is not None and payment_method != "all":
            method = PaymentMethod.parse(
                payment_method.value if isinstance(payment_method, PaymentMethod) else payment_method)
            sales = [sale for sale in sales if sale.payment_method is method]

        if start_date is not None or end_date is not None:
            lower = _as_datetime(start_date, end_of_day=False) if start_date is not None else None
            upper = _as_datetime(end_date, end_of_day=True) if end_date is not None else None
            sales = [sale for sale in sales if _within(sale, lower, upper)]

        return sales


class StockRepository:
    """Read and increment quantity-on-hand in the ``stock`` collection."""

    def __init__(self, store: CollectionStore) -> None:
        self.store = store

    def get_all(self) -> List[data_manager.StockItem]:
        documents = data_manager.load_collection(self.store, CollectionKey.STOCK)
        return [data_manager.deserialize_stock_item(doc) for doc in documents]

    def get(self, item_id: str) -> Optional[data_manager.StockItem]:
        for item in self.get_all():
            if item.item_id == item_id:
                return item
        return None

    def increment(self, item_id: str, quantity: Decimal) -> bool:
        """Add ``quantity`` to the on-hand count of ``item_id``.

        Returns:
            bool: ``False`` when the item is unknown; nothing is written then.

        Raises:
            StorageWriteError: If the store rejects the rewritten collection.
        """

        documents = data_manager.load_collection(self.store, CollectionKey.STOCK)
        for document in documents:
            if document.get("itemId") == item_id:
                current = data_manager.deserialize_stock_item(document).quantity_on_hand
                document["quantityOnHand"] = current + quantity
                data_manager.save_collection(self.store, CollectionKey.STOCK, documents)
                log.debug("Stock for '%s' moved %s -> %s", item_id, current, current + quantity)
                return True
        return False


def apply_posting(account_type: AccountType, balance: Decimal, entry: data_manager.JournalEntryLine) -> Decimal:
    """Return the balance of an account after one journal line is applied.

    Debit-normal accounts (assets, expenses) grow with debits; all other
    classifications grow with credits.
    """

    if account_type in DEBIT_NORMAL_TYPES:
        return balance + entry.debit - entry.credit
    return balance + entry.credit - entry.debit


class LedgerRepository:
    """Append journal postings and keep chart-of-accounts balances current."""

    def __init__(self, store: CollectionStore) -> None:
        self.store = store

    def get_postings(self) -> List[data_manager.JournalPosting]:
        documents = data_manager.load_collection(self.store, CollectionKey.JOURNAL)
        return [data_manager.deserialize_journal_posting(doc) for doc in documents]

    def get_posting(self, posting_id: str) -> Optional[data_manager.JournalPosting]:
        for posting in self.get_postings():
            if posting.posting_id == posting_id:
                return posting
        return None

    def get_accounts(self) -> List[data_manager.Account]:
        documents = data_manager.load_collection(self.store, CollectionKey.CHART_OF_ACCOUNTS)
        return [data_manager.deserialize_account(doc) for doc in documents]

    def get_account(self, code: str) -> Optional[data_manager.Account]:
        for account in self.get_accounts():
            if account.code == code:
                return account
        return None

    def append(self, posting: data_manager.JournalPosting) -> data_manager.JournalPosting:
        """Store ``posting`` and apply its lines to the chart of accounts.

        The journal is written before the chart of accounts. Lines that name an
        account code absent from the chart are still journaled but leave the
        balances untouched.

        Raises:
            ValueError: If the posting's debits and credits differ.
            StorageWriteError: If either collection write is rejected.
        """

        if not posting.is_balanced:
            log.error(
                "Refusing unbalanced posting '%s' (debit=%s credit=%s)",
                posting.posting_id,
                posting.total_debit,
                posting.total_credit,
            )
            raise ValueError(
                f"Journal posting '{posting.posting_id}' is unbalanced: "
                f"debit {posting.total_debit} != credit {posting.total_credit}"
            )

        journal = data_manager.load_collection(self.store, CollectionKey.JOURNAL)
        journal.append(data_manager.serialize_journal_posting(posting))
        data_manager.save_collection(self.store, CollectionKey.JOURNAL, journal)

        self._update_balances(posting)
        return posting

    def _update_balances(self, posting: data_manager.JournalPosting) -> None:
        chart = data_manager.load_collection(self.store, CollectionKey.CHART_OF_ACCOUNTS)
        by_code = {str(doc.get("code")): doc for doc in chart}
        for entry in posting.entries:
            document = by_code.get(entry.account_code)
            if document is None:
                log.warning(
                    "Account '%s' missing from chart of accounts; balance not updated for posting '%s'",
                    entry.account_code,
                    posting.posting_id,
                )
                continue
            account = data_manager.deserialize_account(document)
            document["balance"] = apply_posting(account.account_type, account.balance, entry)
        data_manager.save_collection(self.store, CollectionKey.CHART_OF_ACCOUNTS, chart)


class AuditRepository:
    """Append-only access to the ``deletionLog`` collection."""

    def __init__(self, store: CollectionStore) -> None:
        self.store = store

    def append(self, entry: data_manager.DeletionLogEntry) -> data_manager.DeletionLogEntry:
        documents = data_manager.load_collection(self.store, CollectionKey.DELETION_LOG)
        documents.append(data_manager.serialize_deletion_log_entry(entry))
        data_manager.save_collection(self.store, CollectionKey.DELETION_LOG, documents)
        return entry

    def get_all(self) -> List[data_manager.DeletionLogEntry]:
        documents = data_manager.load_collection(self.store, CollectionKey.DELETION_LOG)
        return [data_manager.deserialize_deletion_log_entry(doc) for doc in documents]

    def get_by_sale_id(self, sale_id: str) -> Optional[data_manager.DeletionLogEntry]:
        for entry in self.get_all():
            if entry.sale_id == sale_id or entry.sale_number == sale_id:
                return entry
        return None


class ShiftRepository:
    """Read-only view of the ``closedShifts`` history kept by shift management."""

    def __init__(self, store: CollectionStore) -> None:
        self.store = store

    def get_closed(self) -> List[data_manager.ShiftRecord]:
        documents = data_manager.load_collection(self.store, CollectionKey.CLOSED_SHIFTS)
        shifts = [data_manager.deserialize_shift(doc) for doc in documents]
        return [shift for shift in shifts if shift.status == ShiftStatus.CLOSED.value]
