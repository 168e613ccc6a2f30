"""Enumerations and fixed identifiers shared across the deletion subsystem.

Centralises domain constants so that the data access layer, the repositories
and the business rules agree on collection names, payment methods, account
classifications and error kinds.
"""

from __future__ import annotations

from enum import Enum


# Central schema version expected by all layers when validating the store.
EXPECTED_SCHEMA_VERSION = "1.0.0"

# Upper bound, inclusive, on the length of a deletion reason.
MAX_REASON_LENGTH = 500


class PaymentMethod(str, Enum):
    """Enumerate supported payment mechanisms for sales."""

    CASH = "cash"
    CREDIT = "credit"

    @classmethod
    def parse(cls, raw: object) -> "PaymentMethod":
        """Map stored payment labels, including the legacy ``bon``, to members."""

        text = str(raw).strip().lower()
        if text in ("bon", "kredit"):
            return cls.CREDIT
        return cls(text)


class MemberType(str, Enum):
    """Enumerate the kinds of buyer a sale can be attributed to."""

    MEMBER = "member"
    GUEST = "guest"


class AccountType(str, Enum):
    """Enumerate chart-of-accounts classifications.

    ``ASSET`` and ``EXPENSE`` accounts carry a debit normal balance; every other
    classification carries a credit normal balance.
    """

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})


class ShiftStatus(str, Enum):
    """Enumerate cash-register shift states."""

    OPEN = "open"
    CLOSED = "closed"


class CollectionKey(str, Enum):
    """Enumerate the collection names held by the persistent store."""

    SALES = "sales"
    STOCK = "stock"
    JOURNAL = "journal"
    CHART_OF_ACCOUNTS = "chartOfAccounts"
    CLOSED_SHIFTS = "closedShifts"
    DELETION_LOG = "deletionLog"


class DeletionStage(str, Enum):
    """Enumerate the states a deletion passes through."""

    VALIDATING = "VALIDATING"
    RESTORING = "RESTORING"
    POSTING = "POSTING"
    DELETING = "DELETING"
    LOGGING = "LOGGING"
    DONE = "DONE"
    ABORTED = "ABORTED"


class DeletionErrorKind(str, Enum):
    """Enumerate the reasons a deletion request can fail."""

    NOT_FOUND = "NOT_FOUND"
    CLOSED_SHIFT_VIOLATION = "CLOSED_SHIFT_VIOLATION"
    EMPTY_REASON = "EMPTY_REASON"
    REASON_TOO_LONG = "REASON_TOO_LONG"
    STORAGE_WRITE_FAILURE = "STORAGE_WRITE_FAILURE"
    # Stored data could not be read or an unanticipated error interrupted the run.
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


# Account codes used when config.ini does not override them.
DEFAULT_ACCOUNT_CODES = {
    "Revenue": "4-1000",
    "Cash": "1-1000",
    "MemberReceivable": "1-1200",
    "Inventory": "1-1300",
    "CostOfGoods": "5-1000",
}


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "MAX_REASON_LENGTH",
    "PaymentMethod",
    "MemberType",
    "AccountType",
    "DEBIT_NORMAL_TYPES",
    "ShiftStatus",
    "CollectionKey",
    "DeletionStage",
    "DeletionErrorKind",
    "DEFAULT_ACCOUNT_CODES",
]
