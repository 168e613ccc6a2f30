"""Shared pytest fixtures and utilities for the POS deletion tests."""

from __future__ import annotations

import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

for candidate in (SRC_DIR, PROJECT_ROOT):
    candidate_str = str(candidate)
    if candidate_str not in sys.path:
        sys.path.insert(0, candidate_str)

from pos_deletion import configure_logging, constants, core_logic, data_manager  # noqa: E402
from pos_deletion.setup_workbook import create_store_workbook, default_chart_of_accounts  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
SALE_DATE = "2026-10-19T09:30:00+00:00"
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "StoreName = {store_name}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Deletion]\n"
    "RollbackOnFailure = {rollback}\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    workbook_path: Path
    schema_version: str
    store_name: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


# ---------------------------------------------------------------------------
# Document builders
# ---------------------------------------------------------------------------


@pytest.fixture
def sale_document_factory() -> Callable[..., Dict[str, Any]]:
    """Return a builder for stored sale documents with sensible defaults."""

    def _build(
        sale_id: str = "S1",
        *,
        sale_number: Optional[str] = None,
        payment_method: str = "cash",
        total: Any = 100000,
        line_items: Optional[List[Dict[str, Any]]] = None,
        date: str = SALE_DATE,
        cashier_id: str = "C1",
        member_id: Optional[str] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        if line_items is None:
            line_items = [
                {"itemId": "I1", "name": "Rice 5kg", "unitPrice": 50000, "unitCost": 30000, "quantity": 2},
            ]
        document = {
            "id": sale_id,
            "saleNumber": sale_number or f"TRX-{sale_id}",
            "date": date,
            "cashierId": cashier_id,
            "memberId": member_id,
            "paymentMethod": payment_method,
            "lineItems": line_items,
            "total": total,
            "amountPaid": total,
            "change": 0,
            "status": "completed",
        }
        document.update(extra)
        return document

    return _build


@pytest.fixture
def chart_documents() -> List[Dict[str, Any]]:
    """Zero-balance chart of accounts using the default codes."""

    return [data_manager.serialize_account(account) for account in default_chart_of_accounts()]


@pytest.fixture
def store_factory(chart_documents) -> Callable[..., data_manager.MemoryCollectionStore]:
    """Build memory stores whose collections are given as Python documents."""

    def _build(
        *,
        sales: Optional[List[Dict[str, Any]]] = None,
        stock: Optional[List[Dict[str, Any]]] = None,
        closed_shifts: Optional[List[Dict[str, Any]]] = None,
        journal: Optional[List[Dict[str, Any]]] = None,
        chart: Optional[List[Dict[str, Any]]] = None,
        deletion_log: Optional[List[Dict[str, Any]]] = None,
        capacity: Optional[int] = None,
    ) -> data_manager.MemoryCollectionStore:
        collections = {
            constants.CollectionKey.SALES: sales or [],
            constants.CollectionKey.STOCK: stock or [],
            constants.CollectionKey.CLOSED_SHIFTS: closed_shifts or [],
            constants.CollectionKey.JOURNAL: journal or [],
            constants.CollectionKey.CHART_OF_ACCOUNTS: chart if chart is not None else chart_documents,
            constants.CollectionKey.DELETION_LOG: deletion_log or [],
        }
        initial = {key.value: data_manager.dumps(documents) for key, documents in collections.items()}
        return data_manager.MemoryCollectionStore(initial, capacity=capacity)

    return _build


@pytest.fixture
def memory_store(store_factory, sale_document_factory) -> data_manager.MemoryCollectionStore:
    """Store holding one cash sale of two units of I1 and ten units on hand."""

    return store_factory(
        sales=[sale_document_factory("S1")],
        stock=[{"itemId": "I1", "name": "Rice 5kg", "quantityOnHand": 10}],
    )


# ---------------------------------------------------------------------------
# Config and workbook fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that creates an initialized store workbook in a temp folder."""

    def _create_workbook(*, subdir: str | None = None, filename: str = "pos_store.xlsx") -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = base_dir / filename
        create_store_workbook(workbook_path, overwrite=True)
        return workbook_path

    return _create_workbook


@pytest.fixture
def store_workbook_path(workbook_factory: Callable[..., Path]) -> Path:
    """Return a fresh store workbook ready for use in a test."""

    return workbook_factory(subdir=f"workbook_{uuid.uuid4().hex}")


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        store_name: str = "Test Store",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        rollback: bool = False,
    ) -> ConfigBundle:
        bundle_dir_name = f"bundle_{uuid.uuid4().hex}"
        bundle_dir = tmp_path / bundle_dir_name
        bundle_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = workbook_factory(subdir=bundle_dir_name)
        data_file_entry = workbook_path.name if make_relative else str(workbook_path)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=data_file_entry,
                store_name=store_name,
                schema_version=schema_version,
                rollback="true" if rollback else "false",
            )
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            workbook_path=workbook_path,
            schema_version=schema_version,
            store_name=store_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load the runtime context for tests through the public API."""

    context = core_logic.load_runtime_context(config_file)
    core_logic.ensure_schema_version(context)
    return context


# ---------------------------------------------------------------------------
# Core logic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide default configuration settings for runtime context tests."""

    return data_manager.ConfigSettings(
        data_file=tmp_path / "pos_store.xlsx",
        store_name="Test Store",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
    )


@pytest.fixture
def context(settings: data_manager.ConfigSettings, memory_store) -> core_logic.RuntimeContext:
    """Assemble a runtime context around the seeded memory store."""

    return core_logic.RuntimeContext(settings=settings, store=memory_store)


@pytest.fixture
def set_fixed_datetime(monkeypatch: pytest.MonkeyPatch) -> Callable[[datetime], datetime]:
    """Patch ``core_logic.datetime`` to return a predetermined moment."""

    def _apply(moment: datetime) -> datetime:
        class _FixedDateTime:
            @staticmethod
            def now(tz=None):
                assert tz is UTC
                return moment

        monkeypatch.setattr(core_logic, "datetime", _FixedDateTime)
        return moment

    return _apply


@pytest.fixture
def restore_package_logging() -> Iterator[None]:
    """Put the package logger back on its default handlers after a test."""

    yield
    configure_logging()
