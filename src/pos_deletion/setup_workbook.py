"""Utility for initializing the POS store workbook.

The module doubles as a script (``python -m pos_deletion.setup_workbook``) and
as a library used by tests or other tooling. The workbook holds one sheet per
collection, empty apart from its header, except the chart of accounts which is
seeded with the codes reversal postings use.
"""

from __future__ import annotations

import argparse
from decimal import Decimal
from pathlib import Path
from typing import Sequence
import sys

import openpyxl

from . import data_manager
from .constants import AccountType, CollectionKey

CONFIG_FILE = data_manager.CONFIG_FILE_NAME


def default_chart_of_accounts(
    codes: data_manager.AccountCodes = data_manager.DEFAULT_CODES,
) -> list[data_manager.Account]:
    """Return zero-balance accounts for every code the reversal postings touch."""

    zero = Decimal("0")
    return [
        data_manager.Account(code=codes.cash, name="Cash", account_type=AccountType.ASSET, balance=zero),
        data_manager.Account(
            code=codes.member_receivable,
            name="Member Receivable",
            account_type=AccountType.ASSET,
            balance=zero,
        ),
        data_manager.Account(code=codes.inventory, name="Inventory", account_type=AccountType.ASSET, balance=zero),
        data_manager.Account(code=codes.revenue, name="Sales Revenue", account_type=AccountType.REVENUE, balance=zero),
        data_manager.Account(
            code=codes.cost_of_goods,
            name="Cost of Goods Sold",
            account_type=AccountType.EXPENSE,
            balance=zero,
        ),
    ]


def create_store_workbook(
    destination: Path,
    *,
    codes: data_manager.AccountCodes = data_manager.DEFAULT_CODES,
    overwrite: bool = False,
) -> Path:
    """Create the store workbook at ``destination``.

    When ``overwrite`` is ``False`` (the default) this function raises
    ``FileExistsError`` if the target already exists.
    """

    destination = Path(destination).expanduser().resolve()
    if destination.exists() and not overwrite:
        raise FileExistsError(
            f"Refusing to overwrite existing store workbook: {destination}"
        )

    destination.parent.mkdir(parents=True, exist_ok=True)

    workbook = openpyxl.Workbook()

    # Remove the default sheet openpyxl generates so we can create ours.
    if workbook.active and workbook.active.title == "Sheet":
        workbook.remove(workbook.active)

    for key in CollectionKey:
        data_manager.add_collection_sheet(workbook, key)

    chart_sheet = workbook[CollectionKey.CHART_OF_ACCOUNTS.value]
    for account in default_chart_of_accounts(codes):
        chart_sheet.append([account.code, data_manager.dumps(data_manager.serialize_account(account))])

    data_manager.save_store_workbook(workbook, destination)
    return destination


def run_from_config(config_path: Path, *, overwrite: bool = False) -> Path:
    """Create the workbook named by ``config.ini`` using its account codes."""

    parser = data_manager.read_config(config_path)
    settings = data_manager.parse_settings(parser, base_path=config_path.expanduser().resolve().parent)
    return create_store_workbook(
        settings.data_file,
        codes=settings.account_codes,
        overwrite=overwrite,
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the setup script."""

    parser = argparse.ArgumentParser(description="Initialize the POS store workbook")
    parser.add_argument(
        "--config",
        default=CONFIG_FILE,
        help="Path to configuration file (default: config.ini)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the target workbook if it already exists.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the CLI script."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()

    print("--- POS Store Setup Script ---")
    print(f"Using configuration: {config_path}")

    try:
        output_path = run_from_config(config_path, overwrite=args.force)
    except FileNotFoundError as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except KeyError as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except OSError as exc:
        print(f"\n[ERROR] Unable to write workbook: {exc}")
        return 1

    print(f"\n[SUCCESS] Created store workbook at '{output_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
