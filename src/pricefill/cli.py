"""CSV batch filler -- resolves one historical price per dated row.

Usage:
    pricefill --token=xtm --input=~/wallet.csv [--output=output.csv]
              [--mode=high|low] [--tz=CDT] [--verbose]

Rows are resolved sequentially through the same orchestrator the HTTP
service uses; the shared rate limiter paces successive lookups. A failed
lookup marks its row "Error" and the batch carries on.
"""

from __future__ import annotations

import argparse
import asyncio
import csv
import os
import sys
from decimal import Decimal, InvalidOperation

from pricefill.config import AppSettings
from pricefill.exceptions import InvalidInputError
from pricefill.logging import get_logger, setup_logging
from pricefill.main import build_components, close_components
from pricefill.normalizer import parse_date_string
from pricefill.orchestrator import PriceOrchestrator

logger = get_logger(__name__)

PRICE_COLUMN = "$usd price"
USD_AMOUNT_COLUMN = "$usd amount"
ERROR_MARKER = "Error"
_AMOUNT_QUANTUM = Decimal("0.00000001")


def find_date_column(headers: list[str]) -> str | None:
    """Prefer a header naming both 'date' and 'UTC', else any 'date' header."""
    for header in headers:
        if "date" in header and "UTC" in header:
            return header
    for header in headers:
        if "date" in header.lower():
            return header
    return None


def find_amount_column(headers: list[str]) -> str | None:
    for header in headers:
        if "amount" in header.lower() and header not in (PRICE_COLUMN, USD_AMOUNT_COLUMN):
            return header
    return None


def is_dated(value: str) -> bool:
    """True for a cell that can hold a date (not blank, not a totals/filler row)."""
    return bool(value) and ",,,," not in value and "Total" not in value


def last_valid_date_index(rows: list[dict[str, str]], date_column: str) -> int:
    """Index of the last row whose date cell parses strictly, or -1."""
    for i in range(len(rows) - 1, -1, -1):
        value = (rows[i].get(date_column) or "").strip()
        if not is_dated(value):
            continue
        try:
            parse_date_string(value)
        except InvalidInputError:
            continue
        return i
    return -1


def read_csv(path: str) -> tuple[list[str], list[dict[str, str]]]:
    """Read a CSV into (headers, rows), trimming cells and skipping blank lines."""
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        headers = [h.strip() for h in (reader.fieldnames or [])]
        rows = []
        for raw in reader:
            row = {
                (k or "").strip(): (v or "").strip()
                for k, v in raw.items()
                if k is not None and not isinstance(v, list)
            }
            if any(row.values()):
                rows.append(row)
    return headers, rows


def write_csv(path: str, headers: list[str], rows: list[dict[str, str]]) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=headers, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)


async def fill_rows(
    orchestrator: PriceOrchestrator,
    rows: list[dict[str, str]],
    *,
    token: str,
    timezone: str,
    mode: str,
    date_column: str,
    amount_column: str | None,
) -> list[dict[str, str]]:
    """Return copies of rows with price and USD amount columns filled."""
    last_index = last_valid_date_index(rows, date_column)
    if last_index == -1:
        logger.warning("no_valid_date_rows")

    output = []
    for i, source in enumerate(rows):
        row = dict(source)
        date_value = (row.get(date_column) or "").strip()
        row[PRICE_COLUMN] = ""
        row[USD_AMOUNT_COLUMN] = ""

        if i > last_index or not is_dated(date_value):
            output.append(row)
            continue

        result = await orchestrator.resolve_price(token, date_value, timezone, mode)
        if result.price is None:
            logger.warning(
                "row_price_failed",
                row=i + 1,
                date=date_value,
                failure=result.failure.value if result.failure else None,
                message=result.message,
            )
            row[PRICE_COLUMN] = ERROR_MARKER
            output.append(row)
            continue

        row[PRICE_COLUMN] = str(result.price)
        amount_text = (row.get(amount_column) or "").strip() if amount_column else ""
        if amount_text:
            try:
                amount = Decimal(amount_text)
            except InvalidOperation:
                amount = None
            if amount is not None and amount.is_finite():
                row[USD_AMOUNT_COLUMN] = str((amount * result.price).quantize(_AMOUNT_QUANTUM))

        logger.debug("row_price_filled", row=i + 1, date=date_value, price=row[PRICE_COLUMN])
        output.append(row)

    return output


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pricefill",
        description="Fill a CSV with historical USD high/low prices for a token.",
    )
    parser.add_argument("--token", required=True, help="Token ticker, e.g. xtm")
    parser.add_argument("--input", required=True, help="Input CSV path (~ allowed)")
    parser.add_argument("--output", default="output.csv", help="Output CSV path")
    parser.add_argument("--mode", default="high", choices=["high", "low"], type=str.lower)
    parser.add_argument("--tz", default="UTC", help="Timezone abbreviation, e.g. CDT")
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=os.environ.get("VERBOSE") == "1",
        help="Log every lookup step at DEBUG level",
    )
    return parser


async def run_cli(args: argparse.Namespace, settings: AppSettings | None = None) -> int:
    """Execute one batch fill. Returns a process exit code."""
    settings = settings or AppSettings()
    input_path = os.path.expanduser(args.input)

    logger.info(
        "price_filler_starting",
        token=args.token,
        mode=args.mode,
        tz=args.tz,
        input=input_path,
        output=args.output,
    )

    headers, rows = read_csv(input_path)
    logger.info("csv_loaded", headers=headers, rows=len(rows))

    date_column = find_date_column(headers)
    if date_column is None:
        logger.error("no_date_column", headers=headers)
        return 1
    amount_column = find_amount_column(headers)
    logger.info("csv_columns", date_column=date_column, amount_column=amount_column)

    components = await build_components(settings)
    try:
        filled = await fill_rows(
            components["orchestrator"],
            rows,
            token=args.token,
            timezone=args.tz,
            mode=args.mode,
            date_column=date_column,
            amount_column=amount_column,
        )
    finally:
        await close_components(components)

    out_headers = list(headers)
    for column in (PRICE_COLUMN, USD_AMOUNT_COLUMN):
        if column not in out_headers:
            out_headers.append(column)
    write_csv(args.output, out_headers, filled)

    errors = sum(1 for r in filled if r.get(PRICE_COLUMN) == ERROR_MARKER)
    logger.info("csv_written", output=args.output, rows=len(filled), errors=errors)
    return 0


def main(argv: list[str] | None = None) -> None:
    """Synchronous entry point."""
    args = build_parser().parse_args(argv)
    settings = AppSettings()
    setup_logging("DEBUG" if args.verbose else settings.log_level, settings.log_format)
    sys.exit(asyncio.run(run_cli(args, settings)))


if __name__ == "__main__":
    main()
