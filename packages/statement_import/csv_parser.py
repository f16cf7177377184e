"""
CSV Statement Parser - column layout auto-detection and row decoding.

Layout detection runs an ordered chain of strategies (manual mapping,
header synonyms, content shape). The first strategy that recognizes the
file wins; adding a new bank format means adding a strategy.
Rows are decoded independently: a bad row is dropped, never the file.
"""

import re
import math
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .dates import looks_like_date, parse_date
from .models import CREDIT, DEBIT, ColumnMapping, ParsedTransaction

logger = logging.getLogger(__name__)

_CURRENCY_CODE = re.compile(r"^[A-Z]{3}\s+(?=[\d(+\-.])")
_AMOUNT_NOISE = re.compile(r"[$£€₹¥,\s]")
_PARENTHESIZED = re.compile(r"^\((.+)\)$")
_NUMERIC = re.compile(r"^[-+]?(\d+(\.\d*)?|\.\d+)$")


def split_csv_line(line: str) -> List[str]:
    """Split one CSV line, honouring quotes and ``""`` escapes."""
    fields = []
    current = []
    in_quotes = False
    i = 0

    while i < len(line):
        ch = line[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < len(line) and line[i + 1] == '"':
                    current.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                current.append(ch)
        elif ch == '"':
            in_quotes = True
        elif ch == ",":
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
        i += 1

    fields.append("".join(current).strip())
    return fields


def _clean_amount(value: str) -> str:
    cleaned = _CURRENCY_CODE.sub("", (value or "").strip())
    cleaned = _AMOUNT_NOISE.sub("", cleaned)
    match = _PARENTHESIZED.match(cleaned)
    if match:
        cleaned = "-" + match.group(1)
    return cleaned


def looks_like_amount(value: str) -> bool:
    return parse_amount(value) is not None


def parse_amount(value: str) -> Optional[float]:
    """Parse an amount cell; parentheses mean negative. None if not numeric."""
    cleaned = _clean_amount(value)
    if not _NUMERIC.match(cleaned):
        return None
    amount = float(cleaned)
    # Digit runs too long for a float (IDs, account numbers) are not amounts
    return amount if math.isfinite(amount) else None


@dataclass(frozen=True)
class DetectedLayout:
    mapping: ColumnMapping
    has_header: bool
    strategy: str


class ManualLayoutStrategy:
    """Caller-supplied mapping; only decides whether row 0 is a header."""

    name = "manual"

    def __init__(self, mapping: ColumnMapping):
        self.mapping = mapping

    def detect(self, rows: Sequence[List[str]]) -> Optional[DetectedLayout]:
        first_row = rows[0] if rows else []
        first_is_data = looks_like_date(_cell(first_row, self.mapping.date))
        return DetectedLayout(self.mapping, has_header=not first_is_data, strategy=self.name)


class HeaderLayoutStrategy:
    """Match first-row cells against per-field header synonyms."""

    name = "header"

    # Order matters: earlier names win on exact match.
    HEADER_NAMES: Dict[str, List[str]] = {
        "date": [
            "date",
            "transaction date",
            "trans date",
            "posted",
            "posting date",
            "value date",
        ],
        "description": [
            "description",
            "memo",
            "details",
            "narrative",
            "transaction",
            "particulars",
            "reference",
            "payee",
        ],
        "amount": ["amount", "value", "sum", "total"],
        "credit": ["credit", "credits", "deposit", "deposits", "money in"],
        "debit": ["debit", "debits", "withdrawal", "withdrawals", "money out"],
        "type": ["type", "transaction type", "trans type", "dr/cr", "dc"],
        "reference": [
            "reference",
            "ref",
            "reference no",
            "ref no",
            "transaction id",
            "trans id",
            "check",
            "cheque",
        ],
    }

    @staticmethod
    def find_column(headers: List[str], names: List[str]) -> Optional[int]:
        normalized = [h.lower().strip() for h in headers]
        for name in names:
            if name in normalized:
                return normalized.index(name)
        # Substring fallback
        for name in names:
            for idx, header in enumerate(normalized):
                if name in header:
                    return idx
        return None

    def detect(self, rows: Sequence[List[str]]) -> Optional[DetectedLayout]:
        if not rows:
            return None

        headers = rows[0]
        found = {
            field: self.find_column(headers, names)
            for field, names in self.HEADER_NAMES.items()
        }

        if found["date"] is None or found["description"] is None:
            return None

        has_split = found["credit"] is not None and found["debit"] is not None
        if found["amount"] is None and not has_split:
            return None

        reference = found["reference"]
        if reference == found["description"]:
            reference = None

        mapping = ColumnMapping(
            date=found["date"],
            description=found["description"],
            amount=found["amount"] if found["amount"] is not None else found["credit"],
            credit_amount=found["credit"] if has_split else None,
            debit_amount=found["debit"] if has_split else None,
            type_column=found["type"],
            reference_id=reference,
        )
        return DetectedLayout(mapping, has_header=True, strategy=self.name)


class ContentLayoutStrategy:
    """Infer columns from the shape of their values when there is no header."""

    name = "content"
    MATCH_THRESHOLD = 0.7

    def detect(self, rows: Sequence[List[str]]) -> Optional[DetectedLayout]:
        if not rows:
            return None

        column_count = len(rows[0])
        if column_count < 2:
            return None

        df = pd.DataFrame(list(rows)).iloc[:, :column_count].fillna("").astype(str)

        date_ratio = df.apply(lambda column: column.map(looks_like_date).mean())
        amount_ratio = df.apply(lambda column: column.map(looks_like_amount).mean())

        date_columns = [c for c in df.columns if date_ratio[c] >= self.MATCH_THRESHOLD]
        amount_columns = [c for c in df.columns if amount_ratio[c] >= self.MATCH_THRESHOLD]
        if not date_columns or not amount_columns:
            return None

        date_col = date_columns[0]
        used = {date_col, *amount_columns}

        remaining = df.drop(columns=list(used))
        if remaining.empty:
            return None

        avg_lengths = remaining.apply(lambda column: column.str.len().mean())
        avg_lengths = avg_lengths[avg_lengths > 0]
        if avg_lengths.empty:
            return None
        description_col = avg_lengths.idxmax()

        has_split = len(amount_columns) == 2
        mapping = ColumnMapping(
            date=int(date_col),
            description=int(description_col),
            amount=int(amount_columns[0]),
            credit_amount=int(amount_columns[0]) if has_split else None,
            debit_amount=int(amount_columns[1]) if has_split else None,
        )
        return DetectedLayout(mapping, has_header=False, strategy=self.name)


DEFAULT_STRATEGIES = (HeaderLayoutStrategy(), ContentLayoutStrategy())


def detect_layout(
    rows: Sequence[List[str]], strategies=DEFAULT_STRATEGIES
) -> Optional[DetectedLayout]:
    """Return the first layout any strategy recognizes, or None."""
    for strategy in strategies:
        layout = strategy.detect(rows)
        if layout is not None:
            logger.debug(f"Layout detected by {layout.strategy} strategy: {layout.mapping}")
            return layout
    return None


def _cell(fields: List[str], index: Optional[int]) -> str:
    if index is None or index < 0 or index >= len(fields):
        return ""
    return fields[index]


def _determine_type(
    fields: List[str], mapping: ColumnMapping, amount: float, credit: Optional[float]
) -> str:
    if mapping.type_column is not None:
        label = _cell(fields, mapping.type_column).lower().strip()
        if "credit" in label or label in ("cr", "c"):
            return CREDIT
        if "debit" in label or label in ("dr", "d"):
            return DEBIT

    if mapping.has_split_amounts:
        return CREDIT if credit is not None and credit > 0 else DEBIT

    return CREDIT if amount >= 0 else DEBIT


def decode_row(fields: List[str], mapping: ColumnMapping) -> Optional[ParsedTransaction]:
    """Decode one row, or return None if it is not a transaction."""
    date_str = _cell(fields, mapping.date)
    description = _cell(fields, mapping.description).strip()
    if not date_str or not description:
        return None

    txn_date = parse_date(date_str)
    if txn_date is None:
        return None

    credit = None
    if mapping.has_split_amounts:
        credit = parse_amount(_cell(fields, mapping.credit_amount))
        debit = parse_amount(_cell(fields, mapping.debit_amount))
        if credit is None and debit is None:
            return None
        if credit is not None and credit > 0:
            amount = credit
        else:
            amount = -abs(debit or 0.0)
    else:
        amount = parse_amount(_cell(fields, mapping.amount))
        if amount is None:
            return None

    reference_id = None
    if mapping.reference_id is not None:
        reference_id = _cell(fields, mapping.reference_id).strip() or None

    return ParsedTransaction(
        date=txn_date,
        description=description,
        amount=abs(amount),
        type=_determine_type(fields, mapping, amount, credit),
        reference_id=reference_id,
    )


def parse_csv(
    content: str, manual_mapping: Optional[ColumnMapping] = None
) -> List[ParsedTransaction]:
    """
    Parse CSV statement content into canonical transactions.

    Args:
        content: Decoded CSV text.
        manual_mapping: Column mapping that overrides auto-detection.

    Returns:
        Parsed transactions. Empty when the layout is not recognized or no
        row decodes; malformed input never raises.
    """
    lines = [line.strip() for line in re.split(r"\r?\n|\r", content or "")]
    lines = [line for line in lines if line]
    if not lines:
        return []

    rows = [split_csv_line(line) for line in lines]

    strategies = (ManualLayoutStrategy(manual_mapping),) if manual_mapping else DEFAULT_STRATEGIES
    layout = detect_layout(rows, strategies)
    if layout is None:
        logger.info("Could not detect a transaction layout in CSV content")
        return []

    start = 1 if layout.has_header else 0
    transactions = []
    for idx, fields in enumerate(rows[start:], start=start):
        txn = decode_row(fields, layout.mapping)
        if txn is None:
            logger.debug(f"Skipping row {idx}: not a transaction")
            continue
        transactions.append(txn)

    logger.info(f"Parsed {len(transactions)} of {len(rows) - start} CSV rows")
    return transactions
