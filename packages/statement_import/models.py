"""Canonical transaction shapes shared by every parser and the dedup engine."""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

CREDIT = "credit"
DEBIT = "debit"


@dataclass
class ParsedTransaction:
    """One bank-statement line, independent of the source format.

    ``amount`` is always a non-negative magnitude; direction lives in ``type``.
    """

    date: date
    description: str
    amount: float
    type: str
    reference_id: Optional[str] = None

    def __post_init__(self):
        self.amount = abs(float(self.amount))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "date": self.date.isoformat(),
            "description": self.description,
            "amount": self.amount,
            "type": self.type,
            "reference_id": self.reference_id,
        }


@dataclass(frozen=True)
class ColumnMapping:
    """Zero-based column indices for one CSV layout."""

    date: int
    description: int
    amount: int
    credit_amount: Optional[int] = None
    debit_amount: Optional[int] = None
    type_column: Optional[int] = None
    reference_id: Optional[int] = None

    @property
    def has_split_amounts(self) -> bool:
        return self.credit_amount is not None and self.debit_amount is not None


@dataclass(frozen=True)
class ExistingTransaction:
    """Dedup-relevant projection of a previously persisted transaction."""

    reference_id: Optional[str]
    fingerprint: str
    date: date
    amount: float
    description: str


@dataclass
class FlaggedTransaction:
    transaction: ParsedTransaction
    matched_existing: Optional[ExistingTransaction]
    reason: str


@dataclass
class DedupResult:
    """Partition of one incoming batch against stored history."""

    new_transactions: List[ParsedTransaction] = field(default_factory=list)
    skipped: List[ParsedTransaction] = field(default_factory=list)
    flagged: List[FlaggedTransaction] = field(default_factory=list)


@dataclass
class PDFParseResult:
    transactions: List[ParsedTransaction] = field(default_factory=list)
    # Low-confidence AI extractions, held back for manual review
    low_confidence_transactions: List[ParsedTransaction] = field(default_factory=list)
