"""
Transaction deduplication against previously imported history.

Three layers, first match wins:
    1. Exact reference ID match      -> skipped
    2. Fingerprint match             -> skipped
    3. Same day + similar amount + similar description -> flagged for review

Entries within one incoming batch are not compared with each other.
"""

import re
import hashlib
import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Iterable, List, Optional, Set

from .models import DedupResult, ExistingTransaction, FlaggedTransaction, ParsedTransaction

logger = logging.getLogger(__name__)

FUZZY_DESCRIPTION_THRESHOLD = 0.6
AMOUNT_TOLERANCE_RATIO = 0.05
AMOUNT_TOLERANCE_FLOOR = 1.0
FINGERPRINT_PRECISION = 400


def format_amount(amount: float) -> str:
    """Two-decimal amount string, rounding exact halves up."""
    # Exact float conversion can need ~330 digits; the default context holds 28
    with localcontext() as ctx:
        ctx.prec = FINGERPRINT_PRECISION
        return str(Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def generate_fingerprint(txn: ParsedTransaction) -> str:
    """
    Generate a deterministic SHA256 fingerprint for a transaction.

    Format: SHA256({YYYY-MM-DD}|{amount, 2dp}|{lowercased trimmed description})

    Fingerprints are persisted at import time and compared on every later
    import, so the format must never change.

    Returns:
        64-character lowercase hex SHA256 hash.
    """
    raw = f"{txn.date.isoformat()}|{format_amount(txn.amount)}|{txn.description.lower().strip()}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def normalize_description(description: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    normalized = re.sub(r"[^a-z0-9\s]", "", (description or "").lower())
    return re.sub(r"\s+", " ", normalized).strip()


def _bigrams(value: str) -> Set[str]:
    return {value[i : i + 2] for i in range(len(value) - 1)}


def string_similarity(a: str, b: str) -> float:
    """Dice coefficient over character bigrams of the normalized strings."""
    norm_a = normalize_description(a)
    norm_b = normalize_description(b)

    if norm_a == norm_b:
        return 1.0
    if len(norm_a) < 2 or len(norm_b) < 2:
        return 0.0

    bigrams_a = _bigrams(norm_a)
    bigrams_b = _bigrams(norm_b)
    return 2 * len(bigrams_a & bigrams_b) / (len(bigrams_a) + len(bigrams_b))


def amounts_are_similar(a: float, b: float) -> bool:
    """Within 5% of the larger amount or $1, whichever is larger."""
    threshold = max(AMOUNT_TOLERANCE_FLOOR, max(a, b) * AMOUNT_TOLERANCE_RATIO)
    return abs(a - b) <= threshold


def same_day(a: date, b: date) -> bool:
    return (a.year, a.month, a.day) == (b.year, b.month, b.day)


def find_fuzzy_match(
    txn: ParsedTransaction, existing: Iterable[ExistingTransaction]
) -> Optional[ExistingTransaction]:
    """First existing record that looks like the same transaction, if any."""
    for candidate in existing:
        if (
            same_day(txn.date, candidate.date)
            and amounts_are_similar(txn.amount, candidate.amount)
            and string_similarity(txn.description, candidate.description)
            >= FUZZY_DESCRIPTION_THRESHOLD
        ):
            return candidate
    return None


def describe_match(match: ExistingTransaction) -> str:
    return (
        f'Similar transaction found: "{match.description}" on '
        f"{match.date.isoformat()} for {format_amount(match.amount)}"
    )


def deduplicate_transactions(
    incoming: List[ParsedTransaction], existing: List[ExistingTransaction]
) -> DedupResult:
    """
    Partition ``incoming`` into new, skipped and flagged transactions.

    Args:
        incoming: Freshly parsed transactions.
        existing: The user's stored transactions, already scoped by the caller.

    Returns:
        DedupResult; every incoming transaction lands in exactly one list.
    """
    reference_ids = frozenset(ex.reference_id for ex in existing if ex.reference_id)
    fingerprints = frozenset(ex.fingerprint for ex in existing)

    result = DedupResult()

    for txn in incoming:
        if txn.reference_id and txn.reference_id in reference_ids:
            result.skipped.append(txn)
            continue

        if generate_fingerprint(txn) in fingerprints:
            result.skipped.append(txn)
            continue

        match = find_fuzzy_match(txn, existing)
        if match is not None:
            result.flagged.append(
                FlaggedTransaction(transaction=txn, matched_existing=match, reason=describe_match(match))
            )
            continue

        result.new_transactions.append(txn)

    logger.info(
        f"Dedup: {len(result.new_transactions)} new, {len(result.skipped)} skipped, "
        f"{len(result.flagged)} flagged"
    )
    return result
