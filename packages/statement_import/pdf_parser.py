"""
PDF Statement Parser.

Text is pulled out of every page with pdfplumber, then handed to an AI
extractor that returns structured transactions. Low-confidence results are
kept apart so they can be reviewed instead of imported automatically.
"""

import io
import math
import asyncio
import logging
from datetime import date
from typing import Any, Dict, Iterable, Optional

import pdfplumber

from .ai_extractor import OpenAITransactionExtractor, TransactionExtractor
from .models import CREDIT, DEBIT, ParsedTransaction, PDFParseResult

logger = logging.getLogger(__name__)


def extract_text_from_pdf(data: bytes) -> str:
    """Concatenate the text of every page, separated by newlines."""
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(pages)


def _to_transaction(entry: Dict[str, Any]) -> Optional[ParsedTransaction]:
    try:
        txn_date = date.fromisoformat(str(entry.get("date", "")).strip()[:10])
    except ValueError:
        return None

    try:
        amount = abs(float(entry.get("amount")))
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount):
        return None

    reference_id = entry.get("referenceId")
    return ParsedTransaction(
        date=txn_date,
        description=str(entry.get("description") or "").strip(),
        amount=amount,
        type=CREDIT if entry.get("type") == CREDIT else DEBIT,
        reference_id=str(reference_id) if reference_id not in (None, "") else None,
    )


def partition_by_confidence(entries: Iterable[Dict[str, Any]]) -> PDFParseResult:
    """Convert AI entries and split off the low-confidence ones."""
    result = PDFParseResult()
    dropped = 0

    for entry in entries:
        if not isinstance(entry, dict):
            dropped += 1
            continue
        txn = _to_transaction(entry)
        if txn is None:
            dropped += 1
            continue
        if entry.get("confidence") == "low":
            result.low_confidence_transactions.append(txn)
        else:
            result.transactions.append(txn)

    if dropped:
        logger.warning(f"Dropped {dropped} AI-extracted entries with invalid date or amount")
    return result


async def parse_pdf(
    data: bytes, extractor: Optional[TransactionExtractor] = None
) -> PDFParseResult:
    """
    Parse a PDF bank statement.

    Args:
        data: Raw PDF bytes.
        extractor: AI extraction capability; an OpenAI-backed one is
            created when omitted.

    Returns:
        Transactions split by confidence. Both lists are empty when the PDF
        has no extractable text, in which case the extractor is not called.

    Raises:
        ExtractionError: if the AI response holds no valid JSON object.
    """
    text = await asyncio.to_thread(extract_text_from_pdf, data)
    if not text.strip():
        logger.info("PDF contained no extractable text")
        return PDFParseResult()

    extractor = extractor or OpenAITransactionExtractor()
    document = await extractor.extract(text)

    entries = document.get("transactions")
    if not isinstance(entries, list):
        entries = []
    result = partition_by_confidence(entries)
    logger.info(
        f"Parsed {len(result.transactions)} transactions from PDF "
        f"({len(result.low_confidence_transactions)} low confidence)"
    )
    return result
