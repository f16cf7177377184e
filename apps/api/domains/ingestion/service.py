"""Ingestion service — parser selection, dedup and flagged-item resolution.

Every upload goes through the same steps:
    1. Pick a parser from the file extension (.csv, .ofx/.qfx, .pdf).
    2. Dedup the parsed transactions against the user's stored history.
    3. Persist genuinely new transactions with their fingerprints.
    4. Record an import log and hand back the flagged items for review.

Low-confidence PDF extractions are never imported automatically: if they
survive dedup they are flagged with no matched record.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import structlog

from apps.api.core.config import settings
from apps.api.core.errors import NotFoundError, UnsupportedFormatError, ValidationError
from apps.api.domains.ingestion.repository import ImportLog, TransactionStore
from packages.statement_import import (
    DedupResult,
    FlaggedTransaction,
    ParsedTransaction,
    PDFParseResult,
    deduplicate_transactions,
    parse_csv,
    parse_ofx,
    parse_pdf,
)
from packages.statement_import.ai_extractor import OpenAITransactionExtractor, TransactionExtractor

logger = structlog.get_logger()

FORMAT_MAP = {
    ".csv": "csv",
    ".ofx": "ofx",
    ".qfx": "ofx",
    ".pdf": "pdf",
}

LOW_CONFIDENCE_REASON = "low confidence: AI was uncertain about this transaction's data"

KEEP = "keep"
SKIP = "skip"


@dataclass
class ImportSummary:
    file_name: str
    format: str
    transactions_found: int
    transactions_imported: int
    duplicates_skipped: int
    duplicates_flagged: int
    flagged: List[FlaggedTransaction] = field(default_factory=list)
    import_log_id: str = ""


@dataclass
class ResolveDecision:
    transaction: ParsedTransaction
    action: str


@dataclass
class ResolveOutcome:
    resolved: int
    kept: int
    skipped: int


def detect_format(file_name: str) -> str:
    """Map a file name to an import format; unknown extensions are rejected."""
    fmt = FORMAT_MAP.get(Path(file_name or "").suffix.lower())
    if fmt is None:
        raise UnsupportedFormatError()
    return fmt


def decode_text(data: bytes) -> str:
    """Decode statement text; legacy bank exports are often latin-1."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def build_extractor() -> TransactionExtractor:
    """OpenAI extractor configured from settings."""
    return OpenAITransactionExtractor(
        api_key=settings.OPENAI_API_KEY or None,
        model=settings.AI_EXTRACTION_MODEL,
        max_tokens=settings.AI_EXTRACTION_MAX_TOKENS,
    )


async def parse_statement(
    file_name: str, data: bytes, extractor: Optional[TransactionExtractor] = None
) -> PDFParseResult:
    """Parse any supported statement; only PDFs produce low-confidence items."""
    fmt = detect_format(file_name)

    if fmt == "pdf":
        return await parse_pdf(data, extractor=extractor or build_extractor())

    text = decode_text(data)
    transactions = parse_csv(text) if fmt == "csv" else parse_ofx(text)
    return PDFParseResult(transactions=transactions)


async def import_statement(
    file_name: str,
    data: bytes,
    store: TransactionStore,
    extractor: Optional[TransactionExtractor] = None,
) -> ImportSummary:
    """Parse, dedup and persist one uploaded statement file."""
    fmt = detect_format(file_name)
    if not data:
        raise ValidationError("file is empty")

    parsed = await parse_statement(file_name, data, extractor=extractor)
    found = len(parsed.transactions) + len(parsed.low_confidence_transactions)
    if found == 0:
        raise ValidationError("no transactions found in file")

    existing = store.list_existing()
    dedup = deduplicate_transactions(parsed.transactions, existing)
    low_dedup = (
        deduplicate_transactions(parsed.low_confidence_transactions, existing)
        if parsed.low_confidence_transactions
        else DedupResult()
    )

    low_confidence_flagged = [
        FlaggedTransaction(transaction=txn, matched_existing=None, reason=LOW_CONFIDENCE_REASON)
        for txn in low_dedup.new_transactions
    ]
    flagged = dedup.flagged + low_dedup.flagged + low_confidence_flagged

    store.add_transactions(dedup.new_transactions, source_file_name=file_name)
    log = store.create_import_log(
        ImportLog(
            file_name=file_name,
            format=fmt,
            transactions_found=found,
            transactions_imported=len(dedup.new_transactions),
            duplicates_skipped=len(dedup.skipped) + len(low_dedup.skipped),
            duplicates_flagged=len(flagged),
        )
    )

    logger.info(
        "import_complete",
        file_name=file_name,
        format=fmt,
        found=found,
        imported=log.transactions_imported,
        skipped=log.duplicates_skipped,
        flagged=log.duplicates_flagged,
    )

    return ImportSummary(
        file_name=file_name,
        format=fmt,
        transactions_found=found,
        transactions_imported=log.transactions_imported,
        duplicates_skipped=log.duplicates_skipped,
        duplicates_flagged=log.duplicates_flagged,
        flagged=flagged,
        import_log_id=log.id,
    )


def resolve_flagged(
    import_log_id: str, decisions: List[ResolveDecision], store: TransactionStore
) -> ResolveOutcome:
    """Apply keep/skip decisions for flagged transactions of one import."""
    if not decisions:
        raise ValidationError("decisions array is required and must not be empty")
    for decision in decisions:
        if decision.action not in (KEEP, SKIP):
            raise ValidationError("each decision must have a valid transaction and action (keep or skip)")

    log = store.get_import_log(import_log_id)
    if log is None:
        raise NotFoundError("import log not found")
    if len(decisions) > log.duplicates_flagged:
        raise ValidationError(
            f"{len(decisions)} decisions submitted but only {log.duplicates_flagged} "
            "transactions are awaiting review"
        )

    kept = [d.transaction for d in decisions if d.action == KEEP]
    skipped = len(decisions) - len(kept)

    store.add_transactions(kept, source_file_name=log.file_name)
    log.transactions_imported += len(kept)
    log.duplicates_skipped += skipped
    log.duplicates_flagged -= len(decisions)
    store.update_import_log(log)

    logger.info("flagged_resolved", import_log_id=import_log_id, kept=len(kept), skipped=skipped)
    return ResolveOutcome(resolved=len(decisions), kept=len(kept), skipped=skipped)
