"""
Statement Import Engine

Bank statement parsing (CSV, OFX/QFX, PDF) and deduplication against
previously imported transactions.
"""

__version__ = "0.1.0"

from .models import (
    ColumnMapping,
    DedupResult,
    ExistingTransaction,
    FlaggedTransaction,
    ParsedTransaction,
    PDFParseResult,
)
from .csv_parser import parse_csv
from .ofx_parser import parse_ofx
from .pdf_parser import parse_pdf
from .dedup import deduplicate_transactions, generate_fingerprint
from .errors import ExtractionError, StatementImportError

__all__ = [
    "ColumnMapping",
    "DedupResult",
    "ExistingTransaction",
    "FlaggedTransaction",
    "ParsedTransaction",
    "PDFParseResult",
    "parse_csv",
    "parse_ofx",
    "parse_pdf",
    "deduplicate_transactions",
    "generate_fingerprint",
    "ExtractionError",
    "StatementImportError",
]
