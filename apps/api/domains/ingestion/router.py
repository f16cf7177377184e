"""Ingestion router — statement upload, flagged-item resolution and history.

All parsing and dedup lives in the service module; the router only handles
HTTP concerns (file size, schema conversion) and store injection.
"""

from functools import lru_cache

import structlog
from fastapi import APIRouter, Depends, File, UploadFile

from apps.api.core.config import settings
from apps.api.core.errors import PayloadTooLargeError
from apps.api.domains.ingestion import service
from apps.api.domains.ingestion.repository import InMemoryTransactionStore, TransactionStore
from apps.api.domains.ingestion.schemas import (
    FlaggedTransactionOut,
    ImportHistoryResponse,
    ImportLogOut,
    ResolveRequest,
    ResolveResponse,
    UploadResponse,
)

router = APIRouter(prefix="/imports", tags=["ingestion"])
logger = structlog.get_logger()


@lru_cache
def get_transaction_store() -> TransactionStore:
    """Process-wide store; override via app.dependency_overrides."""
    return InMemoryTransactionStore()


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload_statement(
    file: UploadFile = File(...),
    store: TransactionStore = Depends(get_transaction_store),
):
    """Accept a CSV, OFX/QFX or PDF statement and import its transactions.

    Exact duplicates are skipped, near-duplicates and low-confidence PDF
    rows come back under ``flagged`` for the user to resolve.
    """
    filename = file.filename or ""
    # Reject unknown extensions before reading the body
    service.detect_format(filename)

    contents = await file.read()
    if len(contents) > settings.MAX_UPLOAD_BYTES:
        raise PayloadTooLargeError(
            f"File too large (max {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB)"
        )

    logger.info("upload_received", filename=filename, size=len(contents))
    summary = await service.import_statement(filename, contents, store)

    return UploadResponse(
        import_log_id=summary.import_log_id,
        file_name=summary.file_name,
        format=summary.format,
        transactions_found=summary.transactions_found,
        transactions_imported=summary.transactions_imported,
        duplicates_skipped=summary.duplicates_skipped,
        duplicates_flagged=summary.duplicates_flagged,
        flagged=[FlaggedTransactionOut.from_flagged(f) for f in summary.flagged],
    )


@router.post("/resolve", response_model=ResolveResponse)
async def resolve_flagged(
    body: ResolveRequest,
    store: TransactionStore = Depends(get_transaction_store),
):
    decisions = [
        service.ResolveDecision(transaction=d.transaction.to_parsed(), action=d.action)
        for d in body.decisions
    ]
    outcome = service.resolve_flagged(body.import_log_id, decisions, store)
    return ResolveResponse(resolved=outcome.resolved, kept=outcome.kept, skipped=outcome.skipped)


@router.get("/history", response_model=ImportHistoryResponse)
async def import_history(store: TransactionStore = Depends(get_transaction_store)):
    logs = store.list_import_logs()
    imports = [
        ImportLogOut(
            id=log.id,
            file_name=log.file_name,
            format=log.format,
            transactions_found=log.transactions_found,
            transactions_imported=log.transactions_imported,
            duplicates_skipped=log.duplicates_skipped,
            duplicates_flagged=log.duplicates_flagged,
            created_at=log.created_at,
        )
        for log in logs
    ]
    return ImportHistoryResponse(imports=imports, count=len(imports))
