"""Pydantic schemas for the ingestion domain."""

import datetime as dt
from typing import Literal, Optional

from pydantic import BaseModel, Field

from packages.statement_import import ExistingTransaction, FlaggedTransaction, ParsedTransaction


class TransactionIn(BaseModel):
    """A parsed transaction as sent back by the client when resolving flags."""

    date: dt.date
    description: str
    amount: float = Field(ge=0)
    type: Literal["credit", "debit"]
    reference_id: Optional[str] = None

    def to_parsed(self) -> ParsedTransaction:
        return ParsedTransaction(
            date=self.date,
            description=self.description,
            amount=self.amount,
            type=self.type,
            reference_id=self.reference_id,
        )

    @classmethod
    def from_parsed(cls, txn: ParsedTransaction) -> "TransactionIn":
        return cls(**txn.to_dict())


class MatchedTransactionOut(BaseModel):
    reference_id: Optional[str] = None
    date: dt.date
    amount: float
    description: str

    @classmethod
    def from_existing(cls, existing: ExistingTransaction) -> "MatchedTransactionOut":
        return cls(
            reference_id=existing.reference_id,
            date=existing.date,
            amount=existing.amount,
            description=existing.description,
        )


class FlaggedTransactionOut(BaseModel):
    transaction: TransactionIn
    matched_existing: Optional[MatchedTransactionOut] = None
    reason: str

    @classmethod
    def from_flagged(cls, flagged: FlaggedTransaction) -> "FlaggedTransactionOut":
        matched = flagged.matched_existing
        return cls(
            transaction=TransactionIn.from_parsed(flagged.transaction),
            matched_existing=MatchedTransactionOut.from_existing(matched) if matched else None,
            reason=flagged.reason,
        )


class UploadResponse(BaseModel):
    """Response from a statement upload."""

    import_log_id: str
    file_name: str
    format: str
    transactions_found: int
    transactions_imported: int
    duplicates_skipped: int
    duplicates_flagged: int
    flagged: list[FlaggedTransactionOut] = Field(default_factory=list)


class ResolveDecisionIn(BaseModel):
    transaction: TransactionIn
    action: str


class ResolveRequest(BaseModel):
    import_log_id: str
    decisions: list[ResolveDecisionIn] = Field(default_factory=list)


class ResolveResponse(BaseModel):
    resolved: int
    kept: int
    skipped: int


class ImportLogOut(BaseModel):
    id: str
    file_name: str
    format: str
    transactions_found: int
    transactions_imported: int
    duplicates_skipped: int
    duplicates_flagged: int
    created_at: dt.datetime


class ImportHistoryResponse(BaseModel):
    imports: list[ImportLogOut]
    count: int
