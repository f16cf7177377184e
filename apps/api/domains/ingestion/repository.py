"""Transaction store interface for the ingestion domain.

The import service only talks to a TransactionStore. A database-backed
store lives outside this service; InMemoryTransactionStore backs local
development and tests.
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional, Protocol

from packages.statement_import import ExistingTransaction, ParsedTransaction, generate_fingerprint


@dataclass
class StoredTransaction:
    id: str
    date: date
    description: str
    amount: float
    type: str
    reference_id: Optional[str]
    fingerprint: str
    source_file_name: str

    def to_existing(self) -> ExistingTransaction:
        return ExistingTransaction(
            reference_id=self.reference_id,
            fingerprint=self.fingerprint,
            date=self.date,
            amount=self.amount,
            description=self.description,
        )


@dataclass
class ImportLog:
    """Counters for one uploaded statement file."""

    file_name: str
    format: str
    transactions_found: int = 0
    transactions_imported: int = 0
    duplicates_skipped: int = 0
    duplicates_flagged: int = 0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class TransactionStore(Protocol):
    def list_existing(self) -> List[ExistingTransaction]:
        ...

    def add_transactions(
        self, transactions: List[ParsedTransaction], source_file_name: str
    ) -> List[StoredTransaction]:
        ...

    def create_import_log(self, log: ImportLog) -> ImportLog:
        ...

    def get_import_log(self, log_id: str) -> Optional[ImportLog]:
        ...

    def update_import_log(self, log: ImportLog) -> ImportLog:
        ...

    def list_import_logs(self) -> List[ImportLog]:
        ...


class InMemoryTransactionStore:
    """Process-local TransactionStore."""

    def __init__(self):
        self._lock = threading.Lock()
        self._transactions: List[StoredTransaction] = []
        self._logs: dict[str, ImportLog] = {}

    def list_existing(self) -> List[ExistingTransaction]:
        with self._lock:
            return [txn.to_existing() for txn in self._transactions]

    def add_transactions(
        self, transactions: List[ParsedTransaction], source_file_name: str
    ) -> List[StoredTransaction]:
        stored = [
            StoredTransaction(
                id=str(uuid.uuid4()),
                date=txn.date,
                description=txn.description,
                amount=txn.amount,
                type=txn.type,
                reference_id=txn.reference_id,
                fingerprint=generate_fingerprint(txn),
                source_file_name=source_file_name,
            )
            for txn in transactions
        ]
        with self._lock:
            self._transactions.extend(stored)
        return stored

    def create_import_log(self, log: ImportLog) -> ImportLog:
        with self._lock:
            self._logs[log.id] = log
        return log

    def get_import_log(self, log_id: str) -> Optional[ImportLog]:
        with self._lock:
            return self._logs.get(log_id)

    def update_import_log(self, log: ImportLog) -> ImportLog:
        with self._lock:
            self._logs[log.id] = log
        return log

    def list_import_logs(self) -> List[ImportLog]:
        with self._lock:
            # Newest first; dict order is creation order
            return list(reversed(self._logs.values()))
