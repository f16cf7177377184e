from datetime import date

import pytest

from packages.statement_import.csv_parser import parse_csv
from packages.statement_import.dedup import (
    amounts_are_similar,
    deduplicate_transactions,
    generate_fingerprint,
    string_similarity,
)
from packages.statement_import.models import ExistingTransaction, ParsedTransaction


def _parsed(description="AMAZON MARKETPLACE", amount=45.99, on=date(2024, 1, 15), reference_id=None):
    return ParsedTransaction(
        date=on, description=description, amount=amount, type="debit", reference_id=reference_id
    )


def _stored(txn: ParsedTransaction, **overrides) -> ExistingTransaction:
    fields = {
        "reference_id": txn.reference_id,
        "fingerprint": generate_fingerprint(txn),
        "date": txn.date,
        "amount": txn.amount,
        "description": txn.description,
    }
    fields.update(overrides)
    return ExistingTransaction(**fields)


def test_reference_match_is_skipped():
    existing = [_stored(_parsed(description="Old text", reference_id="FIT-1"), fingerprint="x" * 64)]

    result = deduplicate_transactions([_parsed(reference_id="FIT-1")], existing)

    assert len(result.skipped) == 1
    assert result.new_transactions == []
    assert result.flagged == []


def test_fingerprint_match_is_skipped():
    txn = _parsed()
    existing = [_stored(txn)]

    result = deduplicate_transactions([_parsed(description="amazon marketplace ")], existing)

    assert len(result.skipped) == 1


def test_reference_and_fingerprint_match_counted_once():
    txn = _parsed(reference_id="FIT-9")
    existing = [_stored(txn)]

    result = deduplicate_transactions([txn], existing)

    assert result.skipped == [txn]
    assert result.new_transactions == []
    assert result.flagged == []


def test_fuzzy_match_is_flagged_with_reason():
    stored = _stored(_parsed(description="AMAZON MARKETPLACE", amount=45.99))
    incoming = _parsed(description="AMAZON MKTPLACE", amount=46.50)

    result = deduplicate_transactions([incoming], [stored])

    assert len(result.flagged) == 1
    flagged = result.flagged[0]
    assert flagged.transaction is incoming
    assert flagged.matched_existing is stored
    assert "AMAZON MARKETPLACE" in flagged.reason
    assert "2024-01-15" in flagged.reason
    assert "45.99" in flagged.reason


@pytest.mark.parametrize(
    "incoming",
    [
        _parsed(description="AMAZON MKTPLACE", on=date(2024, 1, 16)),
        _parsed(description="AMAZON MKTPLACE", amount=60.00),
        _parsed(description="SHELL PETROL STATION"),
    ],
    ids=["different-day", "amount-out-of-tolerance", "dissimilar-description"],
)
def test_near_misses_are_new(incoming):
    stored = _stored(_parsed(description="AMAZON MARKETPLACE", amount=45.99))

    result = deduplicate_transactions([incoming], [stored])

    assert result.new_transactions == [incoming]
    assert result.flagged == []
    assert result.skipped == []


def test_first_fuzzy_match_wins():
    first = _stored(_parsed(description="AMAZON MARKETPLACE"), fingerprint="a" * 64)
    second = _stored(_parsed(description="AMAZON MKTPLACE"), fingerprint="b" * 64)

    result = deduplicate_transactions([_parsed(description="AMAZON MKTPLACE", amount=46.00)], [first, second])

    assert result.flagged[0].matched_existing is first


def test_empty_inputs():
    result = deduplicate_transactions([], [])
    assert (result.new_transactions, result.skipped, result.flagged) == ([], [], [])

    txn = _parsed()
    result = deduplicate_transactions([txn], [])
    assert result.new_transactions == [txn]


def test_batch_internal_duplicates_are_not_deduplicated():
    txn = _parsed()

    result = deduplicate_transactions([txn, _parsed()], [])

    assert len(result.new_transactions) == 2


def test_amount_tolerance():
    assert amounts_are_similar(10.00, 10.99)
    assert not amounts_are_similar(10.00, 11.01)
    assert amounts_are_similar(200.00, 209.00)
    assert not amounts_are_similar(200.00, 211.00)


def test_string_similarity():
    assert string_similarity("Coffee Shop!", "coffee   shop") == 1.0
    assert string_similarity("a", "b") == 0.0
    assert string_similarity("night", "nacht") == pytest.approx(0.25)
    assert 0.6 <= string_similarity("AMAZON MARKETPLACE", "AMAZON MKTPLACE") < 1.0


def test_reimporting_same_csv_is_fully_skipped():
    """
    Parse, fingerprint, store, then import the same content again.
    """
    csv_data = """Date,Description,Amount,Reference
2024-01-15,Grocery Store,-45.50,
2024-01-16,Salary,3000.00,PAY-0116
2024-01-17,"Coffee, Tea, and Snacks",-7.25,"""

    first = parse_csv(csv_data)
    first_result = deduplicate_transactions(first, [])
    existing = [_stored(txn) for txn in first_result.new_transactions]

    second_result = deduplicate_transactions(parse_csv(csv_data), existing)

    assert len(first_result.new_transactions) == 3
    assert len(second_result.skipped) == 3
    assert second_result.new_transactions == []
    assert second_result.flagged == []


def test_huge_parsed_amount_does_not_break_dedup():
    txns = parse_csv(f"Date,Description,Amount\n2024-01-15,Wire,-{'9' * 30}")
    assert len(txns) == 1

    result = deduplicate_transactions(txns, [])

    assert result.new_transactions == txns
