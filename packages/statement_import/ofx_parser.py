"""
OFX/QFX Statement Parser.

OFX 1.x is SGML: leaf elements (``<TRNAMT>-12.50``) usually have no closing
tag, and some exporters omit ``</STMTTRN>`` too. Blocks are therefore
scanned as tag soup rather than parsed as XML. QFX uses the same grammar.
"""

import math
import re
import logging
from datetime import date
from typing import Dict, List, Optional

from .models import CREDIT, DEBIT, ParsedTransaction

logger = logging.getLogger(__name__)

OPEN_TAG = "<STMTTRN>"
CLOSE_TAG = "</STMTTRN>"

TRANSACTION_TAGS = ["TRNTYPE", "DTPOSTED", "TRNAMT", "FITID", "NAME", "MEMO", "CHECKNUM"]

CREDIT_TYPES = {"CREDIT", "DEP", "DIRECTDEP", "INT"}
DEBIT_TYPES = {"DEBIT", "ATM", "POS", "XFER", "FEE", "SRVCHG", "PAYMENT", "CHECK"}

_OFX_DATE = re.compile(r"^(\d{4})(\d{2})(\d{2})")


def parse_ofx_date(value: Optional[str]) -> Optional[date]:
    """Parse YYYYMMDD[HHMMSS[.XXX][[+-]N:TZ]]; only the date part is kept."""
    if not value:
        return None
    match = _OFX_DATE.match(value.strip())
    if not match:
        return None
    year, month, day = (int(g) for g in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def extract_tag_value(block: str, tag: str) -> Optional[str]:
    match = re.search(rf"<{tag}>([^<\r\n]+)", block, re.IGNORECASE)
    if not match:
        return None
    return match.group(1).strip() or None


def extract_transaction_blocks(content: str) -> List[str]:
    """Split content into STMTTRN blocks, with or without closing tags."""
    blocks = []
    upper = content.upper()
    position = 0

    while True:
        start = upper.find(OPEN_TAG, position)
        if start == -1:
            break

        close = upper.find(CLOSE_TAG, start)
        next_open = upper.find(OPEN_TAG, start + len(OPEN_TAG))

        if close != -1 and (next_open == -1 or close < next_open):
            end = close
            position = close + len(CLOSE_TAG)
        elif next_open != -1:
            end = next_open
            position = next_open
        else:
            end = len(content)
            position = end

        blocks.append(content[start:end])

    return blocks


def determine_type(trn_type: Optional[str], amount: float) -> str:
    """Map TRNTYPE to a direction, falling back to the amount's sign."""
    upper = (trn_type or "").upper()
    if upper in CREDIT_TYPES:
        return CREDIT
    if upper in DEBIT_TYPES:
        return DEBIT
    return CREDIT if amount >= 0 else DEBIT


def _parse_block(block: str) -> Optional[ParsedTransaction]:
    tags: Dict[str, Optional[str]] = {tag: extract_tag_value(block, tag) for tag in TRANSACTION_TAGS}

    if not tags["DTPOSTED"] or not tags["TRNAMT"]:
        return None

    posted = parse_ofx_date(tags["DTPOSTED"])
    if posted is None:
        return None

    # OFX permits a comma as the decimal separator
    try:
        amount = float(tags["TRNAMT"].replace(",", "."))
        if not math.isfinite(amount):
            return None
    except ValueError:
        return None

    if tags["NAME"]:
        description = tags["NAME"]
    elif tags["MEMO"]:
        description = tags["MEMO"]
    elif tags["CHECKNUM"]:
        description = f"Check #{tags['CHECKNUM']}"
    else:
        description = ""

    return ParsedTransaction(
        date=posted,
        description=description,
        amount=abs(amount),
        type=determine_type(tags["TRNTYPE"], amount),
        reference_id=tags["FITID"],
    )


def parse_ofx(content: str) -> List[ParsedTransaction]:
    """
    Parse OFX or QFX content into canonical transactions.

    Blocks missing DTPOSTED or TRNAMT, or with values that do not parse,
    are dropped; the rest of the file is still returned.
    """
    if not content or not content.strip():
        return []

    blocks = extract_transaction_blocks(content)
    transactions = []
    for idx, block in enumerate(blocks):
        txn = _parse_block(block)
        if txn is None:
            logger.debug(f"Skipping STMTTRN block {idx}: missing or invalid date/amount")
            continue
        transactions.append(txn)

    logger.info(f"Parsed {len(transactions)} of {len(blocks)} OFX transaction blocks")
    return transactions
