"""
AI-assisted transaction extraction for statement text.

The extractor is a narrow capability: statement text in, the decoded JSON
document out. The system prompt is part of that contract; bump
PROMPT_VERSION whenever it changes so stored results can be traced back to
the instructions that produced them.
"""

import json
import logging
from typing import Any, Dict, Optional, Protocol

import openai

from .errors import ExtractionError

logger = logging.getLogger(__name__)

PROMPT_VERSION = "2024-06-01"

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_MAX_TOKENS = 4096

SYSTEM_PROMPT = """You are a bank statement parser. You receive raw text extracted from a PDF bank statement and must extract all transactions into a structured JSON format.

For each transaction, extract:
- date: the transaction date in YYYY-MM-DD format
- description: the transaction description/payee name
- amount: the absolute numeric amount (always positive)
- type: "credit" for money coming in (deposits, refunds) or "debit" for money going out (purchases, withdrawals, fees)
- referenceId: any reference number or transaction ID if present, otherwise null
- confidence: "high" if the data is clearly parsed, "medium" if some fields required interpretation, "low" if the format was unusual or data may be incorrect

Rules:
- Parse ALL transactions found in the text
- Amounts must always be positive numbers (use type field for direction)
- Dates must be in YYYY-MM-DD format
- Do not invent or fabricate transactions; only extract what is present in the text
- If a transaction's fields are ambiguous, set confidence to "low"
- Handle multi-page statements; transactions may span across page breaks
- Ignore headers, footers, balance summaries, and non-transaction content

Respond with ONLY valid JSON in this format:
{"transactions": [...]}"""

USER_PROMPT_TEMPLATE = "Parse the following bank statement text and extract all transactions:\n\n{text}"


class TransactionExtractor(Protocol):
    """Anything that turns statement text into ``{"transactions": [...]}``."""

    async def extract(self, text: str) -> Dict[str, Any]:
        ...


def _balanced_object_end(text: str, start: int) -> Optional[int]:
    """Index just past the object opened at ``start``, or None if unbalanced."""
    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Decode the first top-level JSON object embedded in ``text``.

    Models often wrap JSON in a markdown fence or add a sentence around it,
    so the object is located by brace matching rather than decoding the
    whole response.

    Raises:
        ExtractionError: if no decodable JSON object is present.
    """
    start = (text or "").find("{")
    while start != -1:
        end = _balanced_object_end(text, start)
        if end is None:
            break
        try:
            parsed = json.loads(text[start:end])
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed
        start = text.find("{", start + 1)

    raise ExtractionError()


class OpenAITransactionExtractor:
    """Extract transactions with an OpenAI chat model."""

    def __init__(
        self,
        client: Optional[openai.AsyncOpenAI] = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        api_key: Optional[str] = None,
    ):
        self.client = client or openai.AsyncOpenAI(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens

    async def extract(self, text: str) -> Dict[str, Any]:
        response = await self.client.chat.completions.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": USER_PROMPT_TEMPLATE.format(text=text)},
            ],
        )
        content = response.choices[0].message.content or ""
        logger.info(
            f"AI extraction finished (model={self.model}, prompt={PROMPT_VERSION}, "
            f"response_chars={len(content)})"
        )
        return extract_json_object(content)
