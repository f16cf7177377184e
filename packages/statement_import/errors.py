"""Exceptions raised by the statement import pipeline."""


class StatementImportError(Exception):
    """Base error for the import pipeline."""


class ExtractionError(StatementImportError):
    """The AI extractor returned something that could not be decoded."""

    def __init__(self, detail: str = "AI response did not contain valid JSON"):
        self.detail = detail
        super().__init__(detail)
