class FormulaError(Exception):
    """Base class for formula generation errors surfaced to the visitor."""


class GenerationFailed(FormulaError):
    """Outbound LLM call failed (non-2xx, transport error, or empty reply)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class HandoffMissing(FormulaError):
    """No stored form submission for the given run id (never stored, expired, or already read)."""
