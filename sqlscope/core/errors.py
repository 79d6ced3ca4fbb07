"""Exceptions raised by the lineage engine."""


class LineageError(Exception):
    """Base class for all sqlscope errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class AnalysisError(LineageError):
    """Raised when no lineage result can be produced for the input at all."""
