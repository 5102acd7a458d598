"""Exception hierarchy for amp-pipeline.

All pipeline errors carry the stage that raised them and, where one exists,
the identifier of the offending record.

Ambiguous joins are not an error: the annotation engine resolves them
deterministically.
"""

from typing import Any


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(
        self,
        message: str,
        stage: str | None = None,
        record_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize with error message and diagnostic context.

        Args:
            message: Error message
            stage: Pipeline stage name (e.g. "ingest", "score", "search")
            record_id: Identifier of the offending record or line, if any
            details: Optional extra context
        """
        self.message = message
        self.stage = stage
        self.record_id = record_id
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        context = []
        if self.stage:
            context.append(f"stage={self.stage}")
        if self.record_id is not None:
            context.append(f"record={self.record_id}")
        if context:
            return f"{self.message} [{', '.join(context)}]"
        return self.message


class MalformedInputError(PipelineError):
    """Bad sequence, hit table, metadata table or scorer output syntax."""
    pass


class ScorerUnavailableError(PipelineError):
    """External scorer missing, failed or timed out."""
    pass


class SearchUnavailableError(PipelineError):
    """Homology search or index-build tool missing, failed or timed out."""
    pass
