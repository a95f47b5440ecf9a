"""
Pipeline Exceptions

Typed errors raised by the summarization and matching pipeline.

Single-item operations (extract_profile, summarize_posting) propagate these to
their caller. Batch operations (run_backfill) catch them per candidate and
report counts instead.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""

    pass


class ConfigurationMissing(PipelineError):
    """No LLM credential is configured. Fatal, never retried."""

    pass


class ConfigurationError(PipelineError):
    """A configuration file failed schema or model validation."""

    pass


class ServiceUnavailable(PipelineError):
    """The LLM service returned an error or could not be reached."""

    pass


class ServiceTimeout(ServiceUnavailable):
    """The LLM service did not answer within the configured timeout."""

    pass


class SchemaViolation(PipelineError):
    """LLM output failed to parse or failed required-field validation.

    Attributes:
        payload_preview: First 200 characters of the offending payload
    """

    def __init__(self, message: str, payload_preview: Optional[str] = None):
        super().__init__(message)
        self.payload_preview = payload_preview


class ParseFailure(PipelineError):
    """A résumé could not be turned into a StudentProfile."""

    pass


class SummarizationFailure(PipelineError):
    """A posting could not be turned into an OpportunitySummary."""

    pass
