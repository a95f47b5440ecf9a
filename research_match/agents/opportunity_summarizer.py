"""Opportunity Summarizer Agent.

Produces a structured OpportunitySummary from raw posting text. Used both
for a single on-demand posting and by the summary backfill.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from research_match.exceptions import PipelineError, SummarizationFailure
from research_match.models.opportunity import (
    ONE_LINER_MAX_CHARS,
    Eligibility,
    OpportunitySummary,
    eligibility_text,
)
from research_match.utils.llm_helpers import (
    CompletionClient,
    LLMRequest,
    extract_json_object,
)
from research_match.utils.logger import get_logger
from research_match.utils.prompt_loader import render_prompt

DEFAULT_POSTING_CHAR_BUDGET = 2000
SUMMARY_TEMPERATURE = 0.2
SUMMARY_MAX_TOKENS = 1000


def build_posting_text(
    title: str,
    description: Optional[str],
    eligibility: Eligibility = None,
    char_budget: int = DEFAULT_POSTING_CHAR_BUDGET,
) -> str:
    """Join posting fields into the text sent to the LLM.

    Title comes first so it survives truncation; parts are separated by blank
    lines and empty parts are skipped.

    Args:
        title: Posting title
        description: Posting body (may be None)
        eligibility: "Who can join" lines, or one string
        char_budget: Maximum characters returned

    Returns:
        Combined text, at most `char_budget` characters
    """
    parts = [
        (title or "").strip(),
        (description or "").strip(),
        eligibility_text(eligibility),
    ]
    return "\n\n".join(p for p in parts if p)[:char_budget]


class _SummaryPayload(BaseModel):
    """Shape the summarization prompt asks the model to return."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    one_liner: str = Field(..., alias="oneLiner", min_length=1)
    skills: list[str]
    time_commitment: str = Field(..., alias="timeCommitment")
    research_area: Optional[str] = Field(default=None, alias="researchArea")
    title: Optional[str] = None
    compensation: Optional[str] = None
    requirements: Optional[list[str]] = None
    ideal_for: Optional[list[str]] = Field(default=None, alias="idealFor")
    application_tip: Optional[str] = Field(default=None, alias="applicationTip")

    @field_validator("one_liner")
    @classmethod
    def one_liner_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("oneLiner is blank")
        return v

    def to_summary(self) -> OpportunitySummary:
        return OpportunitySummary(
            one_liner=self.one_liner,
            skills=tuple(self.skills),
            time_commitment=self.time_commitment,
            research_area=self.research_area,
            title=(self.title or "").strip() or None,
            compensation=(self.compensation or "").strip() or None,
            requirements=tuple(self.requirements or ()),
            ideal_for=tuple(self.ideal_for or ()),
            application_tip=(self.application_tip or "").strip() or None,
        )


class OpportunitySummarizer:
    """Summarizes research postings with one LLM call each."""

    def __init__(
        self,
        client: CompletionClient,
        posting_char_budget: int = DEFAULT_POSTING_CHAR_BUDGET,
        max_attempts: Optional[int] = None,
    ):
        self.client = client
        self.posting_char_budget = posting_char_budget
        self.max_attempts = max_attempts

    async def summarize(
        self, raw_text: str, correlation_id: Optional[str] = None
    ) -> OpportunitySummary:
        """
        Summarize one posting.

        Args:
            raw_text: Posting text (see build_posting_text)
            correlation_id: Optional correlation ID for logging

        Returns:
            OpportunitySummary

        Raises:
            SummarizationFailure: If the text is empty, the service fails, or
                the response lacks oneLiner, skills or timeCommitment
        """
        correlation_id = correlation_id or f"summarize-{uuid.uuid4().hex[:8]}"
        logger = get_logger(
            correlation_id=correlation_id,
            phase="summarization",
            component="opportunity_summarizer",
        )

        text = (raw_text or "").strip()
        if not text:
            raise SummarizationFailure("Posting text is empty")
        text = text[: self.posting_char_budget]

        request = LLMRequest(
            system_instruction=render_prompt(
                "opportunity/summarize.j2",
                correlation_id=correlation_id,
                one_liner_max=ONE_LINER_MAX_CHARS,
            ),
            user_content=text,
            json_mode=True,
            temperature=SUMMARY_TEMPERATURE,
            max_output_tokens=SUMMARY_MAX_TOKENS,
        )

        try:
            response = await self.client.complete(
                request, max_attempts=self.max_attempts, correlation_id=correlation_id
            )
            payload = extract_json_object(response)
            summary = _SummaryPayload.model_validate(payload).to_summary()
        except (PipelineError, ValidationError) as e:
            logger.error(
                "Summarization failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise SummarizationFailure(f"Could not summarize posting: {e}") from e

        logger.info(
            "Posting summarized",
            skills=len(summary.skills),
            research_area=summary.research_area,
        )
        return summary


async def summarize_posting(
    raw_text: str,
    client: CompletionClient,
    posting_char_budget: int = DEFAULT_POSTING_CHAR_BUDGET,
    correlation_id: Optional[str] = None,
) -> OpportunitySummary:
    """Module-level convenience wrapper around OpportunitySummarizer.summarize."""
    summarizer = OpportunitySummarizer(client, posting_char_budget=posting_char_budget)
    return await summarizer.summarize(raw_text, correlation_id=correlation_id)
