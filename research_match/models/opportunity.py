"""Opportunity data models: catalog records and their LLM-derived summaries."""

from datetime import datetime, timezone
from typing import Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


RECRUITING = "Recruiting"

ONE_LINER_MAX_CHARS = 200
TIME_COMMITMENT_MAX_CHARS = 100


Eligibility = Union[str, Iterable[str], None]


def eligibility_text(eligibility: Eligibility) -> str:
    """Join "who can join" lines with spaces. A plain string is one line."""
    if eligibility is None:
        return ""
    if isinstance(eligibility, str):
        return eligibility.strip()
    return " ".join(line.strip() for line in eligibility if line and line.strip())


def truncate_on_word(text: str, limit: int) -> str:
    """Truncate text to at most `limit` characters, cutting on a word boundary.

    Args:
        text: Text to truncate
        limit: Maximum length of the result, including the trailing ellipsis

    Returns:
        Original text if short enough, otherwise a shortened copy ending in "..."
    """
    text = text.strip()
    if len(text) <= limit:
        return text

    cut = text[: limit - 3]
    if " " in cut:
        cut = cut.rsplit(" ", 1)[0]
    return cut.rstrip(" ,;:.") + "..."


class OpportunitySummary(BaseModel):
    """Structured, machine-usable summary of one research posting.

    Created by the summarizer the first time a posting is processed and
    immutable afterwards.
    """

    model_config = ConfigDict(frozen=True)

    one_liner: str = Field(..., min_length=1)
    skills: tuple[str, ...] = ()
    time_commitment: str = "Not specified"
    research_area: Optional[str] = None

    title: Optional[str] = None
    compensation: Optional[str] = None
    requirements: tuple[str, ...] = ()
    ideal_for: tuple[str, ...] = ()
    application_tip: Optional[str] = None

    @field_validator("one_liner")
    @classmethod
    def bound_one_liner(cls, v: str) -> str:
        return truncate_on_word(v, ONE_LINER_MAX_CHARS)

    @field_validator("time_commitment")
    @classmethod
    def bound_time_commitment(cls, v: str) -> str:
        return truncate_on_word(v, TIME_COMMITMENT_MAX_CHARS) or "Not specified"

    @field_validator("research_area")
    @classmethod
    def blank_area_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("skills", "requirements", "ideal_for")
    @classmethod
    def strip_entries(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(item.strip() for item in v if item.strip())


class OpportunityRecord(BaseModel):
    """One catalog row as seen by the pipeline.

    `None` for an annotation field means the record was never annotated.
    An empty tuple is a valid, final annotated state.

    Attributes:
        id: Catalog identifier
        title: Posting title
        description: Posting body text
        eligibility: "Who can join" lines from the posting
        status: Catalog status; only "Recruiting" records are annotated or matched
        created_at: Ingestion time, used for recency ordering
        summary: LLM summary, or None if never summarized
        disciplines: Technical discipline tags, or None if never tagged
        relevant_majors: Keyword-inferred majors, or None if never enriched
    """

    id: str
    title: str
    description: Optional[str] = None
    eligibility: list[str] = Field(default_factory=list)
    status: str = RECRUITING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    summary: Optional[OpportunitySummary] = None
    disciplines: Optional[tuple[str, ...]] = None
    relevant_majors: Optional[tuple[str, ...]] = None

    @field_validator("eligibility", mode="before")
    @classmethod
    def single_eligibility_line(cls, v: object) -> object:
        if isinstance(v, str):
            return [v] if v.strip() else []
        return v

    def is_recruiting(self) -> bool:
        return self.status == RECRUITING

    def posting_fields(self) -> dict[str, object]:
        """Fields the tagger and summarizer consume."""
        return {
            "title": self.title,
            "description": self.description or "",
            "eligibility": list(self.eligibility),
        }
