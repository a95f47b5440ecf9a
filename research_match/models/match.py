"""Result models: ranked matches and backfill run counters."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


BackfillKind = Literal["summary", "disciplines", "majors"]
BACKFILL_KINDS: tuple[str, ...] = ("summary", "disciplines", "majors")


class MatchResult(BaseModel):
    """One ranked (profile, opportunity) pairing. Never persisted.

    Attributes:
        opportunity_id: Catalog id of the matched opportunity (not owned)
        score: Relevance in [0, 100], higher is better
        rationale: Short explanation of the match
        match_reasons: Specific reasons the student fits
        gap_warnings: Things the student may be missing
        standout_tip: How this student could stand out when applying
    """

    model_config = ConfigDict(frozen=True)

    opportunity_id: str
    score: float = Field(..., ge=0.0, le=100.0)
    rationale: Optional[str] = None
    match_reasons: tuple[str, ...] = ()
    gap_warnings: tuple[str, ...] = ()
    standout_tip: Optional[str] = None


class BackfillRun(BaseModel):
    """Counters for one backfill invocation, reported back to the caller."""

    kind: BackfillKind
    total: int = 0
    succeeded: int = 0
    failed_ids: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    @computed_field  # type: ignore[prop-decorator]
    @property
    def outcome(self) -> Literal["no_candidates", "completed", "partial_failure"]:
        """Coarse outcome the caller can turn into a user-facing message."""
        if self.total == 0:
            return "no_candidates"
        if self.failed > 0:
            return "partial_failure"
        return "completed"
