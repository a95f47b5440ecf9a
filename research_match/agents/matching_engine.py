"""Matching Engine Agent.

Ranks catalog opportunities against a StudentProfile.

Two scorers share one contract (a 0-100 score per pairing):

- KeywordRelevanceScorer: deterministic and offline. Blends field-concept
  overlap, skill overlap and interest overlap.
- LLMRelevanceScorer: keyword pre-screen, then one LLM judgement per
  remaining candidate, run concurrently under a rate limiter. A failed
  judgement keeps the keyword score.

Final ordering is by score descending, then catalog position (the catalog
is supplied newest first), then id, so identical inputs always produce the
same ordering regardless of evaluation order.
"""

import asyncio
import re
import uuid
from dataclasses import dataclass
from typing import Iterable, Literal, Optional, Sequence, Union

from research_match.exceptions import PipelineError
from research_match.models.config import SystemParams
from research_match.models.match import MatchResult
from research_match.models.opportunity import OpportunityRecord, OpportunitySummary
from research_match.models.profile import StudentProfile
from research_match.models.vocabulary import concepts_in_text
from research_match.utils.llm_helpers import (
    CompletionClient,
    LLMRequest,
    build_client,
    extract_json_object,
)
from research_match.utils.logger import get_logger
from research_match.utils.prompt_loader import render_prompt
from research_match.utils.rate_limiter import RequestRateLimiter
from research_match.utils.scoring import validate_score

DEFAULT_TOP_N = 10
MIN_TOP_N = 1
MAX_TOP_N = 20

CONCEPT_WEIGHT = 0.40
SKILL_WEIGHT = 0.35
INTEREST_WEIGHT = 0.25

MATCH_TEMPERATURE = 0.3
MATCH_MAX_TOKENS = 500
MATCH_SYSTEM_INSTRUCTION = (
    "You evaluate how well a student fits a research opportunity. "
    "Respond with a single JSON object."
)

CatalogEntry = Union[OpportunityRecord, tuple[str, OpportunitySummary]]

_TOKEN_RE = re.compile(r"[a-z0-9+#]+")


def clamp_top_n(top_n: object, default: int = DEFAULT_TOP_N) -> int:
    """Coerce top_n to an int in [1, 20]; unusable values become the default."""
    if isinstance(top_n, bool):
        value = default
    else:
        try:
            value = int(top_n)  # type: ignore[call-overload]
        except (TypeError, ValueError, OverflowError):
            value = default
    return max(MIN_TOP_N, min(MAX_TOP_N, value))


@dataclass(frozen=True)
class Candidate:
    """Read-only view of one catalog entry used during ranking."""

    id: str
    index: int
    title: str
    description: Optional[str]
    summary: Optional[OpportunitySummary]
    disciplines: tuple[str, ...]

    @classmethod
    def from_entry(cls, entry: CatalogEntry, index: int) -> "Candidate":
        if isinstance(entry, OpportunityRecord):
            return cls(
                id=entry.id,
                index=index,
                title=entry.title,
                description=entry.description,
                summary=entry.summary,
                disciplines=tuple(entry.disciplines or ()),
            )
        opportunity_id, summary = entry
        return cls(
            id=opportunity_id,
            index=index,
            title=summary.title or opportunity_id,
            description=None,
            summary=summary,
            disciplines=(),
        )

    @property
    def skills(self) -> tuple[str, ...]:
        return self.summary.skills if self.summary else ()

    def text(self) -> str:
        """Lowercased text the keyword scorer searches."""
        parts = [self.title]
        if self.summary is not None:
            parts += [self.summary.research_area or "", self.summary.one_liner]
            parts += list(self.summary.skills)
        else:
            parts.append(self.description or "")
        parts += list(self.disciplines)
        return " ".join(p for p in parts if p).lower()


def _normalize(value: str) -> str:
    return " ".join(value.casefold().split())


def _tokens(value: str) -> frozenset[str]:
    return frozenset(t for t in _TOKEN_RE.findall(value.casefold()) if len(t) >= 2)


def skills_match(a: str, b: str) -> bool:
    """True when two skill strings name the same thing.

    Either they are equal after normalization, or every token of the shorter
    one appears in the longer one ("Python" matches "data analysis in Python").
    """
    if _normalize(a) == _normalize(b):
        return True
    tokens_a, tokens_b = _tokens(a), _tokens(b)
    shorter, longer = sorted((tokens_a, tokens_b), key=len)
    return bool(shorter) and shorter <= longer


def _dice(a: set[str], b: set[str]) -> float:
    if not a and not b:
        return 0.0
    return 2 * len(a & b) / (len(a) + len(b))


class KeywordRelevanceScorer:
    """Deterministic keyword relevance between a profile and a candidate."""

    def score(self, profile: StudentProfile, candidate: Candidate) -> MatchResult:
        """
        Score one pairing.

        Components (each in [0, 1]):
            concepts: Dice overlap of field concepts found in the profile's
                interests/major/skills and in the opportunity text
                (keywords matched as whole words)
            skills: share of the opportunity's skills the student has
            interests: share of the student's interests and major that the
                opportunity text mentions

        Returns:
            MatchResult with score = 100 * weighted sum, one decimal
        """
        opportunity_text = candidate.text()
        profile_skills = profile.all_skills()

        profile_concepts = concepts_in_text(
            " ".join(
                list(profile.research_interests) + [profile.major or ""] + list(profile_skills)
            ),
            whole_words=True,
        )
        opportunity_concepts = concepts_in_text(opportunity_text, whole_words=True)
        shared_concepts = sorted(profile_concepts & opportunity_concepts)
        concept_part = _dice(profile_concepts, opportunity_concepts)

        wanted = candidate.skills
        matched_skills = [s for s in wanted if any(skills_match(s, p) for p in profile_skills)]
        missing_skills = [s for s in wanted if s not in matched_skills]
        skill_part = len(matched_skills) / len(wanted) if wanted else 0.0

        terms = [t for t in list(profile.research_interests) + [profile.major or ""] if t.strip()]
        mentioned = [t for t in terms if _normalize(t) in opportunity_text]
        interest_part = len(mentioned) / len(terms) if terms else 0.0

        raw = (
            CONCEPT_WEIGHT * concept_part
            + SKILL_WEIGHT * skill_part
            + INTEREST_WEIGHT * interest_part
        )
        score = round(max(0.0, min(100.0, 100 * raw)), 1)

        reasons: list[str] = []
        if shared_concepts:
            reasons.append("Shared fields: " + ", ".join(shared_concepts))
        if matched_skills:
            reasons.append("You have: " + ", ".join(matched_skills))
        if mentioned:
            reasons.append("Mentions your interests: " + ", ".join(mentioned))
        gaps = [f"Posting asks for {s}" for s in missing_skills[:2]]

        return MatchResult(
            opportunity_id=candidate.id,
            score=score,
            rationale="; ".join(reasons) if reasons else "Little overlap with your profile",
            match_reasons=tuple(reasons),
            gap_warnings=tuple(gaps),
        )


class LLMRelevanceScorer:
    """LLM-judged relevance with keyword fallback."""

    def __init__(
        self,
        client: CompletionClient,
        limiter: Optional[RequestRateLimiter] = None,
        fallback: Optional[KeywordRelevanceScorer] = None,
        max_attempts: Optional[int] = None,
    ):
        self.client = client
        self.limiter = limiter or RequestRateLimiter()
        self.fallback = fallback or KeywordRelevanceScorer()
        self.max_attempts = max_attempts

    async def score(
        self,
        profile: StudentProfile,
        candidate: Candidate,
        correlation_id: str,
        fallback_result: Optional[MatchResult] = None,
    ) -> MatchResult:
        """
        Judge one pairing with the LLM.

        Args:
            profile: Student profile
            candidate: Opportunity being judged
            correlation_id: Correlation ID for logging
            fallback_result: Keyword result used if the judgement fails

        Returns:
            MatchResult from the LLM, or the keyword result on failure
        """
        logger = get_logger(
            correlation_id=correlation_id, phase="matching", component="matching_engine"
        )
        fallback_result = fallback_result or self.fallback.score(profile, candidate)

        request = LLMRequest(
            system_instruction=MATCH_SYSTEM_INSTRUCTION,
            user_content=render_prompt(
                "matching/relevance.j2",
                correlation_id=correlation_id,
                profile=profile,
                opportunity=candidate,
                summary=candidate.summary,
            ),
            json_mode=True,
            temperature=MATCH_TEMPERATURE,
            max_output_tokens=MATCH_MAX_TOKENS,
        )

        try:
            async with self.limiter:
                response = await self.client.complete(
                    request, max_attempts=self.max_attempts, correlation_id=correlation_id
                )
            payload = extract_json_object(response)
            score, flags = validate_score(
                payload.get("matchScore"), candidate.id, correlation_id
            )
        except (PipelineError, ValueError) as e:
            logger.warning(
                "LLM judgement failed, using keyword score",
                opportunity_id=candidate.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return fallback_result

        reasons = _string_list(payload.get("matchReasons"))
        gaps = _string_list(payload.get("gapWarnings"))
        tip = payload.get("standoutTip")
        logger.debug(
            "LLM judgement", opportunity_id=candidate.id, score=score, flags=flags
        )
        return MatchResult(
            opportunity_id=candidate.id,
            score=score,
            rationale="; ".join(reasons) if reasons else fallback_result.rationale,
            match_reasons=tuple(reasons),
            gap_warnings=tuple(gaps),
            standout_tip=tip.strip() if isinstance(tip, str) and tip.strip() else None,
        )


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v.strip() for v in value if isinstance(v, str) and v.strip()]


def _sort_results(
    results: Iterable[MatchResult], positions: dict[str, int]
) -> list[MatchResult]:
    return sorted(
        results,
        key=lambda r: (-r.score, positions[r.opportunity_id], r.opportunity_id),
    )


class MatchingEngine:
    """Ranks a catalog snapshot for one profile."""

    def __init__(
        self,
        scorer: Literal["keyword", "llm"] = "keyword",
        client: Optional[CompletionClient] = None,
        params: Optional[SystemParams] = None,
    ):
        """
        Args:
            scorer: "keyword" (offline) or "llm"
            client: LLM client for the llm scorer (built from env when None)
            params: Pipeline configuration
        """
        if scorer not in ("keyword", "llm"):
            raise ValueError(f"Unknown scorer: {scorer!r}")
        self.scorer = scorer
        self.client = client
        self.params = params or SystemParams()
        self.keyword_scorer = KeywordRelevanceScorer()

    async def rank(
        self,
        profile: StudentProfile,
        catalog: Sequence[CatalogEntry],
        top_n: object = None,
        correlation_id: Optional[str] = None,
    ) -> list[MatchResult]:
        """
        Rank catalog entries for a profile.

        Args:
            profile: Student profile (not modified)
            catalog: OpportunityRecords or (id, OpportunitySummary) pairs,
                newest first; non-recruiting records are skipped
            top_n: Requested result count, clamped to [1, 20]
            correlation_id: Optional correlation ID for logging

        Returns:
            Up to top_n MatchResults, best first. Empty catalog gives [].
        """
        correlation_id = correlation_id or f"match-{uuid.uuid4().hex[:8]}"
        logger = get_logger(
            correlation_id=correlation_id, phase="matching", component="matching_engine"
        )
        limit = clamp_top_n(
            self.params.matching.default_top_n if top_n is None else top_n
        )

        candidates: list[Candidate] = []
        seen: set[str] = set()
        for index, entry in enumerate(catalog):
            if isinstance(entry, OpportunityRecord) and not entry.is_recruiting():
                continue
            candidate = Candidate.from_entry(entry, index)
            # First occurrence wins for duplicated ids
            if candidate.id in seen:
                continue
            seen.add(candidate.id)
            candidates.append(candidate)
        if not candidates:
            logger.info("Empty catalog, nothing to rank")
            return []

        positions = {c.id: c.index for c in candidates}
        keyword_results = {
            c.id: self.keyword_scorer.score(profile, c) for c in candidates
        }

        if self.scorer == "keyword":
            ranked = _sort_results(keyword_results.values(), positions)
        else:
            ranked = await self._rank_with_llm(
                profile, candidates, keyword_results, positions, limit, correlation_id
            )

        top = ranked[:limit]
        logger.info(
            "Matches ranked",
            scorer=self.scorer,
            catalog_size=len(candidates),
            top_n=limit,
            returned=len(top),
        )
        return top

    async def _rank_with_llm(
        self,
        profile: StudentProfile,
        candidates: list[Candidate],
        keyword_results: dict[str, MatchResult],
        positions: dict[str, int],
        limit: int,
        correlation_id: str,
    ) -> list[MatchResult]:
        if self.client is None:
            self.client = build_client(self.params)

        pool_size = max(limit, self.params.matching.max_llm_candidates)
        prescreened = _sort_results(keyword_results.values(), positions)[:pool_size]
        by_id = {c.id: c for c in candidates}

        scorer = LLMRelevanceScorer(
            self.client,
            limiter=RequestRateLimiter(
                max_concurrent=self.params.rate_limiting.max_concurrent_llm_calls,
                requests_per_minute=self.params.rate_limiting.llm_requests_per_minute,
            ),
            fallback=self.keyword_scorer,
        )
        judged = await asyncio.gather(
            *(
                scorer.score(
                    profile,
                    by_id[result.opportunity_id],
                    correlation_id=f"{correlation_id}:{result.opportunity_id}",
                    fallback_result=result,
                )
                for result in prescreened
            )
        )
        return _sort_results(judged, positions)


async def rank_matches(
    profile: StudentProfile,
    catalog: Sequence[CatalogEntry],
    top_n: object = DEFAULT_TOP_N,
    scorer: Literal["keyword", "llm"] = "keyword",
    client: Optional[CompletionClient] = None,
    params: Optional[SystemParams] = None,
) -> list[MatchResult]:
    """Module-level convenience wrapper around MatchingEngine.rank."""
    engine = MatchingEngine(scorer=scorer, client=client, params=params)
    return await engine.rank(profile, catalog, top_n=top_n)


def find_similar_opportunities(
    target: OpportunityRecord,
    catalog: Iterable[OpportunityRecord],
    limit: int = 3,
) -> list[OpportunityRecord]:
    """
    Find other recruiting opportunities sharing a major or discipline with `target`.

    Args:
        target: Opportunity being viewed
        catalog: Records to search
        limit: Maximum results

    Returns:
        Up to `limit` records, newest first. Empty when target has no majors
        or disciplines.
    """
    majors = set(target.relevant_majors or ())
    disciplines = set(target.disciplines or ())
    if not majors and not disciplines:
        return []

    similar = [
        record
        for record in catalog
        if record.id != target.id
        and record.is_recruiting()
        and (
            majors & set(record.relevant_majors or ())
            or disciplines & set(record.disciplines or ())
        )
    ]
    similar.sort(key=lambda r: r.id)
    similar.sort(key=lambda r: r.created_at, reverse=True)
    return similar[: max(limit, 0)]
