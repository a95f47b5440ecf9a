"""
Shared test fixtures.

FakeLLM stands in for LLMClient: it records every request and answers from a
scripted list or a handler function, so no test touches the network.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import pytest

from research_match.models.config import SystemParams
from research_match.models.opportunity import OpportunityRecord, OpportunitySummary
from research_match.models.profile import StudentProfile
from research_match.utils.llm_helpers import LLMRequest

LLM_ENV_KEYS = (
    "LLM_API_KEY",
    "GOOGLE_AI_API_KEY",
    "GEMINI_API_KEY",
    "GROQ_API_KEY",
    "OPENAI_API_KEY",
    "LLM_MODEL",
    "LLM_BASE_URL",
    "LLM_TIMEOUT_SECONDS",
    "BACKFILL_DELAY_MS",
)


class FakeLLM:
    """Scripted CompletionClient.

    Each response may be a dict (returned as JSON), a string (returned as
    is) or an exception instance (raised).
    """

    def __init__(
        self,
        responses: Optional[list[Any]] = None,
        handler: Optional[Callable[[LLMRequest], Any]] = None,
    ):
        self.responses = list(responses or [])
        self.handler = handler
        self.requests: list[LLMRequest] = []
        self.max_attempts: list[Optional[int]] = []

    async def complete(
        self,
        request: LLMRequest,
        max_attempts: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ) -> str:
        self.requests.append(request)
        self.max_attempts.append(max_attempts)

        if self.handler is not None:
            result = self.handler(request)
        elif self.responses:
            result = self.responses.pop(0)
        else:
            raise AssertionError("FakeLLM received more calls than scripted")

        if isinstance(result, BaseException):
            raise result
        if isinstance(result, dict):
            return json.dumps(result)
        return result

    @property
    def calls(self) -> int:
        return len(self.requests)


@pytest.fixture
def fake_llm() -> Callable[..., FakeLLM]:
    """Factory fixture: fake_llm([...]) or fake_llm(handler=fn)."""
    return FakeLLM


@pytest.fixture
def no_llm_env(monkeypatch, tmp_path):
    """Environment with no LLM credentials and no .env file in the cwd."""
    for key in LLM_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def fast_params() -> SystemParams:
    """Default configuration with the backfill delay disabled."""
    return SystemParams(backfill={"inter_call_delay_ms": 0})


@pytest.fixture
def ml_student() -> StudentProfile:
    """Computer Science student interested in machine learning and neuroscience."""
    return StudentProfile(
        name="Jordan Lee",
        major="Computer Science",
        graduation_year="2026",
        research_interests=("machine learning", "neuroscience"),
        skills=("Python", "machine learning"),
    )


def make_record(
    opportunity_id: str,
    title: str,
    description: Optional[str] = "A research project.",
    age_days: int = 0,
    **fields: Any,
) -> OpportunityRecord:
    """Build a recruiting record created `age_days` before a fixed instant."""
    base = datetime(2026, 9, 1, tzinfo=timezone.utc)
    return OpportunityRecord(
        id=opportunity_id,
        title=title,
        description=description,
        created_at=base - timedelta(days=age_days),
        **fields,
    )


@pytest.fixture
def record_factory() -> Callable[..., OpportunityRecord]:
    """Factory fixture wrapping make_record."""
    return make_record


@pytest.fixture
def scenario_catalog() -> list[OpportunityRecord]:
    """Three summarized postings; chemistry is newest so recency alone would rank it first."""
    chemistry = make_record(
        "opp-chem",
        "Organic Synthesis Lab",
        age_days=0,
        summary=OpportunitySummary(
            one_liner="Synthesize novel organic compounds in a wet lab",
            research_area="Organic Chemistry",
            skills=("organic synthesis", "NMR spectroscopy"),
        ),
    )
    neural = make_record(
        "opp-neural",
        "Neural Signal Processing Toolkit",
        age_days=1,
        summary=OpportunitySummary(
            one_liner=(
                "Build open-source software tools for processing neural signals "
                "recorded from the brain"
            ),
            research_area="Neuroscience",
            skills=("Python", "signal processing", "machine learning"),
        ),
    )
    plant = make_record(
        "opp-plant",
        "Plant Genomics Field Study",
        age_days=2,
        summary=OpportunitySummary(
            one_liner="Collect plant tissue samples and analyze genomic data in the field",
            research_area="Plant Biology",
            skills=("field sampling", "DNA extraction", "data analysis in Python"),
        ),
    )
    return [chemistry, neural, plant]
