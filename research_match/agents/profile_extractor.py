"""Profile Extractor Agent.

Turns plain résumé text into a StudentProfile with one LLM call. The model
output is treated as untrusted: it is parsed, schema-validated, and only then
converted. Any failure along the way surfaces as ParseFailure; partial
profiles are never returned.
"""

import uuid
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from research_match.exceptions import ParseFailure, PipelineError
from research_match.models.profile import EXPERIENCE_TYPES, Experience, StudentProfile
from research_match.utils.llm_helpers import (
    CompletionClient,
    LLMRequest,
    extract_json_object,
)
from research_match.utils.logger import get_logger
from research_match.utils.prompt_loader import render_prompt

MIN_RESUME_CHARS = 20
DEFAULT_RESUME_CHAR_BUDGET = 12_000
EXTRACTION_TEMPERATURE = 0.2
EXTRACTION_MAX_TOKENS = 2000


class _ExperiencePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str
    type: str = "project"
    description: Optional[str] = None
    skills: Optional[list[str]] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: object) -> str:
        # Unknown experience kinds are kept as generic projects
        if isinstance(v, str) and v.strip().lower() in EXPERIENCE_TYPES:
            return v.strip().lower()
        return "project"


class _ResumePayload(BaseModel):
    """Shape the extraction prompt asks the model to return."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: Optional[str] = None
    major: Optional[str] = None
    minor: Optional[str] = None
    graduation_year: Optional[Union[int, str]] = Field(default=None, alias="graduationYear")
    gpa: Optional[Union[float, str]] = None
    technical_skills: Optional[list[str]] = Field(default=None, alias="technicalSkills")
    soft_skills: Optional[list[str]] = Field(default=None, alias="softSkills")
    research_interests: Optional[list[str]] = Field(default=None, alias="researchInterests")
    relevant_coursework: Optional[list[str]] = Field(default=None, alias="relevantCoursework")
    experiences: Optional[list[_ExperiencePayload]] = None
    summary: Optional[str] = None
    career_goals: Optional[str] = Field(default=None, alias="careerGoals")

    def to_profile(self) -> StudentProfile:
        return StudentProfile(
            name=_blank_to_none(self.name),
            major=_blank_to_none(self.major),
            graduation_year=_blank_to_none(
                str(self.graduation_year) if self.graduation_year is not None else None
            ),
            research_interests=tuple(self.research_interests or ()),
            skills=tuple(self.technical_skills or ()),
            summary=_blank_to_none(self.summary),
            minor=_blank_to_none(self.minor),
            gpa=_blank_to_none(str(self.gpa) if self.gpa is not None else None),
            soft_skills=tuple(self.soft_skills or ()),
            relevant_coursework=tuple(self.relevant_coursework or ()),
            experiences=tuple(
                Experience(
                    title=exp.title,
                    type=exp.type,
                    description=exp.description or "",
                    skills=tuple(exp.skills or ()),
                )
                for exp in (self.experiences or ())
            ),
            career_goals=_blank_to_none(self.career_goals),
        )


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()


def check_resume_text(resume_text: str) -> None:
    """Reject text that cannot plausibly be a résumé.

    Raises:
        ParseFailure: If the text has fewer than 20 non-whitespace characters
            or contains no letters
    """
    compact = "".join((resume_text or "").split())
    if len(compact) < MIN_RESUME_CHARS:
        raise ParseFailure(
            f"Résumé text too short ({len(compact)} non-whitespace characters)"
        )
    if not any(ch.isalpha() for ch in compact):
        raise ParseFailure("Résumé text contains no letters")


class ProfileExtractor:
    """Extracts StudentProfile objects from résumé text."""

    def __init__(
        self,
        client: CompletionClient,
        resume_char_budget: int = DEFAULT_RESUME_CHAR_BUDGET,
        max_attempts: Optional[int] = None,
    ):
        """
        Args:
            client: LLM client
            resume_char_budget: Résumé text beyond this many characters is dropped
            max_attempts: Attempts for transient LLM failures (client default when None)
        """
        self.client = client
        self.resume_char_budget = resume_char_budget
        self.max_attempts = max_attempts

    async def extract(
        self, resume_text: str, correlation_id: Optional[str] = None
    ) -> StudentProfile:
        """
        Extract a profile from résumé text.

        Args:
            resume_text: Plain text already extracted from the uploaded document
            correlation_id: Optional correlation ID for logging

        Returns:
            StudentProfile

        Raises:
            ParseFailure: If the text is unusable, the service fails, or the
                response does not match the profile schema
        """
        correlation_id = correlation_id or f"extract-{uuid.uuid4().hex[:8]}"
        logger = get_logger(
            correlation_id=correlation_id,
            phase="extraction",
            component="profile_extractor",
        )

        check_resume_text(resume_text)

        text = resume_text.strip()
        if len(text) > self.resume_char_budget:
            logger.info(
                "Résumé truncated to budget",
                original_chars=len(text),
                budget=self.resume_char_budget,
            )
            text = text[: self.resume_char_budget]

        request = LLMRequest(
            system_instruction=render_prompt(
                "profile/extract.j2",
                correlation_id=correlation_id,
                experience_types=EXPERIENCE_TYPES,
            ),
            user_content=text,
            json_mode=True,
            temperature=EXTRACTION_TEMPERATURE,
            max_output_tokens=EXTRACTION_MAX_TOKENS,
        )

        try:
            response = await self.client.complete(
                request, max_attempts=self.max_attempts, correlation_id=correlation_id
            )
            payload = extract_json_object(response)
            profile = _ResumePayload.model_validate(payload).to_profile()
        except (PipelineError, ValidationError) as e:
            logger.error(
                "Profile extraction failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ParseFailure(f"Could not extract profile: {e}") from e

        logger.info(
            "Profile extracted",
            skills=len(profile.skills),
            research_interests=len(profile.research_interests),
            experiences=len(profile.experiences),
        )
        return profile


async def extract_profile(
    resume_text: str,
    client: CompletionClient,
    resume_char_budget: int = DEFAULT_RESUME_CHAR_BUDGET,
    correlation_id: Optional[str] = None,
) -> StudentProfile:
    """Module-level convenience wrapper around ProfileExtractor.extract."""
    extractor = ProfileExtractor(client, resume_char_budget=resume_char_budget)
    return await extractor.extract(resume_text, correlation_id=correlation_id)
