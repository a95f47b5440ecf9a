"""
Student Profile Data Models
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


EXPERIENCE_TYPES = ("research", "work", "project", "volunteer")


def dedupe_casefold(values: tuple[str, ...]) -> tuple[str, ...]:
    """Drop blanks and case-insensitive duplicates, keeping first spelling and order."""
    seen: set[str] = set()
    unique: list[str] = []
    for value in values:
        cleaned = value.strip()
        key = cleaned.casefold()
        if cleaned and key not in seen:
            seen.add(key)
            unique.append(cleaned)
    return tuple(unique)


class Experience(BaseModel):
    """One résumé experience entry."""

    model_config = ConfigDict(frozen=True)

    title: str
    type: Literal["research", "work", "project", "volunteer"] = "project"
    description: str = ""
    skills: tuple[str, ...] = ()


class StudentProfile(BaseModel):
    """Structured student profile derived from one résumé upload.

    Immutable once produced and owned by the request that created it.

    Attributes:
        name: Student name if present on the résumé
        major: Primary major
        graduation_year: Expected graduation year, kept as text ("2026", "Spring 2027")
        research_interests: Ordered research interests, most prominent first
        skills: Technical skills with set semantics (case-insensitive, first spelling wins)
        summary: Free-text profile summary
        minor: Minor if listed
        gpa: GPA if listed, as text
        soft_skills: Leadership, communication, etc.
        relevant_coursework: Courses relevant to research
        experiences: Research, work, project and volunteer entries
        career_goals: Career direction if evident
    """

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    major: Optional[str] = None
    graduation_year: Optional[str] = None
    research_interests: tuple[str, ...] = ()
    skills: tuple[str, ...] = ()
    summary: Optional[str] = None

    minor: Optional[str] = None
    gpa: Optional[str] = None
    soft_skills: tuple[str, ...] = ()
    relevant_coursework: tuple[str, ...] = ()
    experiences: tuple[Experience, ...] = Field(default_factory=tuple)
    career_goals: Optional[str] = None

    @field_validator("research_interests", "soft_skills", "relevant_coursework")
    @classmethod
    def strip_entries(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(item.strip() for item in v if item.strip())

    @field_validator("skills")
    @classmethod
    def dedupe_skills(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return dedupe_casefold(v)

    def all_skills(self) -> tuple[str, ...]:
        """Technical skills plus skills demonstrated in experiences, de-duplicated."""
        demonstrated = tuple(s for exp in self.experiences for s in exp.skills)
        return dedupe_casefold(self.skills + demonstrated)
