"""
Controlled Vocabularies

Closed lists used to keep LLM and keyword output consistent so downstream
filter labels stay stable:

- TECHNICAL_DISCIPLINES: discipline tags assigned by the discipline tagger
- MAJORS: majors inferred by keyword enrichment
- KEYWORD_MAJOR_MAPPING: lowercase keyword -> major, also used as the concept
  map for keyword relevance scoring
"""

import re
from typing import Iterable


TECHNICAL_DISCIPLINES: tuple[str, ...] = (
    "Aerospace Engineering",
    "Agriculture",
    "Animal Science",
    "Behavioral Science",
    "Biomedical Engineering",
    "Biology",
    "Chemical Engineering",
    "Chemistry",
    "Civil Engineering",
    "Computer Science",
    "Economics",
    "Electrical Engineering",
    "Environmental Science",
    "Health Sciences",
    "Mathematics",
    "Mechanical Engineering",
    "Medicine",
    "Neuroscience",
    "Physics",
    "Psychology",
    "Statistics",
    "Veterinary Science",
)

MAX_DISCIPLINE_TAGS = 5

_CANONICAL_DISCIPLINES = {d.casefold(): d for d in TECHNICAL_DISCIPLINES}


MAJORS: tuple[str, ...] = (
    "Agriculture",
    "Biology",
    "Biomedical Sciences",
    "Chemistry",
    "Computer Science",
    "Economics",
    "Engineering",
    "Environmental Science",
    "Health Sciences",
    "Mathematics",
    "Neuroscience",
    "Physics",
    "Psychology",
    "Statistics",
    "Veterinary Medicine",
)

KEYWORD_MAJOR_MAPPING: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Agriculture", ("agriculture", "crop", "sorghum", "plant", "soil", "livestock", "rural", "agri")),
    ("Biology", ("biology", "biological", "genetics", "molecular", "ecology", "evolution", "organism")),
    ("Biomedical Sciences", ("biomedical", "biomedicine", "clinical", "pathogen", "disease mechanism")),
    ("Chemistry", ("chemistry", "chemical", "synthesis", "compound", "biochemistry", "organic chemistry")),
    ("Computer Science", ("machine learning", "machine-learning", "software", "algorithm", "data science", "computing", "artificial intelligence", "modeling", "computational")),
    ("Economics", ("economics", "economic", "policy", "rural development")),
    ("Engineering", ("engineering", "engineer", "mechanical", "electrical", "civil", "aerospace", "biomedical engineering")),
    ("Environmental Science", ("environmental", "climate", "sustainability", "wildfire", "resilience", "conservation", "natural resource")),
    ("Health Sciences", ("health", "pediatric", "cardiovascular", "clinical", "patient", "medical", "public health")),
    ("Mathematics", ("mathematics", "math", "mathematical", "optimization", "statistical model")),
    ("Neuroscience", ("neuroscience", "neural", "brain", "cognitive", "neuro")),
    ("Physics", ("physics", "physical", "quantum", "optics", "matter")),
    ("Psychology", ("psychology", "psychological", "behavior", "behavioral", "mental health", "cognition")),
    ("Statistics", ("statistics", "statistical", "data analysis", "regression", "probability")),
    ("Veterinary Medicine", ("veterinary", "animal health", "vet medicine")),
)

_WHOLE_WORD_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (major, re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")\b"))
    for major, keywords in KEYWORD_MAJOR_MAPPING
)


def canonical_discipline(tag: object) -> str | None:
    """Map a raw tag to its vocabulary spelling, or None if it is not a member."""
    if not isinstance(tag, str):
        return None
    return _CANONICAL_DISCIPLINES.get(tag.strip().casefold())


def filter_to_vocabulary(raw_tags: Iterable[object]) -> tuple[str, ...]:
    """Keep only vocabulary members, in input order, de-duplicated, capped at five.

    Args:
        raw_tags: Tags as returned by the model (any JSON value types)

    Returns:
        Tuple of canonical discipline names. Anything outside the vocabulary
        is dropped silently.
    """
    kept: list[str] = []
    for raw in raw_tags:
        tag = canonical_discipline(raw)
        if tag is not None and tag not in kept:
            kept.append(tag)
        if len(kept) == MAX_DISCIPLINE_TAGS:
            break
    return tuple(kept)


def concepts_in_text(text: str, whole_words: bool = False) -> set[str]:
    """Return every major whose keywords appear in the text.

    Args:
        text: Text to search (case-insensitive)
        whole_words: Match keywords only on word boundaries, so "implant"
            does not count as "plant". The default substring search is what
            majors enrichment uses.

    Returns:
        Set of majors from MAJORS
    """
    lowered = text.lower()
    if whole_words:
        return {
            major for major, pattern in _WHOLE_WORD_PATTERNS if pattern.search(lowered)
        }
    return {
        major
        for major, keywords in KEYWORD_MAJOR_MAPPING
        if any(keyword in lowered for keyword in keywords)
    }
