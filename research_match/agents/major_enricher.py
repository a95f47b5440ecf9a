"""Keyword-based major enrichment.

Infers which majors a posting is relevant to without any LLM call, so the
"majors" backfill can run with no credentials configured.
"""

from typing import Optional

from research_match.models.opportunity import Eligibility, eligibility_text
from research_match.models.vocabulary import MAJORS, concepts_in_text


def infer_majors_from_keywords(
    title: str,
    description: Optional[str],
    eligibility: Eligibility = None,
) -> tuple[str, ...]:
    """Return every major whose keywords occur in the posting text.

    Matching is case-insensitive substring search over the title,
    description and eligibility text joined together.

    Args:
        title: Posting title
        description: Posting body (may be None)
        eligibility: "Who can join" lines, or one string

    Returns:
        Matched majors in vocabulary order (may be empty)
    """
    parts = [title or "", description or "", eligibility_text(eligibility)]
    matched = concepts_in_text(" ".join(p for p in parts if p))
    return tuple(major for major in MAJORS if major in matched)
