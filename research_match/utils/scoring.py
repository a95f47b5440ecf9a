"""Relevance score validation for LLM judgements."""

from typing import Any

from research_match.utils.logger import get_logger


def validate_score(
    raw_score: Any, opportunity_id: str, correlation_id: str
) -> tuple[float, list[str]]:
    """Validate and normalize a 0-100 relevance score from an LLM response.

    Handles int, float and numeric strings. Out-of-range values are clamped.

    Args:
        raw_score: matchScore value from the LLM (any type)
        opportunity_id: Opportunity id for logging
        correlation_id: Correlation ID for logging

    Returns:
        Tuple of (score, flags). Score is in [0, 100] rounded to one decimal.

    Raises:
        ValueError: If the value is missing, boolean or not numeric. Callers
            fall back to the keyword score.
    """
    logger = get_logger(
        correlation_id=correlation_id, phase="matching", component="scoring"
    )
    flags: list[str] = []

    # bool is a subclass of int
    if raw_score is None or isinstance(raw_score, bool):
        raise ValueError(f"Invalid score value: {raw_score!r}")

    if isinstance(raw_score, (int, float)):
        score = float(raw_score)
    elif isinstance(raw_score, str):
        score = float(raw_score.strip().rstrip("%"))
    else:
        raise ValueError(f"Unsupported score type: {type(raw_score).__name__}")

    if score != score:  # NaN
        raise ValueError("Score is NaN")

    if score < 0:
        logger.warning(
            "Negative score returned, clamping to 0",
            score=score,
            opportunity_id=opportunity_id,
        )
        flags.append("score_out_of_range")
        score = 0.0
    elif score > 100:
        logger.warning(
            "Score exceeds 100, clamping to 100",
            score=score,
            opportunity_id=opportunity_id,
        )
        flags.append("score_out_of_range")
        score = 100.0

    return round(score, 1), flags
