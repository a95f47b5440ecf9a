"""Discipline Tagger Agent.

Assigns up to five technical discipline tags to a posting, chosen by the LLM
from the closed TECHNICAL_DISCIPLINES vocabulary. Anything the model returns
outside the vocabulary is dropped.
"""

import uuid
from typing import Any, Mapping, Optional

from research_match.exceptions import PipelineError, SchemaViolation
from research_match.models.vocabulary import (
    MAX_DISCIPLINE_TAGS,
    TECHNICAL_DISCIPLINES,
    filter_to_vocabulary,
)
from research_match.agents.opportunity_summarizer import (
    DEFAULT_POSTING_CHAR_BUDGET,
    build_posting_text,
)
from research_match.utils.llm_helpers import (
    CompletionClient,
    LLMRequest,
    extract_json_object,
)
from research_match.utils.logger import get_logger
from research_match.utils.prompt_loader import render_prompt

DisciplineTags = tuple[str, ...]

TAGGING_TEMPERATURE = 0.2
TAGGING_MAX_TOKENS = 300
RESPONSE_KEY = "technical_disciplines"


class DisciplineTagger:
    """Infers discipline tags for postings."""

    def __init__(
        self,
        client: CompletionClient,
        posting_char_budget: int = DEFAULT_POSTING_CHAR_BUDGET,
        max_attempts: Optional[int] = None,
    ):
        self.client = client
        self.posting_char_budget = posting_char_budget
        self.max_attempts = max_attempts

    async def infer(
        self, posting: Mapping[str, Any], correlation_id: Optional[str] = None
    ) -> DisciplineTags:
        """
        Ask the model for discipline tags and filter them to the vocabulary.

        Args:
            posting: Mapping with "title", "description" and "eligibility"
            correlation_id: Optional correlation ID for logging

        Returns:
            0-5 canonical discipline names in model order

        Raises:
            ServiceUnavailable: If the LLM call fails
            SchemaViolation: If the response is not an object with a
                technical_disciplines array
        """
        correlation_id = correlation_id or f"tag-{uuid.uuid4().hex[:8]}"
        logger = get_logger(
            correlation_id=correlation_id,
            phase="tagging",
            component="discipline_tagger",
        )

        text = build_posting_text(
            posting.get("title") or "",
            posting.get("description"),
            posting.get("eligibility"),
            char_budget=self.posting_char_budget,
        )
        if not text:
            logger.warning("Posting has no text, nothing to tag")
            return ()

        request = LLMRequest(
            system_instruction=render_prompt(
                "opportunity/disciplines.j2",
                correlation_id=correlation_id,
                disciplines=TECHNICAL_DISCIPLINES,
                max_tags=MAX_DISCIPLINE_TAGS,
            ),
            user_content=text,
            json_mode=True,
            temperature=TAGGING_TEMPERATURE,
            max_output_tokens=TAGGING_MAX_TOKENS,
        )

        response = await self.client.complete(
            request, max_attempts=self.max_attempts, correlation_id=correlation_id
        )
        payload = extract_json_object(response)

        raw_tags = payload.get(RESPONSE_KEY)
        if not isinstance(raw_tags, list):
            raise SchemaViolation(
                f"Response has no '{RESPONSE_KEY}' array",
                payload_preview=response[:200],
            )

        tags = filter_to_vocabulary(raw_tags)
        dropped = len(raw_tags) - len(tags)
        if dropped:
            logger.warning(
                "Dropped tags outside vocabulary or over limit",
                returned=len(raw_tags),
                kept=len(tags),
            )
        logger.debug("Disciplines inferred", tags=list(tags))
        return tags


async def tag_disciplines(
    posting: Mapping[str, Any],
    client: CompletionClient,
    correlation_id: Optional[str] = None,
) -> DisciplineTags:
    """Tag a posting; degrades to an empty tuple on any pipeline failure.

    Args:
        posting: Mapping with "title", "description" and "eligibility"
        client: LLM client
        correlation_id: Optional correlation ID for logging

    Returns:
        0-5 canonical discipline names
    """
    tagger = DisciplineTagger(client)
    try:
        return await tagger.infer(posting, correlation_id=correlation_id)
    except PipelineError as e:
        get_logger(
            correlation_id=correlation_id,
            phase="tagging",
            component="discipline_tagger",
        ).warning(
            "Discipline tagging failed, returning no tags",
            error=str(e),
            error_type=type(e).__name__,
        )
        return ()
