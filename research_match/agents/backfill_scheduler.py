"""Backfill Scheduler Agent.

Annotates catalog records that were never annotated: summaries and
discipline tags through the LLM, relevant majors through keyword matching.

A run selects at most `max_candidates` recruiting records whose target
attribute is still unset, processes them one at a time with a fixed delay
after each, and reports counts. A failing record is logged, counted and
skipped; it never aborts the run. Records are only written on success, so a
failed record is picked up again by the next run and a successful one never
is.
"""

import uuid
from typing import Optional

from research_match.agents.discipline_tagger import DisciplineTagger
from research_match.agents.major_enricher import infer_majors_from_keywords
from research_match.agents.opportunity_summarizer import (
    OpportunitySummarizer,
    build_posting_text,
)
from research_match.exceptions import PipelineError
from research_match.models.config import SystemParams
from research_match.models.match import BACKFILL_KINDS, BackfillKind, BackfillRun
from research_match.models.opportunity import OpportunityRecord
from research_match.utils.catalog_store import CatalogStore
from research_match.utils.llm_helpers import CompletionClient, build_client
from research_match.utils.logger import get_logger
from research_match.utils.progress_tracker import BackfillProgress
from research_match.utils.rate_limiter import FixedDelayThrottle, SleepFn

MIN_CANDIDATES = 1
MAX_CANDIDATES = 100

# Kinds that need an LLM credential
LLM_KINDS = ("summary", "disciplines")

# A batch run never retries a single call; the next run picks the record up again
BACKFILL_ATTEMPTS = 1


def clamp_max_candidates(value: object, default: int) -> int:
    """Coerce a requested candidate limit to an int in [1, 100]."""
    try:
        limit = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        limit = default
    return max(MIN_CANDIDATES, min(MAX_CANDIDATES, limit))


class BackfillScheduler:
    """Runs bounded, idempotent annotation backfills against a catalog store."""

    def __init__(
        self,
        store: CatalogStore,
        client: Optional[CompletionClient] = None,
        params: Optional[SystemParams] = None,
        sleep: Optional[SleepFn] = None,
    ):
        """
        Args:
            store: Catalog to read candidates from and write annotations to
            client: LLM client; built from environment credentials on first
                LLM run when not given
            params: Pipeline configuration (defaults plus env overrides when None)
            sleep: Replacement for asyncio.sleep (tests pass a recorder)
        """
        self.store = store
        self.client = client
        self.params = params or SystemParams.from_env()
        self.throttle = FixedDelayThrottle(
            self.params.backfill.inter_call_delay_ms, sleep=sleep
        )

    def _require_client(self) -> CompletionClient:
        if self.client is None:
            # Raises ConfigurationMissing when no key is set
            self.client = build_client(self.params)
        return self.client

    async def run(
        self,
        kind: BackfillKind,
        max_candidates: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ) -> BackfillRun:
        """
        Run one backfill.

        Args:
            kind: "summary", "disciplines" or "majors"
            max_candidates: Candidate limit, clamped to [1, 100] (config default when None)
            correlation_id: Optional correlation ID for logging

        Returns:
            BackfillRun with total, succeeded and failed ids

        Raises:
            ValueError: If kind is unknown
            ConfigurationMissing: If an LLM kind is requested and no credential is
                configured (raised before any record is selected)
        """
        if kind not in BACKFILL_KINDS:
            raise ValueError(f"Unknown backfill kind: {kind!r}")

        correlation_id = correlation_id or f"backfill-{kind}-{uuid.uuid4().hex[:8]}"
        logger = get_logger(
            correlation_id=correlation_id,
            phase="backfill",
            component="backfill_scheduler",
        )

        if kind in LLM_KINDS:
            self._require_client()

        limit = clamp_max_candidates(
            max_candidates if max_candidates is not None else self.params.backfill.max_candidates,
            default=self.params.backfill.max_candidates,
        )
        candidates = self.store.select_missing(kind, limit)
        run = BackfillRun(kind=kind, total=len(candidates))

        logger.info(
            "Backfill started",
            kind=kind,
            candidates=len(candidates),
            limit=limit,
            delay_ms=self.throttle.delay_ms,
        )
        if not candidates:
            logger.info("No records require processing", kind=kind)
            return run

        progress = BackfillProgress(enabled=self.params.backfill.show_progress)
        progress.start(kind, total=len(candidates))
        try:
            for index, record in enumerate(candidates, start=1):
                ok = await self._process(kind, record, correlation_id)
                if ok:
                    run.succeeded += 1
                else:
                    run.failed_ids.append(record.id)
                progress.advance(succeeded=ok)
                logger.debug(
                    "Candidate processed",
                    opportunity_id=record.id,
                    position=index,
                    succeeded=ok,
                )
                await self.throttle.wait()
        finally:
            progress.finish()

        log_method = logger.warning if run.failed else logger.info
        log_method(
            "Backfill complete",
            kind=kind,
            total=run.total,
            succeeded=run.succeeded,
            failed=run.failed,
            failed_ids=run.failed_ids,
        )
        return run

    async def _process(
        self, kind: BackfillKind, record: OpportunityRecord, correlation_id: str
    ) -> bool:
        logger = get_logger(
            correlation_id=correlation_id,
            phase="backfill",
            component="backfill_scheduler",
        )
        item_id = f"{correlation_id}:{record.id}"

        try:
            if kind == "summary":
                text = build_posting_text(
                    record.title,
                    record.description,
                    record.eligibility,
                    char_budget=self.params.extraction.posting_char_budget,
                )
                summarizer = OpportunitySummarizer(
                    self._require_client(),
                    posting_char_budget=self.params.extraction.posting_char_budget,
                    max_attempts=BACKFILL_ATTEMPTS,
                )
                summary = await summarizer.summarize(text, correlation_id=item_id)
            elif kind == "disciplines":
                tagger = DisciplineTagger(
                    self._require_client(),
                    posting_char_budget=self.params.extraction.posting_char_budget,
                    max_attempts=BACKFILL_ATTEMPTS,
                )
                tags = await tagger.infer(record.posting_fields(), correlation_id=item_id)
            else:
                majors = infer_majors_from_keywords(
                    record.title, record.description, record.eligibility
                )
        except PipelineError as e:
            logger.warning(
                "Candidate failed, skipping",
                opportunity_id=record.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        except Exception as e:
            # One bad record never aborts the run
            logger.exception(
                "Candidate raised unexpectedly, skipping",
                opportunity_id=record.id,
                error_type=type(e).__name__,
            )
            return False

        try:
            if kind == "summary":
                self.store.set_summary(record.id, summary)
            elif kind == "disciplines":
                self.store.set_disciplines(record.id, tags)
            else:
                self.store.set_majors(record.id, majors)
        except Exception as e:
            logger.exception(
                "Failed to write annotation, skipping",
                opportunity_id=record.id,
                error_type=type(e).__name__,
            )
            return False

        return True


async def run_backfill(
    kind: BackfillKind,
    store: CatalogStore,
    client: Optional[CompletionClient] = None,
    max_candidates: Optional[int] = None,
    params: Optional[SystemParams] = None,
    sleep: Optional[SleepFn] = None,
) -> BackfillRun:
    """Module-level convenience wrapper around BackfillScheduler.run."""
    scheduler = BackfillScheduler(store, client=client, params=params, sleep=sleep)
    return await scheduler.run(kind, max_candidates=max_candidates)
