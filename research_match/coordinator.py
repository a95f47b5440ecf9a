"""
Pipeline Coordinator Module

Facade that wires configuration, credentials, the catalog store and the
agents together, and exposes the pipeline operations to callers (web
handlers, scheduled jobs, scripts).
"""

import uuid
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from research_match.agents.backfill_scheduler import BackfillScheduler
from research_match.agents.discipline_tagger import DisciplineTags, tag_disciplines
from research_match.agents.matching_engine import (
    CatalogEntry,
    MatchingEngine,
    find_similar_opportunities,
)
from research_match.agents.opportunity_summarizer import (
    OpportunitySummarizer,
    build_posting_text,
)
from research_match.agents.profile_extractor import ProfileExtractor
from research_match.models.config import SystemParams
from research_match.models.match import BackfillKind, BackfillRun, MatchResult
from research_match.models.opportunity import OpportunityRecord, OpportunitySummary
from research_match.models.profile import StudentProfile
from research_match.utils.catalog_store import CatalogStore
from research_match.utils.llm_helpers import CompletionClient, build_client
from research_match.utils.logger import configure_logging, get_logger
from research_match.utils.rate_limiter import SleepFn


class PipelineCoordinator:
    """
    Entry point for the summarization and matching pipeline.

    The LLM client is created on first use, so operations that never call the
    LLM (keyword matching, majors backfill, similar opportunities) work
    without any credential configured.
    """

    def __init__(
        self,
        store: CatalogStore,
        params: Optional[SystemParams] = None,
        config_path: Optional[str | Path] = None,
        client: Optional[CompletionClient] = None,
        sleep: Optional[SleepFn] = None,
        correlation_id: Optional[str] = None,
        log_file: Optional[str] = "logs/research-match.log",
    ):
        """
        Initialize coordinator.

        Args:
            store: Catalog store
            params: Configuration; loaded from config_path (or defaults) when None
            config_path: Path to system_params.json
            client: LLM client; built from environment credentials when None
            sleep: Replacement for asyncio.sleep used between backfill calls
            correlation_id: Correlation ID for logging (auto-generated if None)
            log_file: Log file path, or None for stdout only
        """
        self.params = params or SystemParams.load_or_default(config_path)
        configure_logging(log_file=log_file, log_level=self.params.log_level)

        self.store = store
        self._client = client
        self._sleep = sleep
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.logger = get_logger(
            correlation_id=self.correlation_id,
            phase="coordinator",
            component="pipeline_coordinator",
        )
        self.logger.info(
            "Pipeline coordinator initialized",
            scorer=self.params.matching.scorer,
            backfill=self.params.backfill.model_dump(),
        )

    @property
    def client(self) -> CompletionClient:
        """LLM client, created on first access.

        Raises:
            ConfigurationMissing: If no LLM credential is configured
        """
        if self._client is None:
            self._client = build_client(self.params)
        return self._client

    async def extract_profile(self, resume_text: str) -> StudentProfile:
        extractor = ProfileExtractor(
            self.client,
            resume_char_budget=self.params.extraction.resume_char_budget,
            max_attempts=self.params.llm.max_attempts,
        )
        return await extractor.extract(resume_text, correlation_id=self.correlation_id)

    async def summarize_posting(self, raw_text: str) -> OpportunitySummary:
        summarizer = OpportunitySummarizer(
            self.client,
            posting_char_budget=self.params.extraction.posting_char_budget,
            max_attempts=self.params.llm.max_attempts,
        )
        return await summarizer.summarize(raw_text, correlation_id=self.correlation_id)

    async def summarize_record(self, opportunity_id: str) -> OpportunitySummary:
        """Summarize one catalog record on demand and persist the result.

        Raises:
            KeyError: If the record does not exist
            SummarizationFailure: If summarization fails (nothing is written)
        """
        record = self.store.get(opportunity_id)
        if record is None:
            raise KeyError(f"Unknown opportunity: {opportunity_id}")

        summary = await self.summarize_posting(
            build_posting_text(
                record.title,
                record.description,
                record.eligibility,
                char_budget=self.params.extraction.posting_char_budget,
            )
        )
        self.store.set_summary(opportunity_id, summary)
        self.logger.info("Record summarized on demand", opportunity_id=opportunity_id)
        return summary

    async def tag_disciplines(self, posting: Mapping[str, Any]) -> DisciplineTags:
        return await tag_disciplines(
            posting, self.client, correlation_id=self.correlation_id
        )

    async def run_backfill(
        self, kind: BackfillKind, max_candidates: Optional[int] = None
    ) -> BackfillRun:
        scheduler = BackfillScheduler(
            self.store, client=self._client, params=self.params, sleep=self._sleep
        )
        run = await scheduler.run(kind, max_candidates=max_candidates)
        if scheduler.client is not None:
            self._client = scheduler.client
        return run

    async def rank_matches(
        self,
        profile: StudentProfile,
        catalog: Sequence[CatalogEntry],
        top_n: object = None,
    ) -> list[MatchResult]:
        engine = MatchingEngine(
            scorer=self.params.matching.scorer,
            client=self._client,
            params=self.params,
        )
        return await engine.rank(
            profile, catalog, top_n=top_n, correlation_id=self.correlation_id
        )

    async def recommend(
        self, profile: StudentProfile, top_n: object = None
    ) -> list[MatchResult]:
        """Rank the current recruiting catalog for a profile."""
        snapshot = self.store.recruiting_snapshot()
        return await self.rank_matches(profile, snapshot, top_n=top_n)

    def similar_opportunities(
        self, opportunity_id: str, limit: int = 3
    ) -> list[OpportunityRecord]:
        """Other recruiting records sharing majors or disciplines, newest first.

        Raises:
            KeyError: If the record does not exist
        """
        target = self.store.get(opportunity_id)
        if target is None:
            raise KeyError(f"Unknown opportunity: {opportunity_id}")
        return find_similar_opportunities(
            target, self.store.recruiting_snapshot(), limit=limit
        )
