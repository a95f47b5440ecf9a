"""
Unit tests for PipelineCoordinator.
"""

import json

import pytest

from research_match.coordinator import PipelineCoordinator
from research_match.exceptions import ConfigurationMissing, SummarizationFailure
from research_match.models.config import SystemParams
from research_match.utils.catalog_store import InMemoryCatalogStore

SUMMARY_JSON = {
    "oneLiner": "Decode neural recordings",
    "skills": ["Python"],
    "timeCommitment": "8 hours/week",
}


def _coordinator(store, client=None, params=None):
    return PipelineCoordinator(
        store,
        params=params or SystemParams(backfill={"inter_call_delay_ms": 0}),
        client=client,
        log_file=None,
    )


class TestPipelineCoordinator:
    """Test cases for PipelineCoordinator."""

    def test_loads_config_file(self, tmp_path):
        """Test that params come from config_path when not given."""
        # Arrange
        config = tmp_path / "system_params.json"
        config.write_text(json.dumps({"matching": {"default_top_n": 5}}))

        # Act
        coordinator = PipelineCoordinator(
            InMemoryCatalogStore(), config_path=config, log_file=None
        )

        # Assert
        assert coordinator.params.matching.default_top_n == 5

    def test_client_created_lazily(self, no_llm_env):
        """Test that construction works without credentials until the LLM is needed."""
        # Arrange
        coordinator = _coordinator(InMemoryCatalogStore())

        # Act & Assert
        with pytest.raises(ConfigurationMissing):
            _ = coordinator.client

    @pytest.mark.asyncio
    async def test_recommend_uses_recruiting_snapshot(
        self, no_llm_env, ml_student, scenario_catalog, record_factory
    ):
        """Test keyword recommendations from the store with no LLM configured."""
        # Arrange
        store = InMemoryCatalogStore(
            scenario_catalog + [record_factory("opp-old", "Neural Archive", status="Closed")]
        )
        coordinator = _coordinator(store)

        # Act
        results = await coordinator.recommend(ml_student, top_n=2)

        # Assert
        assert [r.opportunity_id for r in results] == ["opp-neural", "opp-plant"]

    @pytest.mark.asyncio
    async def test_summarize_record_persists(self, fake_llm, record_factory):
        # Arrange
        store = InMemoryCatalogStore([record_factory("a", "Neural Toolkit")])
        llm = fake_llm([SUMMARY_JSON])
        coordinator = _coordinator(store, client=llm)

        # Act
        summary = await coordinator.summarize_record("a")

        # Assert
        assert store.get("a").summary == summary
        assert llm.max_attempts == [3]

    @pytest.mark.asyncio
    async def test_failed_summary_writes_nothing(self, fake_llm, record_factory):
        # Arrange
        store = InMemoryCatalogStore([record_factory("a", "Neural Toolkit")])
        coordinator = _coordinator(store, client=fake_llm([{"skills": []}]))

        # Act & Assert
        with pytest.raises(SummarizationFailure):
            await coordinator.summarize_record("a")
        assert store.get("a").summary is None

    @pytest.mark.asyncio
    async def test_summarize_unknown_record(self, fake_llm):
        coordinator = _coordinator(InMemoryCatalogStore(), client=fake_llm())
        with pytest.raises(KeyError):
            await coordinator.summarize_record("ghost")

    @pytest.mark.asyncio
    async def test_run_backfill_majors(self, no_llm_env, record_factory):
        # Arrange
        store = InMemoryCatalogStore([record_factory("a", "Brain Mapping")])
        coordinator = _coordinator(store)

        # Act
        run = await coordinator.run_backfill("majors")

        # Assert
        assert run.outcome == "completed"
        assert store.get("a").relevant_majors == ("Neuroscience",)

    @pytest.mark.asyncio
    async def test_tag_disciplines(self, fake_llm):
        coordinator = _coordinator(
            InMemoryCatalogStore(),
            client=fake_llm([{"technical_disciplines": ["Neuroscience", "Astrology"]}]),
        )
        tags = await coordinator.tag_disciplines({"title": "Brain Mapping"})
        assert tags == ("Neuroscience",)

    def test_similar_opportunities(self, record_factory):
        # Arrange
        store = InMemoryCatalogStore(
            [
                record_factory("a", "A", disciplines=("Physics",)),
                record_factory("b", "B", age_days=1, disciplines=("Physics", "Chemistry")),
                record_factory("c", "C", disciplines=("Biology",)),
            ]
        )
        coordinator = _coordinator(store)

        # Act & Assert
        assert [r.id for r in coordinator.similar_opportunities("a")] == ["b"]
        with pytest.raises(KeyError):
            coordinator.similar_opportunities("ghost")
