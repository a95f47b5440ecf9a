"""
Unit tests for the Backfill Scheduler agent.
"""

import pytest

from research_match.agents.backfill_scheduler import (
    BackfillScheduler,
    clamp_max_candidates,
    run_backfill,
)
from research_match.exceptions import ConfigurationMissing
from research_match.models.config import SystemParams
from research_match.utils.catalog_store import InMemoryCatalogStore

TAGS_JSON = {"technical_disciplines": ["Biology"]}

SUMMARY_JSON = {
    "oneLiner": "Study soil microbes",
    "skills": ["PCR"],
    "timeCommitment": "Flexible",
}


@pytest.fixture
def ten_records(record_factory):
    """Ten recruiting postings; "Posting 0" is the oldest."""
    return [
        record_factory(f"c{i}", f"Posting {i}", description=f"Description {i}", age_days=10 - i)
        for i in range(10)
    ]


class TestClampMaxCandidates:
    """Test cases for clamp_max_candidates."""

    def test_clamps_to_range(self):
        assert clamp_max_candidates(0, default=100) == 1
        assert clamp_max_candidates(500, default=100) == 100
        assert clamp_max_candidates(25, default=100) == 25

    def test_invalid_uses_default(self):
        assert clamp_max_candidates("many", default=40) == 40


class TestBackfillScheduler:
    """Test cases for BackfillScheduler.run."""

    @pytest.mark.asyncio
    async def test_disciplines_backfill_is_idempotent(self, fake_llm, fast_params, ten_records):
        """Test that a second run finds nothing left to do."""
        # Arrange
        store = InMemoryCatalogStore(ten_records)
        llm = fake_llm(handler=lambda request: TAGS_JSON)
        scheduler = BackfillScheduler(store, client=llm, params=fast_params)

        # Act
        first = await scheduler.run("disciplines")
        second = await scheduler.run("disciplines")

        # Assert
        assert first.total == 10
        assert first.succeeded == 10
        assert first.outcome == "completed"
        assert second.total == 0
        assert second.outcome == "no_candidates"
        assert llm.calls == 10
        assert store.get("c0").disciplines == ("Biology",)

    @pytest.mark.asyncio
    async def test_partial_failure_continues(self, fake_llm, fast_params, ten_records):
        """Test that one bad response is counted and the rest are written."""
        # Arrange
        store = InMemoryCatalogStore(ten_records)

        def handler(request):
            if request.user_content.startswith("Posting 3"):
                return "Sorry, I cannot help with that."
            return TAGS_JSON

        llm = fake_llm(handler=handler)

        # Act
        run = await run_backfill("disciplines", store, client=llm, params=fast_params)

        # Assert
        assert run.total == 10
        assert run.succeeded == 9
        assert run.failed == 1
        assert run.failed_ids == ["c3"]
        assert run.outcome == "partial_failure"
        assert store.get("c3").disciplines is None
        assert [r.id for r in store.select_missing("disciplines", 10)] == ["c3"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failure", ["client", "store"])
    async def test_unexpected_exception_does_not_abort_run(
        self, failure, fake_llm, ten_records, mocker
    ):
        """Test that a non-pipeline error on the third candidate is counted and skipped."""
        # Arrange
        delays: list[float] = []

        async def record_sleep(seconds: float) -> None:
            delays.append(seconds)

        store = InMemoryCatalogStore(ten_records)

        def handler(request):
            if failure == "client" and request.user_content.startswith("Posting 2"):
                return RuntimeError("client blew up")
            return TAGS_JSON

        if failure == "store":
            original = store.set_disciplines

            def flaky_write(opportunity_id, tags):
                if opportunity_id == "c2":
                    raise ValueError("bad row")
                original(opportunity_id, tags)

            mocker.patch.object(store, "set_disciplines", side_effect=flaky_write)

        llm = fake_llm(handler=handler)

        # Act
        run = await run_backfill(
            "disciplines", store, client=llm, params=SystemParams(), sleep=record_sleep
        )

        # Assert
        assert run.total == 10
        assert run.succeeded == 9
        assert run.failed_ids == ["c2"]
        assert llm.calls == 10
        assert delays == [0.4] * 10
        assert store.get("c9").disciplines == ("Biology",)
        assert store.get("c2").disciplines is None

    @pytest.mark.asyncio
    async def test_delay_after_every_candidate(self, fake_llm, ten_records):
        """Test that the throttle sleeps after each candidate, failures included."""
        # Arrange
        delays: list[float] = []

        async def record_sleep(seconds: float) -> None:
            delays.append(seconds)

        llm = fake_llm(
            handler=lambda request: "bad" if "Posting 5" in request.user_content else TAGS_JSON
        )
        scheduler = BackfillScheduler(
            InMemoryCatalogStore(ten_records),
            client=llm,
            params=SystemParams(),
            sleep=record_sleep,
        )

        # Act
        await scheduler.run("disciplines")

        # Assert
        assert delays == [0.4] * 10

    @pytest.mark.asyncio
    async def test_single_attempt_per_call(self, fake_llm, fast_params, ten_records):
        """Test that backfill calls never request retries."""
        # Arrange
        llm = fake_llm(handler=lambda request: TAGS_JSON)

        # Act
        await run_backfill(
            "disciplines", InMemoryCatalogStore(ten_records), client=llm, params=fast_params
        )

        # Assert
        assert llm.max_attempts == [1] * 10

    @pytest.mark.asyncio
    async def test_missing_credentials_fail_before_selection(
        self, no_llm_env, fast_params, ten_records, mocker
    ):
        """Test that no record is read or written without an LLM credential."""
        # Arrange
        store = InMemoryCatalogStore(ten_records)
        select_spy = mocker.spy(store, "select_missing")

        # Act & Assert
        with pytest.raises(ConfigurationMissing):
            await run_backfill("summary", store, params=fast_params)
        select_spy.assert_not_called()
        assert all(r.summary is None for r in store.recruiting_snapshot())

    @pytest.mark.asyncio
    async def test_majors_needs_no_credentials(self, no_llm_env, fast_params, record_factory):
        """Test that keyword enrichment runs with no key configured."""
        # Arrange
        store = InMemoryCatalogStore(
            [
                record_factory("a", "Soil Health Study", description="Crop yields."),
                record_factory("b", "Library Assistant", description="Shelve books."),
            ]
        )

        # Act
        run = await run_backfill("majors", store, params=fast_params)

        # Assert
        assert run.succeeded == 2
        assert store.get("a").relevant_majors == ("Agriculture", "Health Sciences")
        assert store.get("b").relevant_majors == ()
        assert store.select_missing("majors", 10) == []

    @pytest.mark.asyncio
    async def test_summary_backfill(self, fake_llm, fast_params, record_factory):
        """Test that summaries are written and blank postings are not selected."""
        # Arrange
        store = InMemoryCatalogStore(
            [
                record_factory("a", "Soil Microbes", description="Sequence soil samples."),
                record_factory("blank", "Untitled", description=" "),
            ]
        )
        llm = fake_llm([SUMMARY_JSON])

        # Act
        run = await run_backfill("summary", store, client=llm, params=fast_params)

        # Assert
        assert run.total == 1
        assert store.get("a").summary.one_liner == "Study soil microbes"
        assert store.get("blank").summary is None
        assert llm.requests[0].user_content == "Soil Microbes\n\nSequence soil samples."

    @pytest.mark.asyncio
    async def test_max_candidates_limits_selection(self, fake_llm, fast_params, ten_records):
        # Arrange
        store = InMemoryCatalogStore(ten_records)
        llm = fake_llm(handler=lambda request: TAGS_JSON)

        # Act
        run = await run_backfill(
            "disciplines", store, client=llm, max_candidates=0, params=fast_params
        )

        # Assert
        assert run.total == 1
        assert store.get("c0").disciplines == ("Biology",)

    @pytest.mark.asyncio
    async def test_write_failure_counted(self, fake_llm, fast_params, ten_records, mocker):
        """Test that a failing store write is counted as a failure."""
        # Arrange
        store = InMemoryCatalogStore(ten_records[:2])
        mocker.patch.object(store, "set_disciplines", side_effect=OSError("read-only"))
        llm = fake_llm(handler=lambda request: TAGS_JSON)

        # Act
        run = await run_backfill("disciplines", store, client=llm, params=fast_params)

        # Assert
        assert run.succeeded == 0
        assert run.failed_ids == ["c0", "c1"]

    @pytest.mark.asyncio
    async def test_unknown_kind(self, fake_llm, fast_params):
        scheduler = BackfillScheduler(InMemoryCatalogStore(), client=fake_llm(), params=fast_params)
        with pytest.raises(ValueError):
            await scheduler.run("embeddings")
