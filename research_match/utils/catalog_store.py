"""
Catalog Store Module

Persistence seam between the pipeline and the opportunity catalog. The
pipeline only needs to select un-annotated records, write annotations back
one at a time, and read a snapshot of recruiting records for matching.

Two implementations are provided:
    - InMemoryCatalogStore: dict-backed, used by tests and embedding callers
    - JsonlCatalogStore: one JSON record per line, rewritten atomically on
      every write so a crash never leaves a half-written catalog

Example Usage:
    from research_match.utils.catalog_store import JsonlCatalogStore

    store = JsonlCatalogStore("data/opportunities.jsonl")
    pending = store.select_missing("disciplines", limit=100)
    store.set_disciplines(pending[0].id, ("Computer Science",))
"""

import os
from pathlib import Path
from typing import Iterable, Optional, Protocol

import jsonlines
import structlog

from research_match.models.match import BackfillKind
from research_match.models.opportunity import OpportunityRecord, OpportunitySummary

logger = structlog.get_logger(__name__)


class CatalogStore(Protocol):
    """Operations the pipeline performs against the catalog."""

    def select_missing(self, kind: BackfillKind, limit: int) -> list[OpportunityRecord]: ...

    def set_summary(self, opportunity_id: str, summary: OpportunitySummary) -> None: ...

    def set_disciplines(self, opportunity_id: str, disciplines: tuple[str, ...]) -> None: ...

    def set_majors(self, opportunity_id: str, majors: tuple[str, ...]) -> None: ...

    def recruiting_snapshot(self) -> list[OpportunityRecord]: ...

    def get(self, opportunity_id: str) -> Optional[OpportunityRecord]: ...

    def upsert(self, record: OpportunityRecord) -> None: ...


def needs_annotation(record: OpportunityRecord, kind: BackfillKind) -> bool:
    """True when a record is eligible for a backfill of the given kind.

    Only recruiting records whose target attribute was never set qualify.
    Summaries additionally need a non-empty description to work from.
    """
    if not record.is_recruiting():
        return False
    if kind == "summary":
        return record.summary is None and bool((record.description or "").strip())
    if kind == "disciplines":
        return record.disciplines is None
    if kind == "majors":
        return record.relevant_majors is None
    raise ValueError(f"Unknown backfill kind: {kind}")


class InMemoryCatalogStore:
    """Dict-backed catalog. Subclasses persist after each write via _persist()."""

    def __init__(self, records: Iterable[OpportunityRecord] = ()):
        self._records: dict[str, OpportunityRecord] = {}
        for record in records:
            self._records[record.id] = record

    def __len__(self) -> int:
        return len(self._records)

    def select_missing(self, kind: BackfillKind, limit: int) -> list[OpportunityRecord]:
        """
        Select records still missing the attribute for `kind`, oldest first.

        Args:
            kind: Backfill kind ("summary", "disciplines", "majors")
            limit: Maximum number of records returned

        Returns:
            Copies of the selected records
        """
        candidates = [r for r in self._records.values() if needs_annotation(r, kind)]
        candidates.sort(key=lambda r: (r.created_at, r.id))
        return [r.model_copy(deep=True) for r in candidates[: max(limit, 0)]]

    def set_summary(self, opportunity_id: str, summary: OpportunitySummary) -> None:
        self._update(opportunity_id, summary=summary)

    def set_disciplines(self, opportunity_id: str, disciplines: tuple[str, ...]) -> None:
        self._update(opportunity_id, disciplines=tuple(disciplines))

    def set_majors(self, opportunity_id: str, majors: tuple[str, ...]) -> None:
        self._update(opportunity_id, relevant_majors=tuple(majors))

    def recruiting_snapshot(self) -> list[OpportunityRecord]:
        """Recruiting records, newest first (ties by id)."""
        recruiting = [r for r in self._records.values() if r.is_recruiting()]
        recruiting.sort(key=lambda r: r.id)
        recruiting.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in recruiting]

    def get(self, opportunity_id: str) -> Optional[OpportunityRecord]:
        record = self._records.get(opportunity_id)
        return record.model_copy(deep=True) if record is not None else None

    def upsert(self, record: OpportunityRecord) -> None:
        self._records[record.id] = record.model_copy(deep=True)
        self._persist()

    def _update(self, opportunity_id: str, **fields: object) -> None:
        if opportunity_id not in self._records:
            raise KeyError(f"Unknown opportunity: {opportunity_id}")

        previous = self._records[opportunity_id]
        self._records[opportunity_id] = previous.model_copy(update=fields)
        try:
            self._persist()
        except OSError:
            self._records[opportunity_id] = previous
            raise
        logger.debug(
            "catalog_record_updated",
            opportunity_id=opportunity_id,
            fields=sorted(fields),
        )

    def _persist(self) -> None:
        """Hook for durable subclasses."""
        return None


class JsonlCatalogStore(InMemoryCatalogStore):
    """Catalog kept in a JSON Lines file, one OpportunityRecord per line."""

    def __init__(self, path: str | Path):
        """
        Load the catalog file if it exists.

        Args:
            path: JSONL file path (created on first write)

        Raises:
            IOError: If the file exists but cannot be parsed
        """
        self.path = Path(path)
        super().__init__(self._load())
        logger.info("catalog_loaded", path=str(self.path), records=len(self))

    def _load(self) -> list[OpportunityRecord]:
        if not self.path.exists():
            return []

        records: list[OpportunityRecord] = []
        try:
            with jsonlines.open(self.path) as reader:
                for line in reader:
                    records.append(OpportunityRecord.model_validate(line))
        except jsonlines.InvalidLineError as e:
            raise IOError(f"Corrupted catalog file {self.path}: {e}") from e
        return records

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with jsonlines.open(tmp_path, mode="w") as writer:
                for record in self._records.values():
                    writer.write(record.model_dump(mode="json"))
            os.replace(tmp_path, self.path)
        except Exception as e:
            raise IOError(f"Failed to write catalog {self.path}: {e}") from e
