# WorkLog/aggregation/engine.py
"""
Activity Aggregation Engine.

Two entry points share one merge decision:

* `normalize_ledger` (offline): cluster a whole ledger and consolidate
  each multi-entry cluster into one entry.
* `fold_observation` (online): merge one new observation into the ledger.

The engine never touches storage itself. It returns a `LedgerUpdate`
(rows to upsert, ids to retire) for the caller to apply. Callers must
serialize runs against the same ledger.
"""

import logging
from typing import List, Optional

from WorkLog.aggregation.cache import ComparisonCache
from WorkLog.aggregation.clustering import find_related_entries
from WorkLog.aggregation.consolidation import merge_entry_group
from WorkLog.aggregation.decision import MergeDecider
from WorkLog.aggregation.incremental import EntryIdGenerator, process_screen_activity
from WorkLog.aggregation.oracle import GeminiSimilarityOracle, SimilarityOracle
from WorkLog.aggregation.prefilter import TextPrefilter
from WorkLog.config import Settings
from WorkLog.llm.gemini import GeminiClient
from WorkLog.models import LedgerUpdate, ScreenAnalysis, WIPEntry

log = logging.getLogger(__name__)


class AggregationEngine:
    """Orchestrates batch normalization and incremental merging."""

    def __init__(self, settings: Settings, oracle: SimilarityOracle, cache: Optional[ComparisonCache] = None):
        self.settings = settings
        self.oracle = oracle
        self.cache = cache
        prefilter = None
        if settings.prefilter_min_similarity > 0:
            prefilter = TextPrefilter(settings.prefilter_min_similarity, settings.prefilter_n_features)
        self.decider = MergeDecider(oracle, settings, prefilter=prefilter)
        self.ids = EntryIdGenerator()

    async def cluster(self, entries: List[WIPEntry]) -> List[List[WIPEntry]]:
        return await find_related_entries(entries, self.decider)

    async def normalize_ledger(self, entries: List[WIPEntry]) -> LedgerUpdate:
        """
        Clusters the ledger and consolidates every cluster of two or more.

        The consolidated entry keeps the id of the cluster's most recent
        entry; the other members are retired. Singletons are left alone.
        """
        if not entries:
            return LedgerUpdate()

        clusters = await self.cluster(entries)
        update = LedgerUpdate()
        for group in clusters:
            if len(group) < 2:
                continue
            merged = await merge_entry_group(group, self.oracle)
            update.upserts.append(merged)
            update.retired_ids.extend(e.id for e in group if e.id != merged.id)

        log.info(
            f"Normalized {len(entries)} entries: {len(update.upserts)} consolidated, "
            f"{len(update.retired_ids)} retired, {len(entries) - len(update.retired_ids)} remain."
        )
        self._log_cache_stats()
        return update

    async def fold_observation(self, analysis: ScreenAnalysis, ledger: List[WIPEntry]) -> LedgerUpdate:
        update = await process_screen_activity(analysis, ledger, self.decider, self.settings, self.ids)
        self._log_cache_stats()
        return update

    def _log_cache_stats(self) -> None:
        if self.cache is not None:
            log.debug(f"Comparison cache: {len(self.cache)} entries, {self.cache.hits} hits, {self.cache.misses} misses")


def build_engine(settings: Optional[Settings] = None) -> AggregationEngine:
    """Wires the engine to the Gemini-backed oracle."""
    settings = settings or Settings()
    cache = ComparisonCache(max_size=settings.comparison_cache_size)
    oracle = GeminiSimilarityOracle(GeminiClient(settings), cache, settings)
    return AggregationEngine(settings, oracle, cache)
