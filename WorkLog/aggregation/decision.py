# WorkLog/aggregation/decision.py

import asyncio
import logging
from typing import Optional

from WorkLog.aggregation.oracle import SimilarityOracle
from WorkLog.aggregation.prefilter import TextPrefilter
from WorkLog.config import Settings
from WorkLog.models import MergeDecision, WIPEntry

log = logging.getLogger(__name__)

NO_MERGE = MergeDecision(should_merge=False, confidence=0.0)


class MergeDecider:
    """
    Combines the oracle's three judgments for a pair of entries.

    A client mismatch vetoes the merge. Otherwise either a project match or
    a related description is enough for `should_merge`; the weighted
    confidence still has to clear the caller's threshold.
    """

    def __init__(self, oracle: SimilarityOracle, settings: Settings, prefilter: Optional[TextPrefilter] = None):
        self.oracle = oracle
        self.settings = settings
        self.prefilter = prefilter

    def confidence(self, client_match: bool, project_match: bool, description_match: bool) -> float:
        s = self.settings
        return (
            s.weight_client * client_match
            + s.weight_project * project_match
            + s.weight_description * description_match
        )

    async def should_merge(self, e1: WIPEntry, e2: WIPEntry) -> MergeDecision:
        if self.prefilter is not None and self.prefilter.rejects(e1, e2):
            return NO_MERGE

        # Every judgment is awaited to completion, even when a sibling fails.
        results = await asyncio.gather(
            self.oracle.same_client(e1.client_name, e2.client_name),
            self.oracle.same_project(e1.project_name or "", e2.project_name or ""),
            self.oracle.compare_descriptions(e1.description, e2.description),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            for error in errors:
                if not isinstance(error, Exception):
                    raise error
            log.error(f"Error comparing entries {e1.id} and {e2.id}: {errors[0]}", exc_info=errors[0])
            return NO_MERGE
        client_match, project_match, comparison = results

        description_match = comparison.should_update
        decision = MergeDecision(
            should_merge=client_match and (project_match or description_match),
            confidence=round(self.confidence(client_match, project_match, description_match), 6),
            client_match=client_match,
            project_match=project_match,
            description_match=description_match,
        )
        log.debug(
            f"Pair {e1.id}/{e2.id}: client={client_match} project={project_match} "
            f"description={description_match} -> merge={decision.should_merge} ({decision.confidence:.2f})"
        )
        return decision

    async def passes(self, e1: WIPEntry, e2: WIPEntry) -> bool:
        decision = await self.should_merge(e1, e2)
        return decision.passes(self.settings.merge_confidence_threshold)
