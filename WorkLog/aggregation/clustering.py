# WorkLog/aggregation/clustering.py
"""
Batch clustering of ledger entries.

Entries are grouped clique-style: a candidate joins a cluster only if it
passes the merge decision against every current member, not just the
seed. This stops A~B and B~C from chaining A and C together.

The pass is O(n^2) classifier comparisons in the worst case. It is meant
for ledgers of tens of entries; larger ledgers should enable the string
pre-filter (`prefilter_min_similarity`) and rely on the comparison cache.
"""

import asyncio
import logging
from typing import List

from WorkLog.aggregation.decision import MergeDecider
from WorkLog.models import WIPEntry

log = logging.getLogger(__name__)


async def _matches_sequentially(decider: MergeDecider, cluster: List[WIPEntry], candidate: WIPEntry) -> bool:
    for member in cluster:
        if not await decider.passes(member, candidate):
            return False
    return True


async def _matches_concurrently(decider: MergeDecider, cluster: List[WIPEntry], candidate: WIPEntry) -> bool:
    tasks = [asyncio.create_task(decider.passes(member, candidate)) for member in cluster]
    try:
        for finished in asyncio.as_completed(tasks):
            if not await finished:
                return False
        return True
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def matches_all_members(decider: MergeDecider, cluster: List[WIPEntry], candidate: WIPEntry) -> bool:
    """True when `candidate` passes the merge decision against every member."""
    if decider.settings.parallel_member_checks and len(cluster) > 1:
        return await _matches_concurrently(decider, cluster, candidate)
    return await _matches_sequentially(decider, cluster, candidate)


async def find_related_entries(entries: List[WIPEntry], decider: MergeDecider) -> List[List[WIPEntry]]:
    """
    Partitions `entries` into merge clusters.

    Clusters are seeded and filled in input order, so the same input
    always yields the same partition for the same classifier answers.
    Every entry ends up in exactly one cluster.
    """
    clusters: List[List[WIPEntry]] = []
    assigned = set()

    for index, entry in enumerate(entries):
        if index in assigned:
            continue

        cluster = [entry]
        assigned.add(index)

        for cand_index in range(index + 1, len(entries)):
            if cand_index in assigned:
                continue
            candidate = entries[cand_index]
            if await matches_all_members(decider, cluster, candidate):
                cluster.append(candidate)
                assigned.add(cand_index)

        if len(cluster) > 1:
            log.info(f"Formed cluster of {len(cluster)} entries seeded by {entry.id}: {[e.id for e in cluster]}")
        clusters.append(cluster)

    log.info(f"Clustered {len(entries)} entries into {len(clusters)} groups.")
    return clusters
