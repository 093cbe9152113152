# WorkLog/aggregation/consolidation.py

import logging
from typing import List, Tuple

from WorkLog.aggregation.descriptions import dedupe_lines
from WorkLog.aggregation.oracle import SimilarityOracle
from WorkLog.models import UNKNOWN_CLIENT, WIPEntry, utc_now

log = logging.getLogger(__name__)


def id_sort_key(entry_id: str) -> Tuple[int, int, str]:
    """Numeric ids sort by value, anything else after them lexically."""
    if entry_id.isdigit():
        return (0, int(entry_id), "")
    return (1, 0, entry_id)


def sort_chronologically(group: List[WIPEntry]) -> List[WIPEntry]:
    return sorted(group, key=lambda e: id_sort_key(e.id))


async def assemble_description(sorted_group: List[WIPEntry], oracle: SimilarityOracle) -> str:
    """
    Left-folds descriptions in id order.

    Each step asks the oracle how the running text relates to the next
    one. Because this is a fold, reordering the group can change wording.
    """
    current = sorted_group[0].description
    log.debug(f"Starting with base description: {current!r}")

    for entry in sorted_group[1:]:
        comparison = await oracle.compare_descriptions(current, entry.description)
        if comparison.should_update and comparison.updated_description:
            log.info(f"Combining descriptions ({comparison.explanation}): {current!r} -> {comparison.updated_description!r}")
            current = comparison.updated_description
        elif comparison.same_task and comparison.updated_description:
            current = comparison.updated_description
        else:
            log.debug(f"Keeping existing description ({comparison.explanation})")

    return dedupe_lines(current)


async def merge_entry_group(group: List[WIPEntry], oracle: SimilarityOracle) -> WIPEntry:
    """
    Reduces one cluster to a single ledger entry.

    Time is summed exactly. The client name is the first known one in id
    order. Everything else is carried over from the most recent entry.
    """
    if not group:
        raise ValueError("Cannot merge an empty group")

    sorted_entries = sort_chronologically(group)
    most_recent = sorted_entries[-1]

    if len(sorted_entries) == 1:
        return most_recent.model_copy(update={"updated_at": utc_now()})

    total_minutes = sum(e.time_in_minutes for e in sorted_entries)

    known = next((e for e in sorted_entries if e.client_name != UNKNOWN_CLIENT), None)
    client_source = most_recent if most_recent.client_name != UNKNOWN_CLIENT or known is None else known

    description = await assemble_description(sorted_entries, oracle)

    merged = most_recent.model_copy(update={
        "client_name": known.client_name if known else UNKNOWN_CLIENT,
        "client_id": client_source.client_id,
        "client_address": client_source.client_address,
        "time_in_minutes": total_minutes,
        "description": description,
        "updated_at": utc_now(),
    })
    log.info(
        f"Merged {len(sorted_entries)} entries into {merged.id} "
        f"({merged.client_name} / {merged.project_name}, {total_minutes} min)"
    )
    return merged
