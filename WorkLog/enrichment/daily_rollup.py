"""
Rolls finished daily entries up into WIP bullet points.

A daily entry either opens a new WIP entry (as a single bullet), is
already covered by the existing bullets, or adds one new bullet line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from WorkLog import prompts
from WorkLog.aggregation.descriptions import standardize_line, union_description_lines
from WorkLog.aggregation.oracle import TextClassifier
from WorkLog.models import WIPEntry

log = logging.getLogger(__name__)


@dataclass
class RollupResult:
    should_create_wip: bool
    updated_description: Optional[str] = None


class DailyRollup:
    def __init__(self, llm: TextClassifier) -> None:
        self.llm = llm

    async def is_work_already_covered(self, new_description: str, existing_bullet_points: str) -> bool:
        prompt = prompts.WORK_COVERED_PROMPT.format(
            description=new_description,
            bullet_points=existing_bullet_points,
        )
        response = await self.llm.analyze(prompt)
        return response.strip().strip('".').lower() == "true"

    async def generate_bullet_point(self, description: str) -> str:
        response = await self.llm.analyze(prompts.BULLET_POINT_PROMPT.format(description=description))
        bullet = standardize_line(response.splitlines()[0] if response.strip() else "")
        return bullet or standardize_line(description)

    async def process_new_daily_entry(self, daily_entry: WIPEntry, existing: Optional[WIPEntry] = None) -> RollupResult:
        if existing is None:
            return RollupResult(
                should_create_wip=True,
                updated_description=await self.generate_bullet_point(daily_entry.description),
            )

        if await self.is_work_already_covered(daily_entry.description, existing.description):
            log.debug(f"Daily entry {daily_entry.id} already covered by {existing.id}")
            return RollupResult(should_create_wip=False)

        bullet = await self.generate_bullet_point(daily_entry.description)
        return RollupResult(
            should_create_wip=False,
            updated_description=union_description_lines([existing.description, bullet]),
        )
