from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from WorkLog import prompts
from WorkLog.aggregation.cache import ComparisonCache
from WorkLog.aggregation.oracle import TextClassifier
from WorkLog.config import Settings
from WorkLog.models import WIPEntry

log = logging.getLogger(__name__)


class CategoryCache:
    """Categories and failure counts per description text, both bounded."""

    def __init__(self, max_size: int = 1024) -> None:
        self.categories = ComparisonCache(max_size)
        self.failures = ComparisonCache(max_size)

    def get(self, text: str) -> Optional[str]:
        return self.categories.get(text)

    def put(self, text: str, category: str) -> None:
        self.categories.put(text, category)
        self.failures.put(text, 0)

    def failed_attempts(self, text: str) -> int:
        return self.failures.get(text) or 0

    def record_failure(self, text: str) -> int:
        attempts = self.failed_attempts(text) + 1
        self.failures.put(text, attempts)
        return attempts


@dataclass(frozen=True)
class CategoryMergeRule:
    should_merge: Callable[[str, str], bool]
    merge_to: Callable[[str, str], str]


MERGE_RULES: List[CategoryMergeRule] = [
    CategoryMergeRule(
        should_merge=lambda a, b: "Tax" in a and "Tax" in b,
        merge_to=lambda a, b: a if "Planning" in a else b,
    ),
    CategoryMergeRule(
        should_merge=lambda a, b: (
            ("Financial" in a or "Accounting" in a) and ("Financial" in b or "Accounting" in b)
        ),
        merge_to=lambda _, b: b,
    ),
]


class CategoryClassifier:
    def __init__(self, llm: TextClassifier, settings: Settings, cache: Optional[CategoryCache] = None) -> None:
        self.llm = llm
        self.settings = settings
        self.cache = cache or CategoryCache(settings.category_cache_size)

    def _validate(self, response: str) -> str:
        category = response.strip().replace('"', "").replace("'", "")
        if not category or len(category) > self.settings.category_max_length:
            raise ValueError(f"Invalid category response: {response[:80]!r}")
        return category

    async def categorize_description(self, text: str) -> str:
        """
        Classifies a work description into an accounting service category.

        Retries up to `category_max_retries` times with a growing delay,
        then falls back to the default label. A text that has exhausted
        its retries gets the fallback straight away on later calls.
        """
        cached = self.cache.get(text)
        if cached:
            return cached

        fallback = self.settings.category_fallback
        max_retries = self.settings.category_max_retries
        if self.cache.failed_attempts(text) > max_retries:
            log.warning(f"Max retries reached for categorizing: {text[:50]!r}")
            return fallback

        category_list = "\n".join(f"   - {c}" for c in prompts.STANDARD_CATEGORIES)
        prompt = prompts.CATEGORIZE_DESCRIPTION_PROMPT.format(text=text, category_list=category_list)

        for attempt in range(max_retries + 1):
            try:
                category = self._validate(await self.llm.analyze(prompt))
            except Exception as e:
                failures = self.cache.record_failure(text)
                log.error(f"Failed to categorize (attempt {failures}): {e}")
                if attempt < max_retries:
                    await asyncio.sleep(self.settings.category_retry_delay_s * (attempt + 1))
                continue
            self.cache.put(text, category)
            return category

        return fallback

    async def group_similar_work(self, entries: List[WIPEntry]) -> Dict[str, List[WIPEntry]]:
        """Buckets entries by category and folds related categories together."""
        groups: Dict[str, List[WIPEntry]] = {}
        for entry in entries:
            category = await self.categorize_description(entry.description)
            groups.setdefault(category, []).append(entry)

        for rule in MERGE_RULES:
            categories = list(groups)
            for i, cat_a in enumerate(categories):
                for cat_b in categories[i + 1:]:
                    if cat_a not in groups or cat_b not in groups:
                        continue
                    if not rule.should_merge(cat_a, cat_b):
                        continue
                    target = rule.merge_to(cat_a, cat_b)
                    source = cat_b if target == cat_a else cat_a
                    groups[target] = groups[target] + groups.pop(source)
                    log.debug(f"Merged category {source!r} into {target!r}")

        if len(groups) > 1:
            await self._apply_suggested_merges(groups)
        return groups

    async def _apply_suggested_merges(self, groups: Dict[str, List[WIPEntry]]) -> None:
        prompt = prompts.CATEGORY_MERGE_PROMPT.format(categories="\n".join(groups))
        try:
            pairs = await self.llm.analyze_json(prompt)
            if not isinstance(pairs, list):
                raise ValueError(f"Expected a JSON array, got {type(pairs).__name__}")
        except Exception as e:
            log.error(f"Failed to analyze category merges: {e}")
            return

        for pair in pairs:
            if not isinstance(pair, list) or len(pair) != 2:
                log.warning(f"Ignoring malformed category merge suggestion: {pair!r}")
                continue
            source, target = pair
            if source != target and source in groups and target in groups:
                groups[target] = groups[target] + groups.pop(source)
                log.info(f"Merged category {source!r} into {target!r} (suggested)")
