# WorkLog/aggregation/oracle.py
"""
Similarity Oracle: the three questions the aggregation engine asks an
external classifier (same client? same project? how do two descriptions
relate?).

The engine only depends on the `SimilarityOracle` protocol. The Gemini
implementation below fails closed: any transport or parsing error is
logged and turned into "no match" / "no update", never raised.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from WorkLog import prompts
from WorkLog.aggregation.cache import ComparisonCache
from WorkLog.aggregation.descriptions import longer_description
from WorkLog.config import Settings
from WorkLog.models import UNKNOWN_CLIENT, DescriptionComparison

log = logging.getLogger(__name__)

ERROR_EXPLANATION = "error"


class SimilarityOracle(Protocol):
    async def same_client(self, a: str, b: str) -> bool: ...

    async def same_project(self, a: str, b: str) -> bool: ...

    async def compare_descriptions(self, d1: str, d2: str) -> DescriptionComparison: ...


class TextClassifier(Protocol):
    async def analyze(self, prompt: str) -> str: ...

    async def analyze_json(self, prompt: str) -> Any: ...


def _pair_key(kind: str, a: str, b: str) -> tuple:
    # Client and project judgments are symmetric.
    return (kind, *sorted((a, b)))


class GeminiSimilarityOracle:
    """
    Answers similarity questions with a text classifier, caching per run.

    Concurrent questions with the same cache key share one in-flight
    classifier call. Only successful answers reach the cache.
    """

    def __init__(self, llm: TextClassifier, cache: ComparisonCache, settings: Settings):
        self.llm = llm
        self.cache = cache
        self.settings = settings
        self.calls = 0
        self._pending: Dict[tuple, "asyncio.Task[Any]"] = {}

    async def _answer_once(self, key: tuple, ask: Callable[[], Awaitable[Any]]) -> Any:
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(ask())
            self._pending[key] = task

            def _forget(done: "asyncio.Task[Any]") -> None:
                if self._pending.get(key) is done:
                    del self._pending[key]

            task.add_done_callback(_forget)
        else:
            log.debug(f"Joining in-flight comparison {key!r}")
        # Cancelling one caller leaves the shared call running.
        return await asyncio.shield(task)

    async def same_client(self, a: str, b: str) -> bool:
        if a == UNKNOWN_CLIENT or b == UNKNOWN_CLIENT:
            log.debug(f"Client match (one unknown): {a!r} ~ {b!r}")
            return True
        return await self._answer_once(_pair_key("client", a, b), lambda: self._ask_same_client(a, b))

    async def _ask_same_client(self, a: str, b: str) -> bool:
        prompt = prompts.SAME_CLIENT_PROMPT.format(client1=a, client2=b)
        try:
            self.calls += 1
            result = await self.llm.analyze_json(prompt)
            if not isinstance(result, dict):
                raise ValueError(f"Expected a JSON object, got {type(result).__name__}")
            confidence = float(result.get("confidence", 0.0))
            is_match = bool(result.get("isMatch")) and confidence >= self.settings.client_match_min_confidence
        except Exception as e:
            log.error(f"Error comparing clients {a!r} and {b!r}: {e}")
            return False

        if is_match:
            log.info(f"Client match: {a!r} ~ {b!r} ({confidence:.2f})")
            if result.get("patterns"):
                log.debug(f"Matching patterns: {result['patterns']}")
        else:
            log.info(f"Client mismatch: {a!r} != {b!r}")
        self.cache.put(_pair_key("client", a, b), is_match)
        return is_match

    async def same_project(self, a: str, b: str) -> bool:
        return await self._answer_once(_pair_key("project", a, b), lambda: self._ask_same_project(a, b))

    async def _ask_same_project(self, a: str, b: str) -> bool:
        prompt = prompts.SAME_PROJECT_PROMPT.format(project1=a, project2=b)
        try:
            self.calls += 1
            response = await self.llm.analyze(prompt)
        except Exception as e:
            log.error(f"Error comparing projects {a!r} and {b!r}: {e}")
            return False

        is_same = response.strip().strip('".').lower() == "true"
        log.info(f"Project {'match' if is_same else 'mismatch'}: {a!r} vs {b!r}")
        self.cache.put(_pair_key("project", a, b), is_same)
        return is_same

    async def compare_descriptions(self, d1: str, d2: str) -> DescriptionComparison:
        return await self._answer_once(("description", d1, d2), lambda: self._ask_compare_descriptions(d1, d2))

    async def _ask_compare_descriptions(self, d1: str, d2: str) -> DescriptionComparison:
        prompt = prompts.COMPARE_DESCRIPTIONS_PROMPT.format(description1=d1, description2=d2)
        try:
            self.calls += 1
            result = await self.llm.analyze_json(prompt)
            if not isinstance(result, dict):
                raise ValueError(f"Expected a JSON object, got {type(result).__name__}")
            comparison = self._interpret_comparison(result, d1, d2)
        except Exception as e:
            log.error(f"Error comparing descriptions: {e}")
            return DescriptionComparison(should_update=False, explanation=ERROR_EXPLANATION)

        self.cache.put(("description", d1, d2), comparison)
        return comparison

    @staticmethod
    def _interpret_comparison(result: dict, d1: str, d2: str) -> DescriptionComparison:
        explanation = str(result.get("explanation") or "")
        if result.get("areSameTask"):
            return DescriptionComparison(
                should_update=False,
                updated_description=longer_description(d1, d2),
                explanation=explanation,
                same_task=True,
            )

        combined: Optional[str] = result.get("combinedDescription")
        if result.get("shouldCombine") and isinstance(combined, str) and combined.strip():
            return DescriptionComparison(
                should_update=True,
                updated_description=combined.strip(),
                explanation=explanation,
            )

        return DescriptionComparison(should_update=False, explanation=explanation)
