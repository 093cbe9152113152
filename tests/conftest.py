import itertools
from datetime import datetime, timezone
from typing import Dict, List, Tuple

import pytest

from WorkLog.config import Settings
from WorkLog.llm.gemini import parse_json_response
from WorkLog.models import DescriptionComparison, WIPEntry


class FakeOracle:
    """Deterministic oracle driven by fixed answer tables."""

    def __init__(self) -> None:
        self.client_pairs = set()
        self.project_pairs = set()
        self.descriptions: Dict[Tuple[str, str], DescriptionComparison] = {}
        self.calls: List[tuple] = []
        self.failing = False

    def allow_clients(self, a: str, b: str) -> "FakeOracle":
        self.client_pairs.add(frozenset((a, b)))
        return self

    def allow_projects(self, a: str, b: str) -> "FakeOracle":
        self.project_pairs.add(frozenset((a, b)))
        return self

    def combine(self, d1: str, d2: str, combined: str) -> "FakeOracle":
        self.descriptions[(d1, d2)] = DescriptionComparison(
            should_update=True, updated_description=combined, explanation="related")
        return self

    def same_task(self, d1: str, d2: str) -> "FakeOracle":
        self.descriptions[(d1, d2)] = DescriptionComparison(
            should_update=False, updated_description=d2 if len(d2) > len(d1) else d1,
            explanation="same task", same_task=True)
        return self

    async def same_client(self, a: str, b: str) -> bool:
        if a == "Unknown" or b == "Unknown":
            return True
        self.calls.append(("client", a, b))
        if self.failing:
            return False
        return a == b or frozenset((a, b)) in self.client_pairs

    async def same_project(self, a: str, b: str) -> bool:
        self.calls.append(("project", a, b))
        if self.failing:
            return False
        return (a == b and a != "") or frozenset((a, b)) in self.project_pairs

    async def compare_descriptions(self, d1: str, d2: str) -> DescriptionComparison:
        self.calls.append(("description", d1, d2))
        if self.failing:
            return DescriptionComparison(should_update=False, explanation="error")
        return self.descriptions.get((d1, d2), DescriptionComparison(should_update=False, explanation="unrelated"))


class ScriptedLLM:
    """Answers prompts by the first matching substring rule."""

    def __init__(self) -> None:
        self.rules: List[Tuple[str, object]] = []
        self.prompts: List[str] = []

    def when(self, needle: str, answer) -> "ScriptedLLM":
        self.rules.append((needle, answer))
        return self

    def _answer(self, prompt: str):
        self.prompts.append(prompt)
        for needle, answer in self.rules:
            if needle in prompt:
                if callable(answer):
                    answer = answer(prompt)
                if isinstance(answer, Exception):
                    raise answer
                return answer
        raise RuntimeError("No scripted answer for prompt")

    async def analyze(self, prompt: str) -> str:
        return str(self._answer(prompt)).strip()

    async def analyze_json(self, prompt: str):
        return parse_json_response(str(self._answer(prompt)))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        gemini_api_key="",
        db_path=tmp_path / "worklog.db",
        user_settings_path=tmp_path / "user_settings.json",
        category_retry_delay_s=0,
        local_tz="UTC",
    )


@pytest.fixture
def fake_oracle():
    return FakeOracle()


@pytest.fixture
def scripted_llm():
    return ScriptedLLM()


@pytest.fixture
def make_entry():
    counter = itertools.count(1)

    def _make(**overrides) -> WIPEntry:
        n = next(counter)
        data = dict(
            id=str(n),
            client_name="Test Client",
            client_id="client1",
            project_name="Test Project",
            description=f"Task {n}",
            time_in_minutes=30,
            hourly_rate=150,
            date=datetime(2025, 1, 5, 12, 0, tzinfo=timezone.utc),
            partner="Test Partner",
            created_at=datetime(2025, 1, 5, 12, 0, tzinfo=timezone.utc),
            updated_at=datetime(2025, 1, 5, 12, 0, tzinfo=timezone.utc),
        )
        data.update(overrides)
        return WIPEntry(**data)

    return _make
