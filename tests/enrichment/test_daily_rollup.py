import pytest

from WorkLog.enrichment.daily_rollup import DailyRollup

COVERED = "already covered"
BULLET = "Create a concise"


@pytest.fixture
def rollup(scripted_llm):
    return DailyRollup(scripted_llm)


@pytest.mark.asyncio
async def test_first_entry_opens_wip(rollup, scripted_llm, make_entry):
    scripted_llm.when(BULLET, "- Prepared draft financial statements")

    result = await rollup.process_new_daily_entry(make_entry(description="Worked on financials all afternoon"))

    assert result.should_create_wip is True
    assert result.updated_description == "- Prepared draft financial statements"


@pytest.mark.asyncio
async def test_covered_work_changes_nothing(rollup, scripted_llm, make_entry):
    scripted_llm.when(COVERED, "TRUE")
    existing = make_entry(description="- Reconciled bank accounts")

    result = await rollup.process_new_daily_entry(make_entry(description="Bank rec"), existing)

    assert result.should_create_wip is False
    assert result.updated_description is None
    assert len(scripted_llm.prompts) == 1


@pytest.mark.asyncio
async def test_new_work_appends_bullet(rollup, scripted_llm, make_entry):
    scripted_llm.when(COVERED, "false")
    scripted_llm.when(BULLET, "• Filed GST return\nextra chatter")
    existing = make_entry(description="- Reconciled bank accounts")

    result = await rollup.process_new_daily_entry(make_entry(description="GST filing"), existing)

    assert result.should_create_wip is False
    assert result.updated_description == "- Reconciled bank accounts\n- Filed GST return"


@pytest.mark.asyncio
async def test_empty_bullet_falls_back_to_description(rollup, scripted_llm):
    scripted_llm.when(BULLET, "   ")
    assert await rollup.generate_bullet_point("Called CRA") == "- Called CRA"
