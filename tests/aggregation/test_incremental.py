import json
from datetime import datetime, timedelta, timezone

import pytest

from WorkLog.aggregation.decision import MergeDecider
from WorkLog.aggregation.incremental import (
    EntryIdGenerator,
    absorb,
    build_observation_entry,
    local_day,
    process_screen_activity,
)
from WorkLog.models import ScreenAnalysis

NOW = datetime(2025, 1, 5, 18, 30, tzinfo=timezone.utc)


@pytest.fixture
def decider(fake_oracle, settings):
    return MergeDecider(fake_oracle, settings)


def _analysis(**overrides):
    data = dict(
        client_name="Test Client",
        project_name="Test Project",
        activity_description="Reviewed ledger",
        partner="Test Partner",
    )
    data.update(overrides)
    return ScreenAnalysis(**data)


def test_new_entry_ids_are_numeric_and_increasing():
    generator = EntryIdGenerator()
    ids = [generator.next_id() for _ in range(50)]
    assert all(i.isdigit() for i in ids)
    assert [int(i) for i in ids] == sorted(int(i) for i in ids)
    assert len(set(ids)) == len(ids)


def test_new_entry_id_survives_clock_going_backwards(monkeypatch):
    generator = EntryIdGenerator()
    first = int(generator.next_id())
    monkeypatch.setattr("WorkLog.aggregation.incremental.time.time_ns", lambda: 1)
    assert int(generator.next_id()) == first + 1


def test_generators_do_not_share_state():
    a, b = EntryIdGenerator(), EntryIdGenerator()
    a.last_id = 10 ** 30
    a.next_id()
    assert int(b.next_id()) < 10 ** 30


def test_observation_entry_defaults(settings):
    entry = build_observation_entry(_analysis(client_name="", project_name="", partner=None,
                                              activity_description="• Drafted memo"), settings, EntryIdGenerator(), NOW)
    assert entry.time_in_minutes == 1
    assert entry.client_name == "Unknown"
    assert entry.project_name == "General"
    assert entry.partner == "Unknown"
    assert entry.hourly_rate == 150
    assert entry.description == "- Drafted memo"
    assert entry.date == entry.created_at == NOW


def test_observation_entry_reads_user_settings(settings):
    settings.user_settings_path.write_text(json.dumps({"defaultRate": 200, "userName": "Jordan"}))
    entry = build_observation_entry(_analysis(partner=None), settings, EntryIdGenerator(), NOW)
    assert entry.hourly_rate == 200
    assert entry.partner == "Jordan"


def test_observation_rate_overrides_user_settings(settings):
    settings.user_settings_path.write_text(json.dumps({"defaultRate": 200}))
    entry = build_observation_entry(_analysis(hourlyRate=95), settings, EntryIdGenerator(), NOW)
    assert entry.hourly_rate == 95


@pytest.mark.asyncio
async def test_observation_merges_into_matching_entry(decider, make_entry, settings):
    existing = make_entry(description="- Opened ledger", time_in_minutes=10)

    update = await process_screen_activity(_analysis(), [existing], decider, settings, EntryIdGenerator(), now=NOW)

    assert update.retired_ids == [existing.id]
    [merged] = update.upserts
    assert merged.id != existing.id
    assert merged.time_in_minutes == 11
    assert merged.description == "- Opened ledger\n- Reviewed ledger"
    assert merged.created_at == existing.created_at


@pytest.mark.asyncio
async def test_stops_at_first_match(decider, make_entry, settings, fake_oracle):
    first = make_entry(time_in_minutes=10)
    second = make_entry(time_in_minutes=20)

    update = await process_screen_activity(_analysis(), [first, second], decider, settings, EntryIdGenerator(), now=NOW)

    assert update.retired_ids == [first.id]
    assert update.upserts[0].time_in_minutes == 11
    assert not any(second.description in call for call in fake_oracle.calls)


@pytest.mark.asyncio
async def test_no_match_opens_new_entry(decider, make_entry, settings):
    existing = make_entry(client_name="Other Client")

    update = await process_screen_activity(_analysis(), [existing], decider, settings, EntryIdGenerator(), now=NOW)

    assert update.retired_ids == []
    [created] = update.upserts
    assert created.time_in_minutes == 1
    assert created.client_name == "Test Client"


@pytest.mark.asyncio
async def test_entries_from_other_days_are_ignored(decider, make_entry, settings, fake_oracle):
    yesterday = make_entry(date=NOW - timedelta(days=1))

    update = await process_screen_activity(_analysis(), [yesterday], decider, settings, EntryIdGenerator(), now=NOW)

    assert update.retired_ids == []
    assert fake_oracle.calls == []


def test_local_day_uses_configured_timezone(settings):
    settings.local_tz = "America/Vancouver"
    late_evening = datetime(2025, 1, 6, 3, 0, tzinfo=timezone.utc)
    assert local_day(late_evening, settings).isoformat() == "2025-01-05"


def test_bad_timezone_falls_back_to_utc(settings):
    settings.local_tz = "Not/AZone"
    assert local_day(NOW, settings) == NOW.date()


@pytest.mark.asyncio
async def test_unknown_observation_adopts_known_client(decider, make_entry, settings):
    existing = make_entry(client_name="Tech Corp", client_id="client1", client_address="1 Main St")

    update = await process_screen_activity(_analysis(client_name="Unknown"), [existing], decider, settings, EntryIdGenerator(), now=NOW)

    [merged] = update.upserts
    assert merged.client_name == "Tech Corp"
    assert merged.client_id == "client1"
    assert merged.client_address == "1 Main St"


def test_generic_project_adopts_existing_project(settings, make_entry):
    existing = make_entry(project_name="Year-end audit")
    new = build_observation_entry(_analysis(project_name="General"), settings, EntryIdGenerator(), NOW)

    merged = absorb(new, existing, settings)
    assert merged.project_name == "Year-end audit"
    assert merged.id == new.id


def test_specific_project_is_kept(settings, make_entry):
    existing = make_entry(project_name="Year-end audit")
    new = build_observation_entry(_analysis(project_name="Payroll"), settings, EntryIdGenerator(), NOW)
    assert absorb(new, existing, settings).project_name == "Payroll"
