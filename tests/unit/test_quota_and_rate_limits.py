from __future__ import annotations

import datetime

import pytest
from sqlalchemy import select

from coursegen.schema.users import UsageLog, User
from coursegen.services.quotas import get_usage_snapshot, next_period_start, period_start_date, record_generation
from coursegen.services.rate_limits import hit_rate_limit, window_start_for
from coursegen.services.users import ensure_user

NOW = datetime.datetime(2026, 2, 17, 9, 30, 0, tzinfo=datetime.UTC)


def test_period_starts_on_the_first_of_the_utc_month() -> None:
  assert period_start_date(NOW) == datetime.date(2026, 2, 1)
  assert next_period_start(datetime.date(2026, 12, 1)) == datetime.datetime(2027, 1, 1, tzinfo=datetime.UTC)


def test_period_start_requires_aware_timestamps() -> None:
  with pytest.raises(ValueError):
    period_start_date(NOW.replace(tzinfo=None))


def test_window_start_aligns_to_fixed_windows() -> None:
  assert window_start_for(NOW, 120) == datetime.datetime(2026, 2, 17, 9, 30, 0, tzinfo=datetime.UTC)
  assert window_start_for(NOW + datetime.timedelta(seconds=119), 120) == window_start_for(NOW, 120)
  assert window_start_for(NOW + datetime.timedelta(seconds=120), 120) == NOW + datetime.timedelta(seconds=120)


@pytest.mark.anyio
async def test_free_tier_allows_one_generation_per_month(session_factory) -> None:  # noqa: ANN001
  async with session_factory() as session:
    await ensure_user(session, user_id="user-1")
    snapshot = await get_usage_snapshot(session, owner_id="user-1", now=NOW)
    assert snapshot.tier == "free"
    assert snapshot.can_generate
    assert snapshot.remaining == 1

    total = await record_generation(session, owner_id="user-1", job_id="job-1", course_id="course-1", content_type="text", now=NOW)
    assert total == 1

    snapshot = await get_usage_snapshot(session, owner_id="user-1", now=NOW)
    assert not snapshot.can_generate
    assert snapshot.resets_at == datetime.datetime(2026, 3, 1, tzinfo=datetime.UTC)

    # A new month starts a fresh bucket.
    next_month = await get_usage_snapshot(session, owner_id="user-1", now=NOW + datetime.timedelta(days=14))
    assert next_month.can_generate

    log = (await session.execute(select(UsageLog))).scalar_one()
    assert log.action == "generate"
    assert log.metadata_json == {"content_type": "text", "course_id": "course-1", "job_id": "job-1"}


@pytest.mark.anyio
async def test_paid_tiers_are_unlimited(session_factory) -> None:  # noqa: ANN001
  async with session_factory() as session:
    session.add(User(user_id="user-pro", subscription_tier="pro"))
    await session.commit()
    for index in range(3):
      await record_generation(session, owner_id="user-pro", job_id=f"job-{index}", course_id=f"course-{index}", content_type="url", now=NOW)

    snapshot = await get_usage_snapshot(session, owner_id="user-pro", now=NOW)
    assert snapshot.limit is None
    assert snapshot.used == 3
    assert snapshot.can_generate


@pytest.mark.anyio
async def test_ensure_user_is_idempotent(session_factory) -> None:  # noqa: ANN001
  async with session_factory() as session:
    first = await ensure_user(session, user_id="user-1", email="a@example.com")
    second = await ensure_user(session, user_id="user-1")
    assert first.user_id == second.user_id
    assert (await session.execute(select(User))).scalars().all() == [second]


@pytest.mark.anyio
async def test_rate_limit_blocks_after_max_requests_in_window(session_factory) -> None:  # noqa: ANN001
  async with session_factory() as session:
    decisions = [await hit_rate_limit(session, owner_id="user-1", max_requests=3, window_seconds=120, now=NOW + datetime.timedelta(seconds=index)) for index in range(4)]

  assert [decision.allowed for decision in decisions] == [True, True, True, False]
  assert decisions[-1].count == 4
  assert decisions[-1].retry_after_seconds == 117


@pytest.mark.anyio
async def test_rate_limit_resets_in_the_next_window(session_factory) -> None:  # noqa: ANN001
  async with session_factory() as session:
    for _ in range(3):
      await hit_rate_limit(session, owner_id="user-1", max_requests=2, window_seconds=120, now=NOW)
    later = await hit_rate_limit(session, owner_id="user-1", max_requests=2, window_seconds=120, now=NOW + datetime.timedelta(seconds=120))
    other_owner = await hit_rate_limit(session, owner_id="user-2", max_requests=2, window_seconds=120, now=NOW)

  assert later.allowed and later.count == 1
  assert other_owner.allowed


@pytest.mark.anyio
async def test_sql_usage_service_checks_and_records_per_owner(session_factory, sql_usage) -> None:  # noqa: ANN001
  async with session_factory() as session:
    await ensure_user(session, user_id="user-1")

  before = await sql_usage.check("user-1")
  assert before.can_generate
  assert before.used == 0

  assert await sql_usage.record_generation("user-1", job_id="job-1", course_id="course-1", content_type="text") == 1

  after = await sql_usage.check("user-1")
  assert after.used == 1
  assert after.remaining == 0
  assert not after.can_generate
  assert (await sql_usage.check("user-2")).used == 0
