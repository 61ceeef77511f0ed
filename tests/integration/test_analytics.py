import uuid
from datetime import datetime, timedelta, timezone

import pytest

from shortener.errors import NotFoundError
from shortener.models import Visit
from shortener.services.analytics import AnalyticsAggregator, average_per_day, window_dates

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
EXPECTED_DATES = [
    "2026-10-13",
    "2026-10-14",
    "2026-10-15",
    "2026-10-16",
    "2026-10-17",
    "2026-10-18",
    "2026-10-19",
]


@pytest.fixture
def analytics(stores) -> AnalyticsAggregator:
    return AnalyticsAggregator(stores.visits, stores.links, clock=lambda: NOW)


async def seed_visits(stores, link, when, count=1):
    for _ in range(count):
        await stores.visits.seed_insert(Visit(link_id=link.id, created_at=when))


def test_window_dates_oldest_first():
    dates = window_dates(NOW.date())
    assert len(dates) == 7
    assert [d.isoformat() for d in dates] == EXPECTED_DATES


@pytest.mark.parametrize(
    "total, days, expected",
    [(0, 7, 0.0), (1, 7, 0.14), (10, 7, 1.43), (300, 7, 42.86), (1, 8, 0.13), (5, 8, 0.63)],
)
def test_average_rounds_half_up(total, days, expected):
    assert average_per_day(total, days) == expected


@pytest.mark.asyncio
async def test_link_without_visits_gets_seven_zero_buckets(stores, analytics, make_link):
    link = await stores.links.insert(make_link())

    data = await analytics.get_data(link)

    assert [entry.date for entry in data.visits] == EXPECTED_DATES
    assert all(entry.visits == 0 for entry in data.visits)
    assert data.total_visits == 0
    assert data.seven_day_visits == 0
    assert data.visits_per_day == 0.0


@pytest.mark.asyncio
async def test_hourly_seed_data(stores, analytics, make_link):
    link = await stores.links.insert(make_link())

    # 24 hourly buckets ending a day ago: hour i gets i + 1 visits
    start = NOW - timedelta(hours=24)
    for i in range(24):
        await seed_visits(stores, link, start - timedelta(hours=i), count=i + 1)

    # Older history that only the all-time total should see
    await seed_visits(stores, link, NOW - timedelta(days=10), count=5)

    data = await analytics.get_data(link)

    assert data.total_visits == 305
    assert data.seven_day_visits == 300
    assert data.visits_per_day == 42.86

    by_date = {entry.date: entry.visits for entry in data.visits}
    assert by_date["2026-10-18"] == sum(range(1, 14))
    assert by_date["2026-10-17"] == sum(range(14, 25))
    assert by_date["2026-10-19"] == 0
    assert [entry.date for entry in data.visits] == EXPECTED_DATES


@pytest.mark.asyncio
async def test_window_starts_at_midnight_of_oldest_day(stores, analytics, make_link):
    link = await stores.links.insert(make_link())
    oldest_midnight = datetime(2026, 10, 13, tzinfo=timezone.utc)

    await seed_visits(stores, link, oldest_midnight)
    await seed_visits(stores, link, oldest_midnight - timedelta(minutes=1))
    await seed_visits(stores, link, NOW, count=3)

    data = await analytics.get_data(link)

    assert data.visits[0].date == "2026-10-13"
    assert data.visits[0].visits == 1
    assert data.visits[-1].visits == 3
    assert data.seven_day_visits == 4
    assert data.visits_per_day == 0.57
    assert data.total_visits == 5


@pytest.mark.asyncio
async def test_dates_outside_the_buckets_are_ignored(stores, analytics, make_link):
    link = await stores.links.insert(make_link())

    await seed_visits(stores, link, NOW + timedelta(days=2), count=2)

    data = await analytics.get_data(link)

    assert len(data.visits) == 7
    assert data.seven_day_visits == 0
    assert data.total_visits == 2


@pytest.mark.asyncio
async def test_visits_of_other_links_do_not_leak(stores, analytics, make_link):
    link = await stores.links.insert(make_link(name="mine"))
    other = await stores.links.insert(make_link(name="theirs"))

    await seed_visits(stores, other, NOW, count=4)
    await seed_visits(stores, link, NOW)

    data = await analytics.get_data(link)

    assert data.total_visits == 1
    assert data.seven_day_visits == 1


@pytest.mark.asyncio
async def test_get_data_for_looks_up_the_link(stores, analytics, make_link):
    link = await stores.links.insert(make_link())
    await seed_visits(stores, link, NOW - timedelta(hours=1))

    data = await analytics.get_data_for(link.id)
    assert data.total_visits == 1

    with pytest.raises(NotFoundError):
        await analytics.get_data_for(uuid.uuid4())
