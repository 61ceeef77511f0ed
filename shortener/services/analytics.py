import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, List, Optional

from ..crud import LinkStore, VisitStore
from ..models import Link, utcnow

logger = logging.getLogger(__name__)

WINDOW_DAYS = 7
DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class DailyVisits:
    date: str
    visits: int


@dataclass(frozen=True)
class VisitData:
    total_visits: int
    seven_day_visits: int
    visits_per_day: float
    visits: List[DailyVisits] = field(default_factory=list)


def window_dates(today: date, days: int = WINDOW_DAYS) -> List[date]:
    """``today`` and the ``days - 1`` calendar dates before it, oldest first."""
    return [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def average_per_day(total: int, days: int = WINDOW_DAYS) -> float:
    average = (Decimal(total) / Decimal(days)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(average)


class AnalyticsAggregator:
    """Builds the gap-filled seven day series and summary numbers for a link."""

    def __init__(
        self,
        visits: VisitStore,
        links: LinkStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.visits = visits
        self.links = links
        self.clock = clock or utcnow

    async def get_data_for(self, link_id: uuid.UUID) -> VisitData:
        link = await self.links.get(link_id)
        return await self.get_data(link)

    async def get_data(self, link: Link) -> VisitData:
        today = self.clock().astimezone(timezone.utc).date()

        # The bucket set is fixed up front; query rows only overwrite zeros.
        buckets: Dict[date, int] = {day: 0 for day in window_dates(today)}
        since = datetime.combine(min(buckets), time.min, tzinfo=timezone.utc)

        for day, count in await self.visits.count_by_day(link.id, since):
            if day in buckets:
                buckets[day] = count
            else:
                logger.warning(f"Ignoring visit count for {day} outside the window of link {link.id}")

        series = [
            DailyVisits(date=day.strftime(DATE_FORMAT), visits=buckets[day])
            for day in sorted(buckets)
        ]
        seven_day_visits = sum(entry.visits for entry in series)

        return VisitData(
            total_visits=await self.visits.count_total(link.id),
            seven_day_visits=seven_day_visits,
            visits_per_day=average_per_day(seven_day_visits, len(series)),
            visits=series,
        )
