import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..config import settings
from ..crud import LinkStore, VisitStore
from ..errors import NotFoundError
from ..services.analytics import AnalyticsAggregator
from ..utils import TokenGenerator


@dataclass
class Stores:
    links: LinkStore
    visits: VisitStore
    analytics: AnalyticsAggregator


def new_stores(
    session_factory: async_sessionmaker,
    tokens: Optional[TokenGenerator] = None,
    timeout: float = settings.DB_TIMEOUT_SECONDS,
) -> Stores:
    links = LinkStore(session_factory, tokens=tokens, timeout=timeout)
    visits = VisitStore(session_factory, timeout=timeout)
    return Stores(links=links, visits=visits, analytics=AnalyticsAggregator(visits, links))


def get_stores(request: Request) -> Stores:
    return request.app.state.stores


def parse_link_id(link_id: str) -> uuid.UUID:
    # A malformed id can never match a record
    try:
        return uuid.UUID(link_id)
    except ValueError:
        raise NotFoundError()
