import asyncio
import logging
import uuid
from datetime import date, datetime
from typing import Awaitable, Callable, List, Optional, Tuple, TypeVar

from sqlalchemy import select, update, delete, func, literal_column
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import settings
from .errors import (
    StoreError,
    NotFoundError,
    EditConflictError,
    ValidationError,
    TokenConflictError,
    InternalError,
)
from .models import Link, Visit, utcnow
from .pagination import Filters, Metadata, calculate_metadata
from .utils import TokenGenerator
from .validators import validate_link

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseStore:
    """Runs each operation in its own session under a fixed deadline."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        timeout: float = settings.DB_TIMEOUT_SECONDS,
    ):
        self.session_factory = session_factory
        self.timeout = timeout

    async def _run(self, operation: str, fn: Callable[[AsyncSession], Awaitable[T]]) -> T:
        try:
            async with self.session_factory() as session:
                return await asyncio.wait_for(fn(session), timeout=self.timeout)
        except StoreError:
            raise
        except asyncio.TimeoutError as e:
            logger.error(f"{operation} exceeded {self.timeout}s deadline", extra={"operation": operation})
            raise InternalError(f"{operation} timed out") from e
        except (SQLAlchemyError, OSError) as e:
            logger.exception(f"{operation} failed", extra={"operation": operation})
            raise InternalError(f"{operation} failed") from e


class LinkStore(BaseStore):
    def __init__(
        self,
        session_factory: async_sessionmaker,
        tokens: Optional[TokenGenerator] = None,
        timeout: float = settings.DB_TIMEOUT_SECONDS,
    ):
        super().__init__(session_factory, timeout)
        self.tokens = tokens or TokenGenerator(
            length=settings.TOKEN_LENGTH, max_attempts=settings.TOKEN_MAX_ATTEMPTS
        )

    async def token_exists(self, token: str) -> bool:
        try:
            await self.get_by_token(token)
        except NotFoundError:
            return False
        return True

    async def generate_unique_token(self, length: Optional[int] = None) -> str:
        return await self.tokens.generate_unique(self.token_exists, length)

    async def insert(self, link: Link) -> Link:
        # Everything except the generated token is checked before any store access
        validate_link(link.name, link.destination, link.token, require_token=False)
        if not link.token:
            link.token = await self.generate_unique_token()

        now = utcnow()
        link.id = uuid.uuid4()
        link.created_at = now
        link.updated_at = now
        link.version = 1

        async def op(session: AsyncSession) -> Link:
            session.add(link)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise TokenConflictError(link.token) from e
            return link

        created = await self._run("insert link", op)
        logger.info(f"Created link {created.id} with token {created.token}")
        return created

    async def get(self, link_id: uuid.UUID) -> Link:
        async def op(session: AsyncSession) -> Optional[Link]:
            return await session.get(Link, link_id)

        link = await self._run("get link", op)
        if link is None:
            raise NotFoundError()
        return link

    async def get_by_token(self, token: str) -> Link:
        async def op(session: AsyncSession) -> Optional[Link]:
            result = await session.execute(select(Link).where(Link.token == token))
            return result.scalar_one_or_none()

        link = await self._run("get link by token", op)
        if link is None:
            raise NotFoundError()
        return link

    @staticmethod
    def apply_changes(
        link: Link,
        name: Optional[str] = None,
        destination: Optional[str] = None,
        token: Optional[str] = None,
    ) -> Link:
        """Overlay only the supplied fields onto a freshly read link."""
        if name is not None:
            link.name = name
        if destination is not None:
            link.destination = destination
        if token is not None:
            link.token = token
        return link

    async def update(self, link: Link, expected_version: Optional[int] = None) -> int:
        """
        Write ``link`` back only if the stored version still equals
        ``expected_version`` (defaults to ``link.version``).

        Returns the new version and refreshes ``link.version`` and
        ``link.updated_at``. A missing record and a stale version both surface
        as EditConflictError.
        """
        validate_link(link.name, link.destination, link.token)
        expected = link.version if expected_version is None else expected_version

        stmt = (
            update(Link)
            .where(Link.id == link.id, Link.version == expected)
            .values(
                name=link.name,
                destination=link.destination,
                token=link.token,
                updated_at=utcnow(),
                version=Link.version + 1,
            )
            .returning(Link.version, Link.updated_at)
            .execution_options(synchronize_session=False)
        )

        async def op(session: AsyncSession) -> Tuple[int, datetime]:
            try:
                row = (await session.execute(stmt)).one_or_none()
                if row is None:
                    await session.rollback()
                    raise EditConflictError()
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise TokenConflictError(link.token) from e
            return row[0], row[1]

        link.version, link.updated_at = await self._run("update link", op)
        logger.info(f"Updated link {link.id} to version {link.version}")
        return link.version

    async def delete(self, link_id: uuid.UUID) -> None:
        async def op(session: AsyncSession) -> int:
            result = await session.execute(
                delete(Link).where(Link.id == link_id).execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount

        if await self._run("delete link", op) == 0:
            raise NotFoundError()
        logger.info(f"Deleted link {link_id}")

    async def list(self, name: str, filters: Filters) -> Tuple[List[Link], Metadata]:
        column_name, direction = filters.validate()
        column = Link.__table__.c[column_name]
        order = column.desc() if direction == "DESC" else column.asc()

        async def op(session: AsyncSession) -> Tuple[List[Link], int]:
            stmt = select(Link, func.count().over().label("total"))
            if name:
                stmt = stmt.where(_name_matches(session, name))
            stmt = stmt.order_by(order, Link.id.asc()).limit(filters.limit).offset(filters.offset)

            rows = (await session.execute(stmt)).all()
            total = rows[0].total if rows else 0
            return [row[0] for row in rows], total

        links, total = await self._run("list links", op)
        return links, calculate_metadata(total, filters.page, filters.page_size)


def _name_matches(session: AsyncSession, name: str):
    if session.get_bind().dialect.name == "postgresql":
        return func.to_tsvector(literal_column("'simple'::regconfig"), Link.name).op("@@")(
            func.plainto_tsquery(literal_column("'simple'::regconfig"), name)
        )
    return Link.name.ilike(f"%{name}%")


class VisitStore(BaseStore):
    async def insert(self, visit: Visit) -> Visit:
        visit.created_at = utcnow()
        return await self._insert(visit, "insert visit")

    async def seed_insert(self, visit: Visit) -> Visit:
        """Insert with a caller-supplied ``created_at``, for back-filling history."""
        if visit.created_at is None:
            raise ValidationError({"created_at": "must be provided"})
        if visit.created_at.tzinfo is None:
            raise ValidationError({"created_at": "must be timezone-aware"})
        return await self._insert(visit, "seed visit")

    async def _insert(self, visit: Visit, operation: str) -> Visit:
        if not visit.link_id:
            raise ValidationError({"link_id": "must be provided"})
        visit.id = uuid.uuid4()

        async def op(session: AsyncSession) -> Visit:
            session.add(visit)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise NotFoundError("link not found") from e
            return visit

        return await self._run(operation, op)

    async def count_total(self, link_id: uuid.UUID) -> int:
        async def op(session: AsyncSession) -> int:
            stmt = select(func.count()).select_from(Visit).where(Visit.link_id == link_id)
            return (await session.execute(stmt)).scalar_one()

        return await self._run("count visits", op)

    async def count_by_day(self, link_id: uuid.UUID, since: datetime) -> List[Tuple[date, int]]:
        """Visit counts per UTC calendar date for visits at or after ``since``."""
        day = func.date(Visit.created_at)

        async def op(session: AsyncSession) -> List[Tuple[date, int]]:
            stmt = (
                select(day.label("day"), func.count().label("visits"))
                .where(Visit.link_id == link_id, Visit.created_at >= since)
                .group_by(day)
                .order_by(day)
            )
            rows = (await session.execute(stmt)).all()
            return [(_as_date(row.day), row.visits) for row in rows]

        return await self._run("count visits by day", op)


def _as_date(value) -> date:
    # PostgreSQL hands back a date, SQLite an ISO string
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))
