"""OPERA guest queries over SQLAlchemy Core."""

from __future__ import annotations

import asyncio
import calendar
import logging
from datetime import date, datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from sqlalchemy import and_, case, create_engine, func, literal_column, select, union
from sqlalchemy.exc import SQLAlchemyError

from guestsync.domain.ports import SourceError
from guestsync.domain.types import GuestRecord, utcnow

from .tables import OperaTables, opera_tables

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sqlalchemy import Select
    from sqlalchemy.engine import Engine, RowMapping

    from guestsync.config.opera import OperaConfig
    from guestsync.domain.types import Clock, RawRowId, SourceId

log = logging.getLogger(__name__)

FETCH_CHUNK_SIZE = 50
ROWID_CHUNK_SIZE = 500
UPCOMING_WINDOW_MONTHS = 2
DEFAULT_INITIAL_SYNC_MONTHS = 24
ACTIVE_STATUSES = ("RESERVED", "CHECKED IN", "CHECKED OUT")


def add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _chunked[T](values: Sequence[T], size: int) -> list[Sequence[T]]:
    return [values[start : start + size] for start in range(0, len(values), size)]


def _text(value: object) -> str:
    return str(value).strip() if value is not None else ""


def _as_date(value: object) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


class OperaGuestSource:
    """Guest queries against the OPERA property database."""

    def __init__(
        self,
        engine: Engine,
        *,
        schema: str | None = "opera",
        resort: str = "VINES",
        timezone: str = "America/Argentina/Buenos_Aires",
        override_today: date | None = None,
        initial_sync_months: int = DEFAULT_INITIAL_SYNC_MONTHS,
        clock: Clock = utcnow,
    ) -> None:
        self._engine = engine
        self._tables: OperaTables = opera_tables(schema)
        self._resort = resort
        self._zone = ZoneInfo(timezone)
        self._override_today = override_today
        self._initial_sync_months = initial_sync_months
        self._clock = clock

    @classmethod
    def from_config(
        cls, config: OperaConfig, *, initial_sync_months: int = DEFAULT_INITIAL_SYNC_MONTHS
    ) -> OperaGuestSource:
        engine = create_engine(config.sqlalchemy_url(), pool_size=4, pool_pre_ping=True)
        return cls(
            engine,
            schema=config.schema,
            resort=config.resort,
            timezone=config.timezone,
            override_today=config.override_today,
            initial_sync_months=initial_sync_months,
        )

    @property
    def engine(self) -> Engine:
        return self._engine

    def dispose(self) -> None:
        self._engine.dispose()

    def today(self) -> date:
        """Current date at the property."""

        if self._override_today is not None:
            return self._override_today
        return self._clock().astimezone(self._zone).date()

    def _local(self, moment: datetime) -> datetime:
        # OPERA stores naive property-local timestamps.
        return moment.astimezone(self._zone).replace(tzinfo=None)

    async def resolve_change_rows(self, row_ids: Sequence[RawRowId]) -> list[SourceId]:
        """Map changed ``NAME_PHONE`` row ids to guest ``NAME_ID`` values."""

        unique = list(dict.fromkeys(row_ids))
        if not unique:
            return []
        phone = self._tables.name_phone
        rowid = literal_column("ROWID")

        def query() -> list[SourceId]:
            found: list[SourceId] = []
            with self._engine.connect() as connection:
                for chunk in _chunked(unique, ROWID_CHUNK_SIZE):
                    statement = (
                        select(phone.c.name_id)
                        .where(rowid.in_(list(chunk)), phone.c.phone_role == "EMAIL")
                        .distinct()
                    )
                    found.extend(str(value) for value in connection.execute(statement).scalars())
            return list(dict.fromkeys(found))

        source_ids = await self._run(query, "resolve changed rows")
        log.info("Resolved %s changed rows to %s guests", len(unique), len(source_ids))
        return source_ids

    async def fetch_by_ids(self, source_ids: Sequence[SourceId]) -> list[GuestRecord]:
        name_ids: list[int] = []
        for source_id in dict.fromkeys(source_ids):
            try:
                name_ids.append(int(source_id))
            except ValueError:
                log.warning("Ignoring non-numeric guest id %r", source_id)
        if not name_ids:
            return []

        horizon = add_months(self.today(), UPCOMING_WINDOW_MONTHS)

        def query() -> list[GuestRecord]:
            records: list[GuestRecord] = []
            with self._engine.connect() as connection:
                for chunk in _chunked(name_ids, FETCH_CHUNK_SIZE):
                    statement = self._guest_statement(list(chunk), horizon)
                    rows = connection.execute(statement).mappings()
                    records.extend(self._record_from_row(row) for row in rows)
            return records

        return await self._run(query, "fetch guests")

    async def fetch_changed_since(self, watermark: datetime | None) -> list[GuestRecord]:
        if watermark is None:
            statement = self._initial_ids_statement()
            label = f"initial sync ({self._initial_sync_months} months)"
        else:
            statement = self._changed_ids_statement(watermark)
            label = f"changes since {watermark.isoformat()}"

        def query() -> list[SourceId]:
            with self._engine.connect() as connection:
                return [str(value) for value in connection.execute(statement).scalars()]

        source_ids = await self._run(query, "find changed guests")
        log.info("Found %s guests for %s", len(source_ids), label)
        return await self.fetch_by_ids(source_ids)

    def _guest_statement(self, name_ids: list[int], horizon: date) -> Select[tuple[object, ...]]:
        t = self._tables
        email = t.name_phone.alias("email")

        phone_rank = func.row_number().over(
            partition_by=t.name_phone.c.name_id,
            order_by=case(
                (t.name_phone.c.phone_role == "MOBILE", 1),
                (t.name_phone.c.phone_role == "PHONE", 2),
                else_=3,
            ),
        )
        phones = (
            select(
                t.name_phone.c.name_id,
                t.name_phone.c.phone_number,
                phone_rank.label("phone_rank"),
            )
            .where(
                t.name_phone.c.phone_role.in_(("PHONE", "MOBILE")),
                t.name_phone.c.primary_yn == "Y",
            )
            .subquery("phone")
        )

        stay_rank = func.row_number().over(
            partition_by=t.reservation_name.c.name_id,
            order_by=t.reservation_name.c.begin_date.desc(),
        )
        stays = (
            select(
                t.reservation_name.c.name_id,
                t.reservation_name.c.begin_date.label("check_in"),
                t.reservation_name.c.end_date.label("check_out"),
                stay_rank.label("stay_rank"),
            )
            .where(
                t.reservation_name.c.resort == self._resort,
                t.reservation_name.c.resv_status.in_(ACTIVE_STATUSES),
                t.reservation_name.c.begin_date <= horizon,
            )
            .subquery("stay")
        )

        address = t.name_address
        return (
            select(
                t.name.c.name_id,
                t.name.c.first,
                t.name.c.last,
                t.name.c.language,
                email.c.phone_number.label("email"),
                phones.c.phone_number.label("phone"),
                address.c.city,
                address.c.state,
                address.c.country,
                stays.c.check_in,
                stays.c.check_out,
            )
            .select_from(t.name)
            .join(
                email,
                and_(
                    email.c.name_id == t.name.c.name_id,
                    email.c.phone_role == "EMAIL",
                    email.c.primary_yn == "Y",
                ),
            )
            .outerjoin(
                phones,
                and_(phones.c.name_id == t.name.c.name_id, phones.c.phone_rank == 1),
            )
            .outerjoin(
                address,
                and_(
                    address.c.name_id == t.name.c.name_id,
                    address.c.primary_yn == "Y",
                    address.c.inactive_date.is_(None),
                ),
            )
            .outerjoin(stays, and_(stays.c.name_id == t.name.c.name_id, stays.c.stay_rank == 1))
            .where(t.name.c.name_id.in_(name_ids))
            .order_by(t.name.c.name_id)
        )

    def _changed_ids_statement(self, watermark: datetime) -> Select[tuple[object, ...]]:
        t = self._tables
        since = self._local(watermark)
        today = self.today()
        horizon = add_months(today, UPCOMING_WINDOW_MONTHS)
        phone = t.name_phone
        resv = t.reservation_name
        changed = union(
            select(phone.c.name_id).where(
                phone.c.phone_role == "EMAIL",
                (phone.c.insert_date >= since) | (phone.c.update_date >= since),
            ),
            select(resv.c.name_id).where(
                resv.c.resort == self._resort,
                (resv.c.insert_date >= since) | (resv.c.update_date >= since),
            ),
            # Booked before the watermark but arriving within the window.
            select(resv.c.name_id).where(
                resv.c.resort == self._resort,
                resv.c.resv_status.in_(ACTIVE_STATUSES),
                resv.c.begin_date.between(today, horizon),
            ),
        ).subquery("changed")
        return select(changed.c.name_id).distinct().order_by(changed.c.name_id)

    def _initial_ids_statement(self) -> Select[tuple[object, ...]]:
        t = self._tables
        earliest = add_months(self.today(), -self._initial_sync_months)
        return (
            select(t.name_phone.c.name_id)
            .join(t.reservation_name, t.reservation_name.c.name_id == t.name_phone.c.name_id)
            .where(
                t.name_phone.c.phone_role == "EMAIL",
                t.reservation_name.c.resort == self._resort,
                t.reservation_name.c.begin_date >= earliest,
            )
            .distinct()
            .order_by(t.name_phone.c.name_id)
        )

    @staticmethod
    def _record_from_row(row: RowMapping) -> GuestRecord:
        return GuestRecord(
            source_id=str(row["name_id"]),
            first_name=_text(row["first"]),
            last_name=_text(row["last"]),
            email=_text(row["email"]),
            phone=_text(row["phone"]),
            language=_text(row["language"]),
            city=_text(row["city"]),
            state=_text(row["state"]),
            country=_text(row["country"]),
            check_in=_as_date(row["check_in"]),
            check_out=_as_date(row["check_out"]),
        )

    async def _run[T](self, query: Callable[[], T], action: str) -> T:
        try:
            return await asyncio.to_thread(query)
        except SQLAlchemyError as exc:
            log.error("OPERA query failed (%s): %s", action, exc)
            raise SourceError(f"OPERA query failed ({action}): {exc}") from exc


if TYPE_CHECKING:
    from guestsync.domain.ports import GuestSource

    def _source_check(engine: Engine) -> GuestSource:
        return OperaGuestSource(engine)
