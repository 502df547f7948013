"""OPERA change feed over python-oracledb continuous query notification (CQN).

The subscription is registered with row-id quality of service on the primary
email rows of ``NAME_PHONE``. Callbacks arrive on a driver thread; row ids are
forwarded to the event loop with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

import oracledb

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from guestsync.config.opera import OperaConfig
    from guestsync.domain.types import RawRowId

log = logging.getLogger(__name__)

SUBSCRIPTION_QOS = (
    oracledb.SUBSCR_QOS_ROWIDS | oracledb.SUBSCR_QOS_QUERY | oracledb.SUBSCR_QOS_BEST_EFFORT
)
SUBSCRIPTION_OPERATIONS = oracledb.OPCODE_INSERT | oracledb.OPCODE_UPDATE


class _MessageRow(Protocol):
    rowid: str | None


class _MessageTable(Protocol):
    name: str | None
    rows: Sequence[_MessageRow] | None


class _MessageQuery(Protocol):
    tables: Sequence[_MessageTable]


class ChangeMessage(Protocol):
    type: int
    tables: Sequence[_MessageTable]
    queries: Sequence[_MessageQuery]


def email_change_query(schema: str) -> str:
    return f"SELECT NAME_ID FROM {schema}.NAME_PHONE WHERE PHONE_ROLE = 'EMAIL'"


def rowids_from_message(message: ChangeMessage) -> list[RawRowId]:
    """Row ids of every changed row, from table-level and query-level sections."""

    tables = list(message.tables or ())
    for query in message.queries or ():
        tables.extend(query.tables or ())
    row_ids: list[RawRowId] = []
    for table in tables:
        row_ids.extend(row.rowid for row in table.rows or () if row.rowid)
    return list(dict.fromkeys(row_ids))


def enable_thick_mode(lib_dir: str | None = None) -> None:
    """CQN needs the thick driver; must run before any OPERA connection is opened."""

    if oracledb.is_thin_mode():
        oracledb.init_oracle_client(lib_dir=lib_dir)


type RowIdSink = Callable[[Sequence[RawRowId]], None]


class OracleChangeFeed:
    """Persistent CQN subscription feeding changed row ids to ``sink``.

    ``start`` and ``stop`` make blocking round-trips to the database; async callers
    run them in a worker thread and pass the event loop to ``start`` explicitly.
    """

    def __init__(
        self,
        config: OperaConfig,
        sink: RowIdSink,
        *,
        name: str = "guestsync-email-changes",
        connect: Callable[..., oracledb.Connection] = oracledb.connect,
    ) -> None:
        self._config = config
        self._sink = sink
        self._name = name
        self._connect = connect
        self._loop: asyncio.AbstractEventLoop | None = None
        self._connection: oracledb.Connection | None = None
        self._subscription: oracledb.Subscription | None = None

    @property
    def active(self) -> bool:
        return self._subscription is not None

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        connection = self._connect(
            user=self._config.user,
            password=self._config.password,
            dsn=self._config.dsn(),
            events=True,
        )
        subscription = connection.subscribe(
            namespace=oracledb.SUBSCR_NAMESPACE_DBCHANGE,
            callback=self.handle_message,
            timeout=0,
            qos=SUBSCRIPTION_QOS,
            operations=SUBSCRIPTION_OPERATIONS,
            name=self._name,
        )
        subscription.registerquery(email_change_query(self._config.schema))
        self._connection = connection
        self._subscription = subscription
        log.info("CQN subscription %s registered on %s.NAME_PHONE", self._name, self._config.schema)

    def handle_message(self, message: ChangeMessage) -> None:
        if message.type == oracledb.EVENT_DEREG:
            log.warning("CQN subscription %s was deregistered by the database", self._name)
            self._subscription = None
            return
        row_ids = rowids_from_message(message)
        if not row_ids:
            return
        log.debug("CQN notification with %s changed rows", len(row_ids))
        if self._loop is None:
            raise RuntimeError("Change feed received a message before start()")
        self._loop.call_soon_threadsafe(self._sink, row_ids)

    def stop(self) -> None:
        connection, subscription = self._connection, self._subscription
        self._connection = None
        self._subscription = None
        if connection is None:
            return
        try:
            if subscription is not None:
                connection.unsubscribe(subscription)
        finally:
            connection.close()
        log.info("CQN subscription %s removed", self._name)
