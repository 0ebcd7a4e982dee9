from __future__ import annotations

from datetime import date
from typing import Any, Callable, Mapping

from sqlalchemy import (
    JSON,
    Column,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

STREAMS = "streams"
TRANSACTIONS = "transactions"
RECURRENCES = "recurrences"
AUTOMATIONS = "automations"
EXCHANGE_RATES = "exchange_rates"
SETTINGS = "settings"

IndexKey = Callable[[Mapping[str, Any]], Any]


def _field(name: str) -> IndexKey:
    return lambda record: record.get(name)


STORE_INDEXES: dict[str, dict[str, IndexKey]] = {
    STREAMS: {
        "by_archived": lambda record: record.get("archived_at") is not None,
    },
    TRANSACTIONS: {
        "by_stream": _field("stream_id"),
        "by_applicability_date": _field("applicability_date"),
        "by_recurrence": _field("recurrence_id"),
        "by_type": _field("type"),
    },
    RECURRENCES: {
        "by_stream": _field("stream_id"),
        "by_type": _field("type"),
    },
    AUTOMATIONS: {
        "by_active": _field("is_active"),
    },
    EXCHANGE_RATES: {
        "by_currency_pair": lambda record: f"{record['from_currency']}_{record['to_currency']}",
        "by_date": _field("date"),
    },
    SETTINGS: {},
}

metadata = MetaData()

tables: dict[str, Table] = {
    store_name: Table(
        store_name,
        metadata,
        Column("id", String(128), primary_key=True),
        Column("payload", JSON, nullable=False),
        *(Column(index_name, String(255), index=True) for index_name in indexes),
    )
    for store_name, indexes in STORE_INDEXES.items()
}


def build_engine(database_url: str) -> Engine:
    connect_args = {}
    kwargs: dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if database_url in {"sqlite://", "sqlite:///:memory:"}:
            # One shared connection, otherwise each checkout sees an empty db.
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, connect_args=connect_args, **kwargs)


class SqlAlchemyStore:
    """Key/value record store with secondary-index scans.

    Each store is a table holding the record as JSON plus one column per
    index, so index scans are plain equality lookups.
    """

    def __init__(self, database_url: str = "sqlite://", engine: Engine | None = None) -> None:
        self.engine = engine or build_engine(database_url)

    def init_schema(self) -> None:
        metadata.create_all(self.engine)

    def get(self, store: str, record_id: str) -> dict | None:
        table = _table(store)
        with self.engine.begin() as conn:
            row = conn.execute(select(table.c.payload).where(table.c.id == record_id)).first()
        return dict(row.payload) if row else None

    def put(self, store: str, record: Mapping[str, Any]) -> dict:
        table = _table(store)
        record_id = record.get("id")
        if not record_id:
            raise ValueError("Records require an id.")
        payload = dict(record)
        values = {"payload": payload, **_index_values(store, payload)}
        with self.engine.begin() as conn:
            exists = conn.execute(select(table.c.id).where(table.c.id == record_id)).first()
            if exists:
                conn.execute(update(table).where(table.c.id == record_id).values(**values))
            else:
                conn.execute(insert(table).values(id=record_id, **values))
        return payload

    def delete(self, store: str, record_id: str) -> bool:
        table = _table(store)
        with self.engine.begin() as conn:
            result = conn.execute(delete(table).where(table.c.id == record_id))
        return result.rowcount > 0

    def get_all(self, store: str) -> list[dict]:
        table = _table(store)
        with self.engine.begin() as conn:
            rows = conn.execute(select(table.c.payload).order_by(table.c.id)).all()
        return [dict(row.payload) for row in rows]

    def get_all_by_index(self, store: str, index: str, key: Any) -> list[dict]:
        table = _table(store)
        if index not in STORE_INDEXES[store]:
            raise ValueError(f"Unknown index {index} on {store}.")
        column = table.c[index]
        index_key = _index_value(key)
        condition = column.is_(None) if index_key is None else column == index_key
        with self.engine.begin() as conn:
            rows = conn.execute(select(table.c.payload).where(condition).order_by(table.c.id)).all()
        return [dict(row.payload) for row in rows]


def _table(store: str) -> Table:
    try:
        return tables[store]
    except KeyError as exc:
        raise ValueError(f"Unknown store: {store}") from exc


def _index_values(store: str, record: Mapping[str, Any]) -> dict[str, str | None]:
    return {
        index_name: _index_value(key(record))
        for index_name, key in STORE_INDEXES[store].items()
    }


def _index_value(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, date):
        return value.isoformat()
    return str(value)
