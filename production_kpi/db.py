import sqlite3
from typing import Iterable, List

try:
    import psycopg2
    import psycopg2.extras
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None

from flask import current_app, g

from production_kpi.errors import DataAccessError


def database_errors() -> tuple:
    errors: tuple = (sqlite3.Error,)
    if psycopg2 is not None:
        errors = errors + (psycopg2.Error,)
    return errors


class Database:
    def __init__(self, backend: str, connection):
        self.backend = backend
        self._conn = connection

    def execute(self, sql: str, params: Iterable | None = None):
        if self.backend == "postgres":
            cursor = self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            if params:
                sql = _convert_qmark_to_pg(sql)
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            return cursor
        return self._conn.execute(sql, params or ())

    def executescript(self, sql: str):
        if self.backend != "postgres":
            return self._conn.executescript(sql)
        for statement in _split_sql_statements(sql):
            if statement.strip():
                self.execute(statement)

    def commit(self):
        self._conn.commit()

    def close(self):
        self._conn.close()


def _split_sql_statements(sql: str) -> List[str]:
    statements = []
    current = []
    in_single = False
    for ch in sql:
        if ch == "'":
            in_single = not in_single
        elif ch == ";" and not in_single:
            statements.append("".join(current))
            current = []
            continue
        current.append(ch)
    if current:
        statements.append("".join(current))
    return statements


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def _connect_database(db_path: str) -> Database:
    backend = "postgres" if db_path.lower().startswith("postgres") else "sqlite"
    try:
        if backend == "postgres":
            if psycopg2 is None:
                raise RuntimeError("psycopg2 is not installed.")
            conn = psycopg2.connect(db_path)
            conn.autocommit = True
            return Database("postgres", conn)

        conn = sqlite3.connect(db_path)
        conn.row_factory = sqlite3.Row
        return Database("sqlite", conn)
    except database_errors() as exc:
        raise DataAccessError("connect", backend, details=f"connect ({backend}) failed: {exc}") from exc


def get_db():
    if "db" not in g:
        db_path = current_app.config["DB_PATH"]
        g.db = _connect_database(db_path)
    return g.db


def get_read_db():
    if "db_read" not in g:
        db_path = current_app.config.get("DATABASE_READ_URL") or current_app.config["DB_PATH"]
        g.db_read = _connect_database(db_path)
    return g.db_read


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()
    db_read = g.pop("db_read", None)
    if db_read is not None:
        db_read.close()


_SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS orders (
    order_id TEXT PRIMARY KEY,
    product_name TEXT,
    qty REAL,
    due_date TEXT,
    sales REAL,
    estimated_material_cost REAL,
    std_time_per_unit REAL,
    status TEXT DEFAULT 'pending',
    customer_name TEXT,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS procurements (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id TEXT NOT NULL,
    kind TEXT NOT NULL CHECK (kind IN ('purchase','manufacture')),
    item_name TEXT,
    qty REAL,
    unit TEXT,
    eta TEXT,
    status TEXT,
    vendor TEXT,
    unit_price REAL,
    received_at TEXT,
    act_time_per_unit REAL,
    worker TEXT,
    completed_at TEXT,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS worker_time_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id TEXT NOT NULL,
    qty REAL,
    act_time_per_unit REAL,
    worker TEXT,
    date TEXT,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_orders_due ON orders(due_date);
CREATE INDEX IF NOT EXISTS idx_proc_orders ON procurements(order_id, kind, status);
CREATE INDEX IF NOT EXISTS idx_wlog_order ON worker_time_logs(order_id, date);
"""


_POSTGRES_SCHEMA = """
CREATE TABLE IF NOT EXISTS orders (
    order_id TEXT PRIMARY KEY,
    product_name TEXT,
    qty DOUBLE PRECISION,
    due_date TEXT,
    sales DOUBLE PRECISION,
    estimated_material_cost DOUBLE PRECISION,
    std_time_per_unit DOUBLE PRECISION,
    status TEXT DEFAULT 'pending',
    customer_name TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS procurements (
    id BIGSERIAL PRIMARY KEY,
    order_id TEXT NOT NULL,
    kind TEXT NOT NULL CHECK (kind IN ('purchase','manufacture')),
    item_name TEXT,
    qty DOUBLE PRECISION,
    unit TEXT,
    eta TEXT,
    status TEXT,
    vendor TEXT,
    unit_price DOUBLE PRECISION,
    received_at TEXT,
    act_time_per_unit DOUBLE PRECISION,
    worker TEXT,
    completed_at TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS worker_time_logs (
    id BIGSERIAL PRIMARY KEY,
    order_id TEXT NOT NULL,
    qty DOUBLE PRECISION,
    act_time_per_unit DOUBLE PRECISION,
    worker TEXT,
    date TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_orders_due ON orders(due_date);
CREATE INDEX IF NOT EXISTS idx_proc_orders ON procurements(order_id, kind, status);
CREATE INDEX IF NOT EXISTS idx_wlog_order ON worker_time_logs(order_id, date);
"""


_DROP_SCHEMA = """
DROP INDEX IF EXISTS idx_wlog_order;
DROP INDEX IF EXISTS idx_proc_orders;
DROP INDEX IF EXISTS idx_orders_due;
DROP TABLE IF EXISTS worker_time_logs;
DROP TABLE IF EXISTS procurements;
DROP TABLE IF EXISTS orders;
"""


def schema_sql(backend: str) -> str:
    return _POSTGRES_SCHEMA if backend == "postgres" else _SQLITE_SCHEMA


def drop_schema_sql() -> str:
    return _DROP_SCHEMA


def init_db():
    db = get_db()
    db.executescript(schema_sql(db.backend))
    db.commit()
