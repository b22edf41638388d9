"""Production orders, procurements and worker time logs

Revision ID: 20261016_000001
Revises:
Create Date: 2026-10-16 00:00:01
"""

from __future__ import annotations

from typing import Iterable, Sequence, Union

from alembic import op
from sqlalchemy.engine import Connection

from production_kpi.db import _convert_qmark_to_pg, _split_sql_statements, drop_schema_sql, schema_sql


# revision identifiers, used by Alembic.
revision: str = "20261016_000001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


class _AlembicDbAdapter:
    def __init__(self, connection: Connection, backend: str):
        self._connection = connection
        self.backend = backend

    def execute(self, sql: str, params: Iterable | None = None):
        if params is None:
            return self._connection.exec_driver_sql(sql)

        statement = sql
        if self.backend == "postgres":
            statement = _convert_qmark_to_pg(statement)
        return self._connection.exec_driver_sql(statement, tuple(params))

    def executescript(self, sql: str) -> None:
        for statement in _split_sql_statements(sql):
            if statement.strip():
                self.execute(statement)


def _resolve_backend(connection: Connection) -> str:
    dialect = (connection.dialect.name or "").lower()
    if dialect.startswith("postgres"):
        return "postgres"
    return "sqlite"


def upgrade() -> None:
    connection = op.get_bind()
    backend = _resolve_backend(connection)
    _AlembicDbAdapter(connection, backend).executescript(schema_sql(backend))


def downgrade() -> None:
    for statement in _split_sql_statements(drop_schema_sql()):
        if statement.strip():
            op.execute(statement)
