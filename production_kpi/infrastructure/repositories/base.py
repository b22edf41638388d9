from __future__ import annotations

from typing import Any, Iterable, List, Sequence

from production_kpi.db import database_errors
from production_kpi.errors import DataAccessError


def chunked(values: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    if size <= 0:
        size = 200
    for idx in range(0, len(values), size):
        yield values[idx : idx + size]


class BaseRepository:
    """Read helpers shared by the production repositories.

    Driver errors are re-raised as ``DataAccessError`` tagged with the
    repository operation and the id or filter that was being read, so the
    caller can log them. An empty result is never an error.
    """

    chunk_size = 400

    def fetch_all(self, db, operation: str, target: Any, sql: str, params: Iterable[Any] | None = None) -> List[dict]:
        try:
            rows = db.execute(sql, tuple(params or ())).fetchall()
        except database_errors() as exc:
            raise DataAccessError(operation, target, details=f"{operation} failed for {target!r}: {exc}") from exc
        return self.rows_to_dicts(rows)

    def fetch_one(self, db, operation: str, target: Any, sql: str, params: Iterable[Any] | None = None) -> dict | None:
        try:
            row = db.execute(sql, tuple(params or ())).fetchone()
        except database_errors() as exc:
            raise DataAccessError(operation, target, details=f"{operation} failed for {target!r}: {exc}") from exc
        return dict(row) if row else None

    def fetch_by_ids(
        self,
        db,
        operation: str,
        sql_template: str,
        ids: Sequence[Any],
        prefix_params: Sequence[Any] = (),
    ) -> List[dict]:
        normalized_ids = [value for value in ids if value is not None]
        if not normalized_ids:
            return []
        rows: List[dict] = []
        for chunk in chunked(list(dict.fromkeys(normalized_ids)), size=self.chunk_size):
            placeholders = ",".join("?" for _ in chunk)
            sql = sql_template.format(placeholders=placeholders)
            rows.extend(self.fetch_all(db, operation, list(chunk), sql, [*prefix_params, *chunk]))
        return rows

    @staticmethod
    def rows_to_dicts(rows: Iterable[Any]) -> list[dict]:
        return [dict(row) for row in rows]
