from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple

from production_kpi.domain.contracts import KpiFilter, OrderRecord, ProcurementRecord, WorkerTimeLogRecord
from production_kpi.infrastructure.repositories.base import BaseRepository


_ORDER_COLUMNS = (
    "order_id, product_name, qty, due_date, sales, estimated_material_cost, "
    "std_time_per_unit, status, customer_name"
)
_PROCUREMENT_COLUMNS = (
    "id, order_id, kind, item_name, qty, unit_price, act_time_per_unit, status, eta, received_at, completed_at"
)
_WORKER_LOG_COLUMNS = "id, order_id, qty, act_time_per_unit, worker, date"

# Null due dates sort first on every backend, as SQLite does by default.
_ORDER_BY_DUE_DATE = "ORDER BY (due_date IS NOT NULL), due_date ASC, order_id ASC"


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _order_record(row: dict) -> OrderRecord:
    return OrderRecord(
        order_id=str(row["order_id"]),
        product_name=row.get("product_name"),
        qty=row.get("qty"),
        due_date=row.get("due_date"),
        sales=row.get("sales"),
        estimated_material_cost=row.get("estimated_material_cost"),
        std_time_per_unit=row.get("std_time_per_unit"),
        status=row.get("status"),
        customer_name=row.get("customer_name"),
    )


def _procurement_record(row: dict) -> ProcurementRecord:
    return ProcurementRecord(
        id=int(row["id"]),
        order_id=str(row["order_id"]),
        kind=str(row.get("kind") or ""),
        item_name=row.get("item_name"),
        qty=row.get("qty"),
        unit_price=row.get("unit_price"),
        act_time_per_unit=row.get("act_time_per_unit"),
        status=row.get("status"),
        eta=row.get("eta"),
        received_at=row.get("received_at"),
        completed_at=row.get("completed_at"),
    )


def _worker_log_record(row: dict) -> WorkerTimeLogRecord:
    return WorkerTimeLogRecord(
        id=int(row["id"]),
        order_id=str(row["order_id"]),
        qty=row.get("qty"),
        act_time_per_unit=row.get("act_time_per_unit"),
        worker=row.get("worker"),
        date=row.get("date"),
    )


class ProductionRecordRepository(BaseRepository):
    """Read-only access to orders, procurements and worker time logs."""

    @staticmethod
    def build_order_filter(filters: KpiFilter) -> Tuple[str, Tuple[Any, ...]]:
        conditions: List[str] = []
        params: List[Any] = []
        # Due dates may be stored as plain dates or full timestamps.
        if filters.date_from:
            conditions.append("SUBSTR(due_date, 1, 10) >= ?")
            params.append(filters.date_from.isoformat())
        if filters.date_to:
            conditions.append("SUBSTR(due_date, 1, 10) <= ?")
            params.append(filters.date_to.isoformat())
        text = (filters.q or "").strip().lower()
        if text:
            conditions.append("LOWER(COALESCE(product_name, '')) LIKE ? ESCAPE '\\'")
            params.append(f"%{_escape_like(text)}%")
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        return where, tuple(params)

    def get_order(self, db, order_id: str) -> OrderRecord | None:
        row = self.fetch_one(
            db,
            "get_order",
            order_id,
            f"SELECT {_ORDER_COLUMNS} FROM orders WHERE order_id = ? LIMIT 1",
            (order_id,),
        )
        return _order_record(row) if row else None

    def count_orders(self, db, filters: KpiFilter) -> int:
        where, params = self.build_order_filter(filters)
        row = self.fetch_one(
            db,
            "count_orders",
            filters.describe(),
            f"SELECT COUNT(*) AS total FROM orders {where}",
            params,
        )
        return int((row or {}).get("total") or 0)

    def list_orders(self, db, filters: KpiFilter, *, paginate: bool = False) -> List[OrderRecord]:
        where, params = self.build_order_filter(filters)
        sql = f"SELECT {_ORDER_COLUMNS} FROM orders {where} {_ORDER_BY_DUE_DATE}"
        if paginate:
            sql += " LIMIT ? OFFSET ?"
            params = (*params, filters.page_size, filters.offset)
        rows = self.fetch_all(db, "list_orders", filters.describe(), sql, params)
        return [_order_record(row) for row in rows]

    def procurements_by_order(self, db, order_ids: Sequence[str]) -> Dict[str, List[ProcurementRecord]]:
        rows = self.fetch_by_ids(
            db,
            "list_procurements",
            f"""
            SELECT {_PROCUREMENT_COLUMNS}
            FROM procurements
            WHERE order_id IN ({{placeholders}})
            ORDER BY order_id ASC, id ASC
            """,
            [str(value) for value in order_ids],
        )
        grouped: Dict[str, List[ProcurementRecord]] = {}
        for row in rows:
            record = _procurement_record(row)
            grouped.setdefault(record.order_id, []).append(record)
        return grouped

    def worker_logs_by_order(self, db, order_ids: Sequence[str]) -> Dict[str, List[WorkerTimeLogRecord]]:
        rows = self.fetch_by_ids(
            db,
            "list_worker_time_logs",
            f"""
            SELECT {_WORKER_LOG_COLUMNS}
            FROM worker_time_logs
            WHERE order_id IN ({{placeholders}})
            ORDER BY order_id ASC, id ASC
            """,
            [str(value) for value in order_ids],
        )
        grouped: Dict[str, List[WorkerTimeLogRecord]] = {}
        for row in rows:
            record = _worker_log_record(row)
            grouped.setdefault(record.order_id, []).append(record)
        return grouped

    def list_procurements(self, db, order_id: str) -> List[ProcurementRecord]:
        return self.procurements_by_order(db, [order_id]).get(str(order_id), [])

    def list_worker_logs(self, db, order_id: str) -> List[WorkerTimeLogRecord]:
        return self.worker_logs_by_order(db, [order_id]).get(str(order_id), [])
