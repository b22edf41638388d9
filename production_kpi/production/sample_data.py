from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict


_SAMPLE_ORDERS = (
    # order_id, product_name, qty, due in days, sales, estimated_material_cost, std_time_per_unit, status
    ("1", "Aluminium part A", 100, 7, 150000, 80000, 0.5, "completed"),
    ("2", "Stainless part B", 50, 14, 200000, 60000, 0.8, "completed"),
    ("3", "Moulded resin part C", 200, 21, 80000, 30000, 0.3, "in_progress"),
)

_SAMPLE_PROCUREMENTS = (
    # order_id, kind, item_name, qty, unit, eta in days, status, vendor, unit_price, act_time_per_unit
    ("1", "purchase", "Aluminium sheet A5052", 110, "kg", 3, "ordered", "Aluminium Trading", 750, None),
    ("1", "purchase", "Stainless bolt M6x20", 200, "pcs", 2, "received", "Fastener Works", 15, None),
    ("1", "purchase", "Cutting oil", 5, "L", 1, "received", "Tool Supply", 2800, None),
    ("1", "manufacture", "Machining", 100, "pcs", 5, "done", None, None, 0.45),
    ("2", "purchase", "Stainless bar SUS304", 60, "kg", 4, "received", "Steel Centre", 900, None),
    ("2", "manufacture", "Turning", 50, "pcs", 9, "in-progress", None, None, 0.9),
    ("3", "purchase", "Resin pellets", 40, "kg", 6, "planned", "Polymer Co", 650, None),
)

_SAMPLE_WORKER_LOGS = (
    # order_id, qty, act_time_per_unit, worker, days from now
    ("1", 60, 0.5, "Sato", -2),
    ("1", 40, 0.4, "Tanaka", -1),
    ("2", 20, 0.85, "Suzuki", -1),
)


def seed_sample_data(db, *, now: datetime | None = None) -> Dict[str, int]:
    """Insert a small demo data set unless orders already exist.

    Returns the number of rows inserted per table.
    """
    existing = db.execute("SELECT COUNT(*) AS total FROM orders").fetchone()["total"]
    if existing:
        return {"orders": 0, "procurements": 0, "worker_time_logs": 0}

    reference = now or datetime.now(timezone.utc)

    def _day(offset: int) -> str:
        return (reference + timedelta(days=offset)).date().isoformat()

    for order_id, product_name, qty, due_in, sales, material, std_time, status in _SAMPLE_ORDERS:
        db.execute(
            """
            INSERT INTO orders (
                order_id, product_name, qty, due_date, sales,
                estimated_material_cost, std_time_per_unit, status
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (order_id, product_name, qty, _day(due_in), sales, material, std_time, status),
        )

    for order_id, kind, item_name, qty, unit, eta_in, status, vendor, unit_price, act_time in _SAMPLE_PROCUREMENTS:
        received_at = _day(eta_in) if status == "received" else None
        completed_at = _day(eta_in) if status == "done" else None
        db.execute(
            """
            INSERT INTO procurements (
                order_id, kind, item_name, qty, unit, eta, status, vendor,
                unit_price, received_at, act_time_per_unit, completed_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                order_id,
                kind,
                item_name,
                qty,
                unit,
                _day(eta_in),
                status,
                vendor,
                unit_price,
                received_at,
                act_time,
                completed_at,
            ),
        )

    for order_id, qty, act_time, worker, logged_in in _SAMPLE_WORKER_LOGS:
        db.execute(
            """
            INSERT INTO worker_time_logs (order_id, qty, act_time_per_unit, worker, date)
            VALUES (?, ?, ?, ?, ?)
            """,
            (order_id, qty, act_time, worker, _day(logged_in)),
        )

    db.commit()
    return {
        "orders": len(_SAMPLE_ORDERS),
        "procurements": len(_SAMPLE_PROCUREMENTS),
        "worker_time_logs": len(_SAMPLE_WORKER_LOGS),
    }
