from __future__ import annotations

from production_kpi.db import get_db


def insert_order(order_id: str, **fields) -> None:
    values = {
        "product_name": None,
        "qty": None,
        "due_date": None,
        "sales": None,
        "estimated_material_cost": None,
        "std_time_per_unit": None,
        "status": "pending",
        "customer_name": None,
    }
    values.update(fields)
    db = get_db()
    db.execute(
        """
        INSERT INTO orders (
            order_id, product_name, qty, due_date, sales,
            estimated_material_cost, std_time_per_unit, status, customer_name
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            order_id,
            values["product_name"],
            values["qty"],
            values["due_date"],
            values["sales"],
            values["estimated_material_cost"],
            values["std_time_per_unit"],
            values["status"],
            values["customer_name"],
        ),
    )
    db.commit()


def insert_procurement(order_id: str, kind: str, **fields) -> int:
    values = {
        "item_name": None,
        "qty": None,
        "unit_price": None,
        "act_time_per_unit": None,
        "status": None,
        "eta": None,
        "received_at": None,
        "completed_at": None,
    }
    values.update(fields)
    db = get_db()
    cursor = db.execute(
        """
        INSERT INTO procurements (
            order_id, kind, item_name, qty, unit_price, act_time_per_unit,
            status, eta, received_at, completed_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            order_id,
            kind,
            values["item_name"],
            values["qty"],
            values["unit_price"],
            values["act_time_per_unit"],
            values["status"],
            values["eta"],
            values["received_at"],
            values["completed_at"],
        ),
    )
    db.commit()
    return int(cursor.lastrowid)


def insert_worker_log(order_id: str, qty, act_time_per_unit, worker: str = "worker", date: str | None = None) -> None:
    db = get_db()
    db.execute(
        "INSERT INTO worker_time_logs (order_id, qty, act_time_per_unit, worker, date) VALUES (?, ?, ?, ?, ?)",
        (order_id, qty, act_time_per_unit, worker, date),
    )
    db.commit()


def insert_sample_order_o1() -> None:
    insert_order(
        "O1",
        product_name="Bracket",
        qty=10,
        due_date="2025-03-01",
        sales=100000,
        estimated_material_cost=500,
        std_time_per_unit=2,
    )
    insert_procurement("O1", "purchase", item_name="Steel plate", qty=10, unit_price=50, status="received")
    insert_procurement("O1", "manufacture", item_name="Welding", qty=10, act_time_per_unit=1.5, status="done")
    insert_worker_log("O1", 10, 0.3)
