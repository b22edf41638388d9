"""Per-order cost, profit and labor-time variance.

material_cost = qty * estimated_material_cost
                + sum(qty * unit_price) over received purchases
labor_cost    = wage_rate * (manufacture hours + worker log hours)
gross_profit  = sales - (material_cost + labor_cost)
variance_pct  = (actual_time_per_unit - std_time_per_unit) / std_time_per_unit * 100

Manufacture hours count whatever the procurement status is. Values are not
rounded here.
"""
from __future__ import annotations

from typing import Iterable

from production_kpi.domain.contracts import NormalizedOrder, OrderKPI, ProcurementRecord, WorkerTimeLogRecord
from production_kpi.production.normalizer import safe_float


DEFAULT_WAGE_RATE = 2000.0

PURCHASE = "purchase"
MANUFACTURE = "manufacture"
PURCHASE_RECEIVED = "received"
MANUFACTURE_DONE = "done"


def purchase_material_cost(procurements: Iterable[ProcurementRecord]) -> float:
    total = 0.0
    for row in procurements:
        if row.kind == PURCHASE and row.status == PURCHASE_RECEIVED:
            total += safe_float(row.qty) * safe_float(row.unit_price)
    return total


def manufacture_hours(procurements: Iterable[ProcurementRecord]) -> float:
    total = 0.0
    for row in procurements:
        if row.kind == MANUFACTURE:
            total += safe_float(row.qty) * safe_float(row.act_time_per_unit)
    return total


def worker_log_hours(worker_logs: Iterable[WorkerTimeLogRecord]) -> float:
    total = 0.0
    for row in worker_logs:
        total += safe_float(row.qty) * safe_float(row.act_time_per_unit)
    return total


def variance_percent(actual_time_per_unit: float, std_time_per_unit: float) -> float | None:
    if std_time_per_unit <= 0:
        return None
    return ((actual_time_per_unit - std_time_per_unit) / std_time_per_unit) * 100


def compute_order_kpi(
    order: NormalizedOrder,
    procurements: Iterable[ProcurementRecord],
    worker_logs: Iterable[WorkerTimeLogRecord],
    wage_rate: float = DEFAULT_WAGE_RATE,
) -> OrderKPI:
    procurement_rows = list(procurements)

    material_cost = order.qty * order.estimated_material_cost + purchase_material_cost(procurement_rows)
    total_actual_hours = manufacture_hours(procurement_rows) + worker_log_hours(worker_logs)
    actual_time_per_unit = total_actual_hours / order.qty if order.qty > 0 else 0.0
    labor_cost = wage_rate * total_actual_hours

    return OrderKPI(
        order_id=order.order_id,
        product_name=order.product_name,
        qty=order.qty,
        due_date=order.due_date,
        sales=order.sales,
        estimated_material_cost=order.estimated_material_cost,
        std_time_per_unit=order.std_time_per_unit,
        status=order.status,
        customer_name=order.customer_name,
        material_cost=material_cost,
        labor_cost=labor_cost,
        gross_profit=order.sales - (material_cost + labor_cost),
        actual_time_per_unit=actual_time_per_unit,
        variance=variance_percent(actual_time_per_unit, order.std_time_per_unit),
    )


class OrderKpiCalculator:
    """Binds the wage rate once so callers cannot vary it per order."""

    def __init__(self, wage_rate: float = DEFAULT_WAGE_RATE) -> None:
        self.wage_rate = float(wage_rate)

    def __call__(
        self,
        order: NormalizedOrder,
        procurements: Iterable[ProcurementRecord],
        worker_logs: Iterable[WorkerTimeLogRecord],
    ) -> OrderKPI:
        return compute_order_kpi(order, procurements, worker_logs, wage_rate=self.wage_rate)
