from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Sequence

from production_kpi.domain.contracts import (
    DashboardKPI,
    KpiFilter,
    OrderKPI,
    OrderKpiPage,
    OrderRecord,
    ProcurementRecord,
)
from production_kpi.infrastructure.repositories.production import ProductionRecordRepository
from production_kpi.production.kpi_calculator import (
    MANUFACTURE,
    MANUFACTURE_DONE,
    PURCHASE,
    PURCHASE_RECEIVED,
    OrderKpiCalculator,
)
from production_kpi.production.normalizer import normalize_order


DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def completion_rate(completed: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return (completed / total) * 100


def average_variance(kpis: Iterable[OrderKPI]) -> float:
    # Orders with an unset standard, or an exact zero variance, stay out of the mean.
    values = [kpi.variance for kpi in kpis if kpi.variance is not None and kpi.variance != 0]
    if not values:
        return 0.0
    return sum(values) / len(values)


def summarize_dashboard(kpis: Sequence[OrderKPI], procurements: Iterable[ProcurementRecord]) -> DashboardKPI:
    total_sales = 0.0
    total_gross_profit = 0.0
    total_std_hours = 0.0
    total_actual_hours = 0.0
    for kpi in kpis:
        total_sales += kpi.sales
        total_gross_profit += kpi.gross_profit
        total_std_hours += kpi.qty * kpi.std_time_per_unit
        total_actual_hours += kpi.qty * kpi.actual_time_per_unit

    purchase_total = purchase_received = 0
    manufacture_total = manufacture_done = 0
    for row in procurements:
        if row.kind == PURCHASE:
            purchase_total += 1
            if row.status == PURCHASE_RECEIVED:
                purchase_received += 1
        elif row.kind == MANUFACTURE:
            manufacture_total += 1
            if row.status == MANUFACTURE_DONE:
                manufacture_done += 1

    return DashboardKPI(
        total_sales=total_sales,
        total_gross_profit=total_gross_profit,
        total_std_hours=total_std_hours,
        total_actual_hours=total_actual_hours,
        avg_variance_pct=average_variance(kpis),
        purchase_completion_rate=completion_rate(purchase_received, purchase_total),
        manufacture_completion_rate=completion_rate(manufacture_done, manufacture_total),
    )


class KpiAggregator:
    """Runs the KPI calculator over single orders and filtered order sets.

    Any failure while reading or computing one order propagates and aborts
    the whole batch; totals are never built from a partial order set.
    """

    def __init__(
        self,
        repository: ProductionRecordRepository,
        calculator: OrderKpiCalculator,
        *,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> None:
        self.repository = repository
        self.calculator = calculator
        self.max_page_size = max(1, min(int(max_page_size), MAX_PAGE_SIZE))

    def clamp_page(self, filters: KpiFilter) -> KpiFilter:
        page = max(1, int(filters.page or 1))
        page_size = max(1, min(int(filters.page_size or DEFAULT_PAGE_SIZE), self.max_page_size))
        return replace(filters, page=page, page_size=page_size)

    def order_kpi(self, db, order_id: str) -> OrderKPI | None:
        order = self.repository.get_order(db, order_id)
        if order is None:
            return None
        return self.calculator(
            normalize_order(order),
            self.repository.list_procurements(db, order.order_id),
            self.repository.list_worker_logs(db, order.order_id),
        )

    def kpis_for_orders(
        self,
        db,
        orders: Sequence[OrderRecord],
        procurements: Dict[str, List[ProcurementRecord]] | None = None,
    ) -> List[OrderKPI]:
        order_ids = [order.order_id for order in orders]
        if procurements is None:
            procurements = self.repository.procurements_by_order(db, order_ids)
        worker_logs = self.repository.worker_logs_by_order(db, order_ids)
        return [
            self.calculator(
                normalize_order(order),
                procurements.get(order.order_id, []),
                worker_logs.get(order.order_id, []),
            )
            for order in orders
        ]

    def list_order_kpis(self, db, filters: KpiFilter) -> OrderKpiPage:
        page_filter = self.clamp_page(filters)
        total = self.repository.count_orders(db, page_filter)
        orders = self.repository.list_orders(db, page_filter, paginate=True)
        return OrderKpiPage(
            items=self.kpis_for_orders(db, orders),
            total=total,
            page=page_filter.page,
            page_size=page_filter.page_size,
        )

    def export_kpis(self, db, filters: KpiFilter) -> List[OrderKPI]:
        orders = self.repository.list_orders(db, filters, paginate=False)
        return self.kpis_for_orders(db, orders)

    def dashboard(self, db, filters: KpiFilter) -> tuple[DashboardKPI, int]:
        orders = self.repository.list_orders(db, filters.date_range_only(), paginate=False)
        procurements = self.repository.procurements_by_order(db, [order.order_id for order in orders])
        kpis = self.kpis_for_orders(db, orders, procurements=procurements)
        rows = [row for order in orders for row in procurements.get(order.order_id, [])]
        return summarize_dashboard(kpis, rows), len(kpis)
