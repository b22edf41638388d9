from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable, List, TypeVar

from production_kpi.domain.contracts import (
    CalendarEvent,
    DashboardKPI,
    KpiFilter,
    OrderDetail,
    OrderKPI,
    OrderKpiPage,
)
from production_kpi.infrastructure.repositories.production import ProductionRecordRepository
from production_kpi.observability import observe_calendar_event_skipped, observe_kpi_computation
from production_kpi.production.aggregator import MAX_PAGE_SIZE, KpiAggregator
from production_kpi.production.calendar_events import project_calendar_events
from production_kpi.production.kpi_calculator import DEFAULT_WAGE_RATE, OrderKpiCalculator


T = TypeVar("T")


class ProductionMetricsService:
    """Read-side entry point for order KPIs, dashboard totals and calendar events.

    Every call re-reads the store; nothing is cached between calls.
    """

    def __init__(
        self,
        *,
        wage_rate: float = DEFAULT_WAGE_RATE,
        max_page_size: int = MAX_PAGE_SIZE,
        repository: ProductionRecordRepository | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.repository = repository or ProductionRecordRepository()
        self.calculator = OrderKpiCalculator(wage_rate=wage_rate)
        self.aggregator = KpiAggregator(self.repository, self.calculator, max_page_size=max_page_size)
        self._clock = clock
        self._logger = logging.getLogger("production_kpi")

    def _run(self, operation: str, fn: Callable[[], T], count: Callable[[T], int]) -> T:
        started = time.perf_counter()
        try:
            result = fn()
        except Exception:
            observe_kpi_computation(operation, "error", 0, (time.perf_counter() - started) * 1000.0)
            raise
        observe_kpi_computation(operation, "ok", count(result), (time.perf_counter() - started) * 1000.0)
        return result

    def get_order_kpi(self, db, order_id: str) -> OrderKPI | None:
        return self._run(
            "order_kpi",
            lambda: self.aggregator.order_kpi(db, str(order_id)),
            lambda kpi: 0 if kpi is None else 1,
        )

    def get_order_detail(self, db, order_id: str) -> OrderDetail | None:
        def _detail() -> OrderDetail | None:
            order = self.repository.get_order(db, str(order_id))
            if order is None:
                return None
            procurements = self.repository.list_procurements(db, order.order_id)
            worker_logs = self.repository.list_worker_logs(db, order.order_id)
            kpi = self.aggregator.kpis_for_orders(db, [order], procurements={order.order_id: procurements})[0]
            return OrderDetail(order=order, kpi=kpi, procurements=procurements, worker_logs=worker_logs)

        return self._run("order_detail", _detail, lambda detail: 0 if detail is None else 1)

    def list_order_kpis(self, db, filters: KpiFilter) -> OrderKpiPage:
        return self._run(
            "list_order_kpis",
            lambda: self.aggregator.list_order_kpis(db, filters),
            lambda page: len(page.items),
        )

    def compute_dashboard_kpi(self, db, filters: KpiFilter) -> DashboardKPI:
        dashboard, _orders = self._run(
            "dashboard_kpi",
            lambda: self.aggregator.dashboard(db, filters),
            lambda result: result[1],
        )
        return dashboard

    def export_kpis_as_rows(self, db, filters: KpiFilter) -> List[OrderKPI]:
        return self._run("export_kpis", lambda: self.aggregator.export_kpis(db, filters), len)

    def get_calendar_events(self, db, filters: KpiFilter) -> List[CalendarEvent]:
        def _events() -> List[CalendarEvent]:
            orders = self.repository.list_orders(db, filters.date_range_only(), paginate=False)
            grouped = self.repository.procurements_by_order(db, [order.order_id for order in orders])
            procurements = [row for order in orders for row in grouped.get(order.order_id, [])]
            now = self._clock() if self._clock is not None else None
            return project_calendar_events(orders, procurements, now=now, on_skip=self._record_skipped_row)

        return self._run("calendar_events", _events, len)

    def _record_skipped_row(self, source: str, row_id: str, raw_value: str) -> None:
        observe_calendar_event_skipped(source, "malformed_date")
        self._logger.warning(
            "calendar_row_skipped",
            extra={"source": source, "row_id": row_id, "raw_date": raw_value, "reason": "malformed_date"},
        )
