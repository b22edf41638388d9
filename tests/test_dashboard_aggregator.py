import unittest

from production_kpi.domain.contracts import KpiFilter, OrderRecord, ProcurementRecord, WorkerTimeLogRecord
from production_kpi.production.aggregator import KpiAggregator, completion_rate, summarize_dashboard
from production_kpi.production.kpi_calculator import OrderKpiCalculator, compute_order_kpi
from production_kpi.production.normalizer import normalize_order


class _FakeProductionRepo:
    def __init__(self, orders, procurements=None, worker_logs=None) -> None:
        self.orders = list(orders)
        self.procurements = list(procurements or [])
        self.worker_logs = list(worker_logs or [])
        self.list_calls = []

    def get_order(self, _db, order_id: str):
        return next((order for order in self.orders if order.order_id == order_id), None)

    def count_orders(self, _db, _filters) -> int:
        return len(self.orders)

    def list_orders(self, _db, filters, *, paginate: bool = False):
        self.list_calls.append((filters, paginate))
        if not paginate:
            return list(self.orders)
        return self.orders[filters.offset : filters.offset + filters.page_size]

    def procurements_by_order(self, _db, order_ids):
        grouped = {}
        for row in self.procurements:
            if row.order_id in order_ids:
                grouped.setdefault(row.order_id, []).append(row)
        return grouped

    def worker_logs_by_order(self, _db, order_ids):
        grouped = {}
        for row in self.worker_logs:
            if row.order_id in order_ids:
                grouped.setdefault(row.order_id, []).append(row)
        return grouped

    def list_procurements(self, db, order_id):
        return self.procurements_by_order(db, [order_id]).get(order_id, [])

    def list_worker_logs(self, db, order_id):
        return self.worker_logs_by_order(db, [order_id]).get(order_id, [])


def _o1() -> OrderRecord:
    return OrderRecord(
        order_id="O1",
        product_name="Bracket",
        qty=10,
        due_date="2025-03-01",
        sales=100000,
        estimated_material_cost=500,
        std_time_per_unit=2,
    )


def _o1_procurements():
    return [
        ProcurementRecord(id=1, order_id="O1", kind="purchase", qty=10, unit_price=50, status="received"),
        ProcurementRecord(id=2, order_id="O1", kind="manufacture", qty=10, act_time_per_unit=1.5, status="done"),
    ]


def _o1_logs():
    return [WorkerTimeLogRecord(id=1, order_id="O1", qty=10, act_time_per_unit=0.3)]


class DashboardSummaryTest(unittest.TestCase):
    def test_average_variance_skips_unset_standard(self) -> None:
        with_standard = compute_order_kpi(normalize_order(_o1()), _o1_procurements(), _o1_logs())
        without_standard = compute_order_kpi(
            normalize_order(OrderRecord(order_id="O2", qty=5, sales=1000, std_time_per_unit=None)),
            [],
            [],
        )

        dashboard = summarize_dashboard([with_standard, without_standard], [])

        self.assertAlmostEqual(dashboard.avg_variance_pct, -10.0)
        self.assertAlmostEqual(dashboard.total_sales, 101000.0)
        self.assertAlmostEqual(dashboard.total_std_hours, 20.0)
        self.assertAlmostEqual(dashboard.total_actual_hours, 18.0)

    def test_completion_rates_are_zero_without_procurements(self) -> None:
        dashboard = summarize_dashboard([], [])

        self.assertEqual(dashboard.purchase_completion_rate, 0.0)
        self.assertEqual(dashboard.manufacture_completion_rate, 0.0)
        self.assertEqual(dashboard.avg_variance_pct, 0.0)

    def test_completion_rates_count_terminal_status_per_kind(self) -> None:
        rows = [
            ProcurementRecord(id=1, order_id="A", kind="purchase", status="received"),
            ProcurementRecord(id=2, order_id="A", kind="purchase", status="ordered"),
            ProcurementRecord(id=3, order_id="A", kind="purchase", status="planned"),
            ProcurementRecord(id=4, order_id="A", kind="purchase", status="received"),
            ProcurementRecord(id=5, order_id="A", kind="manufacture", status="done"),
            ProcurementRecord(id=6, order_id="A", kind="manufacture", status="in-progress"),
        ]

        dashboard = summarize_dashboard([], rows)

        self.assertAlmostEqual(dashboard.purchase_completion_rate, 50.0)
        self.assertAlmostEqual(dashboard.manufacture_completion_rate, 50.0)

    def test_completion_rate_bounds(self) -> None:
        self.assertEqual(completion_rate(0, 0), 0.0)
        self.assertEqual(completion_rate(3, 3), 100.0)
        self.assertEqual(completion_rate(0, 4), 0.0)


class KpiAggregatorTest(unittest.TestCase):
    def _aggregator(self, repo, **kwargs) -> KpiAggregator:
        return KpiAggregator(repo, OrderKpiCalculator(), **kwargs)

    def test_page_size_is_capped(self) -> None:
        orders = [OrderRecord(order_id=f"P{idx:03d}", qty=1, due_date="2025-01-01") for idx in range(150)]
        repo = _FakeProductionRepo(orders)

        page = self._aggregator(repo).list_order_kpis(None, KpiFilter(page=1, page_size=500))

        self.assertEqual(page.page_size, 100)
        self.assertEqual(len(page.items), 100)
        self.assertEqual(page.total, 150)

    def test_configured_cap_never_exceeds_hard_limit(self) -> None:
        aggregator = self._aggregator(_FakeProductionRepo([]), max_page_size=1000)
        self.assertEqual(aggregator.clamp_page(KpiFilter(page=0, page_size=500)).page_size, 100)
        self.assertEqual(aggregator.clamp_page(KpiFilter(page=0, page_size=500)).page, 1)

    def test_dashboard_ignores_text_filter(self) -> None:
        repo = _FakeProductionRepo([_o1()], _o1_procurements(), _o1_logs())

        dashboard, order_count = self._aggregator(repo).dashboard(None, KpiFilter(q="nothing-matches"))

        self.assertEqual(order_count, 1)
        self.assertEqual(repo.list_calls[-1][0].q, "")
        self.assertAlmostEqual(dashboard.total_gross_profit, 58500.0)
        self.assertEqual(dashboard.purchase_completion_rate, 100.0)

    def test_single_order_kpi_matches_batch(self) -> None:
        repo = _FakeProductionRepo([_o1()], _o1_procurements(), _o1_logs())
        aggregator = self._aggregator(repo)

        single = aggregator.order_kpi(None, "O1")
        batch = aggregator.export_kpis(None, KpiFilter())

        self.assertEqual(single, batch[0])
        self.assertIsNone(aggregator.order_kpi(None, "missing"))

    def test_failure_in_batch_propagates(self) -> None:
        class _BrokenRepo(_FakeProductionRepo):
            def worker_logs_by_order(self, _db, order_ids):
                raise RuntimeError("store went away")

        repo = _BrokenRepo([_o1()], _o1_procurements())
        with self.assertRaises(RuntimeError):
            self._aggregator(repo).dashboard(None, KpiFilter())


if __name__ == "__main__":
    unittest.main()
