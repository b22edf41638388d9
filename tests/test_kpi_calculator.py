import unittest

from production_kpi.domain.contracts import OrderRecord, ProcurementRecord, WorkerTimeLogRecord
from production_kpi.production.kpi_calculator import (
    OrderKpiCalculator,
    compute_order_kpi,
    purchase_material_cost,
    variance_percent,
)
from production_kpi.production.normalizer import normalize_order, safe_float


def _order(**fields) -> OrderRecord:
    base = {
        "order_id": "O1",
        "product_name": "Bracket",
        "qty": 10,
        "due_date": "2025-03-01",
        "sales": 100000,
        "estimated_material_cost": 500,
        "std_time_per_unit": 2,
        "status": "pending",
    }
    base.update(fields)
    return OrderRecord(**base)


def _o1_rows():
    procurements = [
        ProcurementRecord(id=1, order_id="O1", kind="purchase", qty=10, unit_price=50, status="received"),
        ProcurementRecord(id=2, order_id="O1", kind="manufacture", qty=10, act_time_per_unit=1.5, status="done"),
    ]
    worker_logs = [WorkerTimeLogRecord(id=1, order_id="O1", qty=10, act_time_per_unit=0.3)]
    return procurements, worker_logs


class NormalizerTest(unittest.TestCase):
    def test_nulls_become_defaults(self) -> None:
        order = normalize_order(OrderRecord(order_id="N1"))

        self.assertEqual(order.product_name, "")
        self.assertEqual(order.qty, 0.0)
        self.assertEqual(order.due_date, "")
        self.assertEqual(order.sales, 0.0)
        self.assertEqual(order.estimated_material_cost, 0.0)
        self.assertEqual(order.std_time_per_unit, 0.0)
        self.assertEqual(order.status, "pending")
        self.assertIsNone(order.customer_name)

    def test_present_values_pass_through(self) -> None:
        order = normalize_order(_order(status="completed", customer_name="ACME", qty="12.5"))

        self.assertEqual(order.status, "completed")
        self.assertEqual(order.customer_name, "ACME")
        self.assertEqual(order.qty, 12.5)

    def test_empty_text_is_kept_as_stored(self) -> None:
        order = normalize_order(_order(status="", customer_name=""))

        self.assertEqual(order.status, "")
        self.assertEqual(order.customer_name, "")
        self.assertEqual(normalize_order(_order(customer_name="  ")).customer_name, "  ")

    def test_blank_customer_name_is_still_reported(self) -> None:
        kpi = compute_order_kpi(normalize_order(_order(customer_name="")), [], [])
        self.assertEqual(kpi.to_dict()["customer_name"], "")

    def test_safe_float_rejects_garbage(self) -> None:
        self.assertEqual(safe_float("abc"), 0.0)
        self.assertEqual(safe_float(None, default=3.0), 3.0)
        self.assertEqual(safe_float("4"), 4.0)


class OrderKpiCalculatorTest(unittest.TestCase):
    def test_reference_order(self) -> None:
        procurements, worker_logs = _o1_rows()
        kpi = compute_order_kpi(normalize_order(_order()), procurements, worker_logs)

        self.assertAlmostEqual(kpi.material_cost, 5500.0)
        self.assertAlmostEqual(kpi.actual_time_per_unit, 1.8)
        self.assertAlmostEqual(kpi.labor_cost, 36000.0)
        self.assertAlmostEqual(kpi.gross_profit, 58500.0)
        self.assertAlmostEqual(kpi.variance_pct, -10.0)

    def test_zero_qty_drops_base_material_and_time_per_unit(self) -> None:
        procurements, worker_logs = _o1_rows()
        kpi = compute_order_kpi(normalize_order(_order(qty=0)), procurements, worker_logs)

        self.assertEqual(kpi.actual_time_per_unit, 0.0)
        self.assertAlmostEqual(kpi.material_cost, purchase_material_cost(procurements))

    def test_unset_standard_time_reports_zero_variance(self) -> None:
        procurements, worker_logs = _o1_rows()
        kpi = compute_order_kpi(normalize_order(_order(std_time_per_unit=None)), procurements, worker_logs)

        self.assertIsNone(kpi.variance)
        self.assertEqual(kpi.variance_pct, 0.0)
        self.assertEqual(kpi.to_dict()["variance_pct"], 0.0)
        self.assertNotIn("variance", kpi.to_dict())

    def test_purchase_not_received_contributes_nothing(self) -> None:
        planned = ProcurementRecord(id=9, order_id="O1", kind="purchase", qty=5, unit_price=100, status="planned")
        kpi = compute_order_kpi(normalize_order(_order(estimated_material_cost=0)), [planned], [])

        self.assertEqual(kpi.material_cost, 0.0)

    def test_manufacture_hours_count_regardless_of_status(self) -> None:
        planned = ProcurementRecord(id=3, order_id="O1", kind="manufacture", qty=10, act_time_per_unit=2, status="planned")
        kpi = compute_order_kpi(normalize_order(_order()), [planned], [])

        self.assertAlmostEqual(kpi.labor_cost, 2000.0 * 20)

    def test_gross_profit_identity(self) -> None:
        procurements, worker_logs = _o1_rows()
        for order in (_order(), _order(qty=0), _order(sales=None), _order(std_time_per_unit=0)):
            kpi = compute_order_kpi(normalize_order(order), procurements, worker_logs)
            self.assertAlmostEqual(kpi.gross_profit, kpi.sales - kpi.material_cost - kpi.labor_cost)

    def test_wage_rate_is_injected(self) -> None:
        procurements, worker_logs = _o1_rows()
        calculator = OrderKpiCalculator(wage_rate=1000)
        kpi = calculator(normalize_order(_order()), procurements, worker_logs)

        self.assertAlmostEqual(kpi.labor_cost, 18000.0)
        self.assertAlmostEqual(kpi.gross_profit, 100000 - 5500 - 18000)

    def test_is_deterministic(self) -> None:
        procurements, worker_logs = _o1_rows()
        order = normalize_order(_order())
        self.assertEqual(
            compute_order_kpi(order, procurements, worker_logs),
            compute_order_kpi(order, procurements, worker_logs),
        )

    def test_variance_percent_guards_non_positive_standard(self) -> None:
        self.assertIsNone(variance_percent(1.0, 0.0))
        self.assertIsNone(variance_percent(1.0, -1.0))
        self.assertAlmostEqual(variance_percent(3.0, 2.0), 50.0)

    def test_customer_name_omitted_when_absent(self) -> None:
        kpi = compute_order_kpi(normalize_order(_order(customer_name=None)), [], [])
        self.assertNotIn("customer_name", kpi.to_dict())


if __name__ == "__main__":
    unittest.main()
