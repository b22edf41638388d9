from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import date
from typing import Any, Dict, List


@dataclass(frozen=True)
class OrderRecord:
    """Order row as stored; ``None`` marks a null column."""

    order_id: str
    product_name: str | None = None
    qty: Any = None
    due_date: str | None = None
    sales: Any = None
    estimated_material_cost: Any = None
    std_time_per_unit: Any = None
    status: str | None = None
    customer_name: str | None = None


@dataclass(frozen=True)
class ProcurementRecord:
    id: int
    order_id: str
    kind: str
    item_name: str | None = None
    qty: Any = None
    unit_price: Any = None
    act_time_per_unit: Any = None
    status: str | None = None
    eta: str | None = None
    received_at: str | None = None
    completed_at: str | None = None


@dataclass(frozen=True)
class WorkerTimeLogRecord:
    id: int
    order_id: str
    qty: Any = None
    act_time_per_unit: Any = None
    worker: str | None = None
    date: str | None = None


@dataclass(frozen=True)
class NormalizedOrder:
    order_id: str
    product_name: str
    qty: float
    due_date: str
    sales: float
    estimated_material_cost: float
    std_time_per_unit: float
    status: str
    customer_name: str | None


@dataclass(frozen=True)
class OrderKPI:
    order_id: str
    product_name: str
    qty: float
    due_date: str
    sales: float
    estimated_material_cost: float
    std_time_per_unit: float
    status: str
    customer_name: str | None
    material_cost: float
    labor_cost: float
    gross_profit: float
    actual_time_per_unit: float
    variance: float | None

    @property
    def variance_pct(self) -> float:
        return 0.0 if self.variance is None else self.variance

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload.pop("variance")
        payload["variance_pct"] = self.variance_pct
        if self.customer_name is None:
            payload.pop("customer_name")
        return payload


@dataclass(frozen=True)
class DashboardKPI:
    total_sales: float = 0.0
    total_gross_profit: float = 0.0
    total_std_hours: float = 0.0
    total_actual_hours: float = 0.0
    avg_variance_pct: float = 0.0
    purchase_completion_rate: float = 0.0
    manufacture_completion_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    title: str
    date: str
    type: str
    status: str
    order_id: str
    procurement_id: int | None = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        if self.procurement_id is None:
            payload.pop("procurement_id")
        return payload


@dataclass(frozen=True)
class KpiFilter:
    date_from: date | None = None
    date_to: date | None = None
    q: str = ""
    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def date_range_only(self) -> "KpiFilter":
        return replace(self, q="")

    def describe(self) -> Dict[str, Any]:
        return {
            "from": self.date_from.isoformat() if self.date_from else "",
            "to": self.date_to.isoformat() if self.date_to else "",
            "q": self.q,
            "page": self.page,
            "pageSize": self.page_size,
        }


@dataclass(frozen=True)
class OrderKpiPage:
    items: List[OrderKPI]
    total: int
    page: int
    page_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
        }


@dataclass(frozen=True)
class OrderDetail:
    order: OrderRecord
    kpi: OrderKPI
    procurements: List[ProcurementRecord] = field(default_factory=list)
    worker_logs: List[WorkerTimeLogRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order": asdict(self.order),
            "kpi": self.kpi.to_dict(),
            "procurements": [asdict(row) for row in self.procurements],
            "worker_logs": [asdict(row) for row in self.worker_logs],
        }
