"""Null-safe defaults applied to every order before KPI arithmetic.

Single-order and batch paths both go through ``normalize_order`` so they
agree on every substituted value.
"""
from __future__ import annotations

from typing import Any

from production_kpi.domain.contracts import NormalizedOrder, OrderRecord


DEFAULT_ORDER_STATUS = "pending"
EMPTY_DUE_DATE = ""


def safe_float(value: Any, default: float = 0.0) -> float:
    if value in (None, ""):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _text(value: Any, default: str) -> str:
    if value is None:
        return default
    return str(value)


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def normalize_order(record: OrderRecord) -> NormalizedOrder:
    return NormalizedOrder(
        order_id=str(record.order_id),
        product_name=_text(record.product_name, ""),
        qty=safe_float(record.qty),
        due_date=_text(record.due_date, EMPTY_DUE_DATE).strip(),
        sales=safe_float(record.sales),
        estimated_material_cost=safe_float(record.estimated_material_cost),
        std_time_per_unit=safe_float(record.std_time_per_unit),
        status=_text(record.status, DEFAULT_ORDER_STATUS),
        customer_name=_optional_text(record.customer_name),
    )
