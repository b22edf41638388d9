from __future__ import annotations

import csv
import io

from flask import Blueprint, Response, current_app, jsonify, request

from production_kpi.application.metrics_service import ProductionMetricsService
from production_kpi.db import get_read_db
from production_kpi.errors import NotFoundError
from production_kpi.production.filters import parse_calendar_filters, parse_date_range_filters, parse_kpi_filters


kpi_bp = Blueprint("kpi", __name__)


CSV_COLUMNS = (
    "order_id",
    "product_name",
    "customer_name",
    "qty",
    "due_date",
    "status",
    "sales",
    "estimated_material_cost",
    "std_time_per_unit",
    "material_cost",
    "labor_cost",
    "gross_profit",
    "actual_time_per_unit",
    "variance_pct",
)


def _service() -> ProductionMetricsService:
    return current_app.extensions["production_metrics"]


def _kpi_filters():
    return parse_kpi_filters(
        request.args,
        default_page_size=int(current_app.config.get("KPI_DEFAULT_PAGE_SIZE", 20)),
        max_page_size=int(current_app.config.get("KPI_MAX_PAGE_SIZE", 100)),
    )


def _order_not_found(order_id: str) -> NotFoundError:
    return NotFoundError(
        code="order_not_found",
        message_key="order_not_found",
        details=f"order_id={order_id!r}",
        payload={"order_id": order_id},
    )


@kpi_bp.route("/api/kpi/orders", methods=["GET"])
def order_kpis_api():
    page = _service().list_order_kpis(get_read_db(), _kpi_filters())
    return jsonify(page.to_dict())


@kpi_bp.route("/api/kpi/orders/<path:order_id>", methods=["GET"])
def order_kpi_api(order_id: str):
    kpi = _service().get_order_kpi(get_read_db(), order_id)
    if kpi is None:
        raise _order_not_found(order_id)
    return jsonify(kpi.to_dict())


@kpi_bp.route("/api/orders/<path:order_id>", methods=["GET"])
def order_detail_api(order_id: str):
    detail = _service().get_order_detail(get_read_db(), order_id)
    if detail is None:
        raise _order_not_found(order_id)
    return jsonify(detail.to_dict())


@kpi_bp.route("/api/kpi/summary", methods=["GET"])
def dashboard_kpi_api():
    dashboard = _service().compute_dashboard_kpi(get_read_db(), parse_date_range_filters(request.args))
    return jsonify(dashboard.to_dict())


@kpi_bp.route("/api/calendar", methods=["GET"])
def calendar_api():
    events = _service().get_calendar_events(get_read_db(), parse_calendar_filters(request.args))
    return jsonify({"events": [event.to_dict() for event in events], "total": len(events)})


@kpi_bp.route("/api/export/csv", methods=["GET"])
def export_csv_api():
    rows = _service().export_kpis_as_rows(get_read_db(), _kpi_filters())

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for kpi in rows:
        writer.writerow(kpi.to_dict())

    response = Response(buffer.getvalue(), mimetype="text/csv")
    response.headers["Content-Disposition"] = "attachment; filename=order_kpis.csv"
    return response
