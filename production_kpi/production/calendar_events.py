from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Iterator, List, Sequence, Tuple

from production_kpi.domain.contracts import CalendarEvent, OrderRecord, ProcurementRecord
from production_kpi.production.kpi_calculator import MANUFACTURE_DONE, PURCHASE, PURCHASE_RECEIVED
from production_kpi.production.normalizer import normalize_order
from production_kpi.ui_strings import calendar_event_title


SkipCallback = Callable[[str, str, str], None]

_FALLBACK_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y/%m/%d", "%Y-%m-%d")


def parse_event_datetime(raw_value: Any) -> datetime | None:
    if raw_value in (None, ""):
        return None
    value = str(raw_value).strip()
    if not value:
        return None
    try:
        if value.endswith("Z"):
            parsed = datetime.fromisoformat(value[:-1] + "+00:00")
        else:
            parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except ValueError:
        pass

    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def _has_value(raw_value: Any) -> bool:
    return raw_value is not None and bool(str(raw_value).strip())


class CalendarProjection:
    """Chronological calendar events for a fixed set of source rows.

    Iterating re-projects the rows each time, so the sequence can be walked
    more than once. Events sharing a timestamp keep source order: order due
    dates first, then each procurement's eta, received and completed events.
    Rows whose date cannot be parsed are reported to ``on_skip`` and left
    out.
    """

    def __init__(
        self,
        orders: Sequence[OrderRecord],
        procurements: Sequence[ProcurementRecord],
        *,
        now: datetime | None = None,
        on_skip: SkipCallback | None = None,
    ) -> None:
        self._orders = list(orders)
        self._procurements = list(procurements)
        self._now = now
        self._on_skip = on_skip

    def __iter__(self) -> Iterator[CalendarEvent]:
        keyed = list(self._keyed_events())
        keyed.sort(key=lambda item: item[0])
        for _when, event in keyed:
            yield event

    def _skip(self, source: str, row_id: Any, raw_value: Any) -> None:
        if self._on_skip is not None:
            self._on_skip(source, str(row_id), str(raw_value))

    def _reference_now(self) -> datetime:
        now = self._now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(timezone.utc)

    def _keyed_events(self) -> Iterable[Tuple[datetime, CalendarEvent]]:
        now = self._reference_now()
        for record in self._orders:
            order = normalize_order(record)
            if not order.due_date:
                continue
            when = parse_event_datetime(order.due_date)
            if when is None:
                self._skip("order_due_date", order.order_id, order.due_date)
                continue
            yield when, CalendarEvent(
                id=f"order-{order.order_id}",
                title=calendar_event_title("due_date", order.product_name),
                date=order.due_date,
                type="due_date",
                status="overdue" if when < now else "pending",
                order_id=order.order_id,
            )

        for proc in self._procurements:
            yield from self._procurement_events(proc)

    def _procurement_events(self, proc: ProcurementRecord) -> Iterable[Tuple[datetime, CalendarEvent]]:
        if _has_value(proc.eta):
            eta_kind = "eta_purchase" if proc.kind == PURCHASE else "eta_manufacture"
            finished = proc.status in (PURCHASE_RECEIVED, MANUFACTURE_DONE)
            event = self._procurement_event(proc, "eta", proc.eta, eta_kind, "completed" if finished else "pending")
            if event is not None:
                yield event
        if _has_value(proc.received_at):
            event = self._procurement_event(proc, "received", proc.received_at, "received", "completed")
            if event is not None:
                yield event
        if _has_value(proc.completed_at):
            event = self._procurement_event(proc, "completed", proc.completed_at, "completed", "completed")
            if event is not None:
                yield event

    def _procurement_event(
        self,
        proc: ProcurementRecord,
        event_type: str,
        raw_date: Any,
        title_kind: str,
        status: str,
    ) -> Tuple[datetime, CalendarEvent] | None:
        date_text = str(raw_date).strip()
        when = parse_event_datetime(date_text)
        if when is None:
            self._skip(f"procurement_{event_type}", proc.id, date_text)
            return None
        return when, CalendarEvent(
            id=f"proc-{event_type}-{proc.id}",
            title=calendar_event_title(title_kind, proc.item_name),
            date=date_text,
            type=event_type,
            status=status,
            order_id=proc.order_id,
            procurement_id=proc.id,
        )


def project_calendar_events(
    orders: Sequence[OrderRecord],
    procurements: Sequence[ProcurementRecord],
    *,
    now: datetime | None = None,
    on_skip: SkipCallback | None = None,
) -> List[CalendarEvent]:
    return list(CalendarProjection(orders, procurements, now=now, on_skip=on_skip))
