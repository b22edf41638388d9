from __future__ import annotations

from typing import Dict


CALENDAR_EVENT_TITLES: Dict[str, str] = {
    "due_date": "Due",
    "eta_purchase": "Arrival scheduled",
    "eta_manufacture": "Production scheduled",
    "received": "Received",
    "completed": "Production finished",
}


MESSAGES: Dict[str, Dict[str, str]] = {
    "error": {
        "action_invalid": "Invalid action for this operation.",
        "data_access_failure": "The production database is unavailable right now. Try again shortly.",
        "date_invalid": "Dates must use the YYYY-MM-DD format.",
        "month_invalid": "Month must be between 1 and 12.",
        "not_found": "Resource not found.",
        "order_not_found": "Order not found.",
        "unexpected_error": "The operation could not be completed. Try again shortly.",
        "validation_error": "Request parameters are invalid.",
        "year_invalid": "Year must be a four digit number.",
    },
}


def calendar_event_title(kind: str, subject: str | None) -> str:
    prefix = CALENDAR_EVENT_TITLES.get(kind, kind)
    return f"{prefix}: {subject or ''}"


def get_message(category: str, key: str, default: str | None = None) -> str:
    message = MESSAGES.get(category, {}).get(key)
    if message:
        return message
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)
