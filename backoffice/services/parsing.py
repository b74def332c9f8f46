"""Coercion helpers for JSON payloads and query strings."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from backoffice.config import Config
from backoffice.models import money


def parse_money(value: Any, field_name: str) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a number")
    try:
        amount = money(value)
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"{field_name} must be a number") from None
    if not amount.is_finite():
        raise ValueError(f"{field_name} must be a number")
    return amount


def parse_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{field_name} must be an integer")
    try:
        return int(value)
    except (ValueError, TypeError):
        raise ValueError(f"{field_name} must be an integer") from None


def parse_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def parse_datetime(value: Any, field_name: str) -> datetime:
    """Parse an ISO-8601 date or datetime; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"{field_name} must be an ISO-8601 date") from None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_pagination(page: Any, limit: Any) -> tuple[int, int]:
    """Return a (page, limit) pair clamped to sane bounds."""
    try:
        page_number = max(int(page), 1) if page not in (None, "") else 1
    except (TypeError, ValueError):
        page_number = 1
    try:
        page_size = int(limit) if limit not in (None, "") else Config.DEFAULT_PAGE_SIZE
    except (TypeError, ValueError):
        page_size = Config.DEFAULT_PAGE_SIZE
    page_size = min(max(page_size, 1), Config.MAX_PAGE_SIZE)
    return page_number, page_size


def clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
