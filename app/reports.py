"""Production report validation and visibility filters."""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Mapping, NamedTuple

from app.errors import ValidationError

ADMIN_REPORT_LIMIT = 5000
OPERATOR_REPORT_LIMIT = 2000

# Substring filters accepted from admins, in the order they are applied.
SUBSTRING_FILTERS = ("station", "operator", "order_no", "item_name")


class ReportPredicate(NamedTuple):
    op: str
    column: str
    value: Any


class ReportSubmission(NamedTuple):
    order_no: str
    item_name: str
    item_no: str
    good_qty: int
    bad_qty: int


def _pick(payload: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        value = payload.get(name)
        if value is not None:
            return value
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _pick_text(payload: Mapping[str, Any], *names: str) -> str:
    for name in names:
        value = _text(payload.get(name))
        if value:
            return value
    return ""


def parse_quantity(value: Any) -> int:
    """Return ``value`` as a non-negative whole number.

    Missing or blank values count as zero.  Anything that is not a finite,
    non-negative whole number raises :class:`ValidationError`.
    """

    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValidationError("Quantities must be numbers.")

    if isinstance(value, (int, float)):
        number = value
    else:
        text = str(value).strip()
        if not text:
            return 0
        try:
            number = int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                raise ValidationError("Quantities must be numbers.") from None

    # Integers stay exact; only floats need the finite and whole checks.
    if isinstance(number, int):
        if number < 0:
            raise ValidationError("Quantities cannot be negative.")
        return number

    if math.isnan(number) or math.isinf(number):
        raise ValidationError("Quantities must be finite numbers.")
    if number < 0:
        raise ValidationError("Quantities cannot be negative.")
    if not number.is_integer():
        raise ValidationError("Quantities must be whole numbers.")
    return int(number)


def parse_submission(payload: Mapping[str, Any]) -> ReportSubmission:
    """Validate a report submission body.

    Both the form field names used by the scanning page (``orderNo``,
    ``goodNumber``...) and the column names (``order_no``, ``good_qty``...)
    are accepted.
    """

    order_no = _pick_text(payload, "orderNo", "order_no")
    item_name = _pick_text(payload, "itemName", "item_name")
    item_no = _pick_text(payload, "itemNo", "item_no")
    if not order_no or not item_name or not item_no:
        raise ValidationError("Order details are missing; scan the order first.")

    return ReportSubmission(
        order_no=order_no,
        item_name=item_name,
        item_no=item_no,
        good_qty=parse_quantity(_pick(payload, "goodNumber", "good_qty")),
        bad_qty=parse_quantity(_pick(payload, "badNumber", "bad_qty")),
    )


def build_report_record(
    submission: ReportSubmission,
    user: Mapping[str, Any],
    reported_at: datetime,
) -> dict[str, Any]:
    """Return the row to insert; station and operator come from ``user``."""

    return {
        "station": user.get("station") or "",
        "order_no": submission.order_no,
        "item_name": submission.item_name,
        "item_no": submission.item_no,
        "operator": user.get("operator") or "",
        "good_qty": submission.good_qty,
        "bad_qty": submission.bad_qty,
        "report_time": reported_at.isoformat(),
    }


def _parse_date(value: str, name: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"'{name}' must be a date in YYYY-MM-DD format.") from None


def _day_start(day: date, tz: tzinfo) -> str:
    return datetime.combine(day, time.min, tzinfo=tz).isoformat()


def build_report_filters(args: Mapping[str, Any], tz: tzinfo) -> list[ReportPredicate]:
    """Build the admin report filters from query ``args``.

    Only parameters that are present and non-blank contribute a predicate.
    ``from``/``to`` bound the calendar date of ``report_time`` inclusively in
    ``tz``; the text filters are case-insensitive substring matches.
    """

    predicates: list[ReportPredicate] = []

    start = _text(args.get("from"))
    if start:
        predicates.append(
            ReportPredicate("gte", "report_time", _day_start(_parse_date(start, "from"), tz))
        )

    end = _text(args.get("to"))
    if end:
        last_day = _parse_date(end, "to")
        # date.max has no following day; the range is then open-ended.
        if last_day < date.max:
            next_day = last_day + timedelta(days=1)
            predicates.append(ReportPredicate("lt", "report_time", _day_start(next_day, tz)))

    for name in SUBSTRING_FILTERS:
        value = _text(args.get(name))
        if value:
            predicates.append(ReportPredicate("ilike", name, f"%{value}%"))

    return predicates


def operator_today_filters(operator: str, today: date, tz: tzinfo) -> list[ReportPredicate]:
    """Filters restricting a non-admin to their own rows from ``today``."""

    return [
        ReportPredicate("eq", "operator", operator),
        ReportPredicate("gte", "report_time", _day_start(today, tz)),
        ReportPredicate("lt", "report_time", _day_start(today + timedelta(days=1), tz)),
    ]
