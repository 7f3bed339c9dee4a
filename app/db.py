"""Supabase data access for users, orders and production reports.

Every public helper returns a ``(data, error)`` tuple.  Store exceptions are
caught here and turned into an error string; callers decide how to surface
them (see :func:`app.errors.unwrap_store_result`).
"""

from contextlib import contextmanager, nullcontext
from typing import Any, Callable, Iterable, Iterator, Tuple

from flask import current_app

from config.supabase_schema import (
    column_name,
    from_supabase_row,
    select_columns,
    table_name,
    to_supabase_payload,
)

USER_PUBLIC_COLUMNS = ("id", "username", "station", "operator", "role", "is_active")
USER_CREDENTIAL_COLUMNS = USER_PUBLIC_COLUMNS + ("password_hash",)
ORDER_COLUMNS = ("order_no", "item_name", "item_no", "order_qty")
REPORT_COLUMNS = (
    "id",
    "station",
    "order_no",
    "item_name",
    "item_no",
    "operator",
    "good_qty",
    "bad_qty",
    "report_time",
)

# PostgREST caps a single response at 1,000 rows by default.
PAGE_SIZE = 1000


def _ensure_supabase_client() -> Tuple[Any, str | None]:
    """Return the configured Supabase client or an explanatory error."""

    supabase = current_app.config.get("SUPABASE")
    if not supabase or not hasattr(supabase, "table"):
        return None, (
            "Supabase client is not configured. Set SUPABASE_URL and SUPABASE_"
            "SERVICE_KEY to enable the report store."
        )
    return supabase, None


@contextmanager
def _store_slot() -> Iterator[None]:
    """Hold one of the bounded store slots for the duration of a call.

    Callers beyond the configured pool size block until a slot frees up.
    """

    slots = current_app.config.get("STORE_SLOTS")
    with slots if slots is not None else nullcontext():
        yield


def _rows(table: str, data: Iterable[dict] | None) -> list[dict]:
    return [from_supabase_row(table, row) for row in data or []]


def _fetch_capped_rows(
    build_query: Callable[[], Any],
    cap: int,
    *,
    page_size: int = PAGE_SIZE,
) -> list[dict]:
    """Fetch up to ``cap`` rows, paging through ``build_query`` results.

    ``build_query`` must return a fresh, fully filtered and ordered query each
    time it is called so that every page applies the same predicates.
    """

    if page_size <= 0:
        raise ValueError("page_size must be greater than zero")

    rows: list[dict] = []
    offset = 0
    while len(rows) < cap:
        end = min(offset + page_size, cap) - 1
        response = build_query().range(offset, end).execute()
        batch = response.data or []
        rows.extend(batch)
        if len(batch) < end - offset + 1:
            break
        offset = end + 1
    return rows[:cap]


# --------------------------------------------------------------------------
# Users
# --------------------------------------------------------------------------


def fetch_user_by_username(username: str) -> tuple[dict | None, str | None]:
    """Return the credential record for ``username`` (exact match).

    The record includes ``password_hash``; callers must not expose it.
    """

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error

    try:
        with _store_slot():
            response = (
                supabase.table(table_name("users"))
                .select(select_columns("users", *USER_CREDENTIAL_COLUMNS))
                .eq(column_name("users", "username"), username)
                .limit(1)
                .execute()
            )
        rows = _rows("users", response.data)
        return (rows[0] if rows else None), None
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to fetch user: {exc}"


def username_exists(username: str) -> tuple[bool | None, str | None]:
    """Return whether a user called ``username`` already exists."""

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error

    try:
        with _store_slot():
            response = (
                supabase.table(table_name("users"))
                .select(column_name("users", "id"))
                .eq(column_name("users", "username"), username)
                .limit(1)
                .execute()
            )
        return bool(response.data), None
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to check username: {exc}"


def fetch_users(limit: int) -> tuple[list[dict] | None, str | None]:
    """Return up to ``limit`` users, newest first, without password hashes."""

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error

    def build_query():
        return (
            supabase.table(table_name("users"))
            .select(select_columns("users", *USER_PUBLIC_COLUMNS))
            .order(column_name("users", "id"), desc=True)
        )

    try:
        with _store_slot():
            rows = _fetch_capped_rows(build_query, limit)
        return _rows("users", rows), None
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to fetch users: {exc}"


def insert_user(record: dict) -> tuple[list[dict] | None, str | None]:
    """Insert a new row into the ``users`` table."""

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error

    try:
        payload = to_supabase_payload("users", record)
        with _store_slot():
            response = supabase.table(table_name("users")).insert(payload).execute()
        return _rows("users", response.data), None
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to create user: {exc}"


def update_user(user_id: int, updates: dict) -> tuple[list[dict] | None, str | None]:
    """Apply ``updates`` to the user identified by ``user_id``.

    Returns the updated rows; an empty list means no user matched.
    """

    if not updates:
        return None, "No updates supplied"

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error

    try:
        payload = to_supabase_payload("users", updates)
        with _store_slot():
            response = (
                supabase.table(table_name("users"))
                .update(payload)
                .eq(column_name("users", "id"), user_id)
                .execute()
            )
        return _rows("users", response.data), None
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to update user: {exc}"


def update_user_password(user_id: int, password_hash: str) -> tuple[list[dict] | None, str | None]:
    """Overwrite the stored password hash for ``user_id``."""

    data, error = update_user(user_id, {"password_hash": password_hash})
    if error:
        return None, error
    # Never hand the hash back to route code.
    return [{k: v for k, v in row.items() if k != "password_hash"} for row in data], None


# --------------------------------------------------------------------------
# Orders
# --------------------------------------------------------------------------


def fetch_order(order_no: str) -> tuple[dict | None, str | None]:
    """Return the order whose number is exactly ``order_no``."""

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error

    try:
        with _store_slot():
            response = (
                supabase.table(table_name("orders"))
                .select(select_columns("orders", *ORDER_COLUMNS))
                .eq(column_name("orders", "order_no"), order_no)
                .limit(1)
                .execute()
            )
        rows = _rows("orders", response.data)
        return (rows[0] if rows else None), None
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to fetch order: {exc}"


# --------------------------------------------------------------------------
# Reports
# --------------------------------------------------------------------------


def insert_report(record: dict) -> tuple[list[dict] | None, str | None]:
    """Append a production report row."""

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error

    try:
        payload = to_supabase_payload("reports", record)
        with _store_slot():
            response = supabase.table(table_name("reports")).insert(payload).execute()
        return _rows("reports", response.data), None
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to insert report: {exc}"


def fetch_reports(
    predicates: Iterable[tuple[str, str, Any]],
    limit: int,
) -> tuple[list[dict] | None, str | None]:
    """Return up to ``limit`` reports matching every predicate, newest first.

    ``predicates`` is an ordered sequence of ``(op, column, value)``
    triples where ``op`` names a PostgREST filter (``eq``, ``ilike``,
    ``gte``, ``lt``) and ``column`` is a logical ``reports`` column.  Values
    are always sent as bound filter parameters.
    """

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error

    predicates = list(predicates)

    def build_query():
        query = supabase.table(table_name("reports")).select(
            select_columns("reports", *REPORT_COLUMNS)
        )
        for op, column, value in predicates:
            query = getattr(query, op)(column_name("reports", column), value)
        return query.order(column_name("reports", "id"), desc=True)

    try:
        with _store_slot():
            rows = _fetch_capped_rows(build_query, limit)
        return _rows("reports", rows), None
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to fetch reports: {exc}"
