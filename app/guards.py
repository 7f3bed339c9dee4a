"""Route authorization policies.

Each protected view is wrapped by :func:`guarded` with one policy.  A policy
looks at the session snapshot and returns a decision: ``Allow`` runs the view,
``Redirect`` sends the browser elsewhere and ``Deny`` raises an HTTP error that
the API error handlers render as JSON.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Type

from flask import redirect, session, url_for
from werkzeug.exceptions import HTTPException

from app.errors import Forbidden, Unauthenticated

ROLE_ADMIN = "admin"
ROLE_EDITOR = "editor"
ROLE_VIEWER = "viewer"
VALID_ROLES = (ROLE_ADMIN, ROLE_EDITOR, ROLE_VIEWER)

LOGIN_PAGE = "auth.login_page"
LANDING_PAGE = "main.index_page"


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class Redirect:
    endpoint: str


@dataclass(frozen=True)
class Deny:
    error: Type[HTTPException]
    reason: str | None = None


Decision = Allow | Redirect | Deny


def current_user() -> dict[str, Any] | None:
    """Return the authenticated session snapshot, if any."""

    user = session.get("user")
    return user if isinstance(user, dict) else None


def is_admin(user: dict[str, Any] | None) -> bool:
    return bool(user) and user.get("role") == ROLE_ADMIN


class Policy:
    """Base policy: decide whether the current user may reach a route."""

    def __init__(self, *, api: bool) -> None:
        self.api = api

    def unauthenticated(self) -> Decision:
        if self.api:
            return Deny(Unauthenticated)
        return Redirect(LOGIN_PAGE)

    def evaluate(self, user: dict[str, Any] | None) -> Decision:
        raise NotImplementedError


class RequireAuthenticated(Policy):
    def evaluate(self, user):
        if user is None:
            return self.unauthenticated()
        return Allow()


class RequireAdmin(Policy):
    """Admin-only routes.

    API routes deny non-admins with 403; page routes quietly send them to the
    landing page.
    """

    def evaluate(self, user):
        if user is None:
            return self.unauthenticated()
        if not is_admin(user):
            if self.api:
                return Deny(Forbidden, "Administrator access required.")
            return Redirect(LANDING_PAGE)
        return Allow()


def guarded(policy: Policy) -> Callable:
    """Decorator evaluating ``policy`` once before running the view."""

    def decorator(view):
        @wraps(view)
        def wrapped_view(*args, **kwargs):
            decision = policy.evaluate(current_user())
            if isinstance(decision, Redirect):
                return redirect(url_for(decision.endpoint))
            if isinstance(decision, Deny):
                if decision.reason:
                    raise decision.error(decision.reason)
                raise decision.error()
            return view(*args, **kwargs)

        return wrapped_view

    return decorator


login_required = guarded(RequireAuthenticated(api=False))
api_login_required = guarded(RequireAuthenticated(api=True))
admin_api_required = guarded(RequireAdmin(api=True))
admin_page_required = guarded(RequireAdmin(api=False))
