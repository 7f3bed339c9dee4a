import pytest

from app.errors import Forbidden, Unauthenticated
from app.guards import Allow, Deny, Redirect, RequireAdmin, RequireAuthenticated
from conftest import login

ADMIN = {"id": 1, "username": "root", "station": "", "operator": "", "role": "admin"}
VIEWER = {"id": 2, "username": "op", "station": "S1", "operator": "op", "role": "viewer"}


@pytest.mark.parametrize(
    "policy, user, expected",
    [
        (RequireAuthenticated(api=True), None, Deny(Unauthenticated)),
        (RequireAuthenticated(api=False), None, Redirect("auth.login_page")),
        (RequireAuthenticated(api=True), VIEWER, Allow()),
        (RequireAdmin(api=True), None, Deny(Unauthenticated)),
        (RequireAdmin(api=True), VIEWER, Deny(Forbidden, "Administrator access required.")),
        (RequireAdmin(api=True), ADMIN, Allow()),
        (RequireAdmin(api=False), None, Redirect("auth.login_page")),
        (RequireAdmin(api=False), VIEWER, Redirect("main.index_page")),
        (RequireAdmin(api=False), ADMIN, Allow()),
    ],
)
def test_policy_decisions(policy, user, expected):
    assert policy.evaluate(user) == expected


def test_editor_is_not_admin():
    editor = dict(VIEWER, role="editor")
    assert RequireAdmin(api=True).evaluate(editor) == Deny(
        Forbidden, "Administrator access required."
    )


def test_root_redirects_by_login_state(client, supabase):
    supabase.add_user("op")

    response = client.get("/")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/login.html")

    login(client, "op")
    response = client.get("/")
    assert response.headers["Location"].endswith("/index.html")


def test_pages_redirect_anonymous_users_to_login(client):
    for path in ("/index.html", "/repo.html", "/admin_users.html"):
        response = client.get(path)
        assert response.status_code == 302
        assert response.headers["Location"].endswith("/login.html")


def test_login_page_is_public(client):
    response = client.get("/login.html")

    assert response.status_code == 200
    assert b"login-form" in response.data


def test_admin_page_quietly_redirects_non_admins(client, supabase):
    supabase.add_user("op", role="editor")
    login(client, "op")

    response = client.get("/admin_users.html")

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/index.html")


def test_admin_page_renders_for_admins(client, supabase):
    supabase.add_user("root", role="admin")
    login(client, "root")

    response = client.get("/admin_users.html")

    assert response.status_code == 200
    assert b"create-user" in response.data


def test_authenticated_pages_render(client, supabase):
    supabase.add_user("op")
    login(client, "op")

    assert client.get("/index.html").status_code == 200
    repo = client.get("/repo.html")
    assert repo.status_code == 200
    assert b'id="filters"' not in repo.data


def test_admin_api_returns_json_errors(client, supabase):
    anonymous = client.get("/api/admin/users")
    assert anonymous.status_code == 401
    assert anonymous.get_json()["ok"] is False

    supabase.add_user("op", role="viewer")
    login(client, "op")
    forbidden = client.get("/api/admin/users")
    assert forbidden.status_code == 403
    assert forbidden.get_json() == {"ok": False, "msg": "Administrator access required."}
