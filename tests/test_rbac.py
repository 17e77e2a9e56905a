import pytest

from evote.authentication import rbac
from evote.authentication.rbac import Permission, RBACService, UserRole


@pytest.mark.parametrize("role,permission,allowed", [
    ("VOTER", Permission.VOTE, True),
    ("VOTER", Permission.MANAGE_ELECTIONS, False),
    ("VOTER", Permission.VIEW_AUDIT_LOGS, False),
    ("ADMIN", Permission.MANAGE_CANDIDATES, True),
    ("ADMIN", Permission.VERIFY_TALLIES, True),
    ("ADMIN", Permission.MANAGE_USERS, False),
    ("SUPER_ADMIN", Permission.MANAGE_USERS, True),
    ("SUPER_ADMIN", "vote", True),
    ("commissioner", Permission.VOTE, False),
])
def test_has_permission(role, permission, allowed):
    assert RBACService().has_permission(role, permission) is allowed


def test_valid_roles():
    assert rbac.VALID_ROLES == ["VOTER", "ADMIN", "SUPER_ADMIN"]


@pytest.fixture
def guarded_app(app):
    @app.route("/test/manage")
    @rbac.require_permission(Permission.MANAGE_ELECTIONS)
    def manage_view():
        return "ok"

    @app.route("/test/super")
    @rbac.require_role(UserRole.SUPER_ADMIN)
    def super_view():
        return rbac.current_voter().email

    return app


def test_require_permission_allows(guarded_app, client, make_voter, login):
    make_voter(email="admin@example.com", role="ADMIN")
    resp = client.get("/test/manage", headers=login("admin@example.com"))
    assert resp.status_code == 200
    assert resp.data == b"ok"


def test_require_permission_denies(guarded_app, client, make_voter, login):
    make_voter(email="voter@example.com")
    resp = client.get("/test/manage", headers=login("voter@example.com"))
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "Forbidden"


def test_require_role_checks_exact_role(guarded_app, client, make_voter, login):
    make_voter(email="admin@example.com", role="ADMIN")
    make_voter(email="root@example.com", role="SUPER_ADMIN")
    assert client.get("/test/super", headers=login("admin@example.com")).status_code == 403

    resp = client.get("/test/super", headers=login("root@example.com"))
    assert resp.status_code == 200
    assert resp.data == b"root@example.com"


def test_missing_token_is_unauthorized(guarded_app, client):
    resp = client.get("/test/manage")
    assert resp.status_code == 401


def test_role_is_read_from_the_record(guarded_app, app, client, make_voter, login):
    voter_id = make_voter(email="admin@example.com", role="ADMIN")
    headers = login("admin@example.com")

    from evote import db
    from evote.database.models import Voter
    with app.app_context():
        db.session.get(Voter, voter_id).role = "VOTER"
        db.session.commit()

    # The token still says ADMIN, the record no longer does
    assert client.get("/test/manage", headers=headers).status_code == 403


def test_deleted_account_token_is_rejected(guarded_app, app, client, make_voter, login):
    voter_id = make_voter(email="admin@example.com", role="ADMIN")
    headers = login("admin@example.com")

    from evote import db
    from evote.database.models import Voter
    with app.app_context():
        db.session.query(Voter).filter_by(id=voter_id).delete()
        db.session.commit()

    resp = client.get("/test/manage", headers=headers)
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "AuthenticationFailed"
