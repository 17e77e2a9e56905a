from evote import db
from evote.database.models import Voter


def test_seed_superadmin_creates_verified_account(app, services):
    app.config['SUPERADMIN_EMAIL'] = 'Root@Example.com'
    app.config['SUPERADMIN_PASSWORD'] = 'R00t!Password'

    result = app.test_cli_runner().invoke(args=['seed-superadmin'])
    assert result.exit_code == 0, result.output
    assert 'root@example.com' in result.output
    assert 'Generated password' not in result.output

    with app.app_context():
        root = db.session.query(Voter).filter_by(email='root@example.com').one()
        assert root.role == 'SUPER_ADMIN'
        assert root.verified is True
        assert root.verification_token is None
        assert services['credentials'].verify_password('R00t!Password', root.password_hash)

    assert services['audit'].read_entries()[-1]['action'] == 'CREATE_SUPERADMIN'


def test_seed_superadmin_is_idempotent(app):
    app.config['SUPERADMIN_PASSWORD'] = 'R00t!Password'
    runner = app.test_cli_runner()
    runner.invoke(args=['seed-superadmin', '--email', 'root@example.com'])
    result = runner.invoke(args=['seed-superadmin', '--email', 'root@example.com'])

    assert result.exit_code == 0
    assert 'already exists' in result.output
    with app.app_context():
        assert db.session.query(Voter).count() == 1


def test_seed_superadmin_generates_password(app):
    app.config['SUPERADMIN_PASSWORD'] = None
    result = app.test_cli_runner().invoke(args=['seed-superadmin', '--email', 'root@example.com'])
    assert result.exit_code == 0
    assert 'Generated password' in result.output


def test_seeded_account_can_log_in(app, client):
    app.config['SUPERADMIN_PASSWORD'] = 'R00t!Password'
    app.test_cli_runner().invoke(args=['seed-superadmin', '--email', 'root@example.com'])

    resp = client.post('/auth/login', json={'email': 'root@example.com', 'password': 'R00t!Password'})
    assert resp.status_code == 200
    assert resp.get_json()['role'] == 'SUPER_ADMIN'
