import itertools
import json
import secrets

import pytest

from evote import create_app, db
from evote.database.models import Voter

PASSWORD = "Str0ng!Passw0rd"


class StubCaptcha:
    """Stands in for reCAPTCHA; flip ``accept`` to simulate a failed challenge."""

    def __init__(self):
        self.accept = True
        self.tokens = []

    def verify(self, token, remote_ip=None):
        self.tokens.append(token)
        return self.accept


class StubMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send_verification_email(self, voter, link):
        if self.fail:
            return False
        self.sent.append((voter.email, link))
        return True


@pytest.fixture
def app_overrides():
    """Config on top of the test defaults; override in a module to change them."""
    return {}


@pytest.fixture
def app(tmp_path, app_overrides):
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'JWT_SECRET_KEY': 'test-jwt-secret-key-that-is-long-enough',
        'JWT_TOKEN_LOCATION': ['headers'],
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'evote.db'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30, 'check_same_thread': False}},
        'RATELIMIT_ENABLED': False,
        'AUDIT_LOG_DIR': str(tmp_path / 'audit'),
        'AUDIT_ASYNC': False,
        'ARGON2_TIME_COST': 1,
        'ARGON2_MEMORY_COST': 1024,
        'ARGON2_PARALLELISM': 1,
        'MAIL_SUPPRESS_SEND': True,
        'FRONTEND_URL': 'http://frontend.test',
        **app_overrides,
    })
    app.extensions['evote']['captcha'] = StubCaptcha()
    app.extensions['evote']['mailer'] = StubMailer()

    with app.app_context():
        db.create_all()

    yield app

    app.extensions['evote']['audit'].shutdown()
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def services(app):
    return app.extensions['evote']


@pytest.fixture
def make_voter(app):
    counter = itertools.count(1)

    def _make(email=None, role='VOTER', verified=True, name='Test Voter', descriptor=None, matric_number=None):
        email = email or f"voter{next(counter)}@example.com"
        with app.app_context():
            credentials = app.extensions['evote']['credentials']
            voter = Voter(
                name=name,
                email=email,
                matric_number=matric_number,
                password_hash=credentials.hash_password(PASSWORD),
                verified=verified,
                verification_token=None if verified else secrets.token_hex(32),
                role=role,
                face_descriptor=json.dumps(descriptor) if descriptor is not None else None,
            )
            db.session.add(voter)
            db.session.commit()
            return voter.id

    return _make


@pytest.fixture
def make_election(app):
    def _make(name='Senate', candidates=(('C1', 'Unity', 'President'), ('C2', 'Progress', 'President'))):
        with app.app_context():
            catalog = app.extensions['evote']['catalog']
            election_id = catalog.create_election(name, 'Annual senate election').id
            candidate_ids = [
                catalog.add_candidate(election_id, cname, party, position).id
                for cname, party, position in candidates
            ]
            return election_id, candidate_ids

    return _make


@pytest.fixture
def login(client):
    def _login(email, password=PASSWORD):
        resp = client.post('/auth/login', json={'email': email, 'password': password})
        assert resp.status_code == 200, resp.get_json()
        return {'Authorization': f"Bearer {resp.get_json()['token']}"}

    return _login