import pytest

from evote.errors import ValidationError
from evote.identity.biometrics import FaceMatcher
from evote.security.input_validator import InputValidator


@pytest.fixture
def validator():
    return InputValidator(face_matcher=FaceMatcher())


def test_sanitize_string_strips_markup(validator):
    assert validator.sanitize_string('<script>alert(1)</script>Senate') == 'Senate'
    assert validator.sanitize_string('<b>Bold</b> party') == 'Bold party'
    assert validator.sanitize_string('<img src=x onerror=alert(1)>Ada') == 'Ada'
    # Plain ampersands survive as text
    assert validator.sanitize_string('Law & Order') == 'Law & Order'


def test_sanitize_string_truncates(validator):
    assert len(validator.sanitize_string('a' * 500, max_length=10)) == 10


def test_sanitize_string_requires_string(validator):
    with pytest.raises(ValidationError):
        validator.sanitize_string(42)


@pytest.mark.parametrize("email,valid", [
    ("a@x.edu", True),
    ("first.last+tag@uni.example.org", True),
    ("no-at-sign.example.com", False),
    ("user@localhost", False),
    ("", False),
    (None, False),
])
def test_validate_email(validator, email, valid):
    assert validator.validate_email(email) is valid


def test_parse_register_normalises(validator):
    request = validator.parse_register({
        'name': '  Ada Lovelace ',
        'email': 'Ada@X.Edu',
        'password': 'Str0ng!Pass',
        'matricNumber': 'csc/2021/001',
    })
    assert request.name == 'Ada Lovelace'
    assert request.email == 'ada@x.edu'
    assert request.matric_number == 'CSC/2021/001'
    assert request.face_descriptor is None


@pytest.mark.parametrize("payload", [
    None,
    [],
    {'email': 'a@x.edu', 'password': 'Str0ng!Pass'},
    {'name': 'Ada', 'password': 'Str0ng!Pass'},
    {'name': 'Ada', 'email': 'not-an-email', 'password': 'Str0ng!Pass'},
    {'name': 'Ada', 'email': 'a@x.edu'},
    {'name': '<script></script>', 'email': 'a@x.edu', 'password': 'Str0ng!Pass'},
    {'name': 'Ada', 'email': 'a@x.edu', 'password': 'Str0ng!Pass', 'matricNumber': 'x'},
    {'name': 'Ada', 'email': 'a@x.edu', 'password': 'Str0ng!Pass', 'faceDescriptor': [0.1, 0.2]},
])
def test_parse_register_rejects(validator, payload):
    with pytest.raises(ValidationError):
        validator.parse_register(payload)


def test_parse_register_enforces_email_domain():
    validator = InputValidator(allowed_email_domain='@student.uat.edu.ng')
    ok = validator.parse_register({'name': 'Ada', 'email': 'ada@student.uat.edu.ng', 'password': 'Str0ng!Pass'})
    assert ok.email == 'ada@student.uat.edu.ng'
    with pytest.raises(ValidationError, match='student.uat.edu.ng'):
        validator.parse_register({'name': 'Ada', 'email': 'ada@gmail.com', 'password': 'Str0ng!Pass'})


def test_parse_register_with_face(validator):
    request = validator.parse_register({
        'name': 'Ada', 'email': 'a@x.edu', 'password': 'Str0ng!Pass',
        'faceDescriptor': [0.25] * 128,
    })
    assert request.face_descriptor == [0.25] * 128


def test_face_fields_rejected_without_matcher():
    validator = InputValidator()
    with pytest.raises(ValidationError):
        validator.parse_face_login({'faceDescriptor': [0.1] * 128})


@pytest.mark.parametrize("value,expected", [(3, 3), ("12", 12), (" 7 ", 7), ("2147483647", 2**31 - 1)])
def test_parse_id_accepts(validator, value, expected):
    assert validator.parse_id(value, 'Election ID') == expected


@pytest.mark.parametrize("value", [0, -1, "abc", "1.5", None, True, 2.0, "\u00b2", "\u0661", "9" * 30, 2**31])
def test_parse_id_rejects(validator, value):
    with pytest.raises(ValidationError):
        validator.parse_id(value, 'Election ID')


def test_parse_cast_vote(validator):
    request = validator.parse_cast_vote({'electionId': '1', 'candidateId': 2, 'captchaValue': 'tok'})
    assert (request.election_id, request.candidate_id, request.captcha_value) == (1, 2, 'tok')


def test_parse_cast_vote_requires_captcha(validator):
    with pytest.raises(ValidationError, match='CAPTCHA'):
        validator.parse_cast_vote({'electionId': 1, 'candidateId': 2})


def test_parse_add_candidate(validator):
    request = validator.parse_add_candidate({
        'electionId': 4, 'name': 'C1', 'party': 'Unity', 'position': 'President',
    })
    assert request.election_id == 4
    assert request.position == 'President'
    with pytest.raises(ValidationError):
        validator.parse_add_candidate({'electionId': 4, 'name': 'C1', 'party': 'Unity'})


def test_parse_create_election(validator):
    request = validator.parse_create_election({'name': 'Senate'})
    assert request.name == 'Senate'
    assert request.description == ''
    with pytest.raises(ValidationError):
        validator.parse_create_election({'name': '   '})


def test_parse_role_change(validator):
    valid = ['VOTER', 'ADMIN', 'SUPER_ADMIN']
    assert validator.parse_role_change({'role': 'ADMIN'}, valid).role == 'ADMIN'
    with pytest.raises(ValidationError):
        validator.parse_role_change({'role': 'root'}, valid)
    with pytest.raises(ValidationError):
        validator.parse_role_change({}, valid)


def test_parse_audit_query(validator):
    query = validator.parse_audit_query({'page': '2', 'limit': '5', 'action': 'LOGIN', 'endDate': '2026-01-31'})
    assert query.page == 2 and query.limit == 5
    assert query.action == 'LOGIN'
    assert query.start_date is None
    # A bare date covers the whole day
    assert query.end_date.hour == 23 and query.end_date.day == 31

    defaults = validator.parse_audit_query({})
    assert (defaults.page, defaults.limit) == (1, 10)


@pytest.mark.parametrize("args", [
    {'page': '0'},
    {'limit': '1000'},
    {'page': 'x'},
    {'startDate': 'yesterday'},
])
def test_parse_audit_query_rejects(validator, args):
    with pytest.raises(ValidationError):
        validator.parse_audit_query(args)
