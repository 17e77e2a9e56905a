# evote/routes.py

# HTTP surface of the voting backend. Views only parse input, check access and
# call into the services stored in app.extensions['evote']; all state changes
# and their audit records happen in the services.

import logging
from urllib.parse import urlencode

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import get_jwt_identity, set_access_cookies, verify_jwt_in_request

from evote import limiter, SENSITIVE_LIMIT
from evote.authentication.rbac import (
    Permission, UserRole, VALID_ROLES, current_voter, require_permission, require_role,
)
from evote.errors import ChallengeFailed
from evote.schemas import MAX_ID

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')
elections_bp = Blueprint('elections', __name__, url_prefix='/elections')
vote_bp = Blueprint('vote', __name__, url_prefix='/vote')
users_bp = Blueprint('users', __name__, url_prefix='/users')
audit_bp = Blueprint('audit', __name__)


def services():
    return current_app.extensions['evote']


def request_origin():
    return {'ip': request.remote_addr, 'user_agent': request.headers.get('User-Agent')}


def json_body():
    return request.get_json(silent=True)


# -- auth ----------------------------------------------------------------------

@auth_bp.route('/register', methods=['POST'])
@limiter.limit(SENSITIVE_LIMIT)
def register():
    svc = services()
    registration = svc['validator'].parse_register(json_body())
    voter = svc['identity'].register(registration, origin=request_origin())

    # Mail problems never undo a registration; the voter can ask for support
    link = f"{current_app.config['FRONTEND_URL']}/verify-email?{urlencode({'token': voter.verification_token})}"
    sent = svc['mailer'].send_verification_email(voter, link)
    if not sent:
        logger.warning("Verification email for voter %s was not delivered", voter.id)

    return jsonify({
        'message': 'Registration successful. Please check your email to verify your account.',
        'user': voter.to_dict(),
    }), 201


@auth_bp.route('/verify-email', methods=['GET'])
def verify_email():
    svc = services()
    token = svc['validator'].parse_verification_token(request.args.get('token'))
    svc['identity'].mark_verified(token, origin=request_origin())
    return jsonify({'message': 'Email verified successfully. You can now log in.'})


def _login_response(voter):
    token = services()['tokens'].generate_token(voter)
    resp = jsonify({
        'message': 'Login successful',
        'token': token,
        'name': voter.name,
        'role': voter.role,
    })
    if 'cookies' in current_app.config['JWT_TOKEN_LOCATION']:
        set_access_cookies(resp, token)
    return resp


@auth_bp.route('/login', methods=['POST'])
@limiter.limit(SENSITIVE_LIMIT)
def login():
    svc = services()
    credentials = svc['validator'].parse_login(json_body())
    voter = svc['identity'].authenticate(credentials.email, credentials.password, origin=request_origin())
    return _login_response(voter)


@auth_bp.route('/face-login', methods=['POST'])
@limiter.limit(SENSITIVE_LIMIT)
def face_login():
    svc = services()
    face = svc['validator'].parse_face_login(json_body())
    voter = svc['identity'].authenticate_face(face.face_descriptor, origin=request_origin())
    return _login_response(voter)


# -- elections -----------------------------------------------------------------

@elections_bp.route('', methods=['GET'])
def list_elections():
    elections = services()['catalog'].list_elections()
    return jsonify([e.to_dict() for e in elections])


@elections_bp.route(f'/<int(max={MAX_ID}):election_id>', methods=['GET'])
def get_election(election_id):
    return jsonify(services()['catalog'].get_election(election_id).to_dict())


@elections_bp.route('/create', methods=['POST'])
@limiter.limit(SENSITIVE_LIMIT)
@require_permission(Permission.MANAGE_ELECTIONS)
def create_election():
    svc = services()
    payload = svc['validator'].parse_create_election(json_body())
    election = svc['catalog'].create_election(
        payload.name, payload.description, actor=current_voter(), origin=request_origin(),
    )
    return jsonify({'message': 'Election created', 'election': election.to_dict()}), 201


@elections_bp.route('/add-candidate', methods=['POST'])
@limiter.limit(SENSITIVE_LIMIT)
@require_permission(Permission.MANAGE_CANDIDATES)
def add_candidate():
    svc = services()
    payload = svc['validator'].parse_add_candidate(json_body())
    candidate = svc['catalog'].add_candidate(
        payload.election_id, payload.name, payload.party, payload.position,
        actor=current_voter(), origin=request_origin(),
    )
    return jsonify({'message': 'Candidate added', 'candidate': candidate.to_dict()}), 201


@elections_bp.route(f'/<int(max={MAX_ID}):election_id>/candidate/<int(max={MAX_ID}):candidate_id>', methods=['DELETE'])
@limiter.limit(SENSITIVE_LIMIT)
@require_permission(Permission.MANAGE_CANDIDATES)
def delete_candidate(election_id, candidate_id):
    outcome = services()['guard'].delete_candidate(
        current_voter(), election_id, candidate_id, origin=request_origin(),
    )
    return jsonify({'message': 'Candidate deleted', **outcome})


@elections_bp.route(f'/<int(max={MAX_ID}):election_id>', methods=['DELETE'])
@require_permission(Permission.MANAGE_ELECTIONS)
def delete_election(election_id):
    outcome = services()['guard'].delete_election(current_voter(), election_id, origin=request_origin())
    return jsonify({'message': 'Election deleted', **outcome})


@elections_bp.route(f'/<int(max={MAX_ID}):election_id>/integrity', methods=['GET'])
@require_permission(Permission.VERIFY_TALLIES)
def election_integrity(election_id):
    return jsonify(services()['catalog'].verify_tallies(election_id))


# -- voting --------------------------------------------------------------------

@vote_bp.route('', methods=['POST'])
@limiter.limit(SENSITIVE_LIMIT)
@require_permission(Permission.VOTE)
def cast_vote():
    svc = services()
    ballot = svc['validator'].parse_cast_vote(json_body())
    if not svc['captcha'].verify(ballot.captcha_value, remote_ip=request.remote_addr):
        logger.warning("CAPTCHA rejected for vote from %s", request.remote_addr)
        raise ChallengeFailed()

    voter = current_voter()
    receipt = svc['engine'].cast_vote(
        voter.id, ballot.election_id, ballot.candidate_id, origin=request_origin(),
    )
    return jsonify({'message': 'Vote cast successfully', **receipt}), 201


@vote_bp.route('/user', methods=['GET'])
@require_permission(Permission.VIEW_OWN_VOTES)
def user_votes():
    svc = services()
    voter = current_voter()
    ballots = svc['engine'].voting_history(voter.id)
    svc['audit'].record(
        'VIEW_USER_VOTES', 'Vote', actor_id=voter.id, entity_id=voter.id,
        origin=request_origin(), actor_email=voter.email,
    )
    return jsonify({
        'votedCandidates': [
            {'electionId': b.election_id, 'candidateId': b.candidate_id, 'position': b.position}
            for b in ballots
        ],
    })


@vote_bp.route('/results', methods=['GET'])
def results():
    svc = services()
    election_id = svc['validator'].parse_id(request.args.get('electionId'), 'Election ID')
    tally = svc['catalog'].results(election_id)

    verify_jwt_in_request(optional=True)
    svc['audit'].record(
        'VIEW_RESULTS', 'Election', actor_id=get_jwt_identity(), entity_id=election_id,
        origin=request_origin(),
    )
    return jsonify(tally)


# -- user management -----------------------------------------------------------

@users_bp.route('', methods=['GET'])
@require_role(UserRole.SUPER_ADMIN)
def list_users():
    return jsonify([v.to_dict() for v in services()['identity'].list_voters()])


@users_bp.route(f'/<int(max={MAX_ID}):voter_id>/role', methods=['PUT'])
@require_role(UserRole.SUPER_ADMIN)
def change_role(voter_id):
    svc = services()
    change = svc['validator'].parse_role_change(json_body(), VALID_ROLES)
    voter = svc['identity'].set_role(current_voter(), voter_id, change.role, origin=request_origin())
    return jsonify({'message': 'Role updated', 'user': voter.to_dict()})


@users_bp.route(f'/<int(max={MAX_ID}):voter_id>', methods=['DELETE'])
@require_role(UserRole.SUPER_ADMIN)
def delete_user(voter_id):
    outcome = services()['guard'].purge_voter(current_voter(), voter_id, origin=request_origin())
    return jsonify({'message': 'User deleted', **outcome})


# -- audit ---------------------------------------------------------------------

@audit_bp.route('/audit-logs', methods=['GET'])
@require_permission(Permission.VIEW_AUDIT_LOGS)
def audit_logs():
    svc = services()
    query = svc['validator'].parse_audit_query(request.args)
    entries, total = svc['audit'].query(
        page=query.page, limit=query.limit, user=query.user, action=query.action,
        start_date=query.start_date, end_date=query.end_date,
    )
    return jsonify({
        'logs': entries,
        'pagination': {
            'page': query.page,
            'limit': query.limit,
            'total': total,
            'pages': (total + query.limit - 1) // query.limit,
        },
    })


def register_blueprints(app):
    for blueprint in (auth_bp, elections_bp, vote_bp, users_bp, audit_bp):
        app.register_blueprint(blueprint)
