# evote/errors.py
"""Error taxonomy shared by the voting core and the HTTP layer.

Every voter-facing failure is a ``VotingError`` subclass carrying a stable
``kind`` string and an HTTP status. The Flask handlers registered here turn
them into ``{"error": kind, "message": text}`` bodies; anything else is logged
and reported as a generic internal error so storage messages never reach the
caller.

Hierarchy:
- VotingError
  - NotFound, DuplicateIdentity, DuplicateVote, Unverified, InvalidToken,
    ChallengeFailed, ValidationError, StorageConflict, Forbidden,
    AuthenticationFailed
  - DeliveryError, AuditError: raised by collaborators, never abort the
    triggering operation
"""

import logging
from functools import wraps
from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class VotingError(Exception):
    kind = 'VotingError'
    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.default_message())
        self.message = message or self.default_message()

    def default_message(self):
        return self.kind

    def to_dict(self):
        return {'error': self.kind, 'message': self.message}


class NotFound(VotingError):
    kind = 'NotFound'
    status_code = 404


class DuplicateIdentity(VotingError):
    kind = 'DuplicateIdentity'
    status_code = 409

    def default_message(self):
        return 'User already exists with this email or matric number.'


class DuplicateVote(VotingError):
    kind = 'DuplicateVote'
    status_code = 409

    def __init__(self, position):
        self.position = position
        super().__init__(f'Already voted for {position} in this election')


class Unverified(VotingError):
    kind = 'Unverified'
    status_code = 403

    def default_message(self):
        return 'Invalid or unverified user'


class InvalidToken(VotingError):
    kind = 'InvalidToken'
    status_code = 400

    def default_message(self):
        return 'Invalid or expired token'


class ChallengeFailed(VotingError):
    kind = 'ChallengeFailed'
    status_code = 400

    def default_message(self):
        return 'CAPTCHA verification failed'


class ValidationError(VotingError):
    kind = 'ValidationError'
    status_code = 400


class StorageConflict(VotingError):
    kind = 'StorageConflict'
    status_code = 409

    def default_message(self):
        return 'Concurrent update detected, please retry'


class Forbidden(VotingError):
    kind = 'Forbidden'
    status_code = 403

    def default_message(self):
        return 'Access denied'


class AuthenticationFailed(VotingError):
    kind = 'AuthenticationFailed'
    status_code = 401

    def default_message(self):
        return 'Invalid credentials'


class DeliveryError(VotingError):
    kind = 'DeliveryError'
    status_code = 502


class AuditError(VotingError):
    kind = 'AuditError'
    status_code = 500


def retry_on_conflict(func):
    """Run ``func`` again once if it fails with StorageConflict.

    The storage-level unique constraints are the last line of defence against
    concurrent writers; the second attempt re-runs the application checks and
    so reports the precise error (for example DuplicateVote).
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except StorageConflict:
            logger.warning("Storage conflict in %s, retrying once", func.__name__)
            return func(*args, **kwargs)
    return wrapper


def register_error_handlers(app):
    @app.errorhandler(VotingError)
    def handle_voting_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(429)
    def handle_rate_limit(error):
        return jsonify({
            'error': 'TooManyRequests',
            'message': 'Too many attempts, please try again later.',
        }), 429

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'error': error.name.replace(' ', ''), 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        logger.exception("Unhandled error: %s", error)
        return jsonify({'error': 'InternalError', 'message': 'Internal server error'}), 500
