# evote/identity/store.py

import json
import logging
import secrets
from datetime import datetime

from sqlalchemy import or_, text
from sqlalchemy.exc import IntegrityError

from evote import db
from evote.authentication.rbac import UserRole, VALID_ROLES
from evote.database.models import Voter
from evote.errors import (
    AuthenticationFailed, DuplicateIdentity, Forbidden, InvalidToken, NotFound,
    StorageConflict, Unverified, ValidationError, retry_on_conflict,
)

logger = logging.getLogger(__name__)

# Transaction-scoped advisory lock serialising face registrations on PostgreSQL
FACE_REGISTRATION_LOCK_KEY = 0x65766f7465


class IdentityStore:
    """Voter records: registration, email verification, login and roles.

    Uniqueness of email and matric number is checked up front and enforced
    again by the table's unique constraints; a constraint hit is reported as
    StorageConflict and the operation retried once, at which point the
    up-front check names the real problem.

    Face descriptors have no unique constraint to fall back on, so a
    registration that carries one holds a lock from the duplicate-face scan
    until commit: BEGIN IMMEDIATE on SQLite, an advisory lock on PostgreSQL.
    """

    def __init__(self, password_service, audit_logger, face_matcher=None):
        self.password_service = password_service
        self.audit_logger = audit_logger
        self.face_matcher = face_matcher
        self._unknown_email_hash = None

    # -- lookups ---------------------------------------------------------------

    def find_by_id(self, voter_id, for_update=False):
        query = db.session.query(Voter).filter_by(id=voter_id)
        if for_update:
            query = query.with_for_update()
        voter = query.first()
        if voter is None:
            raise NotFound("User not found")
        return voter

    def find_by_email(self, email):
        voter = db.session.query(Voter).filter_by(email=email).first()
        if voter is None:
            raise NotFound("User not found")
        return voter

    def list_voters(self):
        return db.session.query(Voter).order_by(Voter.id).all()

    def delete_record(self, voter_id):
        # Callers remove the voter's ballots first; see AdminMutationGuard.purge_voter
        return db.session.query(Voter).filter_by(id=voter_id).delete(synchronize_session=False)

    # -- registration ----------------------------------------------------------

    @retry_on_conflict
    def register(self, request, origin=None):
        conditions = [Voter.email == request.email]
        if request.matric_number:
            conditions.append(Voter.matric_number == request.matric_number)
        existing = db.session.query(Voter).filter(or_(*conditions)).first()
        if existing is not None:
            db.session.rollback()
            raise DuplicateIdentity()

        if request.face_descriptor is not None:
            self._lock_face_registrations()
            self._reject_duplicate_face(request.face_descriptor)

        # Hashing also enforces the password policy, before anything is written
        password_hash = self.password_service.hash_password(request.password)

        voter = Voter(
            name=request.name,
            email=request.email,
            matric_number=request.matric_number,
            password_hash=password_hash,
            verified=False,
            verification_token=secrets.token_hex(32),
            role=UserRole.VOTER.value,
            face_descriptor=json.dumps(request.face_descriptor) if request.face_descriptor is not None else None,
            last_login_ip=(origin or {}).get('ip'),
        )
        db.session.add(voter)
        try:
            db.session.flush()
            snapshot = voter.to_dict()
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise StorageConflict()

        logger.info("Registered voter %s", snapshot['id'])
        self.audit_logger.record(
            'REGISTER', 'User', actor_id=snapshot['id'], entity_id=snapshot['id'],
            new_values=snapshot, origin=origin, actor_email=snapshot['email'],
        )
        return voter

    def _lock_face_registrations(self):
        if db.session.get_bind().dialect.name == 'postgresql':
            db.session.execute(text('SELECT pg_advisory_xact_lock(:key)'), {'key': FACE_REGISTRATION_LOCK_KEY})

    def _reject_duplicate_face(self, descriptor):
        if self.face_matcher is None:
            raise ValidationError("Face registration is not enabled")
        stored = self._stored_descriptors()
        match_id, distance = self.face_matcher.closest(descriptor, stored)
        if self.face_matcher.is_match(distance):
            db.session.rollback()
            logger.warning(
                "Duplicate face detected: new registration matches voter %s with distance %.4f",
                match_id, distance,
            )
            raise DuplicateIdentity("This face is already registered to another account.")

    def _stored_descriptors(self):
        rows = db.session.query(Voter.id, Voter.face_descriptor).filter(Voter.face_descriptor.isnot(None)).all()
        return [(voter_id, json.loads(raw)) for voter_id, raw in rows]

    def mark_verified(self, token, origin=None):
        voter = db.session.query(Voter).filter_by(verification_token=token).first()
        if voter is None:
            db.session.rollback()
            raise InvalidToken()

        # Conditional update: of two concurrent redemptions only one clears the token
        updated = db.session.query(Voter).filter_by(id=voter.id, verification_token=token).update(
            {Voter.verified: True, Voter.verification_token: None}, synchronize_session=False
        )
        if updated != 1:
            db.session.rollback()
            raise InvalidToken()
        db.session.commit()

        self.audit_logger.record(
            'VERIFY_EMAIL', 'User', actor_id=voter.id, entity_id=voter.id,
            origin=origin, actor_email=voter.email,
        )
        return voter

    # -- login -----------------------------------------------------------------

    def authenticate(self, email, password, origin=None):
        voter = db.session.query(Voter).filter_by(email=email).first()
        if voter is None:
            # Unknown emails pay for one Argon2 verify as well
            self.password_service.verify_password(password, self._placeholder_hash())
        if voter is None or not self.password_service.verify_password(password, voter.password_hash):
            db.session.rollback()
            logger.warning("Failed login for %s from %s", email, (origin or {}).get('ip'))
            raise AuthenticationFailed()
        if not voter.verified:
            db.session.rollback()
            raise Unverified("Email not verified")

        if self.password_service.needs_rehash(voter.password_hash):
            voter.password_hash = self.password_service.ph.hash(password)
        self._record_login(voter, origin)
        return voter

    def _placeholder_hash(self):
        if self._unknown_email_hash is None:
            self._unknown_email_hash = self.password_service.ph.hash(secrets.token_hex(16))
        return self._unknown_email_hash

    def match_face(self, descriptor):
        """Return the single voter whose descriptor is closest and under the threshold."""
        if self.face_matcher is None:
            raise ValidationError("Face login is not enabled")
        match_id, distance = self.face_matcher.closest(descriptor, self._stored_descriptors())
        if not self.face_matcher.is_match(distance):
            db.session.rollback()
            raise NotFound("No matching face found")
        logger.info("Face match for voter %s: distance=%.4f similarity=%.2f",
                    match_id, distance, self.face_matcher.similarity(distance))
        return self.find_by_id(match_id)

    def authenticate_face(self, descriptor, origin=None):
        try:
            voter = self.match_face(descriptor)
        except NotFound:
            logger.warning("Failed face login from %s", (origin or {}).get('ip'))
            raise AuthenticationFailed("Face not recognised")
        if not voter.verified:
            db.session.rollback()
            raise Unverified("Email not verified")
        self._record_login(voter, origin)
        return voter

    def _record_login(self, voter, origin):
        voter.last_login_ip = (origin or {}).get('ip')
        voter.last_login_at = datetime.utcnow()
        db.session.commit()
        self.audit_logger.record(
            'LOGIN', 'User', actor_id=voter.id, entity_id=voter.id,
            origin=origin, actor_email=voter.email,
        )

    # -- roles -----------------------------------------------------------------

    def set_role(self, actor, voter_id, role, origin=None):
        if actor.role != UserRole.SUPER_ADMIN.value:
            raise Forbidden("Access denied. Super admin only.")
        if role not in VALID_ROLES:
            raise ValidationError(f"Invalid role, expected one of: {', '.join(VALID_ROLES)}")

        voter = self.find_by_id(voter_id)
        old_role = voter.role
        voter.role = role
        db.session.commit()

        logger.info("Role of voter %s changed from %s to %s by %s", voter.id, old_role, role, actor.id)
        self.audit_logger.record(
            'UPDATE_USER_ROLE', 'User', actor_id=actor.id, entity_id=voter.id,
            old_values={'role': old_role}, new_values={'role': role},
            origin=origin, actor_email=actor.email,
        )
        return voter
