# evote/services.py

# Wires the voting core to its collaborators. The resulting dict is stored in
# app.extensions['evote'] so routes (and tests) look services up by name.

from evote import mail
from evote.audit.audit_logger import AuditLogger
from evote.encryption.password_hashing import PasswordHashingService
from evote.identity.biometrics import FaceMatcher
from evote.identity.store import IdentityStore
from evote.notifications.mailer import NotificationSender
from evote.security.captcha_verifier import CaptchaVerifier
from evote.security.input_validator import InputValidator
from evote.security.token_manager import TokenManager
from evote.voting.admin_guard import AdminMutationGuard
from evote.voting.catalog import ElectionCatalog
from evote.voting.engine import VotingEngine
from evote.voting.ledger import BallotLedger


def build_services(app):
    config = app.config

    audit_logger = AuditLogger(
        log_dir=config['AUDIT_LOG_DIR'],
        asynchronous=config.get('AUDIT_ASYNC', True),
        signing_key_pem=config.get('AUDIT_SIGNING_KEY'),
    )
    password_service = PasswordHashingService(
        time_cost=config.get('ARGON2_TIME_COST', 3),
        memory_cost=config.get('ARGON2_MEMORY_COST', 65536),
        parallelism=config.get('ARGON2_PARALLELISM', 4),
    )
    face_matcher = FaceMatcher(
        threshold=config['FACE_MATCH_THRESHOLD'],
        descriptor_length=config['FACE_DESCRIPTOR_LENGTH'],
    )

    identity = IdentityStore(password_service, audit_logger, face_matcher=face_matcher)
    catalog = ElectionCatalog(audit_logger)
    ledger = BallotLedger()

    return {
        'audit': audit_logger,
        'credentials': password_service,
        'faces': face_matcher,
        'identity': identity,
        'catalog': catalog,
        'ledger': ledger,
        'engine': VotingEngine(identity, catalog, ledger, audit_logger),
        'guard': AdminMutationGuard(identity, catalog, ledger, audit_logger),
        'mailer': NotificationSender(mail),
        'captcha': CaptchaVerifier(config['RECAPTCHA_SECRET_KEY'], verify_url=config['RECAPTCHA_VERIFY_URL']),
        'validator': InputValidator(
            allowed_email_domain=config.get('ALLOWED_EMAIL_DOMAIN'),
            face_matcher=face_matcher,
        ),
        'tokens': TokenManager(app),
    }
