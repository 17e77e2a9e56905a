# evote/security/input_validator.py

import re
import html
import bleach
from datetime import datetime, time

from evote.errors import ValidationError
from evote.schemas import (
    MAX_ID,
    RegisterRequest, LoginRequest, FaceLoginRequest, CreateElectionRequest,
    AddCandidateRequest, CastVoteRequest, RoleChangeRequest, AuditLogQuery,
)

# Input validation and sanitisation: raw request payloads become typed
# request objects or a ValidationError, never a half-checked dict.


class InputValidator:
    def __init__(self, allowed_email_domain=None, face_matcher=None):
        self.allowed_email_domain = allowed_email_domain
        self.face_matcher = face_matcher

        self.patterns = {
            'email': re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'),
            'matric_number': re.compile(r'^[A-Za-z0-9/_-]{3,50}$'),
            'xss_script': re.compile(r'<script[^>]*>.*?</script>', re.IGNORECASE | re.DOTALL),
            'xss_event': re.compile(r'\bon\w+\s*=', re.IGNORECASE)
        }

    def sanitize_string(self, input_str, max_length=255):
        if not isinstance(input_str, str):
            raise ValidationError("Input must be a string")
        if len(input_str) > max_length:
            input_str = input_str[:max_length]

        sanitized = re.sub(self.patterns['xss_script'], '', input_str)
        sanitized = re.sub(self.patterns['xss_event'], '', sanitized)
        sanitized = bleach.clean(sanitized, tags=[], attributes={}, strip=True)
        # bleach escapes &, < and >; store plain text and escape on output
        return html.unescape(sanitized).strip()

    def validate_email(self, email):
        return isinstance(email, str) and bool(self.patterns['email'].match(email))

    def normalize_email(self, email):
        if not self.validate_email(email):
            raise ValidationError("Invalid email format")
        return email.strip().lower()

    def parse_id(self, value, field):
        """Identifiers are positive integers; strings of digits are accepted."""
        if isinstance(value, bool):
            raise ValidationError(f"{field} must be an integer")
        if isinstance(value, int):
            parsed = value
        elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
            parsed = int(value.strip())
        else:
            raise ValidationError(f"{field} must be an integer")
        if parsed <= 0:
            raise ValidationError(f"{field} must be a positive integer")
        if parsed > MAX_ID:
            raise ValidationError(f"{field} is out of range")
        return parsed

    def _payload(self, payload):
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        return payload

    def _required_text(self, payload, key, label, max_length=255):
        value = payload.get(key)
        if value is None or not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{label} is required")
        cleaned = self.sanitize_string(value, max_length=max_length)
        if not cleaned:
            raise ValidationError(f"{label} is required")
        return cleaned

    def parse_register(self, payload):
        payload = self._payload(payload)
        name = self._required_text(payload, 'name', 'Name', max_length=120)
        email = self.normalize_email(payload.get('email'))
        if self.allowed_email_domain and not email.endswith(self.allowed_email_domain.lower()):
            raise ValidationError(f"Only {self.allowed_email_domain} emails are allowed")
        password = payload.get('password')
        if not isinstance(password, str) or not password:
            raise ValidationError("Password is required")

        matric_number = payload.get('matricNumber')
        if matric_number is not None:
            if not isinstance(matric_number, str) or not self.patterns['matric_number'].match(matric_number.strip()):
                raise ValidationError("Invalid matric number")
            matric_number = matric_number.strip().upper()

        descriptor = payload.get('faceDescriptor')
        if descriptor is not None:
            if self.face_matcher is None:
                raise ValidationError("Face registration is not enabled")
            descriptor = self.face_matcher.validate_descriptor(descriptor)

        return RegisterRequest(
            name=name, email=email, password=password,
            matric_number=matric_number, face_descriptor=descriptor,
        )

    def parse_login(self, payload):
        payload = self._payload(payload)
        email = self.normalize_email(payload.get('email'))
        password = payload.get('password')
        if not isinstance(password, str) or not password:
            raise ValidationError("Password is required")
        return LoginRequest(email=email, password=password)

    def parse_face_login(self, payload):
        payload = self._payload(payload)
        if self.face_matcher is None:
            raise ValidationError("Face login is not enabled")
        descriptor = payload.get('faceDescriptor')
        if descriptor is None:
            raise ValidationError("Face descriptor is required")
        return FaceLoginRequest(face_descriptor=self.face_matcher.validate_descriptor(descriptor))

    def parse_verification_token(self, token):
        if not isinstance(token, str) or not token:
            raise ValidationError("Verification token is required")
        return token.strip()

    def parse_create_election(self, payload):
        payload = self._payload(payload)
        name = self._required_text(payload, 'name', 'Election name', max_length=200)
        description = payload.get('description') or ''
        if not isinstance(description, str):
            raise ValidationError("Description must be a string")
        return CreateElectionRequest(name=name, description=self.sanitize_string(description, max_length=2000))

    def parse_add_candidate(self, payload):
        payload = self._payload(payload)
        return AddCandidateRequest(
            election_id=self.parse_id(payload.get('electionId'), 'Election ID'),
            name=self._required_text(payload, 'name', 'Candidate name', max_length=120),
            party=self._required_text(payload, 'party', 'Party', max_length=100),
            position=self._required_text(payload, 'position', 'Position', max_length=100),
        )

    def parse_cast_vote(self, payload):
        payload = self._payload(payload)
        captcha_value = payload.get('captchaValue')
        if not isinstance(captcha_value, str) or not captcha_value:
            raise ValidationError("CAPTCHA token missing")
        return CastVoteRequest(
            election_id=self.parse_id(payload.get('electionId'), 'Election ID'),
            candidate_id=self.parse_id(payload.get('candidateId'), 'Candidate ID'),
            captcha_value=captcha_value,
        )

    def parse_role_change(self, payload, valid_roles):
        payload = self._payload(payload)
        role = payload.get('role')
        if not role:
            raise ValidationError("Role is required")
        if role not in valid_roles:
            raise ValidationError(f"Invalid role, expected one of: {', '.join(valid_roles)}")
        return RoleChangeRequest(role=role)

    def _parse_date(self, value, field, end_of_day=False):
        if not value:
            return None
        try:
            parsed = datetime.fromisoformat(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid {field}")
        if end_of_day and len(value) <= 10:
            # include the whole day
            parsed = datetime.combine(parsed.date(), time.max)
        return parsed

    def parse_audit_query(self, args):
        try:
            page = int(args.get('page', 1))
            limit = int(args.get('limit', 10))
        except (TypeError, ValueError):
            raise ValidationError("page and limit must be integers")
        if page < 1 or not 1 <= limit <= 100:
            raise ValidationError("page must be >= 1 and limit between 1 and 100")
        return AuditLogQuery(
            page=page,
            limit=limit,
            user=args.get('user') or None,
            action=args.get('action') or None,
            start_date=self._parse_date(args.get('startDate'), 'startDate'),
            end_date=self._parse_date(args.get('endDate'), 'endDate', end_of_day=True),
        )
