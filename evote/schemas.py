# evote/schemas.py

# Typed request objects built by InputValidator from raw JSON payloads.
# Optional fields default to None; everything else has been checked.

from dataclasses import dataclass
from typing import List, Optional

# Primary keys are 32-bit INTEGER columns on every supported backend
MAX_ID = 2**31 - 1


@dataclass(frozen=True)
class RegisterRequest:
    name: str
    email: str
    password: str
    matric_number: Optional[str] = None
    face_descriptor: Optional[List[float]] = None


@dataclass(frozen=True)
class LoginRequest:
    email: str
    password: str


@dataclass(frozen=True)
class FaceLoginRequest:
    face_descriptor: List[float]


@dataclass(frozen=True)
class CreateElectionRequest:
    name: str
    description: str = ''


@dataclass(frozen=True)
class AddCandidateRequest:
    election_id: int
    name: str
    party: str
    position: str


@dataclass(frozen=True)
class CastVoteRequest:
    election_id: int
    candidate_id: int
    captcha_value: str


@dataclass(frozen=True)
class RoleChangeRequest:
    role: str


@dataclass(frozen=True)
class AuditLogQuery:
    page: int = 1
    limit: int = 10
    user: Optional[str] = None
    action: Optional[str] = None
    start_date: Optional[object] = None
    end_date: Optional[object] = None
