# evote/database/models.py

from datetime import datetime
from evote import db


class Voter(db.Model):
    __tablename__ = 'voters'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(254), unique=True, nullable=False)
    matric_number = db.Column(db.String(50), unique=True, nullable=True)
    password_hash = db.Column(db.String(200), nullable=False)  # Argon2id digest
    verified = db.Column(db.Boolean, nullable=False, default=False)
    verification_token = db.Column(db.String(64), unique=True, nullable=True)
    role = db.Column(db.String(20), nullable=False, default='VOTER')
    face_descriptor = db.Column(db.Text, nullable=True)  # JSON list of floats
    last_login_ip = db.Column(db.String(45), nullable=True)
    last_login_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    ballots = db.relationship('Ballot', backref='voter', lazy=True, passive_deletes=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'matricNumber': self.matric_number,
            'role': self.role,
            'verified': self.verified,
        }

    def __repr__(self):
        return f'<Voter {self.id} {self.email}>'


class Election(db.Model):
    __tablename__ = 'elections'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    candidates = db.relationship(
        'Candidate', backref='election', lazy=True,
        order_by='Candidate.id', passive_deletes=True,
    )

    def to_dict(self, with_candidates=True):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
        if with_candidates:
            data['candidates'] = [c.to_dict() for c in self.candidates]
        return data


class Candidate(db.Model):
    __tablename__ = 'candidates'
    id = db.Column(db.Integer, primary_key=True)
    election_id = db.Column(db.Integer, db.ForeignKey('elections.id'), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    party = db.Column(db.String(100), nullable=False)
    position = db.Column(db.String(100), nullable=False)
    votes_count = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        # Target of the ballots composite foreign key
        db.UniqueConstraint('id', 'election_id', name='uq_candidate_election'),
        db.CheckConstraint('votes_count >= 0', name='ck_candidate_votes_non_negative'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'electionId': self.election_id,
            'name': self.name,
            'party': self.party,
            'position': self.position,
            'votes': self.votes_count,
        }


class Ballot(db.Model):
    __tablename__ = 'ballots'
    id = db.Column(db.Integer, primary_key=True)
    voter_id = db.Column(db.Integer, db.ForeignKey('voters.id'), nullable=False, index=True)
    election_id = db.Column(db.Integer, db.ForeignKey('elections.id'), nullable=False)
    candidate_id = db.Column(db.Integer, nullable=False, index=True)
    position = db.Column(db.String(100), nullable=False)  # copied from the candidate at cast time
    cast_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        # One ballot per voter per position per election, whatever the application checks
        db.UniqueConstraint('voter_id', 'election_id', 'position', name='uq_ballot_voter_election_position'),
        # A ballot's candidate always belongs to the ballot's election
        db.ForeignKeyConstraint(
            ['candidate_id', 'election_id'],
            ['candidates.id', 'candidates.election_id'],
            name='fk_ballot_candidate_election',
        ),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'voterId': self.voter_id,
            'electionId': self.election_id,
            'candidateId': self.candidate_id,
            'position': self.position,
            'castAt': self.cast_at.isoformat() if self.cast_at else None,
        }

    def __repr__(self):
        return f'<Ballot {self.id} by Voter {self.voter_id}>'
