# evote/voting/catalog.py

import logging

from evote import db
from evote.database.models import Ballot, Candidate, Election
from evote.errors import NotFound

logger = logging.getLogger(__name__)


class ElectionCatalog:
    """Elections, their candidate rosters and the cached per-candidate tallies.

    ``create_election`` and ``add_candidate`` commit on their own.
    ``get_candidate`` and ``increment_tally`` run inside the caller's
    transaction (the voting engine's).
    """

    def __init__(self, audit_logger):
        self.audit_logger = audit_logger

    def create_election(self, name, description='', actor=None, origin=None):
        election = Election(name=name, description=description or '')
        db.session.add(election)
        db.session.flush()
        snapshot = election.to_dict(with_candidates=False)
        db.session.commit()

        logger.info("Election %s created", snapshot['id'])
        self.audit_logger.record(
            'CREATE_ELECTION', 'Election',
            actor_id=actor.id if actor else None, entity_id=snapshot['id'],
            new_values=snapshot, origin=origin, actor_email=actor.email if actor else None,
        )
        return election

    def add_candidate(self, election_id, name, party, position, actor=None, origin=None):
        # Several candidates may share a position: they contest the same office
        self.get_election(election_id)
        candidate = Candidate(election_id=election_id, name=name, party=party, position=position, votes_count=0)
        db.session.add(candidate)
        db.session.flush()
        snapshot = candidate.to_dict()
        db.session.commit()

        logger.info("Candidate %s added to election %s for %s", snapshot['id'], election_id, position)
        self.audit_logger.record(
            'ADD_CANDIDATE', 'Candidate',
            actor_id=actor.id if actor else None, entity_id=snapshot['id'],
            new_values=snapshot, origin=origin, actor_email=actor.email if actor else None,
        )
        return candidate

    def get_election(self, election_id):
        election = db.session.get(Election, election_id)
        if election is None:
            raise NotFound("Election not found")
        return election

    def list_elections(self):
        return db.session.query(Election).order_by(Election.id).all()

    def get_candidate(self, candidate_id, election_id):
        """Candidate ``candidate_id`` of election ``election_id``; a candidate of another election is NotFound."""
        candidate = db.session.query(Candidate).filter_by(id=candidate_id, election_id=election_id).first()
        if candidate is None:
            raise NotFound("Candidate not found")
        return candidate

    def increment_tally(self, candidate_id):
        # Single UPDATE so concurrent increments for one candidate never lose a count
        updated = db.session.query(Candidate).filter_by(id=candidate_id).update(
            {Candidate.votes_count: Candidate.votes_count + 1}, synchronize_session=False
        )
        if updated != 1:
            raise NotFound("Candidate not found")

    def decrement_tally(self, candidate_id, amount):
        updated = db.session.query(Candidate).filter_by(id=candidate_id).update(
            {Candidate.votes_count: Candidate.votes_count - amount}, synchronize_session=False
        )
        if updated != 1:
            raise NotFound("Candidate not found")

    def delete_candidate_record(self, candidate_id):
        return db.session.query(Candidate).filter_by(id=candidate_id).delete(synchronize_session=False)

    def delete_candidates_by_election(self, election_id):
        return db.session.query(Candidate).filter_by(election_id=election_id).delete(synchronize_session=False)

    def delete_election_record(self, election_id):
        return db.session.query(Election).filter_by(id=election_id).delete(synchronize_session=False)

    def results(self, election_id):
        election = self.get_election(election_id)
        return {
            'electionId': election.id,
            'election': election.name,
            'candidates': [c.to_dict() for c in election.candidates],
        }

    def verify_tallies(self, election_id):
        """Recount the ballots of an election and compare against the cached tallies.

        Returns a report with ``consistent`` and one entry per mismatching candidate.
        """
        election = self.get_election(election_id)
        counts = dict(
            db.session.query(Ballot.candidate_id, db.func.count(Ballot.id))
            .filter(Ballot.election_id == election_id)
            .group_by(Ballot.candidate_id)
            .all()
        )
        mismatches = []
        for candidate in election.candidates:
            recorded = counts.get(candidate.id, 0)
            if recorded != candidate.votes_count:
                mismatches.append({
                    'candidateId': candidate.id,
                    'tally': candidate.votes_count,
                    'ballots': recorded,
                })
        if mismatches:
            logger.error("Tally mismatch in election %s: %s", election_id, mismatches)
        return {
            'electionId': election.id,
            'consistent': not mismatches,
            'totalBallots': sum(counts.values()),
            'mismatches': mismatches,
        }
