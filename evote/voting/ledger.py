# evote/voting/ledger.py

from evote import db
from evote.database.models import Ballot


class BallotLedger:
    """Append-only record of cast ballots.

    There is deliberately no update method: ballots are appended by the voting
    engine and only ever removed in bulk by the admin cascades. None of these
    methods commit; they run in the caller's transaction.
    """

    def has_voted(self, voter_id, election_id, position):
        return db.session.query(
            db.session.query(Ballot)
            .filter_by(voter_id=voter_id, election_id=election_id, position=position)
            .exists()
        ).scalar()

    def append(self, voter_id, election_id, candidate_id, position):
        ballot = Ballot(voter_id=voter_id, election_id=election_id, candidate_id=candidate_id, position=position)
        db.session.add(ballot)
        # Flush now so the unique constraint fires inside the caller's try block
        db.session.flush()
        return ballot

    def find_by_voter(self, voter_id):
        return db.session.query(Ballot).filter_by(voter_id=voter_id).order_by(Ballot.id).all()

    def count_by_candidate(self, candidate_id):
        return db.session.query(Ballot).filter_by(candidate_id=candidate_id).count()

    def delete_by_candidate(self, candidate_id):
        return db.session.query(Ballot).filter_by(candidate_id=candidate_id).delete(synchronize_session=False)

    def delete_by_election(self, election_id):
        return db.session.query(Ballot).filter_by(election_id=election_id).delete(synchronize_session=False)

    def delete_by_voter(self, voter_id):
        """Delete a voter's ballots; returns ``{candidate_id: ballots_removed}``."""
        per_candidate = dict(
            db.session.query(Ballot.candidate_id, db.func.count(Ballot.id))
            .filter(Ballot.voter_id == voter_id)
            .group_by(Ballot.candidate_id)
            .all()
        )
        db.session.query(Ballot).filter_by(voter_id=voter_id).delete(synchronize_session=False)
        return per_candidate
