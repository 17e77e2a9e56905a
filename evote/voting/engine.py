# evote/voting/engine.py
"""Vote casting: the one place ballots are created and tallies move.

Per (voter, election, position) there are two states, not voted and voted,
and no way back. ``cast_vote`` performs the whole transition in a single
database transaction:

1. lock and load the voter, who must be verified
2. load the candidate, which must belong to the election
3. refuse if a ballot for the candidate's position already exists
4. append the ballot
5. increment the candidate's tally

Two concurrent requests for the same voter are serialised by the voter row
lock (``SELECT ... FOR UPDATE``; on SQLite by ``BEGIN IMMEDIATE``). The
ballots table's unique constraint on (voter, election, position) backs this
up: a violation rolls everything back, including the tally, and surfaces as
StorageConflict, which ``cast_vote`` retries once so the caller normally sees
DuplicateVote instead. Face registrations are serialised the same way; see
IdentityStore._lock_face_registrations.

The audit record is written after commit and its failure never affects the
vote.
"""

import logging

from sqlalchemy.exc import IntegrityError

from evote import db
from evote.errors import DuplicateVote, StorageConflict, Unverified, ValidationError, VotingError, retry_on_conflict
from evote.schemas import MAX_ID

logger = logging.getLogger(__name__)


class VotingEngine:
    def __init__(self, identity_store, catalog, ledger, audit_logger):
        self.identity_store = identity_store
        self.catalog = catalog
        self.ledger = ledger
        self.audit_logger = audit_logger

    @retry_on_conflict
    def cast_vote(self, voter_id, election_id, candidate_id, origin=None):
        for name, value in (('voter_id', voter_id), ('election_id', election_id), ('candidate_id', candidate_id)):
            if isinstance(value, bool) or not isinstance(value, int) or not 0 < value <= MAX_ID:
                raise ValidationError(f"{name} must be a positive integer")

        try:
            voter = self.identity_store.find_by_id(voter_id, for_update=True)
            if not voter.verified:
                raise Unverified()

            candidate = self.catalog.get_candidate(candidate_id, election_id)
            position = candidate.position

            if self.ledger.has_voted(voter_id, election_id, position):
                logger.warning("Duplicate vote attempt by voter %s for %s in election %s",
                               voter_id, position, election_id)
                raise DuplicateVote(position)

            ballot = self.ledger.append(voter_id, election_id, candidate_id, position)
            ballot_id = ballot.id
            self.catalog.increment_tally(candidate_id)
            db.session.commit()
        except VotingError:
            db.session.rollback()
            raise
        except IntegrityError:
            db.session.rollback()
            logger.warning("Ballot constraint hit for voter %s in election %s", voter_id, election_id)
            raise StorageConflict()
        except Exception:
            db.session.rollback()
            raise

        logger.info("Ballot %s recorded in election %s", ballot_id, election_id)
        # The candidate is kept out of the audit trail to preserve ballot secrecy
        self.audit_logger.record('CAST_VOTE', 'Vote', actor_id=voter_id, entity_id=ballot_id, origin=origin)
        return {'ballotId': ballot_id, 'electionId': election_id, 'position': position}

    def voting_history(self, voter_id):
        """Ballots cast by a voter, oldest first."""
        self.identity_store.find_by_id(voter_id)
        return self.ledger.find_by_voter(voter_id)
