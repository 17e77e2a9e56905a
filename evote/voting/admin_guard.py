# evote/voting/admin_guard.py

import logging

from sqlalchemy.exc import IntegrityError

from evote import db
from evote.errors import Forbidden, StorageConflict, retry_on_conflict

logger = logging.getLogger(__name__)


class AdminMutationGuard:
    """Destructive admin operations, each cascading in foreign-key order in one transaction.

    The before-image is captured first because it cannot be read back after
    the delete; it goes to the audit log once the transaction has committed.
    A missing target raises NotFound before anything is deleted. A constraint
    violation at commit rolls the whole cascade back as StorageConflict and
    the operation is retried once.
    """

    def __init__(self, identity_store, catalog, ledger, audit_logger):
        self.identity_store = identity_store
        self.catalog = catalog
        self.ledger = ledger
        self.audit_logger = audit_logger

    def _run(self, mutation):
        try:
            result = mutation()
            db.session.commit()
            return result
        except IntegrityError:
            db.session.rollback()
            raise StorageConflict()
        except Exception:
            db.session.rollback()
            raise

    @retry_on_conflict
    def delete_candidate(self, actor, election_id, candidate_id, origin=None):
        def mutation():
            candidate = self.catalog.get_candidate(candidate_id, election_id)
            before = candidate.to_dict()
            removed = self.ledger.delete_by_candidate(candidate_id)
            self.catalog.delete_candidate_record(candidate_id)
            return before, removed

        before, removed = self._run(mutation)
        logger.info("Candidate %s deleted with %d ballots", candidate_id, removed)
        self.audit_logger.record(
            'DELETE_CANDIDATE', 'Candidate', actor_id=actor.id, entity_id=candidate_id,
            old_values=before, new_values={'ballotsRemoved': removed},
            origin=origin, actor_email=actor.email,
        )
        return {'candidate': before, 'ballotsRemoved': removed}

    @retry_on_conflict
    def delete_election(self, actor, election_id, origin=None):
        def mutation():
            election = self.catalog.get_election(election_id)
            before = election.to_dict()
            removed = self.ledger.delete_by_election(election_id)
            candidates = self.catalog.delete_candidates_by_election(election_id)
            self.catalog.delete_election_record(election_id)
            return before, removed, candidates

        before, removed, candidates = self._run(mutation)
        logger.info("Election %s deleted with %d candidates and %d ballots", election_id, candidates, removed)
        self.audit_logger.record(
            'DELETE_ELECTION', 'Election', actor_id=actor.id, entity_id=election_id,
            old_values=before, new_values={'ballotsRemoved': removed, 'candidatesRemoved': candidates},
            origin=origin, actor_email=actor.email,
        )
        return {'election': before, 'ballotsRemoved': removed, 'candidatesRemoved': candidates}

    @retry_on_conflict
    def purge_voter(self, actor, voter_id, origin=None):
        if actor.id == voter_id:
            raise Forbidden("You cannot delete your own account")

        def mutation():
            voter = self.identity_store.find_by_id(voter_id, for_update=True)
            before = voter.to_dict()
            per_candidate = self.ledger.delete_by_voter(voter_id)
            # Keep every surviving tally equal to its ballot count
            for candidate_id, count in per_candidate.items():
                self.catalog.decrement_tally(candidate_id, count)
            self.identity_store.delete_record(voter_id)
            return before, sum(per_candidate.values())

        before, removed = self._run(mutation)
        logger.info("Voter %s purged with %d ballots", voter_id, removed)
        self.audit_logger.record(
            'DELETE_USER', 'User', actor_id=actor.id, entity_id=voter_id,
            old_values=before, new_values={'ballotsRemoved': removed},
            origin=origin, actor_email=actor.email,
        )
        return {'user': before, 'ballotsRemoved': removed}
