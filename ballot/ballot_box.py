"""
Ballot box: accepts encrypted ballots as cast or spoiled after checking
them against the election.
"""

import logging
from typing import Dict, List, Optional

from .ballot import BallotBoxState, CiphertextBallot, SubmittedBallot, from_ciphertext_ballot
from .election import CiphertextElectionContext
from .manifest import InternalManifest

logger = logging.getLogger(__name__)


def ballot_is_valid_for_style(ballot: CiphertextBallot, internal_manifest: InternalManifest) -> bool:
    """Contests, selections and description hashes match the ballot's style exactly"""
    if internal_manifest.get_ballot_style(ballot.style_id) is None:
        logger.warning(f"Ballot {ballot.object_id} has unknown style {ballot.style_id}")
        return False

    descriptions = {c.object_id: c for c in internal_manifest.get_contests_for(ballot.style_id)}
    contests = {c.object_id: c for c in ballot.contests}
    if set(descriptions) != set(contests):
        logger.warning(f"Ballot {ballot.object_id} contests do not match style {ballot.style_id}")
        return False

    for contest_id, description in descriptions.items():
        contest = contests[contest_id]
        if contest.description_hash != description.crypto_hash():
            logger.warning(f"Ballot {ballot.object_id} contest {contest_id} has wrong description hash")
            return False

        expected = len(description.ballot_selections) + len(description.placeholder_selections)
        if len(contest.ballot_selections) != expected:
            logger.warning(
                f"Ballot {ballot.object_id} contest {contest_id} has "
                f"{len(contest.ballot_selections)} selections, expected {expected}")
            return False

        for selection in contest.ballot_selections:
            selection_description = description.selection_for(selection.object_id)
            if selection_description is None:
                logger.warning(
                    f"Ballot {ballot.object_id} has unknown selection {selection.object_id}")
                return False
            if selection.description_hash != selection_description.crypto_hash():
                logger.warning(
                    f"Ballot {ballot.object_id} selection {selection.object_id} has wrong description hash")
                return False
    return True


def ballot_is_valid_for_election(
    ballot: CiphertextBallot,
    internal_manifest: InternalManifest,
    context: CiphertextElectionContext,
) -> bool:
    """Style check plus every hash and proof against the election context"""
    if not ballot_is_valid_for_style(ballot, internal_manifest):
        return False

    if not ballot.is_valid_encryption(
            context.description_hash,
            context.elgamal_public_key,
            context.crypto_extended_base_hash):
        logger.warning(f"Ballot {ballot.object_id} failed encryption validation")
        return False
    return True


class BallotBox:
    """Stores each accepted ballot once, as cast or spoiled"""

    def __init__(
        self,
        internal_manifest: InternalManifest,
        context: CiphertextElectionContext,
        store: Optional[Dict[str, SubmittedBallot]] = None,
    ):
        self._internal_manifest = internal_manifest
        self._context = context
        self._store: Dict[str, SubmittedBallot] = store if store is not None else {}

    def cast(self, ballot: CiphertextBallot) -> Optional[SubmittedBallot]:
        return self.accept_ballot(ballot, BallotBoxState.CAST)

    def spoil(self, ballot: CiphertextBallot) -> Optional[SubmittedBallot]:
        return self.accept_ballot(ballot, BallotBoxState.SPOILED)

    def accept_ballot(self, ballot: CiphertextBallot, state: BallotBoxState) -> Optional[SubmittedBallot]:
        """Validate and store the ballot. None if it is invalid or already submitted"""
        if state not in (BallotBoxState.CAST, BallotBoxState.SPOILED):
            logger.warning(f"Ballot {ballot.object_id} cannot be accepted as {state.name}")
            return None

        if not ballot_is_valid_for_election(ballot, self._internal_manifest, self._context):
            return None

        existing = self._store.get(ballot.object_id)
        if existing is not None:
            logger.warning(
                f"Ballot {ballot.object_id} already submitted as {existing.state.name}")
            return None

        submitted = from_ciphertext_ballot(ballot, state)
        self._store[ballot.object_id] = submitted
        logger.info(f"Ballot {ballot.object_id} accepted as {state.name}")
        return submitted

    def get(self, ballot_id: str) -> Optional[SubmittedBallot]:
        return self._store.get(ballot_id)

    def get_ballots(self, state: Optional[BallotBoxState] = None) -> List[SubmittedBallot]:
        if state is None:
            return list(self._store.values())
        return [b for b in self._store.values() if b.state == state]

    def cast_ballots(self) -> List[SubmittedBallot]:
        return self.get_ballots(BallotBoxState.CAST)

    def spoiled_ballots(self) -> List[SubmittedBallot]:
        return self.get_ballots(BallotBoxState.SPOILED)

    def __len__(self) -> int:
        return len(self._store)
