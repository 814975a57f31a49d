"""
Ballots
=======
Plaintext ballots as marked by a voter, their encrypted counterparts with
the proofs that make them verifiable, and the submitted copy kept by the
ballot box once a ballot is cast or spoiled.

Plaintext validation raises InvalidBallotError internally; the public
is_valid predicates turn that into a logged False.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional

from group import (
    ElGamalCiphertext,
    ElementModP,
    ElementModQ,
    add_q,
    elgamal_add,
    hash_elems,
)
from zk import (
    ConstantChaumPedersenProof,
    DisjunctiveChaumPedersenProof,
    make_constant_chaum_pedersen,
    make_disjunctive_chaum_pedersen,
)

from .tracker import get_rotating_tracker_hash

logger = logging.getLogger(__name__)

# ============================================================================
# EXCEPTIONS AND ENUMS
# ============================================================================


class BallotError(Exception):
    """Base exception for ballot handling"""
    pass


class InvalidBallotError(BallotError):
    """Raised when a plaintext ballot does not match its description"""
    pass


class BallotBoxState(Enum):
    """What became of a submitted ballot"""
    CAST = 1
    SPOILED = 2
    UNKNOWN = 999


# ============================================================================
# PLAINTEXT BALLOTS
# ============================================================================


@dataclass(frozen=True)
class PlaintextBallotSelection:
    """A single mark, 0 or 1"""
    object_id: str
    vote: int
    is_placeholder_selection: bool = False

    def validate(self, expected_object_id: str) -> None:
        if self.object_id != expected_object_id:
            raise InvalidBallotError(
                f"Selection {self.object_id} does not match {expected_object_id}")
        if isinstance(self.vote, bool) or self.vote not in (0, 1):
            raise InvalidBallotError(
                f"Selection {self.object_id} has vote {self.vote!r}, expected 0 or 1")

    def is_valid(self, expected_object_id: str) -> bool:
        try:
            self.validate(expected_object_id)
        except InvalidBallotError as e:
            logger.warning(str(e))
            return False
        return True

    def to_int(self) -> int:
        return int(self.vote)


@dataclass(frozen=True)
class PlaintextBallotContest:
    """The voter's marks in one contest. Unmarked selections may be omitted"""
    object_id: str
    ballot_selections: List[PlaintextBallotSelection] = field(default_factory=list)

    def validate(
        self,
        expected_object_id: str,
        expected_number_selections: int,
        expected_number_elected: int,
        votes_allowed: Optional[int] = None,
    ) -> None:
        if self.object_id != expected_object_id:
            raise InvalidBallotError(
                f"Contest {self.object_id} does not match {expected_object_id}")

        if len(self.ballot_selections) > expected_number_selections:
            raise InvalidBallotError(
                f"Contest {self.object_id} has {len(self.ballot_selections)} selections, "
                f"at most {expected_number_selections} allowed")

        votes = sum(s.to_int() for s in self.ballot_selections)
        if votes > expected_number_elected:
            raise InvalidBallotError(
                f"Contest {self.object_id} has {votes} votes, "
                f"number elected is {expected_number_elected}")
        if votes_allowed is not None and votes > votes_allowed:
            raise InvalidBallotError(
                f"Contest {self.object_id} has {votes} votes, {votes_allowed} allowed")

    def is_valid(
        self,
        expected_object_id: str,
        expected_number_selections: int,
        expected_number_elected: int,
        votes_allowed: Optional[int] = None,
    ) -> bool:
        try:
            self.validate(expected_object_id, expected_number_selections,
                          expected_number_elected, votes_allowed)
        except InvalidBallotError as e:
            logger.warning(str(e))
            return False
        return True


@dataclass(frozen=True)
class PlaintextBallot:
    """A voter's ballot before encryption"""
    object_id: str
    style_id: str
    contests: List[PlaintextBallotContest] = field(default_factory=list)

    def is_valid(self, expected_style_id: str) -> bool:
        if self.style_id != expected_style_id:
            logger.warning(
                f"Ballot {self.object_id} has style {self.style_id}, expected {expected_style_id}")
            return False
        return True


# ============================================================================
# CIPHERTEXT SELECTION
# ============================================================================


@dataclass(frozen=True)
class CiphertextBallotSelection:
    """
    An encrypted selection with its 0-or-1 proof.

    The nonce is kept only while the ballot is still on the encrypting device.
    """
    object_id: str
    description_hash: ElementModQ
    ciphertext: ElGamalCiphertext
    crypto_hash: ElementModQ
    is_placeholder_selection: bool = False
    nonce: Optional[ElementModQ] = None
    proof: Optional[DisjunctiveChaumPedersenProof] = None

    def crypto_hash_with(self, seed_hash: ElementModQ) -> ElementModQ:
        return _ciphertext_ballot_selection_crypto_hash_with(
            self.object_id, seed_hash, self.ciphertext)

    def is_valid_encryption(
        self,
        seed_hash: ElementModQ,
        elgamal_public_key: ElementModP,
        crypto_extended_base_hash: ElementModQ,
    ) -> bool:
        """Description binding, recomputed hash and proof all agree"""
        if seed_hash != self.description_hash:
            logger.warning(f"Selection {self.object_id} has mismatching description hash")
            return False

        recalculated = self.crypto_hash_with(seed_hash)
        if recalculated != self.crypto_hash:
            logger.warning(f"Selection {self.object_id} has mismatching crypto hash")
            return False

        if self.proof is None:
            logger.warning(f"Selection {self.object_id} has no proof")
            return False

        return self.proof.is_valid(self.ciphertext, elgamal_public_key, crypto_extended_base_hash)


def _ciphertext_ballot_selection_crypto_hash_with(
    object_id: str, seed_hash: ElementModQ, ciphertext: ElGamalCiphertext
) -> ElementModQ:
    return hash_elems(object_id, seed_hash, ciphertext.crypto_hash())


def make_ciphertext_ballot_selection(
    object_id: str,
    description_hash: ElementModQ,
    ciphertext: ElGamalCiphertext,
    elgamal_public_key: ElementModP,
    crypto_extended_base_hash: ElementModQ,
    proof_seed: ElementModQ,
    selection_representation: int,
    is_placeholder_selection: bool = False,
    nonce: Optional[ElementModQ] = None,
    crypto_hash: Optional[ElementModQ] = None,
    proof: Optional[DisjunctiveChaumPedersenProof] = None,
) -> Optional[CiphertextBallotSelection]:
    """
    Assemble a selection, computing its hash and, given the nonce, its proof.
    Returns None if a proof is needed but cannot be made.
    """
    if crypto_hash is None:
        crypto_hash = _ciphertext_ballot_selection_crypto_hash_with(
            object_id, description_hash, ciphertext)

    if proof is None and nonce is not None:
        proof = make_disjunctive_chaum_pedersen(
            ciphertext, nonce, elgamal_public_key, crypto_extended_base_hash,
            proof_seed, selection_representation)
    if proof is None:
        logger.warning(f"Could not prove selection {object_id}")
        return None

    return CiphertextBallotSelection(
        object_id=object_id,
        description_hash=description_hash,
        ciphertext=ciphertext,
        crypto_hash=crypto_hash,
        is_placeholder_selection=is_placeholder_selection,
        nonce=nonce,
        proof=proof,
    )


# ============================================================================
# CIPHERTEXT CONTEST
# ============================================================================


@dataclass(frozen=True)
class CiphertextBallotContest:
    """
    Every selection of a contest, placeholders included, their homomorphic
    sum and a proof that the sum equals the contest's number elected.
    """
    object_id: str
    description_hash: ElementModQ
    ballot_selections: List[CiphertextBallotSelection]
    ciphertext_accumulation: ElGamalCiphertext
    crypto_hash: ElementModQ
    nonce: Optional[ElementModQ] = None
    proof: Optional[ConstantChaumPedersenProof] = None

    def aggregate_nonce(self) -> Optional[ElementModQ]:
        return _aggregate_nonce(self.object_id, self.ballot_selections)

    def elgamal_accumulate(self) -> ElGamalCiphertext:
        return _ciphertext_ballot_elgamal_accumulate(self.ballot_selections)

    def crypto_hash_with(self, seed_hash: ElementModQ) -> ElementModQ:
        return _ciphertext_ballot_context_crypto_hash(
            self.object_id, self.ballot_selections, seed_hash)

    def is_valid_encryption(
        self,
        seed_hash: ElementModQ,
        elgamal_public_key: ElementModP,
        crypto_extended_base_hash: ElementModQ,
    ) -> bool:
        """Hash, accumulation and constant proof agree with the selections"""
        if seed_hash != self.description_hash:
            logger.warning(f"Contest {self.object_id} has mismatching description hash")
            return False

        if self.crypto_hash_with(seed_hash) != self.crypto_hash:
            logger.warning(f"Contest {self.object_id} has mismatching crypto hash")
            return False

        if self.elgamal_accumulate() != self.ciphertext_accumulation:
            logger.warning(f"Contest {self.object_id} accumulation does not match its selections")
            return False

        if self.proof is None:
            logger.warning(f"Contest {self.object_id} has no proof")
            return False

        return self.proof.is_valid(
            self.ciphertext_accumulation, elgamal_public_key, crypto_extended_base_hash)


def _aggregate_nonce(
    object_id: str, ballot_selections: List[CiphertextBallotSelection]
) -> Optional[ElementModQ]:
    nonces = [s.nonce for s in ballot_selections]
    if any(n is None for n in nonces):
        logger.debug(f"Contest {object_id} is missing selection nonces")
        return None
    return add_q(*nonces)


def _ciphertext_ballot_elgamal_accumulate(
    ballot_selections: List[CiphertextBallotSelection],
) -> ElGamalCiphertext:
    return elgamal_add(*[s.ciphertext for s in ballot_selections])


def _ciphertext_ballot_context_crypto_hash(
    object_id: str, ballot_selections: List[CiphertextBallotSelection], seed_hash: ElementModQ
) -> ElementModQ:
    if not ballot_selections:
        logger.warning(f"Contest {object_id} has no selections to hash")
    return hash_elems(object_id, seed_hash, [s.crypto_hash for s in ballot_selections])


def make_ciphertext_ballot_contest(
    object_id: str,
    description_hash: ElementModQ,
    ballot_selections: List[CiphertextBallotSelection],
    elgamal_public_key: ElementModP,
    crypto_extended_base_hash: ElementModQ,
    proof_seed: ElementModQ,
    number_elected: int,
    crypto_hash: Optional[ElementModQ] = None,
    proof: Optional[ConstantChaumPedersenProof] = None,
    nonce: Optional[ElementModQ] = None,
) -> Optional[CiphertextBallotContest]:
    """Accumulate the selections, hash them and prove the total. None on failure"""
    if not ballot_selections:
        logger.warning(f"Contest {object_id} has no selections")
        return None

    if crypto_hash is None:
        crypto_hash = _ciphertext_ballot_context_crypto_hash(
            object_id, ballot_selections, description_hash)

    accumulation = _ciphertext_ballot_elgamal_accumulate(ballot_selections)
    if proof is None:
        aggregate = _aggregate_nonce(object_id, ballot_selections)
        if aggregate is None:
            logger.warning(f"Could not prove contest {object_id} without selection nonces")
            return None
        proof = make_constant_chaum_pedersen(
            accumulation, number_elected, aggregate, elgamal_public_key,
            proof_seed, crypto_extended_base_hash)

    return CiphertextBallotContest(
        object_id=object_id,
        description_hash=description_hash,
        ballot_selections=ballot_selections,
        ciphertext_accumulation=accumulation,
        crypto_hash=crypto_hash,
        nonce=nonce,
        proof=proof,
    )


# ============================================================================
# CIPHERTEXT BALLOT
# ============================================================================


@dataclass(frozen=True)
class CiphertextBallot:
    """
    An encrypted ballot chained into its device's tracking hashes.
    The master nonce is kept only on the encrypting device.
    """
    object_id: str
    style_id: str
    manifest_hash: ElementModQ
    previous_tracking_hash: ElementModQ
    contests: List[CiphertextBallotContest]
    tracking_hash: ElementModQ
    timestamp: int
    crypto_hash: ElementModQ
    nonce: Optional[ElementModQ] = None

    @property
    def contest_hashes(self) -> List[ElementModQ]:
        return [c.crypto_hash for c in self.contests]

    def hashed_ballot_nonce(self) -> Optional[ElementModQ]:
        """Seed every contest and selection nonce is derived from"""
        if self.nonce is None:
            return None
        return hash_elems(self.manifest_hash, self.object_id, self.nonce)

    def crypto_hash_with(self, seed_hash: ElementModQ) -> ElementModQ:
        return _ciphertext_ballot_crypto_hash_with(self.object_id, seed_hash, self.contests)

    def is_valid_encryption(
        self,
        seed_hash: ElementModQ,
        elgamal_public_key: ElementModP,
        crypto_extended_base_hash: ElementModQ,
    ) -> bool:
        """Every hash and proof in the ballot checks out"""
        if seed_hash != self.manifest_hash:
            logger.warning(f"Ballot {self.object_id} has mismatching manifest hash")
            return False

        if self.crypto_hash_with(seed_hash) != self.crypto_hash:
            logger.warning(f"Ballot {self.object_id} has mismatching crypto hash")
            return False

        for contest in self.contests:
            for selection in contest.ballot_selections:
                if not selection.is_valid_encryption(
                        selection.description_hash, elgamal_public_key, crypto_extended_base_hash):
                    logger.warning(
                        f"Ballot {self.object_id} has invalid selection {selection.object_id}")
                    return False
            if not contest.is_valid_encryption(
                    contest.description_hash, elgamal_public_key, crypto_extended_base_hash):
                logger.warning(f"Ballot {self.object_id} has invalid contest {contest.object_id}")
                return False
        return True


def _ciphertext_ballot_crypto_hash_with(
    object_id: str, seed_hash: ElementModQ, contests: List[CiphertextBallotContest]
) -> ElementModQ:
    return hash_elems(object_id, seed_hash, [c.crypto_hash for c in contests])


def make_ciphertext_ballot(
    object_id: str,
    style_id: str,
    manifest_hash: ElementModQ,
    previous_tracking_hash: Optional[ElementModQ],
    contests: List[CiphertextBallotContest],
    nonce: Optional[ElementModQ] = None,
    timestamp: Optional[int] = None,
    tracking_hash: Optional[ElementModQ] = None,
) -> CiphertextBallot:
    """
    Hash the contests and advance the tracking chain. Without a previous
    tracking hash the chain starts from the manifest hash.
    """
    if not contests:
        logger.info(f"Ballot {object_id} has no contests")

    crypto_hash = _ciphertext_ballot_crypto_hash_with(object_id, manifest_hash, contests)
    if timestamp is None:
        timestamp = int(time.time())
    if previous_tracking_hash is None:
        previous_tracking_hash = manifest_hash
    if tracking_hash is None:
        tracking_hash = get_rotating_tracker_hash(
            object_id, previous_tracking_hash, [c.crypto_hash for c in contests], timestamp)

    return CiphertextBallot(
        object_id=object_id,
        style_id=style_id,
        manifest_hash=manifest_hash,
        previous_tracking_hash=previous_tracking_hash,
        contests=contests,
        tracking_hash=tracking_hash,
        timestamp=timestamp,
        crypto_hash=crypto_hash,
        nonce=nonce,
    )


# ============================================================================
# SUBMITTED BALLOT
# ============================================================================


@dataclass(frozen=True)
class SubmittedBallot(CiphertextBallot):
    """A ballot accepted by the ballot box, without its nonces"""
    state: BallotBoxState = BallotBoxState.UNKNOWN


def from_ciphertext_ballot(ballot: CiphertextBallot, state: BallotBoxState) -> SubmittedBallot:
    """Copy of the ballot with every nonce stripped, tagged with its state"""
    contests = [
        replace(
            contest,
            nonce=None,
            ballot_selections=[replace(s, nonce=None) for s in contest.ballot_selections],
        )
        for contest in ballot.contests
    ]
    return SubmittedBallot(
        object_id=ballot.object_id,
        style_id=ballot.style_id,
        manifest_hash=ballot.manifest_hash,
        previous_tracking_hash=ballot.previous_tracking_hash,
        contests=contests,
        tracking_hash=ballot.tracking_hash,
        timestamp=ballot.timestamp,
        crypto_hash=ballot.crypto_hash,
        nonce=None,
        state=state,
    )
