"""
Homomorphic Tally
=================
CiphertextTallyBuilder folds the selection ciphertexts of cast ballots into
one running ciphertext per selection. Batches are summed per selection in a
thread pool and only then folded into the accumulators, each of which has
its own lock. build() freezes the result into a CiphertextTally.

PlaintextTally is what decryption produces from a CiphertextTally.
"""

import logging
import threading
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from group import ElGamalCiphertext, ElementModP, ElementModQ, elgamal_add, elgamal_identity
from ballot import (
    BallotBoxState,
    CiphertextElectionContext,
    InternalManifest,
    SubmittedBallot,
    ballot_is_valid_for_election,
)

logger = logging.getLogger(__name__)

# contest id, selection id
SelectionKey = Tuple[str, str]

# ============================================================================
# CIPHERTEXT TALLY
# ============================================================================


class SelectionAccumulator:
    """
    Running ciphertext of one selection. Only the builder that owns it
    writes to it, and every write goes through add().
    """

    def __init__(self, object_id: str, description_hash: ElementModQ):
        self.object_id = object_id
        self.description_hash = description_hash
        self._ciphertext = elgamal_identity()
        self._lock = threading.Lock()

    @property
    def ciphertext(self) -> ElGamalCiphertext:
        with self._lock:
            return self._ciphertext

    def add(self, ciphertext: ElGamalCiphertext) -> ElGamalCiphertext:
        with self._lock:
            self._ciphertext = elgamal_add(self._ciphertext, ciphertext)
            return self._ciphertext

    def freeze(self) -> "CiphertextTallySelection":
        return CiphertextTallySelection(self.object_id, self.description_hash, self.ciphertext)


@dataclass(frozen=True)
class CiphertextTallySelection:
    """Homomorphic sum of one selection over every cast ballot"""
    object_id: str
    description_hash: ElementModQ
    ciphertext: ElGamalCiphertext


@dataclass(frozen=True)
class CiphertextTallyContest:
    object_id: str
    description_hash: ElementModQ
    selections: Dict[str, CiphertextTallySelection]


@dataclass(frozen=True)
class CiphertextTally:
    """The encrypted tally, plus the spoiled ballots kept for individual decryption"""
    object_id: str
    contests: Dict[str, CiphertextTallyContest]
    cast_ballot_ids: FrozenSet[str] = frozenset()
    spoiled_ballots: Dict[str, SubmittedBallot] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.cast_ballot_ids)


class CiphertextTallyBuilder:
    """Mutable accumulation of cast ballots into a CiphertextTally"""

    def __init__(
        self,
        object_id: str,
        internal_manifest: InternalManifest,
        context: CiphertextElectionContext,
        max_workers: Optional[int] = None,
    ):
        self.object_id = object_id
        self._internal_manifest = internal_manifest
        self._context = context
        self._max_workers = max_workers

        self._cast_ballot_ids = set()
        self._spoiled_ballots: Dict[str, SubmittedBallot] = {}

        # placeholders are never tallied
        self._accumulators: Dict[SelectionKey, SelectionAccumulator] = {}
        self._contest_hashes: Dict[str, ElementModQ] = {}
        for contest in internal_manifest.contests.values():
            self._contest_hashes[contest.object_id] = contest.crypto_hash()
            for selection in contest.ballot_selections:
                self._accumulators[(contest.object_id, selection.object_id)] = SelectionAccumulator(
                    selection.object_id, selection.crypto_hash())

    @property
    def cast_ballot_ids(self) -> FrozenSet[str]:
        return frozenset(self._cast_ballot_ids)

    def _already_counted(self, ballot_id: str) -> bool:
        return ballot_id in self._cast_ballot_ids or ballot_id in self._spoiled_ballots

    def append(self, ballot: SubmittedBallot) -> bool:
        """Add one cast or spoiled ballot. False if it is unknown, repeated or invalid"""
        if ballot.state == BallotBoxState.UNKNOWN:
            logger.warning(f"Cannot tally ballot {ballot.object_id} with unknown state")
            return False

        if self._already_counted(ballot.object_id):
            logger.warning(f"Ballot {ballot.object_id} is already tallied")
            return False

        if not ballot_is_valid_for_election(ballot, self._internal_manifest, self._context):
            return False

        if ballot.state == BallotBoxState.SPOILED:
            self._spoiled_ballots[ballot.object_id] = ballot
            return True

        for contest in ballot.contests:
            for selection in contest.ballot_selections:
                accumulator = self._accumulators.get((contest.object_id, selection.object_id))
                if accumulator is not None:
                    accumulator.add(selection.ciphertext)
        self._cast_ballot_ids.add(ballot.object_id)
        return True

    def batch_append(self, ballots: Iterable[SubmittedBallot]) -> int:
        """
        Add many ballots at once and return how many cast ballots were counted.
        Invalid or repeated ballots are skipped without aborting the batch.
        """
        by_selection: Dict[SelectionKey, List[ElGamalCiphertext]] = defaultdict(list)
        counted = 0

        for ballot in ballots:
            if self._already_counted(ballot.object_id):
                logger.debug(f"Skipping ballot {ballot.object_id}, already tallied")
                continue
            if ballot.state == BallotBoxState.SPOILED:
                if ballot_is_valid_for_election(ballot, self._internal_manifest, self._context):
                    self._spoiled_ballots[ballot.object_id] = ballot
                continue
            if ballot.state != BallotBoxState.CAST:
                logger.warning(f"Skipping ballot {ballot.object_id} with state {ballot.state.name}")
                continue
            if not ballot_is_valid_for_election(ballot, self._internal_manifest, self._context):
                continue

            for contest in ballot.contests:
                for selection in contest.ballot_selections:
                    key = (contest.object_id, selection.object_id)
                    if key in self._accumulators:
                        by_selection[key].append(selection.ciphertext)
            self._cast_ballot_ids.add(ballot.object_id)
            counted += 1

        if by_selection:
            with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
                futures = {
                    key: executor.submit(elgamal_add, *ciphertexts)
                    for key, ciphertexts in by_selection.items()
                }
                sums = {key: future.result() for key, future in futures.items()}

            for key, ciphertext in sums.items():
                self._accumulators[key].add(ciphertext)

        logger.info(f"Tally {self.object_id} appended {counted} cast ballots")
        return counted

    def build(self) -> CiphertextTally:
        contests: Dict[str, CiphertextTallyContest] = {}
        for (contest_id, selection_id), accumulator in self._accumulators.items():
            contest = contests.get(contest_id)
            if contest is None:
                contest = CiphertextTallyContest(contest_id, self._contest_hashes[contest_id], {})
                contests[contest_id] = contest
            contest.selections[selection_id] = accumulator.freeze()

        # contests without selections still belong in the tally
        for contest_id, description_hash in self._contest_hashes.items():
            contests.setdefault(contest_id, CiphertextTallyContest(contest_id, description_hash, {}))

        return CiphertextTally(
            object_id=self.object_id,
            contests=contests,
            cast_ballot_ids=frozenset(self._cast_ballot_ids),
            spoiled_ballots=dict(self._spoiled_ballots),
        )


# ============================================================================
# PLAINTEXT TALLY
# ============================================================================


@dataclass(frozen=True)
class PlaintextTallySelection:
    """
    A decrypted selection. value is g^tally, message the ciphertext it came
    from, and shares the guardian decryption shares that produced it.
    """
    object_id: str
    tally: int
    value: ElementModP
    message: ElGamalCiphertext
    shares: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class PlaintextTallyContest:
    object_id: str
    selections: Dict[str, PlaintextTallySelection]


@dataclass(frozen=True)
class GuardianState:
    """Whether a guardian took part in decryption or was compensated for"""
    guardian_id: str
    sequence_order: int
    is_missing: bool


@dataclass(frozen=True)
class PlaintextTally:
    """Decrypted tally, decrypted spoiled ballots, and what was needed to decrypt them"""
    object_id: str
    contests: Dict[str, PlaintextTallyContest]
    spoiled_ballots: Dict[str, Dict[str, PlaintextTallyContest]] = field(default_factory=dict)
    lagrange_coefficients: Dict[str, ElementModQ] = field(default_factory=dict)
    guardian_states: Dict[str, GuardianState] = field(default_factory=dict)

    def get_count(self, contest_id: str, selection_id: str) -> Optional[int]:
        contest = self.contests.get(contest_id)
        if contest is None:
            return None
        selection = contest.selections.get(selection_id)
        return None if selection is None else selection.tally

    def counts(self) -> Dict[str, Dict[str, int]]:
        return {
            contest_id: {s_id: s.tally for s_id, s in contest.selections.items()}
            for contest_id, contest in self.contests.items()
        }
