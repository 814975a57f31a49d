"""
Decryption Mediator
===================
Collects decryption shares from the guardians that show up, compensates
for the ones that do not, and composes the plaintext tally.

Guardians announce themselves one by one. Announcing computes the
guardian's shares of the tally and of every spoiled ballot. Once at least
a quorum has announced, decrypt_tally() reconstructs the missing
guardians' shares with Lagrange interpolation and decrypts.
"""

import logging
from typing import Dict, Iterable, List, Optional

from ballot import CiphertextElectionContext, SubmittedBallot
from group import ElementModQ
from tally import CiphertextTally, GuardianState, PlaintextTally, PlaintextTallyContest

from .auxiliary import AuxiliaryDecrypt
from .decryption import (
    compute_lagrange_coefficients_for_guardians,
    decrypt_ballot_contests_with_decryption_shares,
    decrypt_tally_contests_with_decryption_shares,
    reconstruct_missing_ballot_decryption_shares,
    reconstruct_missing_tally_decryption_shares,
)
from .decryption_share import (
    BallotDecryptionShare,
    CompensatedBallotDecryptionShare,
    CompensatedTallyDecryptionShare,
    TallyDecryptionShare,
)
from .guardian import Guardian
from .key_ceremony import ElectionPublicKey

logger = logging.getLogger(__name__)


class DecryptionMediator:
    """Composes guardian shares into a PlaintextTally"""

    def __init__(
        self,
        context: CiphertextElectionContext,
        ciphertext_tally: CiphertextTally,
        spoiled_ballots: Optional[Iterable[SubmittedBallot]] = None,
        max_workers: Optional[int] = None,
        decrypt: Optional[AuxiliaryDecrypt] = None,
    ):
        self._context = context
        self._ciphertext_tally = ciphertext_tally
        if spoiled_ballots is None:
            spoiled_ballots = ciphertext_tally.spoiled_ballots.values()
        self._spoiled_ballots: Dict[str, SubmittedBallot] = {b.object_id: b for b in spoiled_ballots}
        self._max_workers = max_workers
        self._decrypt = decrypt

        self._available_guardians: Dict[str, Guardian] = {}
        self._missing_guardians: Dict[str, ElectionPublicKey] = {}

        self._tally_shares: Dict[str, TallyDecryptionShare] = {}
        # guardian id -> ballot id -> share
        self._ballot_shares: Dict[str, Dict[str, BallotDecryptionShare]] = {}

        # missing guardian id -> available guardian id -> share
        self._compensated_tally_shares: Dict[str, Dict[str, CompensatedTallyDecryptionShare]] = {}
        # missing guardian id -> available guardian id -> ballot id -> share
        self._compensated_ballot_shares: Dict[str, Dict[str, Dict[str, CompensatedBallotDecryptionShare]]] = {}

        self._plaintext_tally: Optional[PlaintextTally] = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_available_guardians(self) -> List[str]:
        return list(self._available_guardians)

    def get_missing_guardians(self) -> List[str]:
        return list(self._missing_guardians)

    def get_compensated_shares(self, missing_guardian_id: str) -> Dict[str, CompensatedTallyDecryptionShare]:
        return dict(self._compensated_tally_shares.get(missing_guardian_id, {}))

    def get_tally_share(self, guardian_id: str) -> Optional[TallyDecryptionShare]:
        return self._tally_shares.get(guardian_id)

    # ------------------------------------------------------------------
    # Announcement
    # ------------------------------------------------------------------

    def _belongs_to_election(self, guardian: Guardian) -> bool:
        details = guardian.ceremony_details
        if (details.number_of_guardians != self._context.number_of_guardians
                or details.quorum != self._context.quorum):
            return False
        # sequence orders may be any distinct values in 1..255; the joint key settles membership
        return guardian.publish_joint_key() == self._context.elgamal_public_key

    def announce(self, guardian: Guardian) -> Optional[TallyDecryptionShare]:
        """
        Accept a guardian and compute its shares. Returns None when the
        guardian already announced, does not belong to this election, reports
        a missing guardian's key that disagrees with an earlier report, or
        cannot compute its shares.
        """
        guardian_id = guardian.object_id
        if guardian_id in self._available_guardians:
            logger.warning(f"Guardian {guardian_id} already announced")
            return None

        if not self._belongs_to_election(guardian):
            logger.warning(f"Guardian {guardian_id} is not part of this election")
            return None

        # every other guardian this one knows of and that has not announced
        reported_missing: Dict[str, ElectionPublicKey] = {}
        for other_id, key in guardian.other_guardian_election_keys.items():
            if other_id in self._available_guardians:
                if key != self._available_guardians[other_id].share_election_public_key():
                    logger.warning(
                        f"Guardian {guardian_id} reports a different key for available {other_id}")
                    return None
                continue
            known = self._missing_guardians.get(other_id)
            if known is not None and known != key:
                logger.warning(
                    f"Guardian {guardian_id} reports a mismatching key for missing guardian {other_id}")
                return None
            reported_missing[other_id] = key

        own_key = guardian.share_election_public_key()
        known = self._missing_guardians.get(guardian_id)
        if known is not None and known != own_key:
            logger.warning(f"Guardian {guardian_id} key disagrees with what others reported")
            return None

        tally_share = guardian.compute_tally_share(
            self._ciphertext_tally, self._context, self._max_workers)
        if tally_share is None:
            logger.warning(f"Guardian {guardian_id} could not compute its tally share")
            return None

        ballot_shares = guardian.compute_ballot_shares(
            self._spoiled_ballots.values(), self._context, self._max_workers)
        if ballot_shares is None:
            logger.warning(f"Guardian {guardian_id} could not compute its spoiled ballot shares")
            return None

        self._available_guardians[guardian_id] = guardian
        self._tally_shares[guardian_id] = tally_share
        self._ballot_shares[guardian_id] = ballot_shares
        self._missing_guardians.pop(guardian_id, None)
        self._missing_guardians.update(reported_missing)
        self._plaintext_tally = None

        logger.info(
            f"Guardian {guardian_id} announced: {len(self._available_guardians)} available, "
            f"{len(self._missing_guardians)} missing")
        return tally_share

    # ------------------------------------------------------------------
    # Compensation
    # ------------------------------------------------------------------

    def compensate(self, missing_guardian_id: str) -> bool:
        """Every available guardian computes shares on behalf of the missing one"""
        if missing_guardian_id not in self._missing_guardians:
            logger.warning(f"Guardian {missing_guardian_id} is not missing")
            return False

        existing = self._compensated_tally_shares.get(missing_guardian_id, {})
        if set(existing) == set(self._available_guardians):
            return True

        tally_shares: Dict[str, CompensatedTallyDecryptionShare] = {}
        ballot_shares: Dict[str, Dict[str, CompensatedBallotDecryptionShare]] = {}
        for available_id, guardian in self._available_guardians.items():
            tally_share = guardian.compute_compensated_tally_share(
                missing_guardian_id, self._ciphertext_tally, self._context,
                self._decrypt, self._max_workers)
            if tally_share is None:
                logger.warning(
                    f"Guardian {available_id} could not compensate for {missing_guardian_id}")
                continue
            ballots = guardian.compute_compensated_ballot_shares(
                missing_guardian_id, self._spoiled_ballots.values(), self._context,
                self._decrypt, self._max_workers)
            if ballots is None:
                logger.warning(
                    f"Guardian {available_id} could not compensate spoiled ballots "
                    f"for {missing_guardian_id}")
                continue
            tally_shares[available_id] = tally_share
            ballot_shares[available_id] = ballots

        if len(tally_shares) != len(self._available_guardians):
            logger.warning(
                f"Only {len(tally_shares)} of {len(self._available_guardians)} available "
                f"guardians compensated for {missing_guardian_id}")
            return False

        self._compensated_tally_shares[missing_guardian_id] = tally_shares
        self._compensated_ballot_shares[missing_guardian_id] = ballot_shares
        return True

    # ------------------------------------------------------------------
    # Decryption
    # ------------------------------------------------------------------

    def _guardian_states(self) -> Dict[str, GuardianState]:
        states = {
            gid: GuardianState(gid, g.sequence_order, False)
            for gid, g in self._available_guardians.items()
        }
        for gid, key in self._missing_guardians.items():
            states[gid] = GuardianState(gid, key.sequence_order, True)
        return states

    def _decrypt_spoiled_ballots(
        self,
        reconstructed_ballots: Dict[str, Dict[str, BallotDecryptionShare]],
    ) -> Optional[Dict[str, Dict[str, PlaintextTallyContest]]]:
        """
        :param reconstructed_ballots: ballot id -> missing guardian id -> share
        """
        spoiled: Dict[str, Dict[str, PlaintextTallyContest]] = {}
        for ballot_id, ballot in self._spoiled_ballots.items():
            shares = {gid: self._ballot_shares[gid][ballot_id] for gid in self._available_guardians}
            shares.update(reconstructed_ballots.get(ballot_id, {}))
            contests = decrypt_ballot_contests_with_decryption_shares(
                ballot, shares, self._context.crypto_extended_base_hash)
            if contests is None:
                logger.warning(f"Could not decrypt spoiled ballot {ballot_id}")
                return None
            spoiled[ballot_id] = contests
        return spoiled

    def decrypt_tally(self, recompute: bool = False) -> Optional[PlaintextTally]:
        """
        Decrypt the tally and spoiled ballots once a quorum has announced.
        The result is cached until another guardian announces or recompute is set.
        """
        if self._plaintext_tally is not None and not recompute:
            return self._plaintext_tally

        available = len(self._available_guardians)
        if available < self._context.quorum:
            logger.warning(
                f"Cannot decrypt with {available} guardians, quorum is {self._context.quorum}")
            return None

        if available + len(self._missing_guardians) != self._context.number_of_guardians:
            logger.warning(
                f"{available} available and {len(self._missing_guardians)} missing guardians "
                f"do not account for all {self._context.number_of_guardians}")
            return None

        lagrange_coefficients: Dict[str, ElementModQ] = {}
        tally_shares = dict(self._tally_shares)
        reconstructed_ballots: Dict[str, Dict[str, BallotDecryptionShare]] = {}

        if self._missing_guardians:
            lagrange_coefficients = compute_lagrange_coefficients_for_guardians(
                g.share_election_public_key() for g in self._available_guardians.values())

            for missing_guardian_id in self._missing_guardians:
                if not self.compensate(missing_guardian_id):
                    return None

            reconstructed = reconstruct_missing_tally_decryption_shares(
                self._ciphertext_tally,
                self._missing_guardians,
                self._compensated_tally_shares,
                lagrange_coefficients,
            )
            if reconstructed is None:
                return None
            tally_shares.update(reconstructed)

            for ballot_id, ballot in self._spoiled_ballots.items():
                per_ballot = {
                    missing_id: {
                        available_id: ballots[ballot_id]
                        for available_id, ballots in self._compensated_ballot_shares[missing_id].items()
                    }
                    for missing_id in self._missing_guardians
                }
                ballot_reconstructed = reconstruct_missing_ballot_decryption_shares(
                    ballot, self._missing_guardians, per_ballot, lagrange_coefficients)
                if ballot_reconstructed is None:
                    return None
                reconstructed_ballots[ballot_id] = ballot_reconstructed

        if len(tally_shares) != self._context.number_of_guardians:
            logger.warning(
                f"Have {len(tally_shares)} shares, need {self._context.number_of_guardians}")
            return None

        contests = decrypt_tally_contests_with_decryption_shares(
            self._ciphertext_tally, tally_shares, self._context.crypto_extended_base_hash)
        if contests is None:
            return None

        spoiled = self._decrypt_spoiled_ballots(reconstructed_ballots)
        if spoiled is None:
            return None

        self._plaintext_tally = PlaintextTally(
            object_id=self._ciphertext_tally.object_id,
            contests=contests,
            spoiled_ballots=spoiled,
            lagrange_coefficients=lagrange_coefficients,
            guardian_states=self._guardian_states(),
        )
        logger.info(
            f"Decrypted tally {self._ciphertext_tally.object_id} with "
            f"{available} available and {len(self._missing_guardians)} missing guardians")
        return self._plaintext_tally
