"""
Guardian
========
One participant in the key ceremony and in decryption. A guardian owns
its secret polynomial and auxiliary key, accumulates what the other
guardians send it, and can partially decrypt on its own behalf or, using a
backup it received, on behalf of a missing guardian.
"""

import logging
import threading
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

from group import ElGamalCiphertext, ElementModP, ElementModQ, rand_q
from zk import ChaumPedersenProof, make_chaum_pedersen

from .auxiliary import (
    AuxiliaryDecrypt,
    AuxiliaryEncrypt,
    AuxiliaryKeyPair,
    AuxiliaryPublicKeyRecord,
    DEFAULT_AUXILIARY_KEY_SIZE,
    generate_auxiliary_key_pair,
)
from .decryption import (
    compute_compensated_decryption_share,
    compute_compensated_decryption_shares_for_ballots,
    compute_decryption_share,
    compute_decryption_shares_for_ballots,
)
from .decryption_share import (
    BallotDecryptionShare,
    CompensatedBallotDecryptionShare,
    CompensatedTallyDecryptionShare,
    TallyDecryptionShare,
)
from .key_ceremony import (
    CeremonyDetails,
    CoefficientValidationSet,
    ElectionKeyPair,
    ElectionPartialKeyBackup,
    ElectionPartialKeyChallenge,
    ElectionPartialKeyVerification,
    ElectionPublicKey,
    GuardianRecord,
    KeyCeremonyError,
    PublicKeySet,
    combine_election_public_keys,
    compute_recovery_public_key,
    decrypt_backup,
    generate_election_key_pair,
    generate_election_partial_key_backup,
    generate_election_partial_key_challenge,
    get_coefficient_validation_set,
    verify_election_partial_key_backup,
    verify_election_partial_key_challenge,
)

if TYPE_CHECKING:
    from ballot import CiphertextElectionContext, SubmittedBallot
    from tally import CiphertextTally

logger = logging.getLogger(__name__)

DecryptionProofTuple = Tuple[ElementModP, ChaumPedersenProof]


class Guardian:
    """A key ceremony and decryption participant"""

    def __init__(
        self,
        guardian_id: str,
        sequence_order: int,
        number_of_guardians: int,
        quorum: int,
        nonce_seed: Optional[ElementModQ] = None,
        auxiliary_key_size: int = DEFAULT_AUXILIARY_KEY_SIZE,
    ):
        self.object_id = guardian_id
        self.sequence_order = sequence_order
        self.ceremony_details = CeremonyDetails(number_of_guardians, quorum)

        self._auxiliary_keys = generate_auxiliary_key_pair(auxiliary_key_size)
        self._election_keys = generate_election_key_pair(
            guardian_id, sequence_order, quorum, nonce_seed)

        # Material received from the other guardians, keyed by their id
        self._guardian_auxiliary_public_keys: Dict[str, AuxiliaryPublicKeyRecord] = {}
        self._guardian_election_public_keys: Dict[str, ElectionPublicKey] = {}
        self._guardian_election_partial_key_backups: Dict[str, ElectionPartialKeyBackup] = {}
        self._guardian_election_partial_key_verifications: Dict[str, ElectionPartialKeyVerification] = {}

        # Backups this guardian generated, keyed by recipient id
        self._backups_to_share: Dict[str, ElectionPartialKeyBackup] = {}

        # Coordinates recovered from received backups, used for compensation
        self._recovered_coordinates: Dict[str, ElementModQ] = {}
        self._coordinate_lock = threading.Lock()

        self.save_guardian_public_keys(self.share_public_keys())
        logger.info(f"Initialized guardian {guardian_id} with sequence order {sequence_order}")

    def __repr__(self) -> str:
        return f"Guardian({self.object_id!r}, sequence_order={self.sequence_order})"

    # ------------------------------------------------------------------
    # Key material
    # ------------------------------------------------------------------

    @property
    def election_keys(self) -> ElectionKeyPair:
        return self._election_keys

    @property
    def auxiliary_keys(self) -> AuxiliaryKeyPair:
        return self._auxiliary_keys

    @property
    def other_guardian_election_keys(self) -> Dict[str, ElectionPublicKey]:
        """Election public keys received from every other guardian"""
        return {
            gid: key for gid, key in self._guardian_election_public_keys.items()
            if gid != self.object_id
        }

    def share_election_public_key(self) -> ElectionPublicKey:
        return self._election_keys.share()

    def share_auxiliary_public_key(self) -> AuxiliaryPublicKeyRecord:
        return AuxiliaryPublicKeyRecord(
            self.object_id, self.sequence_order, self._auxiliary_keys.public_key)

    def share_public_keys(self) -> PublicKeySet:
        return PublicKeySet(self.share_election_public_key(), self.share_auxiliary_public_key())

    def share_coefficient_validation_set(self) -> CoefficientValidationSet:
        return get_coefficient_validation_set(self.object_id, self._election_keys.polynomial)

    def publish(self) -> GuardianRecord:
        """Public data for the election record, no secrets"""
        polynomial = self._election_keys.polynomial
        return GuardianRecord(
            guardian_id=self.object_id,
            sequence_order=self.sequence_order,
            election_public_key=self._election_keys.key_pair.public_key,
            election_commitments=list(polynomial.coefficient_commitments),
            election_proofs=list(polynomial.coefficient_proofs),
        )

    # ------------------------------------------------------------------
    # Phase 1: announce
    # ------------------------------------------------------------------

    def save_guardian_public_keys(self, public_key_set: PublicKeySet) -> None:
        """
        Store another guardian's announced keys.
        Raises KeyCeremonyError when the proof of possession does not verify
        or the sequence order clashes with a different guardian.
        """
        election_key = public_key_set.election
        if not election_key.is_valid():
            raise KeyCeremonyError(
                f"Guardian {self.object_id} rejected invalid public keys from {election_key.owner_id}")
        for other in self._guardian_election_public_keys.values():
            if other.owner_id != election_key.owner_id and \
                    other.sequence_order == election_key.sequence_order:
                raise KeyCeremonyError(
                    f"Sequence order {election_key.sequence_order} already used by {other.owner_id}")

        self._guardian_auxiliary_public_keys[public_key_set.owner_id] = public_key_set.auxiliary
        self._guardian_election_public_keys[public_key_set.owner_id] = election_key

    def all_public_keys_received(self) -> bool:
        n = self.ceremony_details.number_of_guardians
        return (len(self._guardian_auxiliary_public_keys) == n
                and len(self._guardian_election_public_keys) == n)

    # ------------------------------------------------------------------
    # Phase 2: partial key backups
    # ------------------------------------------------------------------

    def generate_election_partial_key_backups(self, encrypt: Optional[AuxiliaryEncrypt] = None) -> bool:
        """Create one backup per other guardian. False if any cannot be made"""
        if not self.all_public_keys_received():
            logger.warning(f"Guardian {self.object_id} cannot generate backups before all keys are received")
            return False

        for auxiliary_key in self._guardian_auxiliary_public_keys.values():
            if auxiliary_key.owner_id == self.object_id:
                continue
            backup = generate_election_partial_key_backup(
                self.object_id, self._election_keys.polynomial, auxiliary_key, encrypt)
            if backup is None:
                return False
            self._backups_to_share[auxiliary_key.owner_id] = backup

        logger.debug(f"Guardian {self.object_id} generated {len(self._backups_to_share)} backups")
        return True

    def share_election_partial_key_backup(self, designated_id: str) -> Optional[ElectionPartialKeyBackup]:
        return self._backups_to_share.get(designated_id)

    def share_election_partial_key_backups(self) -> List[ElectionPartialKeyBackup]:
        return list(self._backups_to_share.values())

    def save_election_partial_key_backup(self, backup: ElectionPartialKeyBackup) -> None:
        if backup.designated_id != self.object_id:
            raise KeyCeremonyError(
                f"Backup for {backup.designated_id} delivered to {self.object_id}")
        self._guardian_election_partial_key_backups[backup.owner_id] = backup

    def all_election_partial_key_backups_received(self) -> bool:
        return len(self._guardian_election_partial_key_backups) == \
            self.ceremony_details.number_of_guardians - 1

    # ------------------------------------------------------------------
    # Phase 3: verification and challenges
    # ------------------------------------------------------------------

    def verify_election_partial_key_backup(
        self, guardian_id: str, decrypt: Optional[AuxiliaryDecrypt] = None
    ) -> Optional[ElectionPartialKeyVerification]:
        """Verify the backup received from guardian_id. None if there is no such backup"""
        backup = self._guardian_election_partial_key_backups.get(guardian_id)
        if backup is None:
            logger.warning(f"Guardian {self.object_id} has no backup from {guardian_id}")
            return None
        return verify_election_partial_key_backup(
            self.object_id, backup, self._auxiliary_keys, decrypt)

    def publish_election_backup_challenge(self, designated_id: str) -> Optional[ElectionPartialKeyChallenge]:
        """Publish the coordinate sent to designated_id after they disputed it"""
        backup = self._backups_to_share.get(designated_id)
        if backup is None:
            return None
        return generate_election_partial_key_challenge(backup, self._election_keys.polynomial)

    def verify_election_partial_key_challenge(
        self, challenge: ElectionPartialKeyChallenge
    ) -> ElectionPartialKeyVerification:
        return verify_election_partial_key_challenge(self.object_id, challenge)

    def save_election_partial_key_verification(self, verification: ElectionPartialKeyVerification) -> None:
        self._guardian_election_partial_key_verifications[verification.designated_id] = verification

    def all_election_partial_key_backups_verified(self) -> bool:
        """Every backup this guardian sent has a positive verification"""
        required = self.ceremony_details.number_of_guardians - 1
        verifications = self._guardian_election_partial_key_verifications
        if len(verifications) != required:
            return False
        return all(v.verified for v in verifications.values())

    # ------------------------------------------------------------------
    # Phase 4: joint key
    # ------------------------------------------------------------------

    def publish_joint_key(self) -> Optional[ElementModP]:
        if not self.all_public_keys_received():
            return None
        if not self.all_election_partial_key_backups_verified():
            return None
        return combine_election_public_keys(self._guardian_election_public_keys.values())

    # ------------------------------------------------------------------
    # Decryption
    # ------------------------------------------------------------------

    def partially_decrypt(
        self,
        ciphertext: ElGamalCiphertext,
        extended_base_hash: ElementModQ,
        nonce_seed: Optional[ElementModQ] = None,
    ) -> DecryptionProofTuple:
        """Share M_i = A^s_i with a proof tying it to this guardian's public key"""
        if nonce_seed is None:
            nonce_seed = rand_q()
        secret_key = self._election_keys.key_pair.secret_key
        partial_decryption = ciphertext.partial_decrypt(secret_key)
        proof = make_chaum_pedersen(
            ciphertext, secret_key, partial_decryption, nonce_seed, extended_base_hash)
        return partial_decryption, proof

    def recovered_coordinate(
        self, missing_guardian_id: str, decrypt: Optional[AuxiliaryDecrypt] = None
    ) -> Optional[ElementModQ]:
        """
        The missing guardian's polynomial at this guardian's order, taken from
        the backup received during the ceremony. Decrypted once and cached.
        """
        with self._coordinate_lock:
            cached = self._recovered_coordinates.get(missing_guardian_id)
            if cached is not None:
                return cached
            backup = self._guardian_election_partial_key_backups.get(missing_guardian_id)
            if backup is None:
                logger.warning(
                    f"Guardian {self.object_id} holds no backup for missing guardian {missing_guardian_id}")
                return None
            value = decrypt_backup(backup, self._auxiliary_keys, decrypt)
            if value is None:
                logger.warning(
                    f"Guardian {self.object_id} could not decrypt backup of {missing_guardian_id}")
                return None
            self._recovered_coordinates[missing_guardian_id] = value
            return value

    def compensate_decrypt(
        self,
        missing_guardian_id: str,
        ciphertext: ElGamalCiphertext,
        extended_base_hash: ElementModQ,
        nonce_seed: Optional[ElementModQ] = None,
        decrypt: Optional[AuxiliaryDecrypt] = None,
    ) -> Optional[DecryptionProofTuple]:
        """Partial decryption on behalf of a missing guardian, or None"""
        coordinate = self.recovered_coordinate(missing_guardian_id, decrypt)
        if coordinate is None:
            return None
        if nonce_seed is None:
            nonce_seed = rand_q()
        partial_decryption = ciphertext.partial_decrypt(coordinate)
        proof = make_chaum_pedersen(
            ciphertext, coordinate, partial_decryption, nonce_seed, extended_base_hash)
        return partial_decryption, proof

    def recovery_public_key_for(self, missing_guardian_id: str) -> Optional[ElementModP]:
        """The key a compensated share for missing_guardian_id is verified against"""
        missing_key = self._guardian_election_public_keys.get(missing_guardian_id)
        if missing_key is None:
            return None
        return compute_recovery_public_key(self.sequence_order, missing_key)

    # ------------------------------------------------------------------
    # Decryption shares
    # ------------------------------------------------------------------

    def compute_tally_share(
        self,
        tally: "CiphertextTally",
        context: "CiphertextElectionContext",
        max_workers: Optional[int] = None,
    ) -> Optional[TallyDecryptionShare]:
        return compute_decryption_share(self, tally, context, max_workers)

    def compute_ballot_shares(
        self,
        ballots: Iterable["SubmittedBallot"],
        context: "CiphertextElectionContext",
        max_workers: Optional[int] = None,
    ) -> Optional[Dict[str, BallotDecryptionShare]]:
        return compute_decryption_shares_for_ballots(self, ballots, context, max_workers)

    def compute_compensated_tally_share(
        self,
        missing_guardian_id: str,
        tally: "CiphertextTally",
        context: "CiphertextElectionContext",
        decrypt: Optional[AuxiliaryDecrypt] = None,
        max_workers: Optional[int] = None,
    ) -> Optional[CompensatedTallyDecryptionShare]:
        return compute_compensated_decryption_share(
            self, missing_guardian_id, tally, context, decrypt, max_workers)

    def compute_compensated_ballot_shares(
        self,
        missing_guardian_id: str,
        ballots: Iterable["SubmittedBallot"],
        context: "CiphertextElectionContext",
        decrypt: Optional[AuxiliaryDecrypt] = None,
        max_workers: Optional[int] = None,
    ) -> Optional[Dict[str, CompensatedBallotDecryptionShare]]:
        return compute_compensated_decryption_shares_for_ballots(
            self, missing_guardian_id, ballots, context, decrypt, max_workers)
