"""
Threshold Key Ceremony
======================
Records exchanged between guardians while establishing the joint election
key, and the functions that create and check them:
- election key pairs generated from a secret polynomial
- partial key backups, one polynomial coordinate per recipient, carried
  over auxiliary transport
- verification of backups against the sender's public commitments
- challenges that publish a disputed coordinate for third-party checking
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from group import (
    ElGamalKeyPair,
    ElementModP,
    ElementModQ,
    elgamal_combine_public_keys,
    hex_to_q,
    rand_q,
)
from zk import SchnorrProof, make_schnorr_proof

from .auxiliary import (
    AuxiliaryDecrypt,
    AuxiliaryEncrypt,
    AuxiliaryKeyPair,
    AuxiliaryPublicKeyRecord,
    auxiliary_decrypt,
    auxiliary_encrypt,
)
from .election_polynomial import (
    ElectionPolynomial,
    calculate_g_exp_at,
    compute_polynomial_coordinate,
    generate_polynomial,
    verify_polynomial_coordinate,
)

logger = logging.getLogger(__name__)

MIN_SEQUENCE_ORDER = 1
MAX_SEQUENCE_ORDER = 255

# ============================================================================
# EXCEPTIONS
# ============================================================================


class MPCError(Exception):
    """Base exception for threshold ceremony and decryption"""
    pass


class KeyCeremonyError(MPCError):
    """Raised for malformed ceremony input, e.g. bad sequence order or guardian counts"""
    pass


class ThresholdViolationError(MPCError):
    """Raised when fewer than quorum guardians are available"""
    pass


class ReconstructionError(MPCError):
    """Raised when a missing guardian's share cannot be reconstructed"""
    pass


class DecryptionError(MPCError):
    """Raised when a share or plaintext cannot be computed"""
    pass


def validate_sequence_order(sequence_order: int) -> None:
    if not MIN_SEQUENCE_ORDER <= sequence_order <= MAX_SEQUENCE_ORDER:
        raise KeyCeremonyError(
            f"Sequence order must be in [{MIN_SEQUENCE_ORDER}, {MAX_SEQUENCE_ORDER}], got {sequence_order}")


# ============================================================================
# DATA STRUCTURES
# ============================================================================


@dataclass(frozen=True)
class CeremonyDetails:
    """Number of guardians and the quorum needed to decrypt"""
    number_of_guardians: int
    quorum: int

    def __post_init__(self):
        if not MIN_SEQUENCE_ORDER <= self.number_of_guardians <= MAX_SEQUENCE_ORDER:
            raise KeyCeremonyError(
                f"Number of guardians must be in [1, 255], got {self.number_of_guardians}")
        if not 1 <= self.quorum <= self.number_of_guardians:
            raise KeyCeremonyError(
                f"Quorum {self.quorum} must be between 1 and {self.number_of_guardians}")


@dataclass(frozen=True)
class ElectionKeyPair:
    """A guardian's election key pair, the polynomial it heads, and a proof of possession"""
    owner_id: str
    sequence_order: int
    key_pair: ElGamalKeyPair
    proof: SchnorrProof
    polynomial: ElectionPolynomial

    def share(self) -> "ElectionPublicKey":
        return ElectionPublicKey(
            owner_id=self.owner_id,
            sequence_order=self.sequence_order,
            key=self.key_pair.public_key,
            proof=self.proof,
            coefficient_commitments=list(self.polynomial.coefficient_commitments),
            coefficient_proofs=list(self.polynomial.coefficient_proofs),
        )


@dataclass(frozen=True)
class ElectionPublicKey:
    """Public half of a guardian's election key with its polynomial commitments"""
    owner_id: str
    sequence_order: int
    key: ElementModP
    proof: SchnorrProof
    coefficient_commitments: List[ElementModP] = field(default_factory=list)
    coefficient_proofs: List[SchnorrProof] = field(default_factory=list)

    def is_valid(self) -> bool:
        """Proof of possession verifies and the key heads the commitments"""
        if self.proof.public_key != self.key or not self.proof.is_valid():
            return False
        if self.coefficient_commitments and self.coefficient_commitments[0] != self.key:
            return False
        return all(
            p.public_key == c and p.is_valid()
            for c, p in zip(self.coefficient_commitments, self.coefficient_proofs))


@dataclass(frozen=True)
class PublicKeySet:
    """Everything a guardian announces to the others"""
    election: ElectionPublicKey
    auxiliary: AuxiliaryPublicKeyRecord

    @property
    def owner_id(self) -> str:
        return self.election.owner_id

    @property
    def sequence_order(self) -> int:
        return self.election.sequence_order


@dataclass(frozen=True)
class GuardianPair:
    """Directed pair, owner sends to designated"""
    owner_id: str
    designated_id: str


@dataclass(frozen=True)
class ElectionPartialKeyBackup:
    """The owner's polynomial evaluated at the designated guardian's order, encrypted for them"""
    owner_id: str
    designated_id: str
    designated_sequence_order: int
    encrypted_value: bytes
    coefficient_commitments: List[ElementModP]
    coefficient_proofs: List[SchnorrProof]


@dataclass(frozen=True)
class CoefficientValidationSet:
    """Publishable commitments and proofs for one guardian's polynomial"""
    owner_id: str
    coefficient_commitments: List[ElementModP]
    coefficient_proofs: List[SchnorrProof]


@dataclass(frozen=True)
class ElectionPartialKeyVerification:
    """Outcome of checking one backup"""
    owner_id: str
    designated_id: str
    verifier_id: str
    verified: bool


@dataclass(frozen=True)
class ElectionPartialKeyChallenge:
    """A disputed backup with its coordinate in the clear, for a third party to check"""
    owner_id: str
    designated_id: str
    designated_sequence_order: int
    value: ElementModQ
    coefficient_commitments: List[ElementModP]
    coefficient_proofs: List[SchnorrProof]


@dataclass(frozen=True)
class GuardianRecord:
    """Public record of a guardian for the election record"""
    guardian_id: str
    sequence_order: int
    election_public_key: ElementModP
    election_commitments: List[ElementModP]
    election_proofs: List[SchnorrProof]


# ============================================================================
# CEREMONY OPERATIONS
# ============================================================================


def generate_election_key_pair(
    owner_id: str,
    sequence_order: int,
    quorum: int,
    nonce: Optional[ElementModQ] = None,
) -> ElectionKeyPair:
    """
    Generate the guardian's polynomial. Its constant term is the secret key,
    and the first commitment is the public key.
    """
    validate_sequence_order(sequence_order)
    polynomial = generate_polynomial(quorum, nonce)
    key_pair = ElGamalKeyPair(polynomial.coefficients[0], polynomial.coefficient_commitments[0])
    proof = make_schnorr_proof(key_pair, rand_q())
    return ElectionKeyPair(owner_id, sequence_order, key_pair, proof, polynomial)


def generate_election_partial_key_backup(
    owner_id: str,
    polynomial: ElectionPolynomial,
    auxiliary_public_key: AuxiliaryPublicKeyRecord,
    encrypt: Optional[AuxiliaryEncrypt] = None,
) -> Optional[ElectionPartialKeyBackup]:
    """Evaluate at the recipient's order and encrypt for them. None if transport fails"""
    if encrypt is None:
        encrypt = auxiliary_encrypt

    value = compute_polynomial_coordinate(auxiliary_public_key.sequence_order, polynomial)
    encrypted_value = encrypt(value.to_hex(), auxiliary_public_key.key)
    if encrypted_value is None:
        logger.warning(
            f"Could not encrypt backup from {owner_id} for {auxiliary_public_key.owner_id}")
        return None

    return ElectionPartialKeyBackup(
        owner_id=owner_id,
        designated_id=auxiliary_public_key.owner_id,
        designated_sequence_order=auxiliary_public_key.sequence_order,
        encrypted_value=encrypted_value,
        coefficient_commitments=list(polynomial.coefficient_commitments),
        coefficient_proofs=list(polynomial.coefficient_proofs),
    )


def get_coefficient_validation_set(
    owner_id: str, polynomial: ElectionPolynomial
) -> CoefficientValidationSet:
    return CoefficientValidationSet(
        owner_id, list(polynomial.coefficient_commitments), list(polynomial.coefficient_proofs))


def decrypt_backup(
    backup: ElectionPartialKeyBackup,
    auxiliary_key_pair: AuxiliaryKeyPair,
    decrypt: Optional[AuxiliaryDecrypt] = None,
) -> Optional[ElementModQ]:
    """Recover the coordinate carried by a backup, or None"""
    if decrypt is None:
        decrypt = auxiliary_decrypt
    decrypted = decrypt(backup.encrypted_value, auxiliary_key_pair.secret_key)
    if decrypted is None:
        return None
    return hex_to_q(decrypted)


def verify_election_partial_key_backup(
    verifier_id: str,
    backup: ElectionPartialKeyBackup,
    auxiliary_key_pair: AuxiliaryKeyPair,
    decrypt: Optional[AuxiliaryDecrypt] = None,
) -> ElectionPartialKeyVerification:
    """Decrypt the backup and check g^value against the sender's commitments"""
    value = decrypt_backup(backup, auxiliary_key_pair, decrypt)
    if value is None:
        logger.warning(
            f"Guardian {verifier_id} could not decrypt backup from {backup.owner_id}")
        return ElectionPartialKeyVerification(
            backup.owner_id, backup.designated_id, verifier_id, False)

    verified = verify_polynomial_coordinate(
        value, backup.designated_sequence_order, backup.coefficient_commitments)
    if not verified:
        logger.warning(
            f"Backup from {backup.owner_id} to {backup.designated_id} failed verification")
    return ElectionPartialKeyVerification(
        backup.owner_id, backup.designated_id, verifier_id, verified)


def generate_election_partial_key_challenge(
    backup: ElectionPartialKeyBackup, polynomial: ElectionPolynomial
) -> ElectionPartialKeyChallenge:
    """Answer a dispute by publishing the coordinate in the clear"""
    return ElectionPartialKeyChallenge(
        owner_id=backup.owner_id,
        designated_id=backup.designated_id,
        designated_sequence_order=backup.designated_sequence_order,
        value=compute_polynomial_coordinate(backup.designated_sequence_order, polynomial),
        coefficient_commitments=list(backup.coefficient_commitments),
        coefficient_proofs=list(backup.coefficient_proofs),
    )


def verify_election_partial_key_challenge(
    verifier_id: str, challenge: ElectionPartialKeyChallenge
) -> ElectionPartialKeyVerification:
    return ElectionPartialKeyVerification(
        challenge.owner_id,
        challenge.designated_id,
        verifier_id,
        verify_polynomial_coordinate(
            challenge.value,
            challenge.designated_sequence_order,
            challenge.coefficient_commitments),
    )


def combine_election_public_keys(election_public_keys: Iterable[ElectionPublicKey]) -> ElementModP:
    """Joint election key, the product of every guardian's public key"""
    return elgamal_combine_public_keys(k.key for k in election_public_keys)


def compute_recovery_public_key(
    guardian_sequence_order: int, missing_guardian_key: ElectionPublicKey
) -> ElementModP:
    """
    g^P_missing(x) for the available guardian's order x, computed from the
    missing guardian's commitments. A compensated share is checked against it.
    """
    return calculate_g_exp_at(guardian_sequence_order, missing_guardian_key.coefficient_commitments)
