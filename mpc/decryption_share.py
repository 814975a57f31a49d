"""
Decryption Shares
=================
A guardian's partial decryption of every selection in a tally or spoiled
ballot. Each selection share carries exactly one kind of evidence:
- DirectProof, a Chaum-Pedersen proof against the guardian's own key
- RecoveredParts, the compensated shares from which a missing guardian's
  share was reconstructed
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Union

from group import ElGamalCiphertext, ElementModP, ElementModQ
from zk import ChaumPedersenProof

logger = logging.getLogger(__name__)


class EvidenceKind(Enum):
    DIRECT = "direct"
    RECOVERED = "recovered"


# ============================================================================
# SELECTION SHARES
# ============================================================================


@dataclass(frozen=True)
class CiphertextCompensatedDecryptionSelection:
    """
    A share computed by guardian_id for missing_guardian_id, proved against
    the recovery key g^P_missing(x_guardian) instead of the missing key.
    """
    object_id: str
    guardian_id: str
    missing_guardian_id: str
    description_hash: ElementModQ
    share: ElementModP
    recovery_key: ElementModP
    proof: ChaumPedersenProof

    def is_valid(self, message: ElGamalCiphertext, extended_base_hash: ElementModQ) -> bool:
        return self.proof.is_valid(message, self.recovery_key, self.share, extended_base_hash)


@dataclass(frozen=True)
class DirectProof:
    proof: ChaumPedersenProof
    kind: EvidenceKind = field(default=EvidenceKind.DIRECT, init=False)


@dataclass(frozen=True)
class RecoveredParts:
    """Compensated shares keyed by the available guardian that made them"""
    parts: Dict[str, CiphertextCompensatedDecryptionSelection]
    kind: EvidenceKind = field(default=EvidenceKind.RECOVERED, init=False)


Evidence = Union[DirectProof, RecoveredParts]


@dataclass(frozen=True)
class CiphertextDecryptionSelection:
    """One guardian's share M_i of one selection and the evidence for it"""
    object_id: str
    guardian_id: str
    description_hash: ElementModQ
    share: ElementModP
    evidence: Evidence

    @property
    def is_recovered(self) -> bool:
        return self.evidence.kind is EvidenceKind.RECOVERED

    def is_valid(
        self,
        message: ElGamalCiphertext,
        election_public_key: ElementModP,
        extended_base_hash: ElementModQ,
    ) -> bool:
        """
        A direct share is checked against the guardian's public key. A
        recovered share is checked part by part against the recovery keys.
        """
        evidence = self.evidence
        if evidence.kind is EvidenceKind.DIRECT:
            valid = evidence.proof.is_valid(
                message, election_public_key, self.share, extended_base_hash)
        elif evidence.kind is EvidenceKind.RECOVERED:
            valid = bool(evidence.parts) and all(
                part.is_valid(message, extended_base_hash) for part in evidence.parts.values())
        else:
            valid = False

        if not valid:
            logger.warning(
                f"Invalid decryption share for {self.object_id} from guardian {self.guardian_id}")
        return valid


def create_ciphertext_decryption_selection(
    object_id: str,
    guardian_id: str,
    description_hash: ElementModQ,
    share: ElementModP,
    proof_or_recovery: Union[ChaumPedersenProof, Dict[str, CiphertextCompensatedDecryptionSelection]],
) -> CiphertextDecryptionSelection:
    """Wrap a proof or a map of compensated parts in the matching evidence"""
    if isinstance(proof_or_recovery, ChaumPedersenProof):
        evidence = DirectProof(proof_or_recovery)
    elif isinstance(proof_or_recovery, dict):
        evidence = RecoveredParts(dict(proof_or_recovery))
    else:
        raise TypeError(
            f"Expected a proof or recovered parts, got {type(proof_or_recovery).__name__}")
    return CiphertextDecryptionSelection(object_id, guardian_id, description_hash, share, evidence)


# ============================================================================
# CONTEST, BALLOT AND TALLY SHARES
# ============================================================================


@dataclass(frozen=True)
class CiphertextDecryptionContest:
    object_id: str
    guardian_id: str
    description_hash: ElementModQ
    selections: Dict[str, CiphertextDecryptionSelection]


@dataclass(frozen=True)
class CiphertextCompensatedDecryptionContest:
    object_id: str
    guardian_id: str
    missing_guardian_id: str
    description_hash: ElementModQ
    selections: Dict[str, CiphertextCompensatedDecryptionSelection]


@dataclass(frozen=True)
class BallotDecryptionShare:
    """A guardian's share of one spoiled ballot"""
    guardian_id: str
    public_key: ElementModP
    ballot_id: str
    contests: Dict[str, CiphertextDecryptionContest]


@dataclass(frozen=True)
class CompensatedBallotDecryptionShare:
    guardian_id: str
    missing_guardian_id: str
    public_key: ElementModP
    ballot_id: str
    contests: Dict[str, CiphertextCompensatedDecryptionContest]


@dataclass(frozen=True)
class TallyDecryptionShare:
    """A guardian's share of the whole ciphertext tally"""
    guardian_id: str
    public_key: ElementModP
    contests: Dict[str, CiphertextDecryptionContest]


@dataclass(frozen=True)
class CompensatedTallyDecryptionShare:
    """An available guardian's share of the tally on behalf of a missing one"""
    guardian_id: str
    missing_guardian_id: str
    public_key: ElementModP
    contests: Dict[str, CiphertextCompensatedDecryptionContest]
