"""
Key Ceremony Mediator
=====================
The ceremony as explicit state. CeremonyState is immutable. Each phase
function takes the current state and an incoming message and returns the
next state together with the messages to deliver. KeyCeremonyMediator
threads that state through the phases for a set of local guardians.

Phases, each requiring full participation before the next:
1. announce: every guardian publishes its auxiliary and election keys
2. backups: every guardian sends a partial key backup to every other
3. verification: every backup is checked, disputes go through challenges
4. joint key: product of all election public keys
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Tuple

from group import ElementModP

from .auxiliary import AuxiliaryDecrypt, AuxiliaryEncrypt
from .guardian import Guardian
from .key_ceremony import (
    CeremonyDetails,
    ElectionPartialKeyBackup,
    ElectionPartialKeyChallenge,
    ElectionPartialKeyVerification,
    ElectionPublicKey,
    GuardianPair,
    KeyCeremonyError,
    PublicKeySet,
    combine_election_public_keys,
)

logger = logging.getLogger(__name__)

# ============================================================================
# CEREMONY STATE
# ============================================================================


@dataclass(frozen=True)
class CeremonyState:
    """Everything the mediator has seen so far. Never mutated, only replaced"""
    details: CeremonyDetails
    public_key_sets: Dict[str, PublicKeySet] = field(default_factory=dict)
    backups: Dict[GuardianPair, ElectionPartialKeyBackup] = field(default_factory=dict)
    verifications: Dict[GuardianPair, ElectionPartialKeyVerification] = field(default_factory=dict)
    challenges: Dict[GuardianPair, ElectionPartialKeyChallenge] = field(default_factory=dict)

    @property
    def election_public_keys(self) -> Dict[str, ElectionPublicKey]:
        return {gid: s.election for gid, s in self.public_key_sets.items()}

    @property
    def guardian_ids(self) -> List[str]:
        return list(self.public_key_sets.keys())

    @property
    def required_pairs(self) -> int:
        n = self.details.number_of_guardians
        return n * (n - 1)


def start_ceremony(details: CeremonyDetails) -> CeremonyState:
    return CeremonyState(details)


def all_guardians_announced(state: CeremonyState) -> bool:
    return len(state.public_key_sets) == state.details.number_of_guardians


def all_backups_available(state: CeremonyState) -> bool:
    return len(state.backups) == state.required_pairs


def all_verifications_received(state: CeremonyState) -> bool:
    return len(state.verifications) == state.required_pairs


def all_backups_verified(state: CeremonyState) -> bool:
    if not all_verifications_received(state):
        return False
    return all(v.verified for v in state.verifications.values())


def failed_verifications(state: CeremonyState) -> List[GuardianPair]:
    return [pair for pair, v in state.verifications.items() if not v.verified]


def announce_guardian(
    state: CeremonyState, public_key_set: PublicKeySet
) -> Tuple[CeremonyState, List[PublicKeySet]]:
    """
    Record a guardian's announcement. Once the last guardian announces, the
    outgoing messages are every key set, to be delivered to every guardian.
    Raises KeyCeremonyError on a duplicate id, a reused sequence order, a
    ceremony that is already full, or an invalid proof of possession.
    """
    owner_id = public_key_set.owner_id
    if owner_id in state.public_key_sets:
        raise KeyCeremonyError(f"Guardian {owner_id} already announced")
    if all_guardians_announced(state):
        raise KeyCeremonyError(
            f"Ceremony already has {state.details.number_of_guardians} guardians")
    for other in state.public_key_sets.values():
        if other.sequence_order == public_key_set.sequence_order:
            raise KeyCeremonyError(
                f"Guardian {owner_id} reuses sequence order {public_key_set.sequence_order}")
    if not public_key_set.election.is_valid():
        raise KeyCeremonyError(f"Guardian {owner_id} announced an invalid election public key")
    if len(public_key_set.election.coefficient_commitments) != state.details.quorum:
        raise KeyCeremonyError(
            f"Guardian {owner_id} announced {len(public_key_set.election.coefficient_commitments)} "
            f"commitments, quorum is {state.details.quorum}")

    new_state = replace(
        state, public_key_sets={**state.public_key_sets, owner_id: public_key_set})

    outgoing: List[PublicKeySet] = []
    if all_guardians_announced(new_state):
        outgoing = list(new_state.public_key_sets.values())
    return new_state, outgoing


def receive_backups(
    state: CeremonyState, backups: Iterable[ElectionPartialKeyBackup]
) -> Tuple[CeremonyState, Dict[str, List[ElectionPartialKeyBackup]]]:
    """
    Record backups. Once every pair is covered, the outgoing messages are the
    backups grouped by recipient.
    """
    if not all_guardians_announced(state):
        raise KeyCeremonyError("Backups cannot be exchanged before every guardian announces")

    received = dict(state.backups)
    for backup in backups:
        if backup.owner_id == backup.designated_id:
            raise KeyCeremonyError(f"Guardian {backup.owner_id} sent a backup to itself")
        for gid in (backup.owner_id, backup.designated_id):
            if gid not in state.public_key_sets:
                raise KeyCeremonyError(f"Backup refers to unknown guardian {gid}")
        received[GuardianPair(backup.owner_id, backup.designated_id)] = backup

    new_state = replace(state, backups=received)

    outgoing: Dict[str, List[ElectionPartialKeyBackup]] = {}
    if all_backups_available(new_state):
        for pair, backup in new_state.backups.items():
            outgoing.setdefault(pair.designated_id, []).append(backup)
    return new_state, outgoing


def receive_verifications(
    state: CeremonyState, verifications: Iterable[ElectionPartialKeyVerification]
) -> Tuple[CeremonyState, List[GuardianPair]]:
    """Record verifications. Outgoing: the pairs whose backup failed and now need a challenge"""
    received = dict(state.verifications)
    for verification in verifications:
        pair = GuardianPair(verification.owner_id, verification.designated_id)
        if pair not in state.backups:
            raise KeyCeremonyError(
                f"Verification for unknown backup {pair.owner_id} -> {pair.designated_id}")
        received[pair] = verification

    new_state = replace(state, verifications=received)
    return new_state, failed_verifications(new_state)


def receive_challenge(
    state: CeremonyState, challenge: ElectionPartialKeyChallenge
) -> Tuple[CeremonyState, List[ElectionPartialKeyChallenge]]:
    """Record a challenge response. Outgoing: every open challenge, for verifiers to check"""
    pair = GuardianPair(challenge.owner_id, challenge.designated_id)
    if pair not in state.backups:
        raise KeyCeremonyError(
            f"Challenge for unknown backup {pair.owner_id} -> {pair.designated_id}")
    new_state = replace(state, challenges={**state.challenges, pair: challenge})
    return new_state, list(new_state.challenges.values())


def receive_challenge_verification(
    state: CeremonyState, verification: ElectionPartialKeyVerification
) -> Tuple[CeremonyState, List[GuardianPair]]:
    """
    Replace a failed verification with the outcome of its challenge. The
    verifier must be a third guardian. Outgoing: pairs that still fail.
    """
    pair = GuardianPair(verification.owner_id, verification.designated_id)
    if pair not in state.challenges:
        raise KeyCeremonyError(
            f"No challenge open for {pair.owner_id} -> {pair.designated_id}")
    if verification.verifier_id in (pair.owner_id, pair.designated_id):
        raise KeyCeremonyError(
            f"Challenge {pair.owner_id} -> {pair.designated_id} must be verified by a third guardian")

    challenges = {p: c for p, c in state.challenges.items() if p != pair}
    new_state = replace(
        state,
        verifications={**state.verifications, pair: verification},
        challenges=challenges,
    )
    return new_state, failed_verifications(new_state)


def publish_joint_key(state: CeremonyState) -> Optional[ElementModP]:
    """The joint key, or None unless every guardian announced and every backup verified"""
    if not all_guardians_announced(state):
        return None
    if not all_backups_verified(state):
        return None
    return combine_election_public_keys(state.election_public_keys.values())


# ============================================================================
# MEDIATOR
# ============================================================================


class KeyCeremonyMediator:
    """Drives the ceremony for guardians held in this process"""

    def __init__(self, mediator_id: str, ceremony_details: CeremonyDetails):
        self.id = mediator_id
        self._state = start_ceremony(ceremony_details)
        self._guardians: Dict[str, Guardian] = {}

    @property
    def state(self) -> CeremonyState:
        return self._state

    @property
    def ceremony_details(self) -> CeremonyDetails:
        return self._state.details

    def reset(self, ceremony_details: CeremonyDetails) -> None:
        self._state = start_ceremony(ceremony_details)
        self._guardians = {}

    # Phase 1 ------------------------------------------------------------

    def announce(self, guardian: Guardian) -> bool:
        """Announce a guardian. Keys are exchanged once all have announced"""
        try:
            self._state, outgoing = announce_guardian(self._state, guardian.share_public_keys())
        except KeyCeremonyError as e:
            logger.warning(f"Announcement rejected: {e}")
            return False
        self._guardians[guardian.object_id] = guardian
        logger.info(
            f"Guardian {guardian.object_id} announced "
            f"({len(self._guardians)}/{self.ceremony_details.number_of_guardians})")

        for public_key_set in outgoing:
            for recipient in self._guardians.values():
                if recipient.object_id != public_key_set.owner_id:
                    recipient.save_guardian_public_keys(public_key_set)
        if outgoing:
            logger.info("All guardians announced, public keys shared")
        return True

    def all_guardians_in_attendance(self) -> bool:
        return all_guardians_announced(self._state)

    # Phase 2 ------------------------------------------------------------

    def orchestrate(self, encrypt: Optional[AuxiliaryEncrypt] = None) -> Optional[List[Guardian]]:
        """Generate and distribute every partial key backup. None if attendance is incomplete"""
        if not self.all_guardians_in_attendance():
            logger.warning("Cannot orchestrate backups before every guardian announces")
            return None

        backups: List[ElectionPartialKeyBackup] = []
        for guardian in self._guardians.values():
            if not guardian.generate_election_partial_key_backups(encrypt):
                logger.warning(f"Guardian {guardian.object_id} could not generate backups")
                return None
            backups.extend(guardian.share_election_partial_key_backups())

        try:
            self._state, outgoing = receive_backups(self._state, backups)
        except KeyCeremonyError as e:
            logger.warning(f"Backups rejected: {e}")
            return None

        if not all_backups_available(self._state):
            logger.warning("Not every partial key backup is available")
            return None

        for recipient_id, recipient_backups in outgoing.items():
            recipient = self._guardians[recipient_id]
            for backup in recipient_backups:
                recipient.save_election_partial_key_backup(backup)

        logger.info(f"Distributed {len(self._state.backups)} partial key backups")
        return list(self._guardians.values())

    # Phase 3 ------------------------------------------------------------

    def verify(self, decrypt: Optional[AuxiliaryDecrypt] = None) -> bool:
        """Each recipient verifies each backup it holds. True only if all verify"""
        verifications: List[ElectionPartialKeyVerification] = []
        for recipient in self._guardians.values():
            for sender_id in self._guardians:
                if sender_id == recipient.object_id:
                    continue
                verification = recipient.verify_election_partial_key_backup(sender_id, decrypt)
                if verification is None:
                    logger.warning(
                        f"Guardian {recipient.object_id} could not verify backup from {sender_id}")
                    return False
                verifications.append(verification)

        try:
            self._state, failed = receive_verifications(self._state, verifications)
        except KeyCeremonyError as e:
            logger.warning(f"Verifications rejected: {e}")
            return False

        for verification in verifications:
            sender = self._guardians.get(verification.owner_id)
            if sender is not None:
                sender.save_election_partial_key_verification(verification)

        if failed:
            logger.warning(f"{len(failed)} partial key backups failed verification")
            return False
        logger.info("All partial key backups verified")
        return all_backups_verified(self._state)

    def receive_election_partial_key_verification(self, verification: ElectionPartialKeyVerification) -> None:
        self._state, _ = receive_verifications(self._state, [verification])

    def share_failed_partial_key_verifications(self) -> List[GuardianPair]:
        return failed_verifications(self._state)

    def share_missing_election_partial_key_challenges(self) -> List[GuardianPair]:
        """Failed pairs for which the sender has not yet published a challenge"""
        return [pair for pair in failed_verifications(self._state)
                if pair not in self._state.challenges]

    def receive_election_partial_key_challenge(self, challenge: ElectionPartialKeyChallenge) -> None:
        self._state, _ = receive_challenge(self._state, challenge)
        logger.info(f"Received challenge for {challenge.owner_id} -> {challenge.designated_id}")

    def share_open_election_partial_key_challenges(self) -> List[ElectionPartialKeyChallenge]:
        return list(self._state.challenges.values())

    def receive_election_partial_key_challenge_verification(
        self, verification: ElectionPartialKeyVerification
    ) -> bool:
        """Record a third party's verdict on a challenge. True if nothing is left failing"""
        self._state, still_failed = receive_challenge_verification(self._state, verification)
        sender = self._guardians.get(verification.owner_id)
        if sender is not None:
            sender.save_election_partial_key_verification(verification)
        return not still_failed

    def resolve_challenges(self) -> bool:
        """
        Ask each disputed sender for a challenge and have a third guardian check
        it. True when every backup ends up verified.
        """
        for pair in self.share_missing_election_partial_key_challenges():
            sender = self._guardians.get(pair.owner_id)
            if sender is None:
                continue
            challenge = sender.publish_election_backup_challenge(pair.designated_id)
            if challenge is not None:
                self.receive_election_partial_key_challenge(challenge)

        for challenge in self.share_open_election_partial_key_challenges():
            verifier = next(
                (g for gid, g in self._guardians.items()
                 if gid not in (challenge.owner_id, challenge.designated_id)), None)
            if verifier is None:
                logger.warning("No third guardian available to verify challenge")
                return False
            self.receive_election_partial_key_challenge_verification(
                verifier.verify_election_partial_key_challenge(challenge))

        return all_backups_verified(self._state)

    # Phase 4 ------------------------------------------------------------

    def publish_joint_key(self) -> Optional[ElementModP]:
        joint_key = publish_joint_key(self._state)
        if joint_key is None:
            logger.warning("Joint key unavailable, ceremony incomplete")
        else:
            logger.info("Published joint election public key")
        return joint_key
