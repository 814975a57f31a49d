"""
Ballot Encryption
=================
Turns a plaintext ballot into a proof-carrying ciphertext ballot.

Every nonce is derived from the ballot's master nonce through Nonces keyed
by description hashes and sequence orders, so the same master nonce always
reproduces the same ciphertexts and proofs. Placeholder selections bring
each contest's total up to its number elected, and every encrypted object
is verified before it is returned.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from group import ElementModP, ElementModQ, Nonces, elgamal_encrypt, hash_elems, rand_q

from .ballot import (
    CiphertextBallot,
    CiphertextBallotContest,
    CiphertextBallotSelection,
    PlaintextBallot,
    PlaintextBallotContest,
    PlaintextBallotSelection,
    make_ciphertext_ballot,
    make_ciphertext_ballot_contest,
    make_ciphertext_ballot_selection,
)
from .election import CiphertextElectionContext
from .manifest import ContestWithPlaceholders, InternalManifest, SelectionDescription
from .tracker import get_hash_for_device

logger = logging.getLogger(__name__)

# ============================================================================
# DEVICE AND MEDIATOR
# ============================================================================


@dataclass(frozen=True)
class EncryptionDevice:
    """The machine encrypting ballots. Its hash starts the tracking chain"""
    uuid: int
    session_id: str
    launch_code: int
    location: str

    def get_hash(self) -> ElementModQ:
        return get_hash_for_device(self.uuid, self.session_id, self.launch_code, self.location)


class EncryptionMediator:
    """Encrypts ballots for one device, threading the tracking hash between them"""

    def __init__(
        self,
        internal_manifest: InternalManifest,
        context: CiphertextElectionContext,
        encryption_device: EncryptionDevice,
        should_verify_proofs: bool = True,
    ):
        self._internal_manifest = internal_manifest
        self._context = context
        self._encryption_device = encryption_device
        self._should_verify_proofs = should_verify_proofs
        self._seed_hash = encryption_device.get_hash()

    @property
    def tracking_hash(self) -> ElementModQ:
        """Tracking hash of the last ballot, or the device hash before the first"""
        return self._seed_hash

    def encrypt(self, ballot: PlaintextBallot, nonce: Optional[ElementModQ] = None) -> Optional[CiphertextBallot]:
        logger.debug(f"Encrypting ballot {ballot.object_id}")
        encrypted_ballot = encrypt_ballot(
            ballot,
            self._internal_manifest,
            self._context,
            self._seed_hash,
            nonce,
            self._should_verify_proofs,
        )
        if encrypted_ballot is None:
            return None
        self._seed_hash = encrypted_ballot.tracking_hash
        return encrypted_ballot


# ============================================================================
# PLAINTEXT HELPERS
# ============================================================================


def selection_from(
    description: SelectionDescription,
    is_placeholder: bool = False,
    is_affirmative: bool = False,
) -> PlaintextBallotSelection:
    """A selection for the description, false unless marked affirmative"""
    return PlaintextBallotSelection(
        description.object_id, 1 if is_affirmative else 0, is_placeholder)


def contest_from(description: ContestWithPlaceholders) -> PlaintextBallotContest:
    """An all-false contest, used when the voter left a contest off the ballot"""
    return PlaintextBallotContest(
        description.object_id, [selection_from(s) for s in description.ballot_selections])


# ============================================================================
# ENCRYPTION
# ============================================================================


def encrypt_selection(
    selection: PlaintextBallotSelection,
    selection_description: SelectionDescription,
    elgamal_public_key: ElementModP,
    crypto_extended_base_hash: ElementModQ,
    nonce_seed: ElementModQ,
    is_placeholder: bool = False,
    should_verify_proofs: bool = True,
) -> Optional[CiphertextBallotSelection]:
    """
    Encrypt one selection with a disjunctive proof.

    :param nonce_seed: the contest nonce the selection nonce is derived from
    """
    if not selection.is_valid(selection_description.object_id):
        return None

    selection_description_hash = selection_description.crypto_hash()
    nonce_sequence = Nonces(selection_description_hash, nonce_seed)
    selection_nonce = nonce_sequence[selection_description.sequence_order]
    disjunctive_chaum_pedersen_nonce = nonce_sequence[0]

    selection_representation = selection.to_int()
    ciphertext = elgamal_encrypt(selection_representation, selection_nonce, elgamal_public_key)
    if ciphertext is None:
        logger.warning(f"Could not encrypt selection {selection.object_id}")
        return None

    encrypted_selection = make_ciphertext_ballot_selection(
        object_id=selection.object_id,
        description_hash=selection_description_hash,
        ciphertext=ciphertext,
        elgamal_public_key=elgamal_public_key,
        crypto_extended_base_hash=crypto_extended_base_hash,
        proof_seed=disjunctive_chaum_pedersen_nonce,
        selection_representation=selection_representation,
        is_placeholder_selection=is_placeholder,
        nonce=selection_nonce,
    )
    if encrypted_selection is None:
        return None

    if not should_verify_proofs:
        return encrypted_selection
    if encrypted_selection.is_valid_encryption(
            selection_description_hash, elgamal_public_key, crypto_extended_base_hash):
        return encrypted_selection
    logger.warning(f"Mismatching selection proof for {selection.object_id}")
    return None


def encrypt_contest(
    contest: PlaintextBallotContest,
    contest_description: ContestWithPlaceholders,
    elgamal_public_key: ElementModP,
    crypto_extended_base_hash: ElementModQ,
    nonce_seed: ElementModQ,
    should_verify_proofs: bool = True,
) -> Optional[CiphertextBallotContest]:
    """
    Encrypt every selection of the contest, false ones included, then the
    placeholders, and prove the total equals the number elected.

    :param nonce_seed: the ballot's hashed master nonce
    """
    if not contest_description.is_valid():
        logger.warning(f"Contest description {contest_description.object_id} is invalid")
        return None
    if not contest.is_valid(
            contest_description.object_id,
            len(contest_description.ballot_selections),
            contest_description.number_elected,
            contest_description.votes_allowed):
        return None

    described_ids = {s.object_id for s in contest_description.ballot_selections}
    unknown = [s.object_id for s in contest.ballot_selections if s.object_id not in described_ids]
    if unknown:
        logger.warning(f"Contest {contest.object_id} has unknown selections {unknown}")
        return None

    contest_description_hash = contest_description.crypto_hash()
    nonce_sequence = Nonces(contest_description_hash, nonce_seed)
    contest_nonce = nonce_sequence[contest_description.sequence_order]
    chaum_pedersen_nonce = nonce_sequence[0]

    marked = {s.object_id: s for s in contest.ballot_selections}
    encrypted_selections: List[CiphertextBallotSelection] = []
    selection_count = 0

    for description in contest_description.ballot_selections:
        selection = marked.get(description.object_id)
        if selection is None:
            selection = selection_from(description)
        selection_count += selection.to_int()

        encrypted_selection = encrypt_selection(
            selection, description, elgamal_public_key, crypto_extended_base_hash,
            contest_nonce, should_verify_proofs=should_verify_proofs)
        if encrypted_selection is None:
            return None
        encrypted_selections.append(encrypted_selection)

    if selection_count < contest_description.number_elected:
        logger.debug(
            f"Contest {contest.object_id} undervoted: {selection_count} of "
            f"{contest_description.number_elected}")

    for placeholder in contest_description.placeholder_selections:
        select_placeholder = selection_count < contest_description.number_elected
        if select_placeholder:
            selection_count += 1

        encrypted_selection = encrypt_selection(
            selection_from(placeholder, is_placeholder=True, is_affirmative=select_placeholder),
            placeholder,
            elgamal_public_key,
            crypto_extended_base_hash,
            contest_nonce,
            is_placeholder=True,
            should_verify_proofs=should_verify_proofs,
        )
        if encrypted_selection is None:
            return None
        encrypted_selections.append(encrypted_selection)

    encrypted_contest = make_ciphertext_ballot_contest(
        object_id=contest.object_id,
        description_hash=contest_description_hash,
        ballot_selections=encrypted_selections,
        elgamal_public_key=elgamal_public_key,
        crypto_extended_base_hash=crypto_extended_base_hash,
        proof_seed=chaum_pedersen_nonce,
        number_elected=contest_description.number_elected,
        nonce=contest_nonce,
    )
    if encrypted_contest is None:
        return None

    if not should_verify_proofs:
        return encrypted_contest
    if encrypted_contest.is_valid_encryption(
            contest_description_hash, elgamal_public_key, crypto_extended_base_hash):
        return encrypted_contest
    logger.warning(f"Mismatching contest proof for {contest.object_id}")
    return None


def encrypt_ballot(
    ballot: PlaintextBallot,
    internal_manifest: InternalManifest,
    context: CiphertextElectionContext,
    seed_hash: ElementModQ,
    nonce: Optional[ElementModQ] = None,
    should_verify_proofs: bool = True,
    timestamp: Optional[int] = None,
) -> Optional[CiphertextBallot]:
    """
    Encrypt a ballot for its style. Contests the voter left off are encrypted
    as all-false. Returns None, with nothing partial, if any step fails.

    :param seed_hash: previous tracking hash, or the device hash for the first ballot
    :param nonce: master nonce, random when omitted
    :param timestamp: seconds since the epoch, now when omitted
    """
    style = internal_manifest.get_ballot_style(ballot.style_id)
    if style is None:
        logger.warning(f"Ballot {ballot.object_id} has unknown style {ballot.style_id}")
        return None
    if not ballot.is_valid(style.object_id):
        return None

    manifest_hash = internal_manifest.manifest_hash
    random_master_nonce = nonce if nonce is not None else rand_q()
    nonce_seed = hash_elems(manifest_hash, ballot.object_id, random_master_nonce)

    contest_descriptions = internal_manifest.get_contests_for(ballot.style_id)
    described_ids = {c.object_id for c in contest_descriptions}
    unknown = [c.object_id for c in ballot.contests if c.object_id not in described_ids]
    if unknown:
        logger.warning(f"Ballot {ballot.object_id} has contests outside its style: {unknown}")
        return None

    marked = {c.object_id: c for c in ballot.contests}
    encrypted_contests: List[CiphertextBallotContest] = []
    for description in contest_descriptions:
        contest = marked.get(description.object_id)
        if contest is None:
            contest = contest_from(description)

        encrypted_contest = encrypt_contest(
            contest,
            description,
            context.elgamal_public_key,
            context.crypto_extended_base_hash,
            nonce_seed,
            should_verify_proofs,
        )
        if encrypted_contest is None:
            logger.warning(f"Could not encrypt ballot {ballot.object_id}")
            return None
        encrypted_contests.append(encrypted_contest)

    encrypted_ballot = make_ciphertext_ballot(
        object_id=ballot.object_id,
        style_id=ballot.style_id,
        manifest_hash=manifest_hash,
        previous_tracking_hash=seed_hash,
        contests=encrypted_contests,
        nonce=random_master_nonce,
        timestamp=timestamp,
    )

    if not should_verify_proofs:
        return encrypted_ballot
    if encrypted_ballot.is_valid_encryption(
            manifest_hash, context.elgamal_public_key, context.crypto_extended_base_hash):
        return encrypted_ballot
    logger.warning(f"Mismatching ballot encryption for {ballot.object_id}")
    return None
