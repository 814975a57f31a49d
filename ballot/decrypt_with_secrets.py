"""
Decryption with secrets held by one party: the election secret key, or the
nonces the encrypting device derived. Used to check encryption round trips
and to let a voter confirm a spoiled ballot.
"""

import logging
from typing import List, Optional

from group import (
    DiscreteLogError,
    ElementModP,
    ElementModQ,
    Nonces,
    hash_elems,
)

from .ballot import (
    CiphertextBallot,
    CiphertextBallotContest,
    CiphertextBallotSelection,
    PlaintextBallot,
    PlaintextBallotContest,
    PlaintextBallotSelection,
)
from .manifest import ContestWithPlaceholders, InternalManifest, SelectionDescription

logger = logging.getLogger(__name__)


def _plaintext_selection(
    selection: CiphertextBallotSelection, plaintext: int
) -> PlaintextBallotSelection:
    return PlaintextBallotSelection(
        selection.object_id, plaintext, selection.is_placeholder_selection)


# ============================================================================
# SELECTIONS
# ============================================================================


def decrypt_selection_with_secret(
    selection: CiphertextBallotSelection,
    description: SelectionDescription,
    public_key: ElementModP,
    secret_key: ElementModQ,
    crypto_extended_base_hash: ElementModQ,
    suppress_validity_check: bool = False,
) -> Optional[PlaintextBallotSelection]:
    if not suppress_validity_check and not selection.is_valid_encryption(
            description.crypto_hash(), public_key, crypto_extended_base_hash):
        return None

    try:
        plaintext = selection.ciphertext.decrypt(secret_key)
    except DiscreteLogError as e:
        logger.warning(f"Could not decrypt selection {selection.object_id}: {e}")
        return None
    return _plaintext_selection(selection, plaintext)


def decrypt_selection_with_nonce(
    selection: CiphertextBallotSelection,
    description: SelectionDescription,
    public_key: ElementModP,
    crypto_extended_base_hash: ElementModQ,
    nonce_seed: Optional[ElementModQ] = None,
    suppress_validity_check: bool = False,
) -> Optional[PlaintextBallotSelection]:
    """
    :param nonce_seed: the contest nonce. When omitted the selection's own nonce is used
    """
    if not suppress_validity_check and not selection.is_valid_encryption(
            description.crypto_hash(), public_key, crypto_extended_base_hash):
        return None

    if nonce_seed is None:
        nonce = selection.nonce
    else:
        nonce = Nonces(description.crypto_hash(), nonce_seed)[description.sequence_order]
    if nonce is None:
        logger.warning(f"Selection {selection.object_id} has no nonce")
        return None

    try:
        plaintext = selection.ciphertext.decrypt_known_nonce(public_key, nonce)
    except DiscreteLogError as e:
        logger.warning(f"Could not decrypt selection {selection.object_id}: {e}")
        return None
    return _plaintext_selection(selection, plaintext)


# ============================================================================
# CONTESTS
# ============================================================================


def decrypt_contest_with_secret(
    contest: CiphertextBallotContest,
    description: ContestWithPlaceholders,
    public_key: ElementModP,
    secret_key: ElementModQ,
    crypto_extended_base_hash: ElementModQ,
    suppress_validity_check: bool = False,
    remove_placeholders: bool = True,
) -> Optional[PlaintextBallotContest]:
    if not suppress_validity_check and not contest.is_valid_encryption(
            description.crypto_hash(), public_key, crypto_extended_base_hash):
        return None

    plaintext_selections: List[PlaintextBallotSelection] = []
    for selection in contest.ballot_selections:
        selection_description = description.selection_for(selection.object_id)
        if selection_description is None:
            logger.warning(f"Contest {contest.object_id} has unknown selection {selection.object_id}")
            return None
        plaintext_selection = decrypt_selection_with_secret(
            selection, selection_description, public_key, secret_key,
            crypto_extended_base_hash, suppress_validity_check)
        if plaintext_selection is None:
            return None
        if remove_placeholders and plaintext_selection.is_placeholder_selection:
            continue
        plaintext_selections.append(plaintext_selection)

    return PlaintextBallotContest(contest.object_id, plaintext_selections)


def decrypt_contest_with_nonce(
    contest: CiphertextBallotContest,
    description: ContestWithPlaceholders,
    public_key: ElementModP,
    crypto_extended_base_hash: ElementModQ,
    nonce_seed: Optional[ElementModQ] = None,
    suppress_validity_check: bool = False,
    remove_placeholders: bool = True,
) -> Optional[PlaintextBallotContest]:
    """
    :param nonce_seed: the ballot's hashed master nonce. When omitted the
        contest's own nonce is used
    """
    if not suppress_validity_check and not contest.is_valid_encryption(
            description.crypto_hash(), public_key, crypto_extended_base_hash):
        return None

    if nonce_seed is None:
        contest_nonce = contest.nonce
    else:
        contest_nonce = Nonces(description.crypto_hash(), nonce_seed)[description.sequence_order]
    if contest_nonce is None:
        logger.warning(f"Contest {contest.object_id} has no nonce")
        return None

    plaintext_selections: List[PlaintextBallotSelection] = []
    for selection in contest.ballot_selections:
        selection_description = description.selection_for(selection.object_id)
        if selection_description is None:
            logger.warning(f"Contest {contest.object_id} has unknown selection {selection.object_id}")
            return None
        plaintext_selection = decrypt_selection_with_nonce(
            selection, selection_description, public_key, crypto_extended_base_hash,
            contest_nonce, suppress_validity_check)
        if plaintext_selection is None:
            return None
        if remove_placeholders and plaintext_selection.is_placeholder_selection:
            continue
        plaintext_selections.append(plaintext_selection)

    return PlaintextBallotContest(contest.object_id, plaintext_selections)


# ============================================================================
# BALLOTS
# ============================================================================


def decrypt_ballot_with_secret(
    ballot: CiphertextBallot,
    internal_manifest: InternalManifest,
    crypto_extended_base_hash: ElementModQ,
    public_key: ElementModP,
    secret_key: ElementModQ,
    suppress_validity_check: bool = False,
    remove_placeholders: bool = True,
) -> Optional[PlaintextBallot]:
    if not suppress_validity_check and not ballot.is_valid_encryption(
            internal_manifest.manifest_hash, public_key, crypto_extended_base_hash):
        return None

    plaintext_contests: List[PlaintextBallotContest] = []
    for contest in ballot.contests:
        description = internal_manifest.contests.get(contest.object_id)
        if description is None:
            logger.warning(f"Ballot {ballot.object_id} has unknown contest {contest.object_id}")
            return None
        plaintext_contest = decrypt_contest_with_secret(
            contest, description, public_key, secret_key, crypto_extended_base_hash,
            suppress_validity_check, remove_placeholders)
        if plaintext_contest is None:
            return None
        plaintext_contests.append(plaintext_contest)

    return PlaintextBallot(ballot.object_id, ballot.style_id, plaintext_contests)


def decrypt_ballot_with_nonce(
    ballot: CiphertextBallot,
    internal_manifest: InternalManifest,
    crypto_extended_base_hash: ElementModQ,
    public_key: ElementModP,
    nonce: Optional[ElementModQ] = None,
    suppress_validity_check: bool = False,
    remove_placeholders: bool = True,
) -> Optional[PlaintextBallot]:
    """
    :param nonce: the master nonce. When omitted the ballot's own nonce is used
    """
    if not suppress_validity_check and not ballot.is_valid_encryption(
            internal_manifest.manifest_hash, public_key, crypto_extended_base_hash):
        return None

    if nonce is None:
        nonce_seed = ballot.hashed_ballot_nonce()
    else:
        nonce_seed = hash_elems(ballot.manifest_hash, ballot.object_id, nonce)
    if nonce_seed is None:
        logger.warning(f"Ballot {ballot.object_id} has no master nonce")
        return None

    plaintext_contests: List[PlaintextBallotContest] = []
    for contest in ballot.contests:
        description = internal_manifest.contests.get(contest.object_id)
        if description is None:
            logger.warning(f"Ballot {ballot.object_id} has unknown contest {contest.object_id}")
            return None
        plaintext_contest = decrypt_contest_with_nonce(
            contest, description, public_key, crypto_extended_base_hash,
            nonce_seed, suppress_validity_check, remove_placeholders)
        if plaintext_contest is None:
            return None
        plaintext_contests.append(plaintext_contest)

    return PlaintextBallot(ballot.object_id, ballot.style_id, plaintext_contests)
