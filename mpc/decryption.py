"""
Distributed Decryption
======================
How guardians turn a ciphertext tally back into counts:
- every available guardian computes a share M_i = A^s_i per selection
  with a Chaum-Pedersen proof
- for a missing guardian, every available guardian computes a compensated
  share from the backup coordinate it holds, proved against a recovery key
- the missing share is reconstructed as prod_l M_il^w_l with Lagrange
  coefficients w_l over the available guardians
- the plaintext is dlog(B / prod_i M_i)

Share computation is spread over a thread pool, one task per selection.
Every public function returns None, after logging, rather than a partial result.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

from group import DiscreteLogError, ElGamalCiphertext, ElementModP, ElementModQ, div_p, mult_p, pow_p
from ballot import CiphertextElectionContext, SubmittedBallot
from tally import CiphertextTally, PlaintextTallyContest, PlaintextTallySelection

from .auxiliary import AuxiliaryDecrypt
from .decryption_share import (
    BallotDecryptionShare,
    CiphertextCompensatedDecryptionContest,
    CiphertextCompensatedDecryptionSelection,
    CiphertextDecryptionContest,
    CiphertextDecryptionSelection,
    CompensatedBallotDecryptionShare,
    CompensatedTallyDecryptionShare,
    TallyDecryptionShare,
    create_ciphertext_decryption_selection,
)
from .election_polynomial import compute_lagrange_coefficient
from .key_ceremony import ElectionPublicKey, ReconstructionError

if TYPE_CHECKING:
    from .guardian import Guardian

logger = logging.getLogger(__name__)

# (object_id, description_hash, selections) with selections exposing
# object_id, description_hash and ciphertext
ContestView = Tuple[str, ElementModQ, list]


def _tally_contests(tally: CiphertextTally) -> List[ContestView]:
    return [
        (contest.object_id, contest.description_hash, list(contest.selections.values()))
        for contest in tally.contests.values()
    ]


def _ballot_contests(ballot: SubmittedBallot) -> List[ContestView]:
    """Contests of a ballot without placeholder selections"""
    return [
        (contest.object_id, contest.description_hash,
         [s for s in contest.ballot_selections if not s.is_placeholder_selection])
        for contest in ballot.contests
    ]


# ============================================================================
# DIRECT SHARES
# ============================================================================


def compute_decryption_share_for_selection(
    guardian: "Guardian", selection, context: CiphertextElectionContext
) -> Optional[CiphertextDecryptionSelection]:
    """Partially decrypt one selection and check the proof before returning it"""
    share, proof = guardian.partially_decrypt(
        selection.ciphertext, context.crypto_extended_base_hash)
    public_key = guardian.share_election_public_key().key

    if not proof.is_valid(selection.ciphertext, public_key, share, context.crypto_extended_base_hash):
        logger.warning(
            f"Guardian {guardian.object_id} produced an invalid share for {selection.object_id}")
        return None

    return create_ciphertext_decryption_selection(
        selection.object_id, guardian.object_id, selection.description_hash, share, proof)


def _compute_contest_shares(
    guardian: "Guardian",
    contests: List[ContestView],
    context: CiphertextElectionContext,
    max_workers: Optional[int] = None,
) -> Optional[Dict[str, CiphertextDecryptionContest]]:
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            contest_id: [
                executor.submit(compute_decryption_share_for_selection, guardian, selection, context)
                for selection in selections
            ]
            for contest_id, _, selections in contests
        }
        results = {contest_id: [f.result() for f in fs] for contest_id, fs in futures.items()}

    decrypted: Dict[str, CiphertextDecryptionContest] = {}
    for contest_id, description_hash, _ in contests:
        shares = results[contest_id]
        if any(s is None for s in shares):
            logger.warning(
                f"Guardian {guardian.object_id} could not compute shares for contest {contest_id}")
            return None
        decrypted[contest_id] = CiphertextDecryptionContest(
            contest_id, guardian.object_id, description_hash, {s.object_id: s for s in shares})
    return decrypted


def compute_decryption_share(
    guardian: "Guardian",
    tally: CiphertextTally,
    context: CiphertextElectionContext,
    max_workers: Optional[int] = None,
) -> Optional[TallyDecryptionShare]:
    """The guardian's share of every selection in the tally"""
    contests = _compute_contest_shares(guardian, _tally_contests(tally), context, max_workers)
    if contests is None:
        return None
    logger.info(f"Guardian {guardian.object_id} computed its tally share")
    return TallyDecryptionShare(
        guardian.object_id, guardian.share_election_public_key().key, contests)


def compute_decryption_share_for_ballot(
    guardian: "Guardian",
    ballot: SubmittedBallot,
    context: CiphertextElectionContext,
    max_workers: Optional[int] = None,
) -> Optional[BallotDecryptionShare]:
    contests = _compute_contest_shares(guardian, _ballot_contests(ballot), context, max_workers)
    if contests is None:
        return None
    return BallotDecryptionShare(
        guardian.object_id, guardian.share_election_public_key().key, ballot.object_id, contests)


def compute_decryption_shares_for_ballots(
    guardian: "Guardian",
    ballots: Iterable[SubmittedBallot],
    context: CiphertextElectionContext,
    max_workers: Optional[int] = None,
) -> Optional[Dict[str, BallotDecryptionShare]]:
    """Shares for every spoiled ballot, or None if any one fails"""
    shares: Dict[str, BallotDecryptionShare] = {}
    for ballot in ballots:
        share = compute_decryption_share_for_ballot(guardian, ballot, context, max_workers)
        if share is None:
            return None
        shares[ballot.object_id] = share
    return shares


# ============================================================================
# COMPENSATED SHARES
# ============================================================================


def compute_compensated_decryption_share_for_selection(
    guardian: "Guardian",
    missing_guardian_id: str,
    selection,
    context: CiphertextElectionContext,
    decrypt: Optional[AuxiliaryDecrypt] = None,
) -> Optional[CiphertextCompensatedDecryptionSelection]:
    """A share for the missing guardian, verified against the recovery key"""
    compensated = guardian.compensate_decrypt(
        missing_guardian_id, selection.ciphertext, context.crypto_extended_base_hash,
        decrypt=decrypt)
    if compensated is None:
        logger.warning(
            f"Guardian {guardian.object_id} could not compensate for "
            f"{missing_guardian_id} on {selection.object_id}")
        return None
    share, proof = compensated

    recovery_key = guardian.recovery_public_key_for(missing_guardian_id)
    if recovery_key is None:
        logger.warning(
            f"Guardian {guardian.object_id} has no public key for missing {missing_guardian_id}")
        return None

    if not proof.is_valid(selection.ciphertext, recovery_key, share, context.crypto_extended_base_hash):
        logger.warning(
            f"Guardian {guardian.object_id} produced an invalid compensated share "
            f"for {missing_guardian_id} on {selection.object_id}")
        return None

    return CiphertextCompensatedDecryptionSelection(
        object_id=selection.object_id,
        guardian_id=guardian.object_id,
        missing_guardian_id=missing_guardian_id,
        description_hash=selection.description_hash,
        share=share,
        recovery_key=recovery_key,
        proof=proof,
    )


def _compute_compensated_contest_shares(
    guardian: "Guardian",
    missing_guardian_id: str,
    contests: List[ContestView],
    context: CiphertextElectionContext,
    decrypt: Optional[AuxiliaryDecrypt] = None,
    max_workers: Optional[int] = None,
) -> Optional[Dict[str, CiphertextCompensatedDecryptionContest]]:
    # decrypt the backup once before fanning out
    if guardian.recovered_coordinate(missing_guardian_id, decrypt) is None:
        return None

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            contest_id: [
                executor.submit(
                    compute_compensated_decryption_share_for_selection,
                    guardian, missing_guardian_id, selection, context, decrypt)
                for selection in selections
            ]
            for contest_id, _, selections in contests
        }
        results = {contest_id: [f.result() for f in fs] for contest_id, fs in futures.items()}

    decrypted: Dict[str, CiphertextCompensatedDecryptionContest] = {}
    for contest_id, description_hash, _ in contests:
        shares = results[contest_id]
        if any(s is None for s in shares):
            return None
        decrypted[contest_id] = CiphertextCompensatedDecryptionContest(
            contest_id, guardian.object_id, missing_guardian_id, description_hash,
            {s.object_id: s for s in shares})
    return decrypted


def compute_compensated_decryption_share(
    guardian: "Guardian",
    missing_guardian_id: str,
    tally: CiphertextTally,
    context: CiphertextElectionContext,
    decrypt: Optional[AuxiliaryDecrypt] = None,
    max_workers: Optional[int] = None,
) -> Optional[CompensatedTallyDecryptionShare]:
    contests = _compute_compensated_contest_shares(
        guardian, missing_guardian_id, _tally_contests(tally), context, decrypt, max_workers)
    if contests is None:
        return None
    logger.info(f"Guardian {guardian.object_id} compensated for {missing_guardian_id}")
    return CompensatedTallyDecryptionShare(
        guardian.object_id, missing_guardian_id, guardian.share_election_public_key().key, contests)


def compute_compensated_decryption_share_for_ballot(
    guardian: "Guardian",
    missing_guardian_id: str,
    ballot: SubmittedBallot,
    context: CiphertextElectionContext,
    decrypt: Optional[AuxiliaryDecrypt] = None,
    max_workers: Optional[int] = None,
) -> Optional[CompensatedBallotDecryptionShare]:
    contests = _compute_compensated_contest_shares(
        guardian, missing_guardian_id, _ballot_contests(ballot), context, decrypt, max_workers)
    if contests is None:
        return None
    return CompensatedBallotDecryptionShare(
        guardian.object_id, missing_guardian_id, guardian.share_election_public_key().key,
        ballot.object_id, contests)


def compute_compensated_decryption_shares_for_ballots(
    guardian: "Guardian",
    missing_guardian_id: str,
    ballots: Iterable[SubmittedBallot],
    context: CiphertextElectionContext,
    decrypt: Optional[AuxiliaryDecrypt] = None,
    max_workers: Optional[int] = None,
) -> Optional[Dict[str, CompensatedBallotDecryptionShare]]:
    shares: Dict[str, CompensatedBallotDecryptionShare] = {}
    for ballot in ballots:
        share = compute_compensated_decryption_share_for_ballot(
            guardian, missing_guardian_id, ballot, context, decrypt, max_workers)
        if share is None:
            return None
        shares[ballot.object_id] = share
    return shares


# ============================================================================
# RECONSTRUCTION
# ============================================================================


def compute_lagrange_coefficients_for_guardians(
    available_guardian_keys: Iterable[ElectionPublicKey],
) -> Dict[str, ElementModQ]:
    """w_l for each available guardian against the orders of all the others"""
    keys = list(available_guardian_keys)
    orders = [k.sequence_order for k in keys]
    return {
        key.owner_id: compute_lagrange_coefficient(
            key.sequence_order, *[o for o in orders if o != key.sequence_order])
        for key in keys
    }


def _reconstruct_contests(
    missing_guardian_id: str,
    contests: List[ContestView],
    shares_by_guardian: Dict[str, Dict[str, CiphertextCompensatedDecryptionContest]],
    lagrange_coefficients: Dict[str, ElementModQ],
) -> Dict[str, CiphertextDecryptionContest]:
    """
    prod_l M_il^w_l for every selection. Raises ReconstructionError when a
    compensated share or coefficient is missing.
    """
    if set(shares_by_guardian) != set(lagrange_coefficients):
        raise ReconstructionError(
            f"{len(shares_by_guardian)} compensated shares for {missing_guardian_id}, "
            f"expected one from each of {len(lagrange_coefficients)} available guardians")

    reconstructed: Dict[str, CiphertextDecryptionContest] = {}
    for contest_id, description_hash, selections in contests:
        decrypted_selections: Dict[str, CiphertextDecryptionSelection] = {}
        for selection in selections:
            parts: Dict[str, CiphertextCompensatedDecryptionSelection] = {}
            for available_id, contest_shares in shares_by_guardian.items():
                contest_share = contest_shares.get(contest_id)
                part = None if contest_share is None else contest_share.selections.get(selection.object_id)
                if part is None:
                    raise ReconstructionError(
                        f"Guardian {available_id} has no compensated share for "
                        f"{missing_guardian_id} on {selection.object_id}")
                parts[available_id] = part

            share = mult_p(*[
                pow_p(part.share, lagrange_coefficients[available_id])
                for available_id, part in parts.items()
            ])
            decrypted_selections[selection.object_id] = create_ciphertext_decryption_selection(
                selection.object_id, missing_guardian_id, selection.description_hash, share, parts)

        reconstructed[contest_id] = CiphertextDecryptionContest(
            contest_id, missing_guardian_id, description_hash, decrypted_selections)
    return reconstructed


def reconstruct_missing_tally_decryption_shares(
    tally: CiphertextTally,
    missing_guardians: Dict[str, ElectionPublicKey],
    compensated_shares: Dict[str, Dict[str, CompensatedTallyDecryptionShare]],
    lagrange_coefficients: Dict[str, ElementModQ],
) -> Optional[Dict[str, TallyDecryptionShare]]:
    """
    Tally shares for each missing guardian.

    :param compensated_shares: missing guardian id -> available guardian id -> share
    """
    reconstructed: Dict[str, TallyDecryptionShare] = {}
    for missing_guardian_id, public_key in missing_guardians.items():
        shares = compensated_shares.get(missing_guardian_id, {})
        try:
            contests = _reconstruct_contests(
                missing_guardian_id,
                _tally_contests(tally),
                {gid: share.contests for gid, share in shares.items()},
                lagrange_coefficients,
            )
        except ReconstructionError as e:
            logger.warning(f"Could not reconstruct tally share: {e}")
            return None
        reconstructed[missing_guardian_id] = TallyDecryptionShare(
            missing_guardian_id, public_key.key, contests)
    return reconstructed


def reconstruct_missing_ballot_decryption_shares(
    ballot: SubmittedBallot,
    missing_guardians: Dict[str, ElectionPublicKey],
    compensated_shares: Dict[str, Dict[str, CompensatedBallotDecryptionShare]],
    lagrange_coefficients: Dict[str, ElementModQ],
) -> Optional[Dict[str, BallotDecryptionShare]]:
    """
    Ballot shares for each missing guardian.

    :param compensated_shares: missing guardian id -> available guardian id -> share of this ballot
    """
    reconstructed: Dict[str, BallotDecryptionShare] = {}
    for missing_guardian_id, public_key in missing_guardians.items():
        shares = compensated_shares.get(missing_guardian_id, {})
        try:
            contests = _reconstruct_contests(
                missing_guardian_id,
                _ballot_contests(ballot),
                {gid: share.contests for gid, share in shares.items()},
                lagrange_coefficients,
            )
        except ReconstructionError as e:
            logger.warning(f"Could not reconstruct share of ballot {ballot.object_id}: {e}")
            return None
        reconstructed[missing_guardian_id] = BallotDecryptionShare(
            missing_guardian_id, public_key.key, ballot.object_id, contests)
    return reconstructed


# ============================================================================
# DECRYPTION WITH SHARES
# ============================================================================


def decrypt_selection_with_decryption_shares(
    object_id: str,
    ciphertext: ElGamalCiphertext,
    shares: Dict[str, Tuple[ElementModP, CiphertextDecryptionSelection]],
    extended_base_hash: ElementModQ,
    suppress_validity_check: bool = False,
) -> Optional[PlaintextTallySelection]:
    """
    Combine one share per guardian into the plaintext.

    :param shares: guardian id -> (guardian public key, share)
    """
    if not shares:
        logger.warning(f"No shares to decrypt {object_id}")
        return None

    if not suppress_validity_check:
        for guardian_id, (public_key, share) in shares.items():
            if not share.is_valid(ciphertext, public_key, extended_base_hash):
                logger.warning(f"Share of {object_id} from guardian {guardian_id} is invalid")
                return None

    all_shares_product = mult_p(*[share.share for _, share in shares.values()])
    value = div_p(ciphertext.data, all_shares_product)
    try:
        tally = ciphertext.decrypt_known_product(all_shares_product)
    except DiscreteLogError as e:
        logger.warning(f"Could not decrypt {object_id}: {e}")
        return None

    return PlaintextTallySelection(
        object_id=object_id,
        tally=tally,
        value=value,
        message=ciphertext,
        shares=[share for _, share in shares.values()],
    )


def _decrypt_contests(
    contests: List[ContestView],
    shares: Dict[str, Tuple[ElementModP, Dict[str, CiphertextDecryptionContest]]],
    extended_base_hash: ElementModQ,
    suppress_validity_check: bool = False,
) -> Optional[Dict[str, PlaintextTallyContest]]:
    plaintext: Dict[str, PlaintextTallyContest] = {}
    for contest_id, _, selections in contests:
        plaintext_selections: Dict[str, PlaintextTallySelection] = {}
        for selection in selections:
            selection_shares: Dict[str, Tuple[ElementModP, CiphertextDecryptionSelection]] = {}
            for guardian_id, (public_key, guardian_contests) in shares.items():
                contest_share = guardian_contests.get(contest_id)
                share = None if contest_share is None else contest_share.selections.get(selection.object_id)
                if share is None:
                    logger.warning(
                        f"Guardian {guardian_id} has no share for {contest_id}/{selection.object_id}")
                    return None
                selection_shares[guardian_id] = (public_key, share)

            decrypted = decrypt_selection_with_decryption_shares(
                selection.object_id, selection.ciphertext, selection_shares,
                extended_base_hash, suppress_validity_check)
            if decrypted is None:
                logger.warning(f"Could not decrypt contest {contest_id}")
                return None
            plaintext_selections[selection.object_id] = decrypted
        plaintext[contest_id] = PlaintextTallyContest(contest_id, plaintext_selections)
    return plaintext


def decrypt_tally_contests_with_decryption_shares(
    tally: CiphertextTally,
    shares: Dict[str, TallyDecryptionShare],
    extended_base_hash: ElementModQ,
    suppress_validity_check: bool = False,
) -> Optional[Dict[str, PlaintextTallyContest]]:
    """Decrypt every contest of the tally given a share from every guardian"""
    return _decrypt_contests(
        _tally_contests(tally),
        {gid: (share.public_key, share.contests) for gid, share in shares.items()},
        extended_base_hash,
        suppress_validity_check,
    )


def decrypt_ballot_contests_with_decryption_shares(
    ballot: SubmittedBallot,
    shares: Dict[str, BallotDecryptionShare],
    extended_base_hash: ElementModQ,
    suppress_validity_check: bool = False,
) -> Optional[Dict[str, PlaintextTallyContest]]:
    """Decrypt a spoiled ballot given a share of it from every guardian"""
    return _decrypt_contests(
        _ballot_contests(ballot),
        {gid: (share.public_key, share.contests) for gid, share in shares.items()},
        extended_base_hash,
        suppress_validity_check,
    )
