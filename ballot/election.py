"""
Election context: the public parameters every ballot and proof is bound to.
"""

import logging
from dataclasses import dataclass

from group import ElementModP, ElementModQ, G, P, Q, hash_elems

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CiphertextElectionContext:
    """
    Cryptographic context of one election.

    crypto_base_hash binds the group constants, the guardian configuration and
    the manifest. crypto_extended_base_hash additionally binds the guardians'
    commitments and is the hash header for every ballot proof.
    """
    number_of_guardians: int
    quorum: int
    elgamal_public_key: ElementModP
    description_hash: ElementModQ
    crypto_base_hash: ElementModQ
    crypto_extended_base_hash: ElementModQ

    def __post_init__(self):
        if not 1 <= self.quorum <= self.number_of_guardians:
            raise ValueError(
                f"Quorum {self.quorum} must be between 1 and {self.number_of_guardians}")


def make_ciphertext_election_context(
    number_of_guardians: int,
    quorum: int,
    elgamal_public_key: ElementModP,
    description_hash: ElementModQ,
    commitment_hash: ElementModQ,
) -> CiphertextElectionContext:
    """
    Build the context once the key ceremony has published its joint key.

    :param commitment_hash: hash of every guardian's coefficient commitments
    """
    crypto_base_hash = hash_elems(P, Q, G, number_of_guardians, quorum, description_hash)
    crypto_extended_base_hash = hash_elems(crypto_base_hash, commitment_hash)
    logger.info(
        f"Election context ready: {number_of_guardians} guardians, quorum {quorum}")
    return CiphertextElectionContext(
        number_of_guardians=number_of_guardians,
        quorum=quorum,
        elgamal_public_key=elgamal_public_key,
        description_hash=description_hash,
        crypto_base_hash=crypto_base_hash,
        crypto_extended_base_hash=crypto_extended_base_hash,
    )
