"""
Exponential ElGamal over the Order-Q Subgroup
=============================================
Ciphertexts are (g^r, g^m * K^r), so multiplying two ciphertexts adds
their plaintexts. Decryption divides out the blinding factor and recovers
m with a bounded discrete log.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .dlog import discrete_log
from .group import (
    ElementModP,
    ElementModQ,
    ONE_MOD_P,
    TWO_MOD_Q,
    div_p,
    g_pow_p,
    int_to_q,
    mult_p,
    pow_p,
    rand_range_q,
)
from .hash import hash_elems

logger = logging.getLogger(__name__)

ElGamalSecretKey = ElementModQ
ElGamalPublicKey = ElementModP


@dataclass(frozen=True)
class ElGamalKeyPair:
    """A secret exponent in [2, Q) and its public key g^secret"""
    secret_key: ElGamalSecretKey
    public_key: ElGamalPublicKey


@dataclass(frozen=True)
class ElGamalCiphertext:
    """An encrypted non-negative integer"""
    pad: ElementModP
    data: ElementModP

    def decrypt_known_product(self, product: ElementModP) -> int:
        """
        Decrypt given the blinding factor K^r (equivalently pad^s).
        Raises DiscreteLogError if the plaintext is beyond the search bound.
        """
        return discrete_log(div_p(self.data, product))

    def decrypt(self, secret_key: ElGamalSecretKey) -> int:
        return self.decrypt_known_product(pow_p(self.pad, secret_key))

    def decrypt_known_nonce(self, public_key: ElGamalPublicKey, nonce: ElementModQ) -> int:
        return self.decrypt_known_product(pow_p(public_key, nonce))

    def partial_decrypt(self, secret_key: ElGamalSecretKey) -> ElementModP:
        """One guardian's share of the blinding factor, pad^secret"""
        return pow_p(self.pad, secret_key)

    def crypto_hash(self) -> ElementModQ:
        return hash_elems(self.pad, self.data)


def elgamal_keypair_from_secret(a: ElementModQ) -> Optional[ElGamalKeyPair]:
    """Key pair for the given secret, or None when the secret is below 2"""
    if a.to_int() < 2:
        logger.warning("ElGamal secret key must be in [2, Q)")
        return None
    return ElGamalKeyPair(a, g_pow_p(a))


def elgamal_keypair_random() -> ElGamalKeyPair:
    secret = rand_range_q(TWO_MOD_Q)
    return ElGamalKeyPair(secret, g_pow_p(secret))


def elgamal_encrypt(
    m: int, nonce: ElementModQ, public_key: ElGamalPublicKey
) -> Optional[ElGamalCiphertext]:
    """
    Encrypt a non-negative integer m with the given nonce.
    Returns None when the nonce is zero or m is not a valid exponent.
    """
    if nonce.to_int() == 0:
        logger.warning("ElGamal encryption requires a non-zero nonce")
        return None
    message = int_to_q(m)
    if message is None:
        logger.warning(f"ElGamal plaintext out of range: {m}")
        return None
    pad = g_pow_p(nonce)
    gpowm = g_pow_p(message)
    blinding = pow_p(public_key, nonce)
    return ElGamalCiphertext(pad, mult_p(gpowm, blinding))


def elgamal_add(*ciphertexts: ElGamalCiphertext) -> ElGamalCiphertext:
    """Homomorphic sum, componentwise multiplication of pads and datas"""
    if not ciphertexts:
        raise ValueError("elgamal_add requires at least one ciphertext")
    pad = ONE_MOD_P
    data = ONE_MOD_P
    for c in ciphertexts:
        pad = mult_p(pad, c.pad)
        data = mult_p(data, c.data)
    return ElGamalCiphertext(pad, data)


def elgamal_combine_public_keys(keys: Iterable[ElGamalPublicKey]) -> ElGamalPublicKey:
    """Joint key for a set of guardians, the product of their public keys"""
    return mult_p(*keys)


def elgamal_identity() -> ElGamalCiphertext:
    """(1, 1), the starting point for accumulation"""
    return ElGamalCiphertext(ONE_MOD_P, ONE_MOD_P)
