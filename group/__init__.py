"""Group arithmetic, hashing, nonces and ElGamal for election cryptography."""

from .group import (
    # Constants
    P,
    Q,
    G,
    R,
    Q_MINUS_ONE,

    # Elements
    ElementModP,
    ElementModQ,
    ZERO_MOD_P,
    ONE_MOD_P,
    TWO_MOD_P,
    ZERO_MOD_Q,
    ONE_MOD_Q,
    TWO_MOD_Q,
    G_MOD_P,

    # Arithmetic
    int_to_p,
    int_to_p_unchecked,
    int_to_q,
    int_to_q_unchecked,
    hex_to_q,
    add_q,
    a_minus_b_q,
    a_plus_bc_q,
    negate_q,
    mult_q,
    div_q,
    pow_q,
    mult_p,
    mult_inv_p,
    div_p,
    pow_p,
    g_pow_p,
    rand_q,
    rand_range_q,

    # Exceptions
    GroupError,
    ArithmeticDomainError,
    DiscreteLogError,
)
from .hash import CryptoHashable, CryptoHashCheckable, hash_elems
from .nonces import Nonces
from .dlog import discrete_log, set_discrete_log_max, get_discrete_log_max
from .elgamal import (
    ElGamalKeyPair,
    ElGamalCiphertext,
    elgamal_keypair_from_secret,
    elgamal_keypair_random,
    elgamal_encrypt,
    elgamal_add,
    elgamal_combine_public_keys,
    elgamal_identity,
)

__version__ = "1.0.0"

__all__ = [
    'P', 'Q', 'G', 'R', 'Q_MINUS_ONE',
    'ElementModP', 'ElementModQ',
    'ZERO_MOD_P', 'ONE_MOD_P', 'TWO_MOD_P',
    'ZERO_MOD_Q', 'ONE_MOD_Q', 'TWO_MOD_Q', 'G_MOD_P',
    'int_to_p', 'int_to_p_unchecked', 'int_to_q', 'int_to_q_unchecked', 'hex_to_q',
    'add_q', 'a_minus_b_q', 'a_plus_bc_q', 'negate_q', 'mult_q', 'div_q', 'pow_q',
    'mult_p', 'mult_inv_p', 'div_p', 'pow_p', 'g_pow_p',
    'rand_q', 'rand_range_q',
    'GroupError', 'ArithmeticDomainError', 'DiscreteLogError',
    'CryptoHashable', 'CryptoHashCheckable', 'hash_elems',
    'Nonces',
    'discrete_log', 'set_discrete_log_max', 'get_discrete_log_max',
    'ElGamalKeyPair', 'ElGamalCiphertext',
    'elgamal_keypair_from_secret', 'elgamal_keypair_random',
    'elgamal_encrypt', 'elgamal_add', 'elgamal_combine_public_keys', 'elgamal_identity',
]
