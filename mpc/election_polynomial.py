"""
Election Polynomial (Shamir Secret Sharing over Z_Q)
====================================================
Each guardian holds a secret polynomial of degree quorum - 1. The constant
term is the guardian's election secret key. Public commitments g^a_j let
anyone check a coordinate without learning the polynomial.
Scalar field arithmetic goes through galois.GF(Q).
"""

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional, Sequence

import galois

from group import (
    ElGamalKeyPair,
    ElementModP,
    ElementModQ,
    ONE_MOD_P,
    Q,
    TWO_MOD_Q,
    add_q,
    g_pow_p,
    int_to_q_unchecked,
    mult_p,
    pow_p,
    rand_q,
    rand_range_q,
)
from zk import SchnorrProof, make_schnorr_proof

logger = logging.getLogger(__name__)

# galois needs a primitive element to build GF(Q) without factoring Q - 1.
# Only field addition, multiplication and division are used here and none
# of them depend on it.
_GF_Q_PRIMITIVE_ELEMENT = 7


@lru_cache(maxsize=1)
def scalar_field():
    """The prime field GF(Q), built once"""
    logger.debug("Initializing GF(Q) for polynomial arithmetic")
    return galois.GF(Q, primitive_element=_GF_Q_PRIMITIVE_ELEMENT, verify=False)


# ============================================================================
# DATA STRUCTURES
# ============================================================================


@dataclass(frozen=True)
class ElectionPolynomial:
    """A guardian's secret polynomial with its public commitments and proofs"""
    coefficients: List[ElementModQ]
    coefficient_commitments: List[ElementModP]
    coefficient_proofs: List[SchnorrProof] = field(default_factory=list)

    def __post_init__(self):
        if len(self.coefficients) != len(self.coefficient_commitments):
            raise ValueError("Polynomial needs one commitment per coefficient")
        if self.coefficient_proofs and len(self.coefficient_proofs) != len(self.coefficients):
            raise ValueError("Polynomial needs one proof per coefficient")

    @property
    def degree(self) -> int:
        return len(self.coefficients) - 1

    def value_at(self, exponent_modifier: int) -> ElementModQ:
        return compute_polynomial_coordinate(exponent_modifier, self)

    def is_valid(self) -> bool:
        """Every commitment matches its coefficient and every proof verifies"""
        for coefficient, commitment, proof in zip(
                self.coefficients, self.coefficient_commitments, self.coefficient_proofs):
            if g_pow_p(coefficient) != commitment:
                return False
            if proof.public_key != commitment or not proof.is_valid():
                return False
        return True


# ============================================================================
# POLYNOMIAL OPERATIONS
# ============================================================================


def generate_polynomial(
    number_of_coefficients: int, nonce: Optional[ElementModQ] = None
) -> ElectionPolynomial:
    """
    Generate a polynomial with the given number of coefficients (the quorum).

    With a nonce the coefficients are nonce + i, which makes tests
    reproducible. Otherwise each coefficient is uniformly random in [2, Q).
    """
    if number_of_coefficients < 1:
        raise ValueError(f"Polynomial needs at least one coefficient: {number_of_coefficients}")

    coefficients: List[ElementModQ] = []
    commitments: List[ElementModP] = []
    proofs: List[SchnorrProof] = []

    for i in range(number_of_coefficients):
        if nonce is None:
            coefficient = rand_range_q(TWO_MOD_Q)
        else:
            coefficient = add_q(nonce, i)
        commitment = g_pow_p(coefficient)
        proof = make_schnorr_proof(ElGamalKeyPair(coefficient, commitment), rand_q())

        coefficients.append(coefficient)
        commitments.append(commitment)
        proofs.append(proof)

    return ElectionPolynomial(coefficients, commitments, proofs)


def compute_polynomial_coordinate(
    exponent_modifier: int, polynomial: ElectionPolynomial
) -> ElementModQ:
    """Evaluate the polynomial at x = exponent_modifier (a guardian sequence order) by Horner's rule"""
    GF = scalar_field()
    x = GF(exponent_modifier % Q)

    value = GF(0)
    for coefficient in reversed(polynomial.coefficients):
        value = value * x + GF(coefficient.to_int())

    return int_to_q_unchecked(int(value))


def verify_polynomial_coordinate(
    coordinate: ElementModQ,
    exponent_modifier: int,
    coefficient_commitments: Sequence[ElementModP],
) -> bool:
    """Check g^coordinate == prod_j commitment_j^(x^j) without knowing the coefficients"""
    return g_pow_p(coordinate) == calculate_g_exp_at(exponent_modifier, coefficient_commitments)


def calculate_g_exp_at(
    exponent_modifier: int, coefficient_commitments: Sequence[ElementModP]
) -> ElementModP:
    """prod_j commitment_j^(x^j), i.e. g raised to the polynomial evaluated at x"""
    GF = scalar_field()
    x = GF(exponent_modifier % Q)

    result = ONE_MOD_P
    x_power = GF(1)
    for commitment in coefficient_commitments:
        result = mult_p(result, pow_p(commitment, int(x_power)))
        x_power = x_power * x
    return result


def compute_lagrange_coefficient(coordinate: int, *degrees: int) -> ElementModQ:
    """
    Lagrange coefficient at x = 0 for `coordinate` against the other available
    coordinates: prod_j x_j / (x_j - coordinate) mod Q.
    """
    GF = scalar_field()
    x_l = GF(coordinate % Q)

    numerator = GF(1)
    denominator = GF(1)
    for degree in degrees:
        x_j = GF(degree % Q)
        numerator = numerator * x_j
        denominator = denominator * (x_j - x_l)

    if int(denominator) == 0:
        raise ValueError(f"Duplicate coordinate {coordinate} in Lagrange interpolation")

    return int_to_q_unchecked(int(numerator / denominator))
