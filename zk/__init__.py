"""
Zero-Knowledge Proof Module for Election Cryptography
Schnorr and Chaum-Pedersen sigma proofs with Fiat-Shamir challenges
"""

from .zk_proofs import (
    # Proofs
    SchnorrProof,
    ChaumPedersenProof,
    DisjunctiveChaumPedersenProof,
    ConstantChaumPedersenProof,
    Proof,
    ProofType,
    ProofUsage,

    # Construction and verification
    make_schnorr_proof,
    make_chaum_pedersen,
    make_disjunctive_chaum_pedersen,
    make_disjunctive_chaum_pedersen_zero,
    make_disjunctive_chaum_pedersen_one,
    make_constant_chaum_pedersen,
    verify_proof,

    # Exceptions
    ZKError,
    ProofVerificationError,
)

__version__ = "1.0.0"

__all__ = [
    # Proofs
    'SchnorrProof',
    'ChaumPedersenProof',
    'DisjunctiveChaumPedersenProof',
    'ConstantChaumPedersenProof',
    'Proof',
    'ProofType',
    'ProofUsage',

    # Functions
    'make_schnorr_proof',
    'make_chaum_pedersen',
    'make_disjunctive_chaum_pedersen',
    'make_disjunctive_chaum_pedersen_zero',
    'make_disjunctive_chaum_pedersen_one',
    'make_constant_chaum_pedersen',
    'verify_proof',

    # Exceptions
    'ZKError',
    'ProofVerificationError',
]
