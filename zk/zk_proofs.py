"""
Zero-Knowledge Proof System for Election Cryptography
=====================================================
Non-interactive sigma proofs over ElGamal ciphertexts and key material:
- Schnorr proof of knowledge of a secret key or polynomial coefficient
- Chaum-Pedersen proof that a partial decryption used the right secret
- Disjunctive Chaum-Pedersen proof that a selection encrypts 0 or 1
- Constant Chaum-Pedersen proof that a contest total encrypts a known constant

All challenges are Fiat-Shamir hashes. Verification only needs public values.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Union

from group import (
    ElGamalCiphertext,
    ElGamalKeyPair,
    ElementModP,
    ElementModQ,
    Nonces,
    a_minus_b_q,
    a_plus_bc_q,
    add_q,
    g_pow_p,
    hash_elems,
    int_to_q,
    mult_p,
    mult_q,
    negate_q,
    pow_p,
)

logger = logging.getLogger(__name__)

# Constants above this bound would make the final discrete log intractable
MAX_PROOF_CONSTANT = 1_000_000_000

DISJUNCTIVE_HEADER = "disjoint-chaum-pedersen-proof"
CONSTANT_HEADER = "constant-chaum-pedersen-proof"

# ============================================================================
# EXCEPTIONS AND ENUMS
# ============================================================================


class ZKError(Exception):
    """Base exception for ZK operations"""
    pass


class ProofVerificationError(ZKError):
    """Raised when a proof cannot be checked, e.g. required public inputs are missing"""
    pass


class ProofType(Enum):
    """Tag carried by every proof, used by verify_proof to pick the check"""
    SCHNORR = "schnorr"
    CHAUM_PEDERSEN = "chaum_pedersen"
    DISJUNCTIVE_CHAUM_PEDERSEN = "disjunctive_chaum_pedersen"
    CONSTANT_CHAUM_PEDERSEN = "constant_chaum_pedersen"


class ProofUsage(Enum):
    """What a proof is attesting to"""
    SECRET_VALUE = "Prove knowledge of secret value"
    SELECTION_LIMIT = "Prove value within selection's limit"
    SELECTION_VALUE = "Prove selection's value (0 or 1)"


def _log_failure(name: str, checks: Dict[str, bool]) -> None:
    failed = [k for k, ok in checks.items() if not ok]
    logger.warning(f"Found an invalid {name}: failed checks {failed}")


# ============================================================================
# SCHNORR PROOF
# ============================================================================


@dataclass(frozen=True)
class SchnorrProof:
    """Proof of knowledge of the secret exponent behind public_key"""
    public_key: ElementModP
    commitment: ElementModP
    challenge: ElementModQ
    response: ElementModQ
    proof_type: ProofType = field(default=ProofType.SCHNORR, init=False)
    usage: ProofUsage = field(default=ProofUsage.SECRET_VALUE, init=False)

    def is_valid(self) -> bool:
        """Check c == H(k, h) and g^u == h * k^c"""
        k = self.public_key
        h = self.commitment
        u = self.response
        checks = {
            "valid_public_key": k.is_valid_residue(),
            "in_bounds_h": h.is_in_bounds(),
            "in_bounds_u": u.is_in_bounds(),
            "valid_challenge": self.challenge == hash_elems(k, h),
            "valid_response": g_pow_p(u) == mult_p(h, pow_p(k, self.challenge)),
        }
        success = all(checks.values())
        if not success:
            _log_failure("Schnorr proof", checks)
        return success


def make_schnorr_proof(keypair: ElGamalKeyPair, nonce: ElementModQ) -> SchnorrProof:
    """Prove knowledge of keypair.secret_key with the given nonce"""
    k = keypair.public_key
    h = g_pow_p(nonce)
    c = hash_elems(k, h)
    u = a_plus_bc_q(nonce, keypair.secret_key, c)
    return SchnorrProof(k, h, c, u)


# ============================================================================
# GENERIC CHAUM-PEDERSEN PROOF (DECRYPTION SHARES)
# ============================================================================


@dataclass(frozen=True)
class ChaumPedersenProof:
    """
    Proof that m = alpha^s for the same s with k = g^s.
    Used to show a partial decryption share was made with a guardian's key.
    """
    pad: ElementModP
    data: ElementModP
    challenge: ElementModQ
    response: ElementModQ
    proof_type: ProofType = field(default=ProofType.CHAUM_PEDERSEN, init=False)
    usage: ProofUsage = field(default=ProofUsage.SECRET_VALUE, init=False)

    def is_valid(self, message: ElGamalCiphertext, k: ElementModP,
                 m: ElementModP, q: ElementModQ) -> bool:
        """
        :param message: the ciphertext being partially decrypted
        :param k: public key the share is claimed against
        :param m: the partial decryption share
        :param q: extended base hash of the election
        """
        alpha = message.pad
        beta = message.data
        a = self.pad
        b = self.data
        c = self.challenge
        v = self.response

        in_bounds_c = c.is_in_bounds()
        in_bounds_v = v.is_in_bounds()
        checks = {
            "in_bounds_alpha": alpha.is_valid_residue(),
            "in_bounds_beta": beta.is_valid_residue(),
            "in_bounds_k": k.is_valid_residue(),
            "in_bounds_m": m.is_valid_residue(),
            "in_bounds_a": a.is_valid_residue(),
            "in_bounds_b": b.is_valid_residue(),
            "in_bounds_c": in_bounds_c,
            "in_bounds_v": in_bounds_v,
            "in_bounds_q": q.is_in_bounds(),
            "same_c": c == hash_elems(q, alpha, beta, a, b, m),
            "consistent_gv": g_pow_p(v) == mult_p(a, pow_p(k, c)),
            "consistent_av": pow_p(alpha, v) == mult_p(b, pow_p(m, c)),
        }
        success = all(checks.values())
        if not success:
            _log_failure("Chaum-Pedersen proof", checks)
        return success


def make_chaum_pedersen(
    message: ElGamalCiphertext,
    s: ElementModQ,
    m: ElementModP,
    seed: ElementModQ,
    hash_header: ElementModQ,
) -> ChaumPedersenProof:
    """
    Prove that m = message.pad^s for the secret s behind g^s.

    :param message: ciphertext being partially decrypted
    :param s: the secret (or recovered coordinate) used
    :param m: the resulting share
    :param seed: nonce seed for the proof
    :param hash_header: extended base hash of the election
    """
    alpha = message.pad
    beta = message.data

    u = Nonces(seed, CONSTANT_HEADER).get(0)
    a = g_pow_p(u)
    b = pow_p(alpha, u)
    c = hash_elems(hash_header, alpha, beta, a, b, m)
    v = a_plus_bc_q(u, c, s)

    return ChaumPedersenProof(a, b, c, v)


# ============================================================================
# DISJUNCTIVE CHAUM-PEDERSEN PROOF (SELECTION IS 0 OR 1)
# ============================================================================


@dataclass(frozen=True)
class DisjunctiveChaumPedersenProof:
    """
    Proof that a ciphertext encrypts either zero or one. One branch is real
    and the other simulated. Branch challenges sum to the Fiat-Shamir hash.
    """
    proof_zero_pad: ElementModP
    proof_zero_data: ElementModP
    proof_one_pad: ElementModP
    proof_one_data: ElementModP
    proof_zero_challenge: ElementModQ
    proof_one_challenge: ElementModQ
    challenge: ElementModQ
    proof_zero_response: ElementModQ
    proof_one_response: ElementModQ
    proof_type: ProofType = field(default=ProofType.DISJUNCTIVE_CHAUM_PEDERSEN, init=False)
    usage: ProofUsage = field(default=ProofUsage.SELECTION_VALUE, init=False)

    def is_valid(self, message: ElGamalCiphertext, k: ElementModP, q: ElementModQ) -> bool:
        """
        :param message: the selection ciphertext
        :param k: the election public key
        :param q: extended base hash of the election
        """
        alpha = message.pad
        beta = message.data
        a0 = self.proof_zero_pad
        b0 = self.proof_zero_data
        a1 = self.proof_one_pad
        b1 = self.proof_one_data
        c0 = self.proof_zero_challenge
        c1 = self.proof_one_challenge
        c = self.challenge
        v0 = self.proof_zero_response
        v1 = self.proof_one_response

        checks = {
            "in_bounds_alpha": alpha.is_valid_residue(),
            "in_bounds_beta": beta.is_valid_residue(),
            "in_bounds_a0": a0.is_valid_residue(),
            "in_bounds_b0": b0.is_valid_residue(),
            "in_bounds_a1": a1.is_valid_residue(),
            "in_bounds_b1": b1.is_valid_residue(),
            "in_bounds_c0": c0.is_in_bounds(),
            "in_bounds_c1": c1.is_in_bounds(),
            "in_bounds_v0": v0.is_in_bounds(),
            "in_bounds_v1": v1.is_in_bounds(),
            "consistent_c": add_q(c0, c1) == c
            and c == hash_elems(q, alpha, beta, a0, b0, a1, b1),
            "consistent_gv0": g_pow_p(v0) == mult_p(a0, pow_p(alpha, c0)),
            "consistent_gv1": g_pow_p(v1) == mult_p(a1, pow_p(alpha, c1)),
            "consistent_kv0": pow_p(k, v0) == mult_p(b0, pow_p(beta, c0)),
            "consistent_gc1kv1": mult_p(g_pow_p(c1), pow_p(k, v1))
            == mult_p(b1, pow_p(beta, c1)),
        }
        success = all(checks.values())
        if not success:
            _log_failure("disjunctive Chaum-Pedersen proof", checks)
        return success


def make_disjunctive_chaum_pedersen(
    message: ElGamalCiphertext,
    r: ElementModQ,
    k: ElementModP,
    q: ElementModQ,
    seed: ElementModQ,
    plaintext: int,
) -> Optional[DisjunctiveChaumPedersenProof]:
    """
    Prove that message encrypts plaintext, which must be 0 or 1.
    Returns None for any other plaintext.

    :param message: ciphertext of the selection
    :param r: nonce used to encrypt it
    :param k: the election public key
    :param q: extended base hash of the election
    :param seed: nonce seed for the proof
    :param plaintext: 0 or 1
    """
    if plaintext == 0:
        return make_disjunctive_chaum_pedersen_zero(message, r, k, q, seed)
    if plaintext == 1:
        return make_disjunctive_chaum_pedersen_one(message, r, k, q, seed)
    logger.warning(f"Disjunctive Chaum-Pedersen only supports 0 or 1, got {plaintext}")
    return None


def make_disjunctive_chaum_pedersen_zero(
    message: ElGamalCiphertext,
    r: ElementModQ,
    k: ElementModP,
    q: ElementModQ,
    seed: ElementModQ,
) -> DisjunctiveChaumPedersenProof:
    """Real branch is zero, the one branch is simulated from a chosen c1 and v"""
    alpha = message.pad
    beta = message.data

    c1, v, u0 = Nonces(seed, DISJUNCTIVE_HEADER)[0:3]

    a0 = g_pow_p(u0)
    b0 = pow_p(k, u0)
    a1 = g_pow_p(v)
    b1 = mult_p(pow_p(k, v), g_pow_p(c1))
    c = hash_elems(q, alpha, beta, a0, b0, a1, b1)
    c0 = a_minus_b_q(c, c1)
    v0 = a_plus_bc_q(u0, c0, r)
    v1 = a_plus_bc_q(v, c1, r)

    return DisjunctiveChaumPedersenProof(a0, b0, a1, b1, c0, c1, c, v0, v1)


def make_disjunctive_chaum_pedersen_one(
    message: ElGamalCiphertext,
    r: ElementModQ,
    k: ElementModP,
    q: ElementModQ,
    seed: ElementModQ,
) -> DisjunctiveChaumPedersenProof:
    """Real branch is one, the zero branch is simulated from a chosen w and v"""
    alpha = message.pad
    beta = message.data

    w, v, u1 = Nonces(seed, DISJUNCTIVE_HEADER)[0:3]

    a0 = g_pow_p(v)
    b0 = mult_p(pow_p(k, v), g_pow_p(w))
    a1 = g_pow_p(u1)
    b1 = pow_p(k, u1)
    c = hash_elems(q, alpha, beta, a0, b0, a1, b1)
    c0 = negate_q(w)
    c1 = add_q(c, w)
    v0 = a_plus_bc_q(v, c0, r)
    v1 = a_plus_bc_q(u1, c1, r)

    return DisjunctiveChaumPedersenProof(a0, b0, a1, b1, c0, c1, c, v0, v1)


# ============================================================================
# CONSTANT CHAUM-PEDERSEN PROOF (CONTEST TOTAL)
# ============================================================================


@dataclass(frozen=True)
class ConstantChaumPedersenProof:
    """Proof that an accumulated ciphertext encrypts exactly `constant`"""
    pad: ElementModP
    data: ElementModP
    challenge: ElementModQ
    response: ElementModQ
    constant: int
    proof_type: ProofType = field(default=ProofType.CONSTANT_CHAUM_PEDERSEN, init=False)
    usage: ProofUsage = field(default=ProofUsage.SELECTION_LIMIT, init=False)

    def is_valid(self, message: ElGamalCiphertext, k: ElementModP, q: ElementModQ) -> bool:
        """
        :param message: the contest's accumulated ciphertext
        :param k: the election public key
        :param q: extended base hash of the election
        """
        alpha = message.pad
        beta = message.data
        a = self.pad
        b = self.data
        c = self.challenge
        v = self.response
        constant = self.constant

        constant_q = int_to_q(constant) if isinstance(constant, int) else None
        in_bounds_constant = constant_q is not None
        sane_constant = in_bounds_constant and 0 <= constant < MAX_PROOF_CONSTANT

        checks = {
            "in_bounds_alpha": alpha.is_valid_residue(),
            "in_bounds_beta": beta.is_valid_residue(),
            "in_bounds_a": a.is_valid_residue(),
            "in_bounds_b": b.is_valid_residue(),
            "in_bounds_c": c.is_in_bounds(),
            "in_bounds_v": v.is_in_bounds(),
            "in_bounds_constant": in_bounds_constant,
            "sane_constant": sane_constant,
            "same_c": c == hash_elems(q, alpha, beta, a, b),
            "consistent_gv": g_pow_p(v) == mult_p(a, pow_p(alpha, c)),
        }
        if sane_constant:
            checks["consistent_kv"] = (
                mult_p(g_pow_p(mult_q(c, constant_q)), pow_p(k, v))
                == mult_p(b, pow_p(beta, c)))
        else:
            checks["consistent_kv"] = False

        success = all(checks.values())
        if not success:
            _log_failure("constant Chaum-Pedersen proof", checks)
        return success


def make_constant_chaum_pedersen(
    message: ElGamalCiphertext,
    constant: int,
    r: ElementModQ,
    k: ElementModP,
    seed: ElementModQ,
    hash_header: ElementModQ,
) -> ConstantChaumPedersenProof:
    """
    Prove that message encrypts `constant`, given the aggregate nonce r.

    :param message: accumulated ciphertext of a contest
    :param constant: the plaintext, normally the contest's number elected
    :param r: aggregate nonce of all selections in the contest
    :param k: the election public key
    :param seed: nonce seed for the proof
    :param hash_header: extended base hash of the election
    """
    alpha = message.pad
    beta = message.data

    u = Nonces(seed, CONSTANT_HEADER).get(0)
    a = g_pow_p(u)
    b = pow_p(k, u)
    c = hash_elems(hash_header, alpha, beta, a, b)
    v = a_plus_bc_q(u, c, r)

    return ConstantChaumPedersenProof(a, b, c, v, constant)


# ============================================================================
# TAGGED UNION AND SINGLE VERIFICATION ENTRY POINT
# ============================================================================

Proof = Union[
    SchnorrProof,
    ChaumPedersenProof,
    DisjunctiveChaumPedersenProof,
    ConstantChaumPedersenProof,
]


def verify_proof(
    proof: Proof,
    ciphertext: Optional[ElGamalCiphertext] = None,
    public_key: Optional[ElementModP] = None,
    extended_hash: Optional[ElementModQ] = None,
    share: Optional[ElementModP] = None,
) -> bool:
    """
    Verify any proof by dispatching on its tag.

    Schnorr proofs carry everything they need. The Chaum-Pedersen family
    needs the ciphertext, the public key and the extended base hash, and
    the generic one also needs the partial decryption share.
    Raises ProofVerificationError when a required public input is missing.
    """
    tag = proof.proof_type

    if tag is ProofType.SCHNORR:
        return proof.is_valid()

    if ciphertext is None or public_key is None or extended_hash is None:
        raise ProofVerificationError(
            f"{tag.value} proof needs a ciphertext, public key and extended hash")

    if tag is ProofType.CHAUM_PEDERSEN:
        if share is None:
            raise ProofVerificationError("chaum_pedersen proof needs the decryption share")
        return proof.is_valid(ciphertext, public_key, share, extended_hash)
    if tag is ProofType.DISJUNCTIVE_CHAUM_PEDERSEN:
        return proof.is_valid(ciphertext, public_key, extended_hash)
    if tag is ProofType.CONSTANT_CHAUM_PEDERSEN:
        return proof.is_valid(ciphertext, public_key, extended_hash)

    raise ProofVerificationError(f"Unknown proof type: {tag}")
