"""Schnorr and Chaum-Pedersen proofs, and the single verification entry point."""

import logging

import pytest

from group import (
    ElementModQ,
    TWO_MOD_Q,
    elgamal_add,
    elgamal_encrypt,
    elgamal_keypair_random,
    add_q,
    hash_elems,
    rand_q,
    rand_range_q,
)
from zk import (
    ProofType,
    ProofVerificationError,
    make_chaum_pedersen,
    make_constant_chaum_pedersen,
    make_disjunctive_chaum_pedersen,
    make_schnorr_proof,
    verify_proof,
)

logger = logging.getLogger(__name__)


@pytest.fixture(scope="module")
def keypair():
    return elgamal_keypair_random()


@pytest.fixture(scope="module")
def extended_hash():
    return hash_elems("extended-base-hash")


# ============================================================================
# SCHNORR
# ============================================================================


class TestSchnorr:

    def test_valid_proof(self, keypair):
        proof = make_schnorr_proof(keypair, rand_q())
        assert proof.proof_type is ProofType.SCHNORR
        assert proof.is_valid()
        assert verify_proof(proof)

    def test_proof_for_other_key_fails(self, keypair):
        other = elgamal_keypair_random()
        proof = make_schnorr_proof(keypair, rand_q())
        forged = type(proof)(other.public_key, proof.commitment, proof.challenge, proof.response)
        assert not forged.is_valid()


# ============================================================================
# DISJUNCTIVE
# ============================================================================


class TestDisjunctive:

    @pytest.mark.parametrize("plaintext", [0, 1])
    def test_valid_for_zero_and_one(self, keypair, extended_hash, plaintext):
        nonce = rand_range_q(TWO_MOD_Q)
        ciphertext = elgamal_encrypt(plaintext, nonce, keypair.public_key)
        proof = make_disjunctive_chaum_pedersen(
            ciphertext, nonce, keypair.public_key, extended_hash, rand_q(), plaintext)
        assert proof.is_valid(ciphertext, keypair.public_key, extended_hash)
        assert verify_proof(proof, ciphertext, keypair.public_key, extended_hash)

    def test_plaintext_two_is_rejected(self, keypair, extended_hash):
        nonce = rand_range_q(TWO_MOD_Q)
        ciphertext = elgamal_encrypt(2, nonce, keypair.public_key)
        assert make_disjunctive_chaum_pedersen(
            ciphertext, nonce, keypair.public_key, extended_hash, rand_q(), 2) is None

    def test_lying_proof_fails(self, keypair, extended_hash):
        nonce = rand_range_q(TWO_MOD_Q)
        ciphertext = elgamal_encrypt(1, nonce, keypair.public_key)
        # claims zero for a ciphertext of one
        proof = make_disjunctive_chaum_pedersen(
            ciphertext, nonce, keypair.public_key, extended_hash, rand_q(), 0)
        assert not proof.is_valid(ciphertext, keypair.public_key, extended_hash)

    def test_wrong_hash_header_fails(self, keypair, extended_hash):
        nonce = rand_range_q(TWO_MOD_Q)
        ciphertext = elgamal_encrypt(0, nonce, keypair.public_key)
        proof = make_disjunctive_chaum_pedersen(
            ciphertext, nonce, keypair.public_key, extended_hash, rand_q(), 0)
        assert not proof.is_valid(ciphertext, keypair.public_key, hash_elems("other"))


# ============================================================================
# CONSTANT
# ============================================================================


class TestConstant:

    def test_sum_of_selections(self, keypair, extended_hash):
        nonces = [rand_range_q(TWO_MOD_Q) for _ in range(3)]
        ciphertexts = [
            elgamal_encrypt(m, r, keypair.public_key) for m, r in zip((1, 0, 1), nonces)]
        total = elgamal_add(*ciphertexts)
        aggregate = add_q(*nonces)

        proof = make_constant_chaum_pedersen(
            total, 2, aggregate, keypair.public_key, rand_q(), extended_hash)
        assert proof.is_valid(total, keypair.public_key, extended_hash)

    def test_wrong_constant_fails(self, keypair, extended_hash):
        nonce = rand_range_q(TWO_MOD_Q)
        ciphertext = elgamal_encrypt(1, nonce, keypair.public_key)
        proof = make_constant_chaum_pedersen(
            ciphertext, 2, nonce, keypair.public_key, rand_q(), extended_hash)
        assert not proof.is_valid(ciphertext, keypair.public_key, extended_hash)


# ============================================================================
# DECRYPTION SHARE PROOF
# ============================================================================


class TestChaumPedersen:

    def test_share_proof(self, keypair, extended_hash):
        ciphertext = elgamal_encrypt(3, rand_range_q(TWO_MOD_Q), keypair.public_key)
        share = ciphertext.partial_decrypt(keypair.secret_key)
        proof = make_chaum_pedersen(ciphertext, keypair.secret_key, share, rand_q(), extended_hash)

        assert proof.is_valid(ciphertext, keypair.public_key, share, extended_hash)
        assert verify_proof(proof, ciphertext, keypair.public_key, extended_hash, share)

    def test_wrong_share_fails(self, keypair, extended_hash):
        ciphertext = elgamal_encrypt(3, rand_range_q(TWO_MOD_Q), keypair.public_key)
        share = ciphertext.partial_decrypt(keypair.secret_key)
        wrong = ciphertext.partial_decrypt(ElementModQ(12345))
        proof = make_chaum_pedersen(ciphertext, keypair.secret_key, share, rand_q(), extended_hash)
        assert not proof.is_valid(ciphertext, keypair.public_key, wrong, extended_hash)

    def test_missing_inputs_raise(self, keypair, extended_hash):
        ciphertext = elgamal_encrypt(3, rand_range_q(TWO_MOD_Q), keypair.public_key)
        share = ciphertext.partial_decrypt(keypair.secret_key)
        proof = make_chaum_pedersen(ciphertext, keypair.secret_key, share, rand_q(), extended_hash)
        with pytest.raises(ProofVerificationError):
            verify_proof(proof, ciphertext, keypair.public_key, extended_hash)
        with pytest.raises(ProofVerificationError):
            verify_proof(proof)
