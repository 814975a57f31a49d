"""Exponential ElGamal encryption, homomorphic addition and partial decryption."""

import logging

import pytest

from group import (
    ElementModQ,
    ONE_MOD_P,
    ZERO_MOD_Q,
    elgamal_add,
    elgamal_combine_public_keys,
    elgamal_encrypt,
    elgamal_identity,
    elgamal_keypair_from_secret,
    elgamal_keypair_random,
    mult_p,
    rand_range_q,
    TWO_MOD_Q,
)

logger = logging.getLogger(__name__)


class TestElGamal:

    def test_keypair_from_secret_rejects_small_secrets(self):
        assert elgamal_keypair_from_secret(ElementModQ(0)) is None
        assert elgamal_keypair_from_secret(ElementModQ(1)) is None
        assert elgamal_keypair_from_secret(ElementModQ(2)) is not None

    def test_encrypt_decrypt(self):
        keypair = elgamal_keypair_random()
        nonce = rand_range_q(TWO_MOD_Q)
        for m in (0, 1, 42):
            ciphertext = elgamal_encrypt(m, nonce, keypair.public_key)
            assert ciphertext.decrypt(keypair.secret_key) == m
            assert ciphertext.decrypt_known_nonce(keypair.public_key, nonce) == m

    def test_zero_nonce_is_rejected(self):
        keypair = elgamal_keypair_random()
        assert elgamal_encrypt(1, ZERO_MOD_Q, keypair.public_key) is None

    def test_negative_message_is_rejected(self):
        keypair = elgamal_keypair_random()
        assert elgamal_encrypt(-1, ElementModQ(5), keypair.public_key) is None

    def test_homomorphic_addition(self):
        keypair = elgamal_keypair_random()
        ciphertexts = [
            elgamal_encrypt(m, rand_range_q(TWO_MOD_Q), keypair.public_key)
            for m in (1, 0, 1, 1, 0)
        ]
        assert elgamal_add(*ciphertexts).decrypt(keypair.secret_key) == 3

    def test_identity_is_neutral(self):
        keypair = elgamal_keypair_random()
        ciphertext = elgamal_encrypt(5, ElementModQ(77), keypair.public_key)
        assert elgamal_add(elgamal_identity(), ciphertext) == ciphertext
        assert elgamal_identity().pad == ONE_MOD_P

    def test_add_requires_a_ciphertext(self):
        with pytest.raises(ValueError):
            elgamal_add()

    def test_partial_decryptions_combine(self):
        keypairs = [elgamal_keypair_random() for _ in range(3)]
        joint_key = elgamal_combine_public_keys(k.public_key for k in keypairs)
        ciphertext = elgamal_encrypt(7, rand_range_q(TWO_MOD_Q), joint_key)

        product = mult_p(*[ciphertext.partial_decrypt(k.secret_key) for k in keypairs])
        assert ciphertext.decrypt_known_product(product) == 7
