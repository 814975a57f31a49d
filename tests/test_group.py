"""Group arithmetic, hashing, nonces and discrete log."""

import logging

import pytest

from group import (
    G,
    P,
    Q,
    ArithmeticDomainError,
    DiscreteLogError,
    ElementModP,
    ElementModQ,
    Nonces,
    ONE_MOD_P,
    ZERO_MOD_Q,
    a_minus_b_q,
    a_plus_bc_q,
    add_q,
    discrete_log,
    div_p,
    div_q,
    g_pow_p,
    get_discrete_log_max,
    hash_elems,
    int_to_p,
    int_to_q,
    int_to_q_unchecked,
    mult_inv_p,
    mult_p,
    mult_q,
    negate_q,
    pow_p,
    rand_q,
    rand_range_q,
    set_discrete_log_max,
)

logger = logging.getLogger(__name__)


# ============================================================================
# ELEMENTS AND ARITHMETIC
# ============================================================================


class TestElements:

    def test_constants(self):
        assert Q == 2 ** 256 - 189
        assert P.bit_length() == 4096
        assert pow(G, Q, P) == 1

    def test_out_of_range_construction_raises(self):
        with pytest.raises(ArithmeticDomainError):
            ElementModQ(Q)
        with pytest.raises(ArithmeticDomainError):
            ElementModQ(-1)
        with pytest.raises(ArithmeticDomainError):
            ElementModP(P)

    def test_checked_conversions(self):
        assert int_to_q(Q) is None
        assert int_to_q(-5) is None
        assert int_to_q(5) == ElementModQ(5)
        assert int_to_p(P + 1) is None
        assert int_to_q_unchecked(Q + 3) == ElementModQ(3)

    def test_hex_is_uppercase_and_even_length(self):
        assert ElementModQ(10).to_hex() == "0A"
        assert ElementModQ(255).to_hex() == "FF"
        assert len(ElementModQ(4096).to_hex()) % 2 == 0

    def test_q_arithmetic(self):
        a, b, c = ElementModQ(Q - 1), ElementModQ(5), ElementModQ(7)
        assert add_q(a, b) == ElementModQ(4)
        assert a_minus_b_q(b, c) == ElementModQ(Q - 2)
        assert a_plus_bc_q(a, b, c) == ElementModQ(34)
        assert negate_q(ZERO_MOD_Q) == ZERO_MOD_Q
        assert mult_q(div_q(b, c), c) == b

    def test_p_arithmetic(self):
        x = g_pow_p(ElementModQ(12345))
        assert mult_p(x, mult_inv_p(x)) == ONE_MOD_P
        assert div_p(x, x) == ONE_MOD_P
        assert pow_p(x, ElementModQ(0)) == ONE_MOD_P

    def test_group_elements_are_valid_residues(self):
        assert g_pow_p(rand_q()).is_valid_residue()
        assert not ElementModP(0).is_valid_residue()
        # P - 1 has order 2, so it lies outside the order-Q subgroup
        assert not ElementModP(P - 1).is_valid_residue()

    def test_rand_range_q_respects_lower_bound(self):
        for _ in range(20):
            assert rand_range_q(ElementModQ(Q - 3)).to_int() >= Q - 3


# ============================================================================
# HASHING AND NONCES
# ============================================================================


class TestHashing:

    def test_hash_is_deterministic_and_order_sensitive(self):
        assert hash_elems("a", 1, ElementModQ(2)) == hash_elems("a", 1, ElementModQ(2))
        assert hash_elems("a", "b") != hash_elems("b", "a")

    def test_none_and_empty_sequence_hash_alike(self):
        assert hash_elems(None) == hash_elems([])
        assert hash_elems("x", None) == hash_elems("x", [])

    def test_nested_sequences_hash_recursively(self):
        assert hash_elems(["a", "b"]) == hash_elems(hash_elems("a", "b"))

    def test_hash_is_below_q_minus_one(self):
        assert hash_elems("anything").to_int() < Q - 1


class TestNonces:

    def test_same_seed_same_sequence(self):
        seed = ElementModQ(99)
        assert Nonces(seed, "header")[3] == Nonces(seed, "header")[3]
        assert Nonces(seed, "header")[3] != Nonces(seed, "other")[3]

    def test_slicing_returns_list(self):
        nonces = Nonces(ElementModQ(1))
        values = nonces[0:4]
        assert isinstance(values, list)
        assert values == [nonces[i] for i in range(4)]
        assert len(set(values)) == 4

    def test_negative_index_raises(self):
        with pytest.raises(IndexError):
            Nonces(ElementModQ(1)).get(-1)

    def test_headers_change_value(self):
        nonces = Nonces(ElementModQ(7))
        assert nonces.get_with_headers(0, "x") != nonces.get(0)


# ============================================================================
# DISCRETE LOG
# ============================================================================


class TestDiscreteLog:

    def test_small_exponents(self):
        for m in (0, 1, 2, 17, 1000, 123456):
            assert discrete_log(g_pow_p(ElementModQ(m))) == m

    def test_bound_is_enforced(self):
        previous = get_discrete_log_max()
        try:
            set_discrete_log_max(100)
            assert discrete_log(g_pow_p(ElementModQ(100))) == 100
            with pytest.raises(DiscreteLogError):
                discrete_log(g_pow_p(ElementModQ(101)))
        finally:
            set_discrete_log_max(previous)

    def test_invalid_bound_rejected(self):
        with pytest.raises(ValueError):
            set_discrete_log_max(0)
