"""Secret-sharing polynomials, commitments and Lagrange interpolation."""

import logging

import pytest

from group import ElementModQ, Q, add_q, g_pow_p, mult_q
from mpc import (
    calculate_g_exp_at,
    compute_lagrange_coefficient,
    compute_polynomial_coordinate,
    generate_polynomial,
    verify_polynomial_coordinate,
)

logger = logging.getLogger(__name__)


class TestPolynomial:

    def test_generated_polynomial_is_valid(self):
        polynomial = generate_polynomial(3)
        assert polynomial.degree == 2
        assert len(polynomial.coefficient_commitments) == 3
        assert polynomial.is_valid()
        assert polynomial.coefficient_commitments[0] == g_pow_p(polynomial.coefficients[0])

    def test_nonce_makes_polynomial_reproducible(self):
        nonce = ElementModQ(1000)
        first = generate_polynomial(2, nonce)
        second = generate_polynomial(2, nonce)
        assert first.coefficients == second.coefficients

    def test_zero_coefficients_rejected(self):
        with pytest.raises(ValueError):
            generate_polynomial(0)

    def test_coordinate_matches_direct_evaluation(self):
        polynomial = generate_polynomial(3)
        a0, a1, a2 = polynomial.coefficients
        x = 4
        expected = add_q(a0, mult_q(a1, x), mult_q(a2, x * x))
        assert compute_polynomial_coordinate(x, polynomial) == expected

    def test_coordinate_verifies_against_commitments(self):
        polynomial = generate_polynomial(3)
        coordinate = compute_polynomial_coordinate(5, polynomial)
        assert verify_polynomial_coordinate(coordinate, 5, polynomial.coefficient_commitments)
        assert not verify_polynomial_coordinate(coordinate, 6, polynomial.coefficient_commitments)
        assert calculate_g_exp_at(5, polynomial.coefficient_commitments) == g_pow_p(coordinate)


class TestLagrange:

    def test_interpolation_recovers_secret(self):
        polynomial = generate_polynomial(3)
        secret = polynomial.coefficients[0]
        available = [1, 3, 5]

        total = ElementModQ(0)
        for x in available:
            others = [j for j in available if j != x]
            w = compute_lagrange_coefficient(x, *others)
            total = add_q(total, mult_q(w, compute_polynomial_coordinate(x, polynomial)))
        assert total == secret

    def test_known_coefficients(self):
        # for {1, 2}: w_1 = 2 / (2 - 1) = 2, w_2 = 1 / (1 - 2) = -1
        assert compute_lagrange_coefficient(1, 2) == ElementModQ(2)
        assert compute_lagrange_coefficient(2, 1) == ElementModQ(Q - 1)

    def test_duplicate_coordinate_rejected(self):
        with pytest.raises(ValueError):
            compute_lagrange_coefficient(2, 2, 3)
