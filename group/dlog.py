"""
Bounded Discrete Log Recovery
=============================
Plaintexts in this system are small non-negative counts, so g^m can be
inverted with a baby-step giant-step search up to a fixed maximum.
The baby-step table is built once per bound and shared across threads.
"""

import logging
import math
import threading
from typing import Dict, Optional

from gmpy2 import invert, mpz, powmod

from .group import G, P, DiscreteLogError, ElementModP

logger = logging.getLogger(__name__)

# Matches the bound on constants in ConstantChaumPedersenProof
DEFAULT_DISCRETE_LOG_MAX = 1_000_000_000

_lock = threading.Lock()
_max_exponent = DEFAULT_DISCRETE_LOG_MAX
_baby_steps: Optional[Dict[int, int]] = None
_giant_factor = None
_table_size = 0


def set_discrete_log_max(max_exponent: int) -> None:
    """Change the largest exponent discrete_log will search for"""
    global _max_exponent, _baby_steps, _giant_factor, _table_size
    if max_exponent < 1:
        raise ValueError(f"Discrete log maximum must be positive: {max_exponent}")
    with _lock:
        _max_exponent = max_exponent
        _baby_steps = None
        _giant_factor = None
        _table_size = 0
    logger.info(f"Discrete log maximum set to {max_exponent}")


def get_discrete_log_max() -> int:
    return _max_exponent


def _ensure_table() -> None:
    """Build g^j -> j for j in [0, m) with m = isqrt(max) + 1. Caller holds the lock"""
    global _baby_steps, _giant_factor, _table_size
    if _baby_steps is not None:
        return

    m = math.isqrt(_max_exponent) + 1
    g = mpz(G)
    p = mpz(P)

    baby: Dict[int, int] = {}
    cur = mpz(1)
    for j in range(m):
        baby[int(cur)] = j
        cur = (cur * g) % p

    # g^(-m) steps the target down by m exponents per giant step
    _giant_factor = invert(powmod(g, m, p), p)
    _baby_steps = baby
    _table_size = m
    logger.debug(f"Built discrete log baby-step table with {m} entries")


def discrete_log(element: ElementModP) -> int:
    """
    Find m in [0, max] with g^m == element.

    Raises DiscreteLogError when no such m exists within the bound.
    """
    value = element.to_int()
    if value == 1:
        return 0

    with _lock:
        _ensure_table()
        baby = _baby_steps
        factor = _giant_factor
        m = _table_size
        bound = _max_exponent

    p = mpz(P)
    gamma = mpz(value)
    for i in range(math.ceil(bound / m) + 1):
        j = baby.get(int(gamma))
        if j is not None:
            k = i * m + j
            if k <= bound:
                return k
            break
        gamma = (gamma * factor) % p

    raise DiscreteLogError(f"No discrete log found within bound {bound}")
