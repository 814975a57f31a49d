"""
Deterministic Nonce Sequences
=============================
A keyed pseudo-random sequence of ElementModQ values. The same seed and
index always reproduce the same nonce, so every per-contest and
per-selection nonce can be regenerated from one retained master nonce.
"""

import logging
from typing import List, Sequence, Union

from .group import ElementModQ
from .hash import CryptoHashableAll, hash_elems

logger = logging.getLogger(__name__)


class Nonces(Sequence[ElementModQ]):
    """
    Sequence of nonces derived from a seed and optional headers.

    nonces = Nonces(seed, "header")
    n0 = nonces[0]
    a, b, c = nonces[0:3]
    """

    def __init__(self, seed: ElementModQ, *headers: CryptoHashableAll) -> None:
        if headers:
            self._seed = hash_elems(seed, *headers)
        else:
            self._seed = seed

    @property
    def seed(self) -> ElementModQ:
        return self._seed

    def __getitem__(self, index: Union[int, slice]):
        if isinstance(index, slice):
            if index.stop is None:
                raise IndexError("Nonces cannot be sliced without an upper bound")
            start = index.start or 0
            step = index.step or 1
            return [self.get(i) for i in range(start, index.stop, step)]
        return self.get(index)

    def __len__(self) -> int:
        # the sequence is effectively unbounded
        raise TypeError("Nonces does not have a length")

    def get(self, index: int) -> ElementModQ:
        return self.get_with_headers(index)

    def get_with_headers(self, index: int, *headers: str) -> ElementModQ:
        """Nonce at the given index, optionally bound to extra headers"""
        if index < 0:
            raise IndexError("Nonces do not support negative indices")
        return hash_elems(self._seed, index, *headers)

    def take(self, count: int) -> List[ElementModQ]:
        return self[0:count]
