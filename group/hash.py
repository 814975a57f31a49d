"""
Hashing of Heterogeneous Element Sequences
==========================================
Order-sensitive SHA-256 hashing of numbers, strings, group elements and
nested sequences into an ElementModQ. This is the random oracle used for
every Fiat-Shamir challenge and for the ballot and key hash chains.
"""

import hashlib
import logging
from abc import abstractmethod
from typing import Iterable, Protocol, Union, runtime_checkable

from .group import ElementModP, ElementModQ, Q_MINUS_ONE

logger = logging.getLogger(__name__)


@runtime_checkable
class CryptoHashable(Protocol):
    """Anything that can summarise itself as a single ElementModQ"""

    @abstractmethod
    def crypto_hash(self) -> ElementModQ:
        ...


@runtime_checkable
class CryptoHashCheckable(Protocol):
    """Anything whose hash is bound to an external seed, e.g. a description hash"""

    @abstractmethod
    def crypto_hash_with(self, seed_hash: ElementModQ) -> ElementModQ:
        ...


CryptoHashableT = Union[CryptoHashable, ElementModP, ElementModQ, str, int, None]
CryptoHashableAll = Union[Iterable[CryptoHashableT], CryptoHashableT]


def _hash_me(x) -> str:
    if x is None:
        return "null"
    if isinstance(x, (ElementModP, ElementModQ)):
        return x.to_hex()
    if isinstance(x, CryptoHashable):
        return x.crypto_hash().to_hex()
    # strings are iterable, so they are handled before sequences
    if isinstance(x, str):
        return x
    if isinstance(x, (list, tuple, set, frozenset)) or (
            hasattr(x, "__iter__") and not isinstance(x, (bytes, dict))):
        items = list(x)
        if not items:
            return "null"
        return hash_elems(*items).to_hex()
    return str(x)


def hash_elems(*a: CryptoHashableAll) -> ElementModQ:
    """
    Hash any number of elements, in order, into an ElementModQ.

    Each element contributes its string form followed by "|". None and
    empty sequences contribute "null", so an absent value never collides
    with an omitted one. Nested sequences are hashed recursively and
    contribute the hex of that hash.
    """
    h = hashlib.sha256()
    h.update("|".encode("utf-8"))

    if not a:
        h.update("null|".encode("utf-8"))

    for x in a:
        h.update((_hash_me(x) + "|").encode("utf-8"))

    return ElementModQ(int.from_bytes(h.digest(), byteorder="big") % Q_MINUS_ONE)
