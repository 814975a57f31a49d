"""
Tally Module
Homomorphic accumulation of cast ballots and the decrypted tally
"""

from .tally import (
    # Ciphertext
    SelectionAccumulator,
    CiphertextTallySelection,
    CiphertextTallyContest,
    CiphertextTally,
    CiphertextTallyBuilder,

    # Plaintext
    PlaintextTallySelection,
    PlaintextTallyContest,
    PlaintextTally,
    GuardianState,
)

__version__ = "1.0.0"

__all__ = [
    'SelectionAccumulator',
    'CiphertextTallySelection',
    'CiphertextTallyContest',
    'CiphertextTally',
    'CiphertextTallyBuilder',
    'PlaintextTallySelection',
    'PlaintextTallyContest',
    'PlaintextTally',
    'GuardianState',
]
