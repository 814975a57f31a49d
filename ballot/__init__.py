"""
Ballot Module
Election manifest interface, ballots, encryption and the ballot box
"""

from .manifest import (
    # Descriptions
    VoteVariationType,
    GeopoliticalUnit,
    Candidate,
    SelectionDescription,
    ContestDescription,
    BallotStyle,
    Manifest,

    # Placeholders
    ContestWithPlaceholders,
    InternalManifest,
    generate_placeholder_selection_from,
    generate_placeholder_selections_from,
    contest_description_with_placeholders_from,
)
from .election import CiphertextElectionContext, make_ciphertext_election_context
from .ballot import (
    # Ballots
    PlaintextBallotSelection,
    PlaintextBallotContest,
    PlaintextBallot,
    CiphertextBallotSelection,
    CiphertextBallotContest,
    CiphertextBallot,
    SubmittedBallot,
    BallotBoxState,
    make_ciphertext_ballot_selection,
    make_ciphertext_ballot_contest,
    make_ciphertext_ballot,
    from_ciphertext_ballot,

    # Exceptions
    BallotError,
    InvalidBallotError,
)
from .tracker import get_hash_for_device, get_rotating_tracker_hash, tracker_hash_to_code
from .encrypt import (
    EncryptionDevice,
    EncryptionMediator,
    selection_from,
    contest_from,
    encrypt_selection,
    encrypt_contest,
    encrypt_ballot,
)
from .ballot_box import BallotBox, ballot_is_valid_for_election, ballot_is_valid_for_style
from .decrypt_with_secrets import (
    decrypt_selection_with_secret,
    decrypt_selection_with_nonce,
    decrypt_contest_with_secret,
    decrypt_contest_with_nonce,
    decrypt_ballot_with_secret,
    decrypt_ballot_with_nonce,
)

__version__ = "1.0.0"

__all__ = [
    # Manifest
    'VoteVariationType', 'GeopoliticalUnit', 'Candidate',
    'SelectionDescription', 'ContestDescription', 'BallotStyle', 'Manifest',
    'ContestWithPlaceholders', 'InternalManifest',
    'generate_placeholder_selection_from', 'generate_placeholder_selections_from',
    'contest_description_with_placeholders_from',

    # Context
    'CiphertextElectionContext', 'make_ciphertext_election_context',

    # Ballots
    'PlaintextBallotSelection', 'PlaintextBallotContest', 'PlaintextBallot',
    'CiphertextBallotSelection', 'CiphertextBallotContest', 'CiphertextBallot',
    'SubmittedBallot', 'BallotBoxState',
    'make_ciphertext_ballot_selection', 'make_ciphertext_ballot_contest',
    'make_ciphertext_ballot', 'from_ciphertext_ballot',
    'BallotError', 'InvalidBallotError',

    # Tracking
    'get_hash_for_device', 'get_rotating_tracker_hash', 'tracker_hash_to_code',

    # Encryption
    'EncryptionDevice', 'EncryptionMediator',
    'selection_from', 'contest_from',
    'encrypt_selection', 'encrypt_contest', 'encrypt_ballot',

    # Ballot box
    'BallotBox', 'ballot_is_valid_for_election', 'ballot_is_valid_for_style',

    # Decryption with secrets
    'decrypt_selection_with_secret', 'decrypt_selection_with_nonce',
    'decrypt_contest_with_secret', 'decrypt_contest_with_nonce',
    'decrypt_ballot_with_secret', 'decrypt_ballot_with_nonce',
]
