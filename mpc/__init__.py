"""Threshold key ceremony and distributed decryption for election guardians."""

from .election_polynomial import (
    ElectionPolynomial,
    generate_polynomial,
    compute_polynomial_coordinate,
    verify_polynomial_coordinate,
    calculate_g_exp_at,
    compute_lagrange_coefficient,
)
from .auxiliary import (
    AuxiliaryKeyPair,
    AuxiliaryPublicKeyRecord,
    generate_auxiliary_key_pair,
    auxiliary_encrypt,
    auxiliary_decrypt,
)
from .key_ceremony import (
    # Records
    CeremonyDetails,
    ElectionKeyPair,
    ElectionPublicKey,
    PublicKeySet,
    GuardianPair,
    ElectionPartialKeyBackup,
    CoefficientValidationSet,
    ElectionPartialKeyVerification,
    ElectionPartialKeyChallenge,
    GuardianRecord,

    # Ceremony operations
    generate_election_key_pair,
    generate_election_partial_key_backup,
    get_coefficient_validation_set,
    verify_election_partial_key_backup,
    generate_election_partial_key_challenge,
    verify_election_partial_key_challenge,
    combine_election_public_keys,
    compute_recovery_public_key,

    # Exceptions
    MPCError,
    KeyCeremonyError,
    ThresholdViolationError,
    ReconstructionError,
    DecryptionError,
)
from .guardian import Guardian
from .key_ceremony_mediator import (
    CeremonyState,
    KeyCeremonyMediator,
    start_ceremony,
    announce_guardian,
    receive_backups,
    receive_verifications,
    receive_challenge,
    receive_challenge_verification,
    all_guardians_announced,
    all_backups_available,
    all_backups_verified,
    publish_joint_key,
)
from .decryption_share import (
    EvidenceKind,
    DirectProof,
    RecoveredParts,
    CiphertextDecryptionSelection,
    CiphertextCompensatedDecryptionSelection,
    CiphertextDecryptionContest,
    CiphertextCompensatedDecryptionContest,
    BallotDecryptionShare,
    CompensatedBallotDecryptionShare,
    TallyDecryptionShare,
    CompensatedTallyDecryptionShare,
    create_ciphertext_decryption_selection,
)
from .decryption import (
    compute_decryption_share,
    compute_decryption_share_for_ballot,
    compute_decryption_share_for_selection,
    compute_compensated_decryption_share,
    compute_compensated_decryption_share_for_ballot,
    compute_compensated_decryption_share_for_selection,
    compute_lagrange_coefficients_for_guardians,
    reconstruct_missing_tally_decryption_shares,
    reconstruct_missing_ballot_decryption_shares,
    decrypt_selection_with_decryption_shares,
    decrypt_tally_contests_with_decryption_shares,
    decrypt_ballot_contests_with_decryption_shares,
)
from .decryption_mediator import DecryptionMediator

__version__ = "1.0.0"

__all__ = [
    # Polynomial
    'ElectionPolynomial', 'generate_polynomial', 'compute_polynomial_coordinate',
    'verify_polynomial_coordinate', 'calculate_g_exp_at', 'compute_lagrange_coefficient',

    # Auxiliary transport
    'AuxiliaryKeyPair', 'AuxiliaryPublicKeyRecord', 'generate_auxiliary_key_pair',
    'auxiliary_encrypt', 'auxiliary_decrypt',

    # Key ceremony
    'CeremonyDetails', 'ElectionKeyPair', 'ElectionPublicKey', 'PublicKeySet', 'GuardianPair',
    'ElectionPartialKeyBackup', 'CoefficientValidationSet', 'ElectionPartialKeyVerification',
    'ElectionPartialKeyChallenge', 'GuardianRecord',
    'generate_election_key_pair', 'generate_election_partial_key_backup',
    'get_coefficient_validation_set', 'verify_election_partial_key_backup',
    'generate_election_partial_key_challenge', 'verify_election_partial_key_challenge',
    'combine_election_public_keys', 'compute_recovery_public_key',
    'Guardian',
    'CeremonyState', 'KeyCeremonyMediator', 'start_ceremony', 'announce_guardian',
    'receive_backups', 'receive_verifications', 'receive_challenge',
    'receive_challenge_verification', 'all_guardians_announced', 'all_backups_available',
    'all_backups_verified', 'publish_joint_key',

    # Decryption
    'EvidenceKind', 'DirectProof', 'RecoveredParts',
    'CiphertextDecryptionSelection', 'CiphertextCompensatedDecryptionSelection',
    'CiphertextDecryptionContest', 'CiphertextCompensatedDecryptionContest',
    'BallotDecryptionShare', 'CompensatedBallotDecryptionShare',
    'TallyDecryptionShare', 'CompensatedTallyDecryptionShare',
    'create_ciphertext_decryption_selection',
    'compute_decryption_share', 'compute_decryption_share_for_ballot',
    'compute_decryption_share_for_selection',
    'compute_compensated_decryption_share', 'compute_compensated_decryption_share_for_ballot',
    'compute_compensated_decryption_share_for_selection',
    'compute_lagrange_coefficients_for_guardians',
    'reconstruct_missing_tally_decryption_shares', 'reconstruct_missing_ballot_decryption_shares',
    'decrypt_selection_with_decryption_shares',
    'decrypt_tally_contests_with_decryption_shares',
    'decrypt_ballot_contests_with_decryption_shares',
    'DecryptionMediator',

    # Exceptions
    'MPCError', 'KeyCeremonyError', 'ThresholdViolationError', 'ReconstructionError',
    'DecryptionError',
]
