"""Key ceremony: guardians, pure phase functions and the mediator."""

import logging

import pytest

from group import ElementModQ, g_pow_p, hash_elems
from mpc import (
    CeremonyDetails,
    Guardian,
    KeyCeremonyError,
    KeyCeremonyMediator,
    announce_guardian,
    auxiliary_decrypt,
    auxiliary_encrypt,
    combine_election_public_keys,
    compute_polynomial_coordinate,
    compute_recovery_public_key,
    generate_auxiliary_key_pair,
    generate_election_key_pair,
    publish_joint_key,
    start_ceremony,
    verify_election_partial_key_challenge,
)

logger = logging.getLogger(__name__)


def make_guardians(n: int, k: int):
    return [Guardian(f"guardian-{i}", i, n, k) for i in range(1, n + 1)]


# ============================================================================
# KEYS AND TRANSPORT
# ============================================================================


class TestElectionKeys:

    def test_key_pair_heads_its_polynomial(self):
        keys = generate_election_key_pair("guardian-1", 1, 3)
        assert keys.key_pair.public_key == keys.polynomial.coefficient_commitments[0]
        assert keys.proof.is_valid()
        assert keys.share().is_valid()

    @pytest.mark.parametrize("sequence_order", [0, 256])
    def test_sequence_order_out_of_range(self, sequence_order):
        with pytest.raises(KeyCeremonyError):
            generate_election_key_pair("guardian-x", sequence_order, 2)

    def test_auxiliary_round_trip(self):
        keys = generate_auxiliary_key_pair()
        message = ElementModQ(2 ** 255 + 12345).to_hex()
        assert auxiliary_decrypt(auxiliary_encrypt(message, keys.public_key), keys.secret_key) == message

    def test_auxiliary_decrypt_with_wrong_key_is_none(self):
        sender, other = generate_auxiliary_key_pair(), generate_auxiliary_key_pair()
        encrypted = auxiliary_encrypt("ABCD", sender.public_key)
        assert auxiliary_decrypt(encrypted, other.secret_key) is None


# ============================================================================
# PHASE FUNCTIONS
# ============================================================================


class TestPhaseFunctions:

    def test_duplicate_announcement_raises(self):
        guardian = Guardian("guardian-1", 1, 2, 2)
        state, outgoing = announce_guardian(
            start_ceremony(CeremonyDetails(2, 2)), guardian.share_public_keys())
        assert outgoing == []
        with pytest.raises(KeyCeremonyError):
            announce_guardian(state, guardian.share_public_keys())

    def test_reused_sequence_order_raises(self):
        first = Guardian("guardian-a", 1, 2, 2)
        second = Guardian("guardian-b", 1, 2, 2)
        state, _ = announce_guardian(start_ceremony(CeremonyDetails(2, 2)), first.share_public_keys())
        with pytest.raises(KeyCeremonyError):
            announce_guardian(state, second.share_public_keys())

    def test_wrong_quorum_raises(self):
        guardian = Guardian("guardian-1", 1, 3, 3)
        with pytest.raises(KeyCeremonyError):
            announce_guardian(start_ceremony(CeremonyDetails(3, 2)), guardian.share_public_keys())

    def test_last_announcement_shares_every_key_set(self):
        guardians = make_guardians(2, 1)
        state = start_ceremony(CeremonyDetails(2, 1))
        state, outgoing = announce_guardian(state, guardians[0].share_public_keys())
        assert outgoing == []
        state, outgoing = announce_guardian(state, guardians[1].share_public_keys())
        assert {s.owner_id for s in outgoing} == {"guardian-1", "guardian-2"}
        # announced but not verified
        assert publish_joint_key(state) is None


# ============================================================================
# MEDIATOR
# ============================================================================


class TestKeyCeremonyMediator:

    def test_full_ceremony(self, ceremony_3_of_2):
        guardians, joint_key, _ = ceremony_3_of_2
        assert joint_key == combine_election_public_keys(
            g.share_election_public_key() for g in guardians)
        for guardian in guardians:
            assert guardian.publish_joint_key() == joint_key
            assert guardian.all_election_partial_key_backups_received()

    def test_backups_reconstruct_the_secret(self, ceremony_3_of_2):
        guardians, _, _ = ceremony_3_of_2
        owner = guardians[0]
        for holder in guardians[1:]:
            coordinate = holder.recovered_coordinate(owner.object_id)
            expected = compute_polynomial_coordinate(
                holder.sequence_order, owner.election_keys.polynomial)
            assert coordinate == expected
            assert g_pow_p(coordinate) == compute_recovery_public_key(
                holder.sequence_order, owner.share_election_public_key())

    def test_announce_twice_rejected(self):
        mediator = KeyCeremonyMediator("mediator", CeremonyDetails(2, 2))
        guardian = Guardian("guardian-1", 1, 2, 2)
        assert mediator.announce(guardian)
        assert not mediator.announce(guardian)

    def test_orchestrate_before_attendance(self):
        mediator = KeyCeremonyMediator("mediator", CeremonyDetails(2, 2))
        mediator.announce(Guardian("guardian-1", 1, 2, 2))
        assert not mediator.all_guardians_in_attendance()
        assert mediator.orchestrate() is None
        assert mediator.publish_joint_key() is None

    def test_single_guardian(self):
        mediator = KeyCeremonyMediator("mediator", CeremonyDetails(1, 1))
        guardian = Guardian("solo", 1, 1, 1)
        assert mediator.announce(guardian)
        assert mediator.orchestrate() is not None
        assert mediator.verify()
        assert mediator.publish_joint_key() == guardian.share_election_public_key().key

    def test_failed_backup_resolved_by_challenge(self):
        guardians = make_guardians(3, 2)
        mediator = KeyCeremonyMediator("mediator", CeremonyDetails(3, 2))
        for guardian in guardians:
            assert mediator.announce(guardian)
        assert mediator.orchestrate() is not None

        target_secret = guardians[2].auxiliary_keys.secret_key

        def garbling_decrypt(encrypted, secret_key):
            if secret_key == target_secret:
                return hash_elems("garbage").to_hex()
            return auxiliary_decrypt(encrypted, secret_key)

        assert not mediator.verify(garbling_decrypt)
        failed = mediator.share_failed_partial_key_verifications()
        assert {pair.designated_id for pair in failed} == {"guardian-3"}
        assert mediator.publish_joint_key() is None

        assert mediator.resolve_challenges()
        assert mediator.share_failed_partial_key_verifications() == []
        assert mediator.publish_joint_key() is not None

    def test_challenge_with_wrong_value_fails(self, ceremony_3_of_2):
        guardians, _, _ = ceremony_3_of_2
        challenge = guardians[0].publish_election_backup_challenge("guardian-2")
        assert verify_election_partial_key_challenge("guardian-3", challenge).verified

        forged = type(challenge)(
            challenge.owner_id, challenge.designated_id, challenge.designated_sequence_order,
            ElementModQ(42), challenge.coefficient_commitments, challenge.coefficient_proofs)
        assert not verify_election_partial_key_challenge("guardian-3", forged).verified

    def test_reset_starts_over(self):
        mediator = KeyCeremonyMediator("mediator", CeremonyDetails(2, 2))
        mediator.announce(Guardian("guardian-1", 1, 2, 2))
        mediator.reset(CeremonyDetails(3, 2))
        assert mediator.ceremony_details == CeremonyDetails(3, 2)
        assert mediator.state.public_key_sets == {}
