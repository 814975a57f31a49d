"""Ballot encryption, placeholders, tracking hashes and the ballot box."""

import dataclasses
import logging

import pytest

from ballot import (
    BallotBox,
    BallotBoxState,
    EncryptionMediator,
    InvalidBallotError,
    PlaintextBallot,
    PlaintextBallotContest,
    PlaintextBallotSelection,
    ballot_is_valid_for_election,
    decrypt_ballot_with_nonce,
    decrypt_ballot_with_secret,
    encrypt_ballot,
    get_rotating_tracker_hash,
    tracker_hash_to_code,
)
from group import ElementModQ, add_q, hash_elems

from conftest import make_ballot

logger = logging.getLogger(__name__)

SEED_HASH = hash_elems("device")
TIMESTAMP = 1_793_000_000


def selection_values(plaintext: PlaintextBallot):
    return {
        contest.object_id: {s.object_id: s.vote for s in contest.ballot_selections}
        for contest in plaintext.contests
    }


# ============================================================================
# PLAINTEXT VALIDATION
# ============================================================================


class TestPlaintextValidation:

    def test_vote_must_be_zero_or_one(self):
        with pytest.raises(InvalidBallotError):
            PlaintextBallotSelection("race-alice", 2).validate("race-alice")
        with pytest.raises(InvalidBallotError):
            PlaintextBallotSelection("race-alice", True).validate("race-alice")
        assert not PlaintextBallotSelection("race-alice", 1).is_valid("race-bob")

    def test_overvote_is_invalid(self):
        contest = PlaintextBallotContest("race", [
            PlaintextBallotSelection("race-alice", 1), PlaintextBallotSelection("race-bob", 1)])
        assert not contest.is_valid("race", 2, 1, 1)

    def test_too_many_selections_is_invalid(self):
        contest = PlaintextBallotContest("race", [
            PlaintextBallotSelection(f"s-{i}", 0) for i in range(3)])
        assert not contest.is_valid("race", 2, 1, 1)


# ============================================================================
# ENCRYPTION
# ============================================================================


class TestEncryptBallot:

    def test_encrypted_ballot_is_valid(self, internal_manifest, context):
        encrypted = encrypt_ballot(
            make_ballot("b-1", [1, 0], [1, 0, 1]), internal_manifest, context, SEED_HASH)
        assert encrypted is not None
        assert encrypted.is_valid_encryption(
            internal_manifest.manifest_hash, context.elgamal_public_key,
            context.crypto_extended_base_hash)
        assert ballot_is_valid_for_election(encrypted, internal_manifest, context)

    def test_placeholders_are_appended(self, internal_manifest, context):
        encrypted = encrypt_ballot(
            make_ballot("b-2", [0, 1], [0, 0, 1]), internal_manifest, context, SEED_HASH)
        contests = {c.object_id: c for c in encrypted.contests}
        race = [s for s in contests["race"].ballot_selections]
        council = [s for s in contests["council"].ballot_selections]

        assert len(race) == 3
        assert [s.is_placeholder_selection for s in race] == [False, False, True]
        assert len(council) == 5
        assert sum(s.is_placeholder_selection for s in council) == 2
        assert race[2].object_id == "race-2-placeholder"

    def test_undervote_marks_placeholder(self, internal_manifest, context):
        # 1-of-2 race left blank: the placeholder carries the vote
        nonce = ElementModQ(777)
        encrypted = encrypt_ballot(
            make_ballot("b-3", [0, 0], [1, 0, 0]), internal_manifest, context, SEED_HASH, nonce)
        decrypted = decrypt_ballot_with_nonce(
            encrypted, internal_manifest, context.crypto_extended_base_hash,
            context.elgamal_public_key, nonce, remove_placeholders=False)
        values = selection_values(decrypted)

        assert values["race"] == {"race-alice": 0, "race-bob": 0, "race-2-placeholder": 1}
        assert sum(values["council"].values()) == 2
        assert values["council"]["council-carol"] == 1

    def test_decrypt_with_joint_secret(self, internal_manifest, context, ceremony_3_of_2):
        secret = add_q(*[g.election_keys.key_pair.secret_key for g in ceremony_3_of_2.guardians])
        plaintext = make_ballot("b-4", [1, 0], [0, 1, 1])
        encrypted = encrypt_ballot(plaintext, internal_manifest, context, SEED_HASH)
        decrypted = decrypt_ballot_with_secret(
            encrypted, internal_manifest, context.crypto_extended_base_hash,
            context.elgamal_public_key, secret)
        assert selection_values(decrypted) == selection_values(plaintext)

    def test_omitted_contest_is_encrypted_blank(self, internal_manifest, context):
        plaintext = PlaintextBallot("b-5", "style-1", [
            PlaintextBallotContest("race", [PlaintextBallotSelection("race-bob", 1)])])
        encrypted = encrypt_ballot(plaintext, internal_manifest, context, SEED_HASH)
        assert {c.object_id for c in encrypted.contests} == {"race", "council"}

        decrypted = decrypt_ballot_with_nonce(
            encrypted, internal_manifest, context.crypto_extended_base_hash,
            context.elgamal_public_key)
        values = selection_values(decrypted)
        assert values["council"] == {"council-carol": 0, "council-dave": 0, "council-erin": 0}
        assert values["race"] == {"race-alice": 0, "race-bob": 1}

    def test_same_nonce_and_timestamp_reproduce_ballot(self, internal_manifest, context):
        plaintext = make_ballot("b-6", [1, 0], [1, 1, 0])
        nonce = ElementModQ(31337)
        first = encrypt_ballot(
            plaintext, internal_manifest, context, SEED_HASH, nonce, timestamp=TIMESTAMP)
        second = encrypt_ballot(
            plaintext, internal_manifest, context, SEED_HASH, nonce, timestamp=TIMESTAMP)

        assert first.crypto_hash == second.crypto_hash
        assert first.tracking_hash == second.tracking_hash
        assert first.tracking_hash == get_rotating_tracker_hash(
            "b-6", SEED_HASH, first.contest_hashes, TIMESTAMP)

    @pytest.mark.parametrize("race,council", [
        ([1, 1], [0, 0, 0]),
        ([0, 0], [1, 1, 1]),
        ([2, 0], [0, 0, 0]),
    ])
    def test_invalid_ballots_are_rejected(self, internal_manifest, context, race, council):
        assert encrypt_ballot(
            make_ballot("bad", race, council), internal_manifest, context, SEED_HASH) is None

    def test_unknown_style_is_rejected(self, internal_manifest, context):
        plaintext = PlaintextBallot("b-7", "no-such-style", [])
        assert encrypt_ballot(plaintext, internal_manifest, context, SEED_HASH) is None

    def test_unknown_selection_is_rejected(self, internal_manifest, context):
        plaintext = PlaintextBallot("b-8", "style-1", [
            PlaintextBallotContest("race", [PlaintextBallotSelection("race-zed", 1)])])
        assert encrypt_ballot(plaintext, internal_manifest, context, SEED_HASH) is None

    def test_contest_outside_style_is_rejected(self, internal_manifest, context):
        plaintext = PlaintextBallot("b-9", "style-1", [PlaintextBallotContest("senate", [])])
        assert encrypt_ballot(plaintext, internal_manifest, context, SEED_HASH) is None


class TestEncryptionMediator:

    def test_tracking_hashes_chain(self, internal_manifest, context, device):
        mediator = EncryptionMediator(internal_manifest, context, device)
        assert mediator.tracking_hash == device.get_hash()

        first = mediator.encrypt(make_ballot("m-1", [1, 0], [1, 0, 0]))
        second = mediator.encrypt(make_ballot("m-2", [0, 1], [0, 1, 0]))

        assert first.previous_tracking_hash == device.get_hash()
        assert second.previous_tracking_hash == first.tracking_hash
        assert mediator.tracking_hash == second.tracking_hash

    def test_failed_encryption_keeps_chain(self, internal_manifest, context, device):
        mediator = EncryptionMediator(internal_manifest, context, device)
        before = mediator.tracking_hash
        assert mediator.encrypt(make_ballot("m-3", [1, 1], [0, 0, 0])) is None
        assert mediator.tracking_hash == before

    def test_tracker_code_groups(self):
        code = tracker_hash_to_code(ElementModQ(0x0123456789ABCDEF01))
        assert code == "01234567-89ABCDEF-01"


# ============================================================================
# BALLOT BOX
# ============================================================================


class TestBallotBox:

    def test_cast_and_spoil(self, internal_manifest, context):
        box = BallotBox(internal_manifest, context)
        cast = encrypt_ballot(make_ballot("box-1", [1, 0], [1, 0, 0]), internal_manifest, context, SEED_HASH)
        spoiled = encrypt_ballot(make_ballot("box-2", [0, 1], [0, 0, 1]), internal_manifest, context, SEED_HASH)

        submitted = box.cast(cast)
        assert submitted.state is BallotBoxState.CAST
        assert submitted.nonce is None
        assert box.spoil(spoiled).state is BallotBoxState.SPOILED

        assert len(box) == 2
        assert [b.object_id for b in box.cast_ballots()] == ["box-1"]
        assert [b.object_id for b in box.spoiled_ballots()] == ["box-2"]
        assert box.get("box-1") == submitted

    def test_duplicate_is_rejected(self, internal_manifest, context):
        box = BallotBox(internal_manifest, context)
        encrypted = encrypt_ballot(make_ballot("box-3", [1, 0], [1, 0, 0]), internal_manifest, context, SEED_HASH)
        assert box.cast(encrypted) is not None
        assert box.cast(encrypted) is None
        assert box.spoil(encrypted) is None
        assert box.get("box-3").state is BallotBoxState.CAST

    def test_tampered_ballot_is_rejected(self, internal_manifest, context):
        box = BallotBox(internal_manifest, context)
        encrypted = encrypt_ballot(make_ballot("box-4", [1, 0], [1, 0, 0]), internal_manifest, context, SEED_HASH)

        race = encrypted.contests[0]
        first, second = race.ballot_selections[0], race.ballot_selections[1]
        swapped = [
            dataclasses.replace(first, ciphertext=second.ciphertext),
            dataclasses.replace(second, ciphertext=first.ciphertext),
        ] + list(race.ballot_selections[2:])
        tampered = dataclasses.replace(
            encrypted, contests=[dataclasses.replace(race, ballot_selections=swapped)]
            + list(encrypted.contests[1:]))

        assert box.cast(tampered) is None
        assert len(box) == 0

    def test_ballot_for_another_election_is_rejected(self, internal_manifest, context, context_5):
        box = BallotBox(internal_manifest, context_5)
        encrypted = encrypt_ballot(make_ballot("box-5", [1, 0], [1, 0, 0]), internal_manifest, context, SEED_HASH)
        assert box.cast(encrypted) is None
