"""Homomorphic tally accumulation over cast ballots."""

import dataclasses
import logging

import pytest

from ballot import BallotBox, BallotBoxState, encrypt_ballot, from_ciphertext_ballot
from group import add_q, hash_elems
from tally import CiphertextTallyBuilder

from conftest import make_ballot

logger = logging.getLogger(__name__)

VOTES = {
    "t-1": ([1, 0], [1, 1, 0]),
    "t-2": ([0, 1], [0, 1, 1]),
    "t-3": ([1, 0], [1, 0, 0]),
    "t-4": ([0, 0], [0, 0, 1]),
}


@pytest.fixture(scope="module")
def encrypted_ballots(internal_manifest, context):
    seed = hash_elems("tally-device")
    return {
        ballot_id: encrypt_ballot(make_ballot(ballot_id, race, council), internal_manifest, context, seed)
        for ballot_id, (race, council) in VOTES.items()
    }


@pytest.fixture(scope="module")
def joint_secret(ceremony_3_of_2):
    return add_q(*[g.election_keys.key_pair.secret_key for g in ceremony_3_of_2.guardians])


def submitted(encrypted_ballots, state=BallotBoxState.CAST, ids=None):
    ids = ids if ids is not None else list(encrypted_ballots)
    return [from_ciphertext_ballot(encrypted_ballots[i], state) for i in ids]


def decrypt_counts(tally, secret):
    return {
        contest_id: {
            selection_id: selection.ciphertext.decrypt(secret)
            for selection_id, selection in contest.selections.items()
        }
        for contest_id, contest in tally.contests.items()
    }


class TestCiphertextTally:

    def test_empty_tally_has_every_selection(self, internal_manifest, context, joint_secret):
        tally = CiphertextTallyBuilder("empty", internal_manifest, context).build()
        assert len(tally) == 0
        counts = decrypt_counts(tally, joint_secret)
        assert counts == {
            "race": {"race-alice": 0, "race-bob": 0},
            "council": {"council-carol": 0, "council-dave": 0, "council-erin": 0},
        }

    def test_batch_append_counts_votes(self, internal_manifest, context, encrypted_ballots, joint_secret):
        builder = CiphertextTallyBuilder("batch", internal_manifest, context, max_workers=2)
        assert builder.batch_append(submitted(encrypted_ballots)) == 4
        tally = builder.build()

        assert tally.cast_ballot_ids == frozenset(VOTES)
        counts = decrypt_counts(tally, joint_secret)
        assert counts["race"] == {"race-alice": 2, "race-bob": 1}
        assert counts["council"] == {"council-carol": 2, "council-dave": 2, "council-erin": 2}

    def test_placeholders_are_not_tallied(self, internal_manifest, context, encrypted_ballots):
        builder = CiphertextTallyBuilder("placeholders", internal_manifest, context)
        builder.batch_append(submitted(encrypted_ballots))
        tally = builder.build()
        for contest in tally.contests.values():
            assert not any(s.endswith("-placeholder") for s in contest.selections)

    def test_append_matches_batch(self, internal_manifest, context, encrypted_ballots, joint_secret):
        one_by_one = CiphertextTallyBuilder("single", internal_manifest, context)
        for ballot in submitted(encrypted_ballots):
            assert one_by_one.append(ballot)

        batched = CiphertextTallyBuilder("batched", internal_manifest, context)
        batched.batch_append(submitted(encrypted_ballots))

        assert decrypt_counts(one_by_one.build(), joint_secret) == decrypt_counts(batched.build(), joint_secret)

    def test_duplicates_are_counted_once(self, internal_manifest, context, encrypted_ballots, joint_secret):
        builder = CiphertextTallyBuilder("dupes", internal_manifest, context)
        ballots = submitted(encrypted_ballots, ids=["t-1", "t-2", "t-1"])
        assert builder.batch_append(ballots) == 2
        assert builder.batch_append(ballots) == 0
        assert not builder.append(ballots[0])

        counts = decrypt_counts(builder.build(), joint_secret)
        assert counts["race"] == {"race-alice": 1, "race-bob": 1}

    def test_spoiled_ballots_are_kept_apart(self, internal_manifest, context, encrypted_ballots, joint_secret):
        builder = CiphertextTallyBuilder("spoiled", internal_manifest, context)
        ballots = submitted(encrypted_ballots, ids=["t-1", "t-2"]) + submitted(
            encrypted_ballots, BallotBoxState.SPOILED, ids=["t-3"])
        assert builder.batch_append(ballots) == 2
        tally = builder.build()

        assert set(tally.spoiled_ballots) == {"t-3"}
        assert "t-3" not in tally.cast_ballot_ids
        assert decrypt_counts(tally, joint_secret)["race"] == {"race-alice": 1, "race-bob": 1}

    def test_unknown_state_is_rejected(self, internal_manifest, context, encrypted_ballots):
        builder = CiphertextTallyBuilder("unknown", internal_manifest, context)
        ballot = submitted(encrypted_ballots, BallotBoxState.UNKNOWN, ids=["t-1"])[0]
        assert not builder.append(ballot)
        assert builder.batch_append([ballot]) == 0

    def test_invalid_ballot_is_skipped(self, internal_manifest, context, encrypted_ballots):
        builder = CiphertextTallyBuilder("invalid", internal_manifest, context)
        good = submitted(encrypted_ballots, ids=["t-1"])[0]
        broken = dataclasses.replace(
            submitted(encrypted_ballots, ids=["t-2"])[0], crypto_hash=hash_elems("forged"))
        assert builder.batch_append([good, broken]) == 1
        assert builder.cast_ballot_ids == frozenset({"t-1"})

    def test_ballot_box_feeds_tally(self, internal_manifest, context, encrypted_ballots, joint_secret):
        box = BallotBox(internal_manifest, context)
        box.cast(encrypted_ballots["t-1"])
        box.spoil(encrypted_ballots["t-2"])
        box.cast(encrypted_ballots["t-4"])

        builder = CiphertextTallyBuilder("box", internal_manifest, context)
        assert builder.batch_append(box.get_ballots()) == 2
        tally = builder.build()
        assert set(tally.spoiled_ballots) == {"t-2"}
        assert decrypt_counts(tally, joint_secret)["council"] == {
            "council-carol": 1, "council-dave": 1, "council-erin": 1}
