"""Shared fixtures: a small manifest, completed key ceremonies and election contexts."""

import logging
import sys
from collections import namedtuple
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from ballot import (  # noqa: E402
    BallotStyle,
    ContestDescription,
    EncryptionDevice,
    GeopoliticalUnit,
    InternalManifest,
    Manifest,
    PlaintextBallot,
    PlaintextBallotContest,
    PlaintextBallotSelection,
    SelectionDescription,
    VoteVariationType,
    make_ciphertext_election_context,
)
from group import hash_elems  # noqa: E402
from mpc import CeremonyDetails, Guardian, KeyCeremonyMediator  # noqa: E402

logger = logging.getLogger(__name__)

Ceremony = namedtuple("Ceremony", ["guardians", "joint_key", "commitment_hash"])

SPARSE_ORDERS = (1, 4, 9, 200, 255)


def run_ceremony(number_of_guardians: int, quorum: int,
                 sequence_orders: Optional[Sequence[int]] = None) -> Ceremony:
    """
    Run every ceremony phase through the mediator and return the guardians.
    Guardians take orders 1..n unless explicit sequence orders are given.
    """
    if sequence_orders is None:
        sequence_orders = range(1, number_of_guardians + 1)
    mediator = KeyCeremonyMediator("test-mediator", CeremonyDetails(number_of_guardians, quorum))
    guardians = [
        Guardian(f"guardian-{order}", order, number_of_guardians, quorum)
        for order in sequence_orders
    ]
    for guardian in guardians:
        assert mediator.announce(guardian)
    assert mediator.orchestrate() is not None
    assert mediator.verify()
    joint_key = mediator.publish_joint_key()
    assert joint_key is not None

    commitment_hash = hash_elems([
        commitment
        for guardian in guardians
        for commitment in guardian.share_election_public_key().coefficient_commitments
    ])
    logger.info(f"Completed {quorum}-of-{number_of_guardians} ceremony for tests")
    return Ceremony(guardians, joint_key, commitment_hash)


def make_manifest() -> Manifest:
    """A 1-of-2 race and a 2-of-3 council on one ballot style"""
    district = GeopoliticalUnit("district-9", "District Nine")
    race = ContestDescription(
        object_id="race",
        electoral_district_id=district.object_id,
        sequence_order=0,
        vote_variation=VoteVariationType.one_of_m,
        number_elected=1,
        votes_allowed=1,
        name="Race",
        ballot_selections=[
            SelectionDescription("race-alice", "alice", 0),
            SelectionDescription("race-bob", "bob", 1),
        ],
    )
    council = ContestDescription(
        object_id="council",
        electoral_district_id=district.object_id,
        sequence_order=1,
        vote_variation=VoteVariationType.n_of_m,
        number_elected=2,
        votes_allowed=2,
        name="Council",
        ballot_selections=[
            SelectionDescription("council-carol", "carol", 0),
            SelectionDescription("council-dave", "dave", 1),
            SelectionDescription("council-erin", "erin", 2),
        ],
    )
    return Manifest(
        election_scope_id="test-election",
        start_date=datetime(2026, 11, 3, 7),
        end_date=datetime(2026, 11, 3, 20),
        geopolitical_units=[district],
        contests=[race, council],
        ballot_styles=[BallotStyle("style-1", [district.object_id])],
    )


def make_ballot(ballot_id: str, race: List[int], council: List[int]) -> PlaintextBallot:
    """Plaintext ballot with marks given in selection order"""
    race_ids = ["race-alice", "race-bob"]
    council_ids = ["council-carol", "council-dave", "council-erin"]
    return PlaintextBallot(ballot_id, "style-1", [
        PlaintextBallotContest("race", [
            PlaintextBallotSelection(sid, vote) for sid, vote in zip(race_ids, race)]),
        PlaintextBallotContest("council", [
            PlaintextBallotSelection(sid, vote) for sid, vote in zip(council_ids, council)]),
    ])


@pytest.fixture(scope="session")
def manifest() -> Manifest:
    return make_manifest()


@pytest.fixture(scope="session")
def internal_manifest(manifest) -> InternalManifest:
    return InternalManifest(manifest)


@pytest.fixture(scope="session")
def ceremony_3_of_2() -> Ceremony:
    return run_ceremony(3, 2)


@pytest.fixture(scope="session")
def ceremony_5_of_3() -> Ceremony:
    return run_ceremony(5, 3)


@pytest.fixture(scope="session")
def ceremony_sparse() -> Ceremony:
    """5 guardians, quorum 3, on non-contiguous sequence orders"""
    return run_ceremony(5, 3, SPARSE_ORDERS)


@pytest.fixture(scope="session")
def context_sparse(ceremony_sparse, internal_manifest):
    return make_ciphertext_election_context(
        5, 3, ceremony_sparse.joint_key, internal_manifest.manifest_hash,
        ceremony_sparse.commitment_hash)


@pytest.fixture(scope="session")
def context(ceremony_3_of_2, internal_manifest):
    return make_ciphertext_election_context(
        3, 2, ceremony_3_of_2.joint_key, internal_manifest.manifest_hash,
        ceremony_3_of_2.commitment_hash)


@pytest.fixture(scope="session")
def context_5(ceremony_5_of_3, internal_manifest):
    return make_ciphertext_election_context(
        5, 3, ceremony_5_of_3.joint_key, internal_manifest.manifest_hash,
        ceremony_5_of_3.commitment_hash)


@pytest.fixture
def device() -> EncryptionDevice:
    return EncryptionDevice(1234, "session-1", 42, "polling-place-7")
