"""
Election Manifest
=================
The public description of an election that the cryptography relies on:
contests, their selections, and the ballot styles that decide which
contests a voter sees. Each piece hashes itself so ballots can be bound to
the exact description they were encrypted against.

InternalManifest adds number_elected placeholder selections to each contest.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from group import ElementModQ, hash_elems

logger = logging.getLogger(__name__)


class VoteVariationType(Enum):
    """Counting rules. Only n-of-m style contests can be proven with placeholders"""
    one_of_m = "one_of_m"
    n_of_m = "n_of_m"
    approval = "approval"


SUPPORTED_VOTE_VARIATIONS = (
    VoteVariationType.one_of_m, VoteVariationType.n_of_m, VoteVariationType.approval)


# ============================================================================
# DESCRIPTIONS
# ============================================================================


@dataclass(frozen=True)
class GeopoliticalUnit:
    object_id: str
    name: str
    type: str = "county"

    def crypto_hash(self) -> ElementModQ:
        return hash_elems(self.object_id, self.name, self.type)


@dataclass(frozen=True)
class Candidate:
    object_id: str
    name: str
    party_id: Optional[str] = None

    def crypto_hash(self) -> ElementModQ:
        return hash_elems(self.object_id, self.name, self.party_id)


@dataclass(frozen=True)
class SelectionDescription:
    """One option within a contest"""
    object_id: str
    candidate_id: str
    sequence_order: int

    def crypto_hash(self) -> ElementModQ:
        return hash_elems(self.object_id, self.sequence_order, self.candidate_id)


@dataclass(frozen=True)
class ContestDescription:
    """A contest, its counting limits and its selections"""
    object_id: str
    electoral_district_id: str
    sequence_order: int
    vote_variation: VoteVariationType
    number_elected: int
    votes_allowed: int
    name: str
    ballot_selections: List[SelectionDescription] = field(default_factory=list)

    def crypto_hash(self) -> ElementModQ:
        return hash_elems(
            self.object_id,
            self.sequence_order,
            self.electoral_district_id,
            self.vote_variation.name,
            self.name,
            self.number_elected,
            self.votes_allowed,
            self.ballot_selections,
        )

    def is_valid(self) -> bool:
        """Limits are consistent and every selection is uniquely identified"""
        expected = len(self.ballot_selections)
        candidate_ids = {s.candidate_id for s in self.ballot_selections}
        selection_ids = {s.object_id for s in self.ballot_selections}
        sequence_ids = {s.sequence_order for s in self.ballot_selections}

        checks = {
            "supported_vote_variation": self.vote_variation in SUPPORTED_VOTE_VARIATIONS,
            "valid_number_elected": 0 < self.number_elected <= expected,
            "valid_votes_allowed": self.number_elected <= self.votes_allowed,
            "unique_candidate_ids": len(candidate_ids) == expected,
            "unique_selection_ids": len(selection_ids) == expected,
            "unique_sequence_ids": len(sequence_ids) == expected,
        }
        if not all(checks.values()):
            failed = [k for k, ok in checks.items() if not ok]
            logger.warning(f"Contest {self.object_id} failed validation: {failed}")
            return False
        return True


@dataclass(frozen=True)
class BallotStyle:
    """Which geopolitical units, and so which contests, a ballot covers"""
    object_id: str
    geopolitical_unit_ids: List[str] = field(default_factory=list)
    party_ids: List[str] = field(default_factory=list)

    def crypto_hash(self) -> ElementModQ:
        return hash_elems(self.object_id, self.geopolitical_unit_ids, self.party_ids)


@dataclass(frozen=True)
class Manifest:
    """The full election description"""
    election_scope_id: str
    start_date: datetime
    end_date: datetime
    geopolitical_units: List[GeopoliticalUnit]
    contests: List[ContestDescription]
    ballot_styles: List[BallotStyle]
    candidates: List[Candidate] = field(default_factory=list)
    election_type: str = "general"
    name: Optional[str] = None

    def crypto_hash(self) -> ElementModQ:
        return hash_elems(
            self.election_scope_id,
            self.election_type,
            self.start_date.isoformat(),
            self.end_date.isoformat(),
            self.name,
            self.geopolitical_units,
            self.contests,
            self.ballot_styles,
        )

    def is_valid(self) -> bool:
        """Structural integrity: unique ids and references that resolve"""
        gp_unit_ids = {g.object_id for g in self.geopolitical_units}
        style_ids = {s.object_id for s in self.ballot_styles}
        candidate_ids = {c.object_id for c in self.candidates}
        contest_ids = {c.object_id for c in self.contests}
        contest_sequence_ids = {c.sequence_order for c in self.contests}

        checks = {
            "geopolitical_units_valid": len(gp_unit_ids) == len(self.geopolitical_units),
            "ballot_styles_valid": len(style_ids) == len(self.ballot_styles) and all(
                gp in gp_unit_ids for s in self.ballot_styles for gp in s.geopolitical_unit_ids),
            "candidates_valid": len(candidate_ids) == len(self.candidates),
            "contests_validate_their_properties": all(c.is_valid() for c in self.contests),
            "contests_have_valid_electoral_district_id": all(
                c.electoral_district_id in gp_unit_ids for c in self.contests),
            "contests_have_valid_object_ids": len(contest_ids) == len(self.contests),
            "contests_have_valid_sequence_ids": len(contest_sequence_ids) == len(self.contests),
            "selections_have_known_candidates": not self.candidates or all(
                s.candidate_id in candidate_ids
                for c in self.contests for s in c.ballot_selections),
        }
        if not all(checks.values()):
            failed = [k for k, ok in checks.items() if not ok]
            logger.warning(f"Manifest {self.election_scope_id} failed validation: {failed}")
            return False
        return True

    def get_ballot_style(self, style_id: str) -> Optional[BallotStyle]:
        return next((s for s in self.ballot_styles if s.object_id == style_id), None)


# ============================================================================
# PLACEHOLDERS AND INTERNAL MANIFEST
# ============================================================================


@dataclass(frozen=True)
class ContestWithPlaceholders:
    """A contest plus the placeholder selections that fill undervotes"""
    description: ContestDescription
    placeholder_selections: List[SelectionDescription] = field(default_factory=list)

    @property
    def object_id(self) -> str:
        return self.description.object_id

    @property
    def number_elected(self) -> int:
        return self.description.number_elected

    @property
    def votes_allowed(self) -> int:
        return self.description.votes_allowed

    @property
    def sequence_order(self) -> int:
        return self.description.sequence_order

    @property
    def ballot_selections(self) -> List[SelectionDescription]:
        return self.description.ballot_selections

    @property
    def electoral_district_id(self) -> str:
        return self.description.electoral_district_id

    def crypto_hash(self) -> ElementModQ:
        return self.description.crypto_hash()

    def is_valid(self) -> bool:
        return (self.description.is_valid()
                and len(self.placeholder_selections) == self.description.number_elected)

    def is_placeholder(self, selection_id: str) -> bool:
        return any(p.object_id == selection_id for p in self.placeholder_selections)

    def selection_for(self, selection_id: str) -> Optional[SelectionDescription]:
        for selection in self.ballot_selections:
            if selection.object_id == selection_id:
                return selection
        for selection in self.placeholder_selections:
            if selection.object_id == selection_id:
                return selection
        return None


def generate_placeholder_selection_from(
    contest: ContestDescription, use_sequence_id: Optional[int] = None
) -> Optional[SelectionDescription]:
    """A uniquely named placeholder, one past the contest's highest sequence order by default"""
    sequence_ids = [s.sequence_order for s in contest.ballot_selections]
    if use_sequence_id is None:
        use_sequence_id = max(sequence_ids, default=0) + 1
    elif use_sequence_id in sequence_ids:
        logger.warning(f"Placeholder sequence order {use_sequence_id} already used in {contest.object_id}")
        return None

    placeholder_id = f"{contest.object_id}-{use_sequence_id}"
    return SelectionDescription(
        object_id=f"{placeholder_id}-placeholder",
        candidate_id=f"{placeholder_id}-candidate",
        sequence_order=use_sequence_id,
    )


def generate_placeholder_selections_from(
    contest: ContestDescription, count: int
) -> List[SelectionDescription]:
    """`count` placeholders in ascending sequence order after the real selections"""
    max_sequence_order = max((s.sequence_order for s in contest.ballot_selections), default=0)
    selections = []
    for i in range(count):
        placeholder = generate_placeholder_selection_from(contest, max_sequence_order + 1 + i)
        if placeholder is not None:
            selections.append(placeholder)
    return selections


def contest_description_with_placeholders_from(contest: ContestDescription) -> ContestWithPlaceholders:
    return ContestWithPlaceholders(
        contest, generate_placeholder_selections_from(contest, contest.number_elected))


class InternalManifest:
    """The manifest with placeholders, as used during encryption and tallying"""

    def __init__(self, manifest: Manifest):
        self.manifest = manifest
        self.manifest_hash = manifest.crypto_hash()
        self.contests: Dict[str, ContestWithPlaceholders] = {
            contest.object_id: contest_description_with_placeholders_from(contest)
            for contest in manifest.contests
        }
        self.ballot_styles: Dict[str, BallotStyle] = {s.object_id: s for s in manifest.ballot_styles}

    def get_ballot_style(self, style_id: str) -> Optional[BallotStyle]:
        return self.ballot_styles.get(style_id)

    def get_contests_for(self, ballot_style_id: str) -> List[ContestWithPlaceholders]:
        """Contests whose electoral district is one of the style's geopolitical units"""
        style = self.get_ballot_style(ballot_style_id)
        if style is None:
            return []
        gp_unit_ids = set(style.geopolitical_unit_ids)
        return [c for c in self.contests.values() if c.electoral_district_id in gp_unit_ids]
