import argparse
import dataclasses
import logging
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from ballot import (
    BallotBoxState,
    BallotBox,
    BallotStyle,
    Candidate,
    CiphertextElectionContext,
    ContestDescription,
    EncryptionDevice,
    EncryptionMediator,
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
from config.config import KeyCeremonyConfig, SystemConfig, load_config
from group import hash_elems, set_discrete_log_max
from mpc import (
    CeremonyDetails,
    DecryptionError,
    DecryptionMediator,
    Guardian,
    KeyCeremonyError,
    KeyCeremonyMediator,
    ThresholdViolationError,
)
from tally import CiphertextTally, CiphertextTallyBuilder, PlaintextTally
from utils.utils import setup_logging, save_results, PerformanceMonitor, create_performance_report

logger = logging.getLogger(__name__)

Counts = Dict[str, Dict[str, int]]


# ============================================================================
# SAMPLE ELECTION
# ============================================================================


def build_sample_manifest(election_id: str = "election") -> Manifest:
    """A county election with a 1-of-3 and a 2-of-4 contest on one ballot style"""
    county = GeopoliticalUnit("county-1", "Harbor County")
    names = ["Ada", "Grace", "Alan", "Edsger", "Barbara", "Donald", "Radia"]
    candidates = [Candidate(f"candidate-{i}", name) for i, name in enumerate(names)]

    def selections(contest_id: str, picks: List[Candidate]) -> List[SelectionDescription]:
        return [
            SelectionDescription(f"{contest_id}-{c.object_id}", c.object_id, seq)
            for seq, c in enumerate(picks)
        ]

    mayor = ContestDescription(
        object_id="mayor",
        electoral_district_id=county.object_id,
        sequence_order=0,
        vote_variation=VoteVariationType.one_of_m,
        number_elected=1,
        votes_allowed=1,
        name="Mayor",
        ballot_selections=selections("mayor", candidates[:3]),
    )
    council = ContestDescription(
        object_id="council",
        electoral_district_id=county.object_id,
        sequence_order=1,
        vote_variation=VoteVariationType.n_of_m,
        number_elected=2,
        votes_allowed=2,
        name="City Council",
        ballot_selections=selections("council", candidates[3:]),
    )

    start = datetime(2026, 11, 3, 7, 0, 0)
    return Manifest(
        election_scope_id=election_id,
        start_date=start,
        end_date=start + timedelta(hours=13),
        geopolitical_units=[county],
        contests=[mayor, council],
        ballot_styles=[BallotStyle("style-1", [county.object_id])],
        candidates=candidates,
        name="Harbor County General",
    )


def generate_plaintext_ballots(
    internal_manifest: InternalManifest,
    count: int,
    style_id: str = "style-1",
    seed: Optional[int] = None,
) -> List[PlaintextBallot]:
    """Random ballots, each contest marked with anywhere from zero to number_elected selections"""
    rng = np.random.default_rng(seed)
    ballots = []
    for i in range(count):
        contests = []
        for contest in internal_manifest.get_contests_for(style_id):
            options = [s.object_id for s in contest.ballot_selections]
            marked = int(rng.integers(0, contest.number_elected + 1))
            chosen = set(rng.choice(options, size=marked, replace=False)) if marked else set()
            contests.append(PlaintextBallotContest(
                contest.object_id,
                [PlaintextBallotSelection(sid, 1 if sid in chosen else 0) for sid in options],
            ))
        ballots.append(PlaintextBallot(f"ballot-{i:05d}", style_id, contests))
    return ballots


def count_votes(internal_manifest: InternalManifest, ballots: List[PlaintextBallot]) -> Counts:
    """Expected counts per contest and selection, zero for selections nobody marked"""
    counts: Counts = {
        contest_id: {s.object_id: 0 for s in contest.ballot_selections}
        for contest_id, contest in internal_manifest.contests.items()
    }
    for ballot in ballots:
        for contest in ballot.contests:
            for selection in contest.ballot_selections:
                counts[contest.object_id][selection.object_id] += selection.vote
    return counts


# ============================================================================
# ORCHESTRATOR
# ============================================================================


class ElectionOrchestrator:
    """Runs an election end to end: ceremony, encryption, tally and decryption"""

    def __init__(self, config: SystemConfig):
        self.config = config
        self.performance_monitor = PerformanceMonitor()
        self.guardians: List[Guardian] = []
        self.context: Optional[CiphertextElectionContext] = None
        self.internal_manifest: Optional[InternalManifest] = None
        self.ballot_box: Optional[BallotBox] = None
        self.results: Dict[str, Any] = {
            'election_id': config.election_id,
            'ceremony': {},
            'ballots': {},
            'tally': {},
            'spoiled_ballots': {},
            'verification': {},
            'performance_metrics': {},
        }
        set_discrete_log_max(config.tally.discrete_log_max)
        logger.info(f"Initialized election orchestrator for {config.election_id}")

    # ------------------------------------------------------------------
    # Key ceremony
    # ------------------------------------------------------------------

    def run_key_ceremony(self) -> CiphertextElectionContext:
        ceremony_config = self.config.key_ceremony
        n, k = ceremony_config.number_of_guardians, ceremony_config.quorum

        with self.performance_monitor.start_operation("key_ceremony", guardians=n, quorum=k):
            details = CeremonyDetails(n, k)
            mediator = KeyCeremonyMediator("key-ceremony-mediator", details)
            self.guardians = [
                Guardian(f"guardian-{i}", i, n, k,
                         auxiliary_key_size=ceremony_config.auxiliary_key_size)
                for i in range(1, n + 1)
            ]

            for guardian in self.guardians:
                if not mediator.announce(guardian):
                    raise KeyCeremonyError(f"Guardian {guardian.object_id} could not announce")

            if mediator.orchestrate() is None:
                raise KeyCeremonyError("Partial key backups could not be distributed")

            if not mediator.verify():
                logger.warning("Some backups failed verification, resolving challenges")
                if not mediator.resolve_challenges():
                    raise KeyCeremonyError("Partial key backups failed verification")

            joint_key = mediator.publish_joint_key()
            if joint_key is None:
                raise KeyCeremonyError("Joint key could not be published")

        commitment_hash = hash_elems([
            commitment
            for guardian in self.guardians
            for commitment in guardian.share_election_public_key().coefficient_commitments
        ])

        manifest = build_sample_manifest(self.config.election_id)
        if not manifest.is_valid():
            raise ValueError(f"Manifest {manifest.election_scope_id} is not valid")
        self.internal_manifest = InternalManifest(manifest)
        self.context = make_ciphertext_election_context(
            n, k, joint_key, self.internal_manifest.manifest_hash, commitment_hash)
        self.ballot_box = BallotBox(self.internal_manifest, self.context)

        self.results['ceremony'] = {
            'number_of_guardians': n,
            'quorum': k,
            'joint_public_key': joint_key.to_hex()[:32] + "...",
            'guardians': [g.object_id for g in self.guardians],
        }
        logger.info(f"Key ceremony complete with {n} guardians, quorum {k}")
        return self.context

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    def cast_ballots(
        self,
        plaintext_ballots: List[PlaintextBallot],
        spoil_rate: float = 0.0,
        seed: Optional[int] = None,
    ) -> Dict[str, PlaintextBallot]:
        """Encrypt every ballot and cast or spoil it. Returns the plaintexts by id of those accepted"""
        encryption_config = self.config.encryption
        device = EncryptionDevice(
            encryption_config.device_uuid,
            encryption_config.session_id,
            encryption_config.launch_code,
            encryption_config.location,
        )
        encrypter = EncryptionMediator(
            self.internal_manifest, self.context, device, encryption_config.should_verify_proofs)
        rng = np.random.default_rng(seed)

        accepted: Dict[str, PlaintextBallot] = {}
        for plaintext in plaintext_ballots:
            with self.performance_monitor.start_operation("encrypt_ballot"):
                encrypted = encrypter.encrypt(plaintext)
            if encrypted is None:
                logger.error(f"Failed to encrypt ballot {plaintext.object_id}")
                continue

            if rng.random() < spoil_rate:
                submitted = self.ballot_box.spoil(encrypted)
            else:
                submitted = self.ballot_box.cast(encrypted)
            if submitted is None:
                logger.error(f"Ballot box rejected ballot {plaintext.object_id}")
                continue
            accepted[plaintext.object_id] = plaintext

        cast = len(self.ballot_box.cast_ballots())
        spoiled = len(self.ballot_box.spoiled_ballots())
        self.results['ballots'] = {
            'submitted': len(plaintext_ballots),
            'cast': cast,
            'spoiled': spoiled,
            'rejected': len(plaintext_ballots) - cast - spoiled,
            'last_tracking_hash': encrypter.tracking_hash.to_hex(),
        }
        logger.info(f"Ballot box holds {cast} cast and {spoiled} spoiled ballots")
        return accepted

    def compute_tally(self) -> CiphertextTally:
        with self.performance_monitor.start_operation("tally_accumulation"):
            builder = CiphertextTallyBuilder(
                f"{self.config.election_id}-tally", self.internal_manifest, self.context,
                self.config.tally.max_workers)
            builder.batch_append(self.ballot_box.get_ballots())
            tally = builder.build()
        logger.info(f"Accumulated {len(tally.cast_ballot_ids)} cast ballots")
        return tally

    # ------------------------------------------------------------------
    # Decryption
    # ------------------------------------------------------------------

    def decrypt_tally(self, tally: CiphertextTally, missing_guardian_ids: List[str]) -> PlaintextTally:
        """
        Decrypt with every guardian except the missing ones. Raises
        ThresholdViolationError when fewer than a quorum remain and
        DecryptionError when decryption fails.
        """
        n = self.context.number_of_guardians
        if len(missing_guardian_ids) > n - self.context.quorum:
            raise ThresholdViolationError(
                f"{len(missing_guardian_ids)} missing guardians leave fewer than "
                f"{self.context.quorum} of {n}")

        with self.performance_monitor.start_operation(
                "decryption", missing=len(missing_guardian_ids)):
            mediator = DecryptionMediator(
                self.context, tally, max_workers=self.config.tally.max_workers)
            for guardian in self.guardians:
                if guardian.object_id in missing_guardian_ids:
                    continue
                if mediator.announce(guardian) is None:
                    raise DecryptionError(f"Guardian {guardian.object_id} could not announce")
            plaintext_tally = mediator.decrypt_tally()

        if plaintext_tally is None:
            raise DecryptionError(f"Tally {tally.object_id} could not be decrypted")
        return plaintext_tally

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    def run_election(
        self,
        num_voters: int,
        missing_guardians: int = 0,
        spoil_rate: float = 0.0,
        seed: Optional[int] = None,
    ) -> Dict[str, Any]:
        logger.info(f"Starting election with {num_voters} voters")
        election_start = time.time()

        self.run_key_ceremony()

        plaintexts = generate_plaintext_ballots(self.internal_manifest, num_voters, seed=seed)
        accepted = self.cast_ballots(plaintexts, spoil_rate, seed)
        tally = self.compute_tally()

        # the highest sequence orders stay home
        missing_ids = [g.object_id for g in self.guardians[::-1][:missing_guardians]]
        plaintext_tally = self.decrypt_tally(tally, missing_ids)

        election_time = time.time() - election_start
        self.results['tally'] = plaintext_tally.counts()
        self.results['spoiled_ballots'] = {
            ballot_id: {
                contest_id: {s_id: s.tally for s_id, s in contest.selections.items()}
                for contest_id, contest in contests.items()
            }
            for ballot_id, contests in plaintext_tally.spoiled_ballots.items()
        }
        self.results['missing_guardians'] = missing_ids
        self.results['verification'] = self._perform_verification_checks(
            tally, plaintext_tally, accepted)
        self.results['performance_metrics'] = {
            'total_election_time': election_time,
            'throughput_ballots_per_second': num_voters / election_time if election_time > 0 else 0.0,
            **self.performance_monitor.get_summary(),
        }

        logger.info(f"Election completed in {election_time:.3f}s")
        logger.info(f"Final tally: {self.results['tally']}")
        return self.results

    def _perform_verification_checks(
        self,
        tally: CiphertextTally,
        plaintext_tally: PlaintextTally,
        accepted: Dict[str, PlaintextBallot],
    ) -> Dict[str, bool]:
        checks = {}

        cast_ids = {b.object_id for b in self.ballot_box.get_ballots(BallotBoxState.CAST)}
        spoiled_ids = {b.object_id for b in self.ballot_box.get_ballots(BallotBoxState.SPOILED)}

        checks['cast_ballots_counted'] = set(tally.cast_ballot_ids) == cast_ids
        checks['tally_matches_cast_plaintexts'] = (
            plaintext_tally.counts() == count_votes(
                self.internal_manifest, [accepted[i] for i in sorted(cast_ids)]))

        spoiled_expected = {i: count_votes(self.internal_manifest, [accepted[i]]) for i in spoiled_ids}
        spoiled_actual = {
            ballot_id: {
                contest_id: {s_id: s.tally for s_id, s in contest.selections.items()}
                for contest_id, contest in contests.items()
            }
            for ballot_id, contests in plaintext_tally.spoiled_ballots.items()
        }
        checks['spoiled_ballots_match_plaintexts'] = spoiled_actual == spoiled_expected

        ext_hash = self.context.crypto_extended_base_hash
        checks['decryption_shares_valid'] = all(
            share.is_valid(selection.message, key.key, ext_hash)
            for contest in plaintext_tally.contests.values()
            for selection in contest.selections.values()
            for share in selection.shares
            for key in [self._election_key_for(share.guardian_id)]
        )

        checks['all_checks_passed'] = all(checks.values())
        return checks

    def _election_key_for(self, guardian_id: str):
        guardian = next(g for g in self.guardians if g.object_id == guardian_id)
        return guardian.share_election_public_key()


# ============================================================================
# CLI
# ============================================================================


def run_demo(config: SystemConfig, num_voters: int, missing: int, spoil_rate: float,
             seed: Optional[int]) -> bool:
    print("=" * 80)
    print("THRESHOLD ELGAMAL ELECTION")
    print(f"   {config.key_ceremony.number_of_guardians} guardians, quorum "
          f"{config.key_ceremony.quorum}, {missing} missing at decryption")
    print("=" * 80)

    orchestrator = ElectionOrchestrator(config)
    try:
        results = orchestrator.run_election(num_voters, missing, spoil_rate, seed)
    except (KeyCeremonyError, ThresholdViolationError, DecryptionError, ValueError) as e:
        logger.error(f"Election failed: {e}")
        print(f"\nElection failed: {e}")
        return False

    print("\nFinal Tally:")
    for contest_id, selections in results['tally'].items():
        print(f"  {contest_id}:")
        for selection_id, count in selections.items():
            print(f"    {selection_id}: {count}")

    ballots = results['ballots']
    print(f"\nBallots: {ballots['cast']} cast, {ballots['spoiled']} spoiled, "
          f"{ballots['rejected']} rejected")

    print("\nVerification Checks:")
    for check, passed in results['verification'].items():
        print(f"  {check}: {'PASSED' if passed else 'FAILED'}")

    report_path = config.results_dir / f"{config.election_id}_results.json"
    save_results(results, report_path)

    perf_path = config.results_dir / "performance_report.txt"
    with open(perf_path, "w") as f:
        f.write(create_performance_report(orchestrator.performance_monitor))
    if config.enable_benchmarking:
        orchestrator.performance_monitor.save_metrics(config.results_dir / "metrics.json")

    print(f"\nFull results saved to: {report_path}")
    print(f"Performance report: {perf_path}")
    return results['verification']['all_checks_passed']


def main():
    parser = argparse.ArgumentParser(description='Threshold ElGamal election engine')
    parser.add_argument('--voters', type=int, default=20, help='Number of voters')
    parser.add_argument('--guardians', type=int, default=None, help='Number of guardians')
    parser.add_argument('--quorum', type=int, default=None, help='Guardians needed to decrypt')
    parser.add_argument('--missing', type=int, default=0,
                        help='Guardians absent at decryption')
    parser.add_argument('--spoil-rate', type=float, default=0.1,
                        help='Fraction of ballots spoiled instead of cast')
    parser.add_argument('--config', type=str, default='config.yaml', help='Config file path')
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    parser.add_argument('--seed', type=int, default=None, help='Seed for generated ballots')

    args = parser.parse_args()

    config = load_config(Path(args.config))
    if args.guardians is not None or args.quorum is not None:
        key_ceremony = KeyCeremonyConfig(
            number_of_guardians=args.guardians or config.key_ceremony.number_of_guardians,
            quorum=args.quorum or config.key_ceremony.quorum,
            auxiliary_key_size=config.key_ceremony.auxiliary_key_size,
        )
        try:
            config = dataclasses.replace(config, key_ceremony=key_ceremony)
        except ValueError as e:
            parser.error(str(e))

    log_level = 'DEBUG' if config.enable_debug_mode else args.log_level
    setup_logging(log_level, config.log_dir / f"election_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log")

    success = run_demo(config, args.voters, args.missing, args.spoil_rate, args.seed)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
