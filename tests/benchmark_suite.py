#!/usr/bin/env python3
"""
Benchmark Suite
Measures the cost of each stage of a threshold election:
- Group exponentiation and discrete log
- Ballot encryption with proofs
- Key ceremony
- Tally accumulation
- Decryption with all guardians and with compensated shares
"""

import argparse
import json
import logging
import os
import statistics
import sys
import time
from pathlib import Path
from typing import Any, Dict, Tuple

import psutil

sys.path.insert(0, str(Path(__file__).parent.parent))

from ballot import BallotBox, EncryptionDevice, EncryptionMediator, InternalManifest  # noqa: E402
from ballot import make_ciphertext_election_context  # noqa: E402
from group import discrete_log, g_pow_p, hash_elems, rand_q  # noqa: E402
from main import build_sample_manifest, generate_plaintext_ballots  # noqa: E402
from mpc import CeremonyDetails, DecryptionMediator, Guardian, KeyCeremonyMediator  # noqa: E402
from tally import CiphertextTallyBuilder  # noqa: E402
from utils import PerformanceMonitor, create_performance_report, get_system_info, setup_logging  # noqa: E402

logger = logging.getLogger(__name__)


class BenchmarkSuite:
    """Times every stage of the election pipeline"""

    def __init__(self, number_of_guardians: int = 5, quorum: int = 3, trials: int = 5):
        self.number_of_guardians = number_of_guardians
        self.quorum = quorum
        self.trials = trials
        self.monitor = PerformanceMonitor()
        self.results = {
            'group': {},
            'key_ceremony': {},
            'encryption': {},
            'tally': {},
            'decryption': {},
            'system_info': get_system_info(),
        }

        self.guardians = []
        self.internal_manifest = None
        self.context = None

    def measure_time_and_memory(self, func, *args, **kwargs) -> Tuple[Any, float, float]:
        """Measure execution time and memory usage"""
        process = psutil.Process(os.getpid())
        mem_before = process.memory_info().rss / 1024 / 1024  # MB

        start_time = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed_time = time.perf_counter() - start_time

        mem_after = process.memory_info().rss / 1024 / 1024  # MB
        return result, elapsed_time, mem_after - mem_before

    def run_multiple_trials(self, func, *args, **kwargs) -> Dict[str, float]:
        """Run the function self.trials times and compute statistics"""
        times = []
        memories = []

        for _ in range(self.trials):
            _, elapsed, mem_delta = self.measure_time_and_memory(func, *args, **kwargs)
            times.append(elapsed)
            memories.append(mem_delta)

        return {
            'mean_time': statistics.mean(times),
            'median_time': statistics.median(times),
            'std_time': statistics.stdev(times) if len(times) > 1 else 0,
            'min_time': min(times),
            'max_time': max(times),
            'mean_memory_mb': statistics.mean(memories),
            'trials': self.trials,
        }

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def benchmark_group(self):
        logger.info("=" * 80)
        logger.info("BENCHMARKING GROUP OPERATIONS")
        logger.info("=" * 80)

        self.results['group']['g_pow_p'] = self.run_multiple_trials(lambda: g_pow_p(rand_q()))
        self.results['group']['discrete_log_10k'] = self.run_multiple_trials(
            discrete_log, g_pow_p(10_000))
        logger.info(f"g^x mod p: {self.results['group']['g_pow_p']['mean_time'] * 1000:.2f} ms")

    def _run_ceremony(self):
        mediator = KeyCeremonyMediator(
            "benchmark-mediator", CeremonyDetails(self.number_of_guardians, self.quorum))
        guardians = [
            Guardian(f"guardian-{i}", i, self.number_of_guardians, self.quorum)
            for i in range(1, self.number_of_guardians + 1)
        ]
        for guardian in guardians:
            mediator.announce(guardian)
        mediator.orchestrate()
        mediator.verify()
        return guardians, mediator.publish_joint_key()

    def benchmark_key_ceremony(self):
        logger.info("=" * 80)
        logger.info(f"BENCHMARKING KEY CEREMONY ({self.quorum} of {self.number_of_guardians})")
        logger.info("=" * 80)

        (guardians, joint_key), elapsed, mem_delta = self.measure_time_and_memory(self._run_ceremony)
        self.results['key_ceremony'] = {'time': elapsed, 'memory_mb': mem_delta}

        self.guardians = guardians
        self.internal_manifest = InternalManifest(build_sample_manifest("benchmark"))
        commitment_hash = hash_elems([
            c for g in guardians for c in g.share_election_public_key().coefficient_commitments])
        self.context = make_ciphertext_election_context(
            self.number_of_guardians, self.quorum, joint_key,
            self.internal_manifest.manifest_hash, commitment_hash)
        logger.info(f"Key ceremony: {elapsed:.2f}s")

    def benchmark_encryption(self, num_ballots: int):
        logger.info("=" * 80)
        logger.info(f"BENCHMARKING ENCRYPTION ({num_ballots} ballots)")
        logger.info("=" * 80)

        plaintexts = generate_plaintext_ballots(self.internal_manifest, num_ballots, seed=1)
        mediator = EncryptionMediator(
            self.internal_manifest, self.context, EncryptionDevice(1, "benchmark", 1, "lab"))
        box = BallotBox(self.internal_manifest, self.context)

        times = []
        for plaintext in plaintexts:
            encrypted, elapsed, _ = self.measure_time_and_memory(mediator.encrypt, plaintext)
            times.append(elapsed)
            box.cast(encrypted)

        self.results['encryption'] = {
            'ballots': num_ballots,
            'mean_time': statistics.mean(times),
            'throughput': num_ballots / sum(times) if sum(times) > 0 else 0.0,
        }
        logger.info(f"Encryption: {self.results['encryption']['mean_time'] * 1000:.2f} ms per ballot")
        return box

    def benchmark_tally(self, box: BallotBox):
        logger.info("=" * 80)
        logger.info("BENCHMARKING TALLY")
        logger.info("=" * 80)

        def accumulate():
            builder = CiphertextTallyBuilder("benchmark-tally", self.internal_manifest, self.context)
            builder.batch_append(box.get_ballots())
            return builder.build()

        tally, elapsed, _ = self.measure_time_and_memory(accumulate)
        self.results['tally'] = {'ballots': len(tally), 'time': elapsed}
        logger.info(f"Tally of {len(tally)} ballots: {elapsed:.3f}s")
        return tally

    def benchmark_decryption(self, tally):
        logger.info("=" * 80)
        logger.info("BENCHMARKING DECRYPTION")
        logger.info("=" * 80)

        for missing in sorted({0, self.number_of_guardians - self.quorum}):
            def decrypt():
                mediator = DecryptionMediator(self.context, tally)
                for guardian in self.guardians[:self.number_of_guardians - missing]:
                    mediator.announce(guardian)
                return mediator.decrypt_tally()

            plaintext, elapsed, _ = self.measure_time_and_memory(decrypt)
            self.results['decryption'][f'missing_{missing}'] = {
                'time': elapsed,
                'succeeded': plaintext is not None,
            }
            logger.info(f"Decryption with {missing} missing guardians: {elapsed:.2f}s")

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def run_all_benchmarks(self, num_ballots: int = 10, output: Path = Path("results/benchmark.json")):
        start = time.time()
        with self.monitor.start_operation("group"):
            self.benchmark_group()
        with self.monitor.start_operation("key_ceremony"):
            self.benchmark_key_ceremony()
        with self.monitor.start_operation("encryption", ballots=num_ballots):
            box = self.benchmark_encryption(num_ballots)
        with self.monitor.start_operation("tally"):
            tally = self.benchmark_tally(box)
        with self.monitor.start_operation("decryption"):
            self.benchmark_decryption(tally)
        self.results['stages'] = self.monitor.get_summary()
        self.results['total_time'] = time.time() - start

        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, 'w') as f:
            json.dump(self.results, f, indent=2, default=str)
        logger.info(f"Benchmark results saved to {output}")
        self.print_summary()

    def print_summary(self):
        logger.info("\n" + "=" * 80)
        logger.info("BENCHMARK SUMMARY")
        logger.info("=" * 80)
        logger.info(f"   g^x mod p:        {self.results['group']['g_pow_p']['mean_time'] * 1000:.2f} ms")
        logger.info(f"   Key ceremony:     {self.results['key_ceremony']['time']:.2f} s")
        logger.info(f"   Encryption:       {self.results['encryption']['mean_time'] * 1000:.2f} ms/ballot")
        logger.info(f"   Tally:            {self.results['tally']['time']:.3f} s")
        for name, result in self.results['decryption'].items():
            logger.info(f"   Decryption {name}: {result['time']:.2f} s")
        logger.info("=" * 80)
        logger.info("\n" + create_performance_report(self.monitor))


def main():
    parser = argparse.ArgumentParser(description='Benchmark the election pipeline')
    parser.add_argument('--guardians', type=int, default=5)
    parser.add_argument('--quorum', type=int, default=3)
    parser.add_argument('--ballots', type=int, default=10)
    parser.add_argument('--trials', type=int, default=5)
    args = parser.parse_args()

    setup_logging("INFO", Path("logs/benchmark.log"))
    benchmark = BenchmarkSuite(args.guardians, args.quorum, args.trials)
    benchmark.run_all_benchmarks(args.ballots)


if __name__ == "__main__":
    main()
