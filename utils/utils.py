"""
Utilities for the election engine: logging setup, performance monitoring
and result persistence.
"""

import json
import logging
import platform
import time
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import cryptography
import galois
import gmpy2
import numpy as np
import psutil

from group import P, Q, ElementModP, ElementModQ

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'


@dataclass
class PerformanceMetrics:
    operation: str
    duration_seconds: float
    cpu_percent: float
    memory_mb: float
    timestamp: float
    additional_data: Dict[str, Any] = field(default_factory=dict)


def setup_logging(log_level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    """Configure the root logger with a file handler and a stream handler"""
    if log_file is None:
        log_file = Path("logs") / f"election_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    while root.handlers:
        root.removeHandler(root.handlers[0])

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )

    logger.info(f"Logging to {log_file} at {log_level.upper()}")
    return root


# ============================================================================
# PERFORMANCE MONITORING
# ============================================================================


class PerformanceMonitor:
    """Records the duration, CPU and memory of named operations"""

    def __init__(self):
        self.metrics: List[PerformanceMetrics] = []
        self.process = psutil.Process()

    def start_operation(self, operation_name: str, **additional_data) -> 'OperationContext':
        """Monitor an operation for the duration of a with-block"""
        return OperationContext(self, operation_name, additional_data)

    def record_metric(self, metric: PerformanceMetrics):
        self.metrics.append(metric)

    def get_summary(self) -> Dict[str, Any]:
        """Per-operation statistics over everything recorded so far"""
        summary: Dict[str, Any] = {
            'total_operations': len(self.metrics),
            'total_duration': 0.0,
            'operations': {}
        }
        if not self.metrics:
            return summary

        operation_groups: Dict[str, List[PerformanceMetrics]] = {}
        for metric in self.metrics:
            operation_groups.setdefault(metric.operation, []).append(metric)

        for op_name, metrics in operation_groups.items():
            durations = np.array([m.duration_seconds for m in metrics])
            cpu_usages = np.array([m.cpu_percent for m in metrics if m.cpu_percent > 0])
            memory_usages = np.array([m.memory_mb for m in metrics if m.memory_mb > 0])
            total = float(durations.sum())

            summary['operations'][op_name] = {
                'count': len(metrics),
                'total_duration': total,
                'avg_duration': float(durations.mean()),
                'min_duration': float(durations.min()),
                'max_duration': float(durations.max()),
                'std_duration': float(durations.std()) if len(durations) > 1 else 0.0,
                'avg_cpu_percent': float(cpu_usages.mean()) if cpu_usages.size else 0.0,
                'avg_memory_mb': float(memory_usages.mean()) if memory_usages.size else 0.0,
                'peak_memory_mb': float(memory_usages.max()) if memory_usages.size else 0.0,
                'throughput_ops_per_sec': len(metrics) / total if total > 0 else 0.0
            }

        summary['total_duration'] = sum(
            op_data['total_duration'] for op_data in summary['operations'].values())
        return summary

    def save_metrics(self, filepath: Path):
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        metrics_data = {
            'metrics': [asdict(m) for m in self.metrics],
            'summary': self.get_summary(),
            'system_info': get_system_info(),
            'timestamp': datetime.now().isoformat()
        }

        with open(filepath, 'w') as f:
            json.dump(metrics_data, f, indent=2, default=str)

    def reset(self):
        self.metrics.clear()


class OperationContext:
    """Context manager returned by PerformanceMonitor.start_operation"""

    def __init__(self, monitor: PerformanceMonitor, operation_name: str,
                 additional_data: Optional[Dict[str, Any]] = None):
        self.monitor = monitor
        self.operation_name = operation_name
        self.additional_data = dict(additional_data or {})
        self.start_time = 0.0
        self.start_memory = 0.0

    def __enter__(self):
        # first call primes psutil's CPU counter
        self.monitor.process.cpu_percent()
        self.start_memory = self.monitor.process.memory_info().rss / 1024 / 1024
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.perf_counter() - self.start_time
        cpu = self.monitor.process.cpu_percent()
        end_memory = self.monitor.process.memory_info().rss / 1024 / 1024

        self.additional_data['exception'] = exc_type is not None
        self.monitor.record_metric(PerformanceMetrics(
            operation=self.operation_name,
            duration_seconds=duration,
            cpu_percent=cpu,
            memory_mb=max(self.start_memory, end_memory),
            timestamp=time.time(),
            additional_data=self.additional_data,
        ))
        logger.debug(f"{self.operation_name} took {duration:.4f}s")
        return False


def get_system_info() -> Dict[str, Any]:
    """Host details plus the group sizes and library versions behind the measurements"""
    memory = psutil.virtual_memory()
    return {
        'host': {
            'platform': platform.platform(),
            'python': platform.python_version(),
            'cores': psutil.cpu_count(logical=False),
            'threads': psutil.cpu_count(logical=True),
            'memory_gb': round(memory.total / 1024 ** 3, 2),
        },
        'group': {
            'p_bits': P.bit_length(),
            'q_bits': Q.bit_length(),
        },
        'libraries': {
            'gmpy2': gmpy2.version(),
            'galois': galois.__version__,
            'cryptography': cryptography.__version__,
            'numpy': np.__version__,
        },
        'timestamp': datetime.now().isoformat(),
    }


def format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes = int(seconds // 60)
    return f"{minutes}m {seconds % 60:.1f}s"


# ============================================================================
# RESULTS
# ============================================================================


def to_serializable(obj: Any) -> Any:
    """Convert election records into JSON-friendly values"""
    if isinstance(obj, (ElementModQ, ElementModP)):
        return obj.to_hex()
    if isinstance(obj, Enum):
        return obj.name
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f: to_serializable(getattr(obj, f)) for f in obj.__dataclass_fields__}
    if isinstance(obj, dict):
        return {str(k): to_serializable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_serializable(item) for item in obj]
    if isinstance(obj, (np.integer, np.floating)):
        return obj.item()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, bytes):
        return obj.hex()
    if isinstance(obj, (Path, datetime)):
        return str(obj)
    return obj


def save_results(results: Dict[str, Any], filepath: Path):
    """Write results as JSON plus a human-readable summary next to it"""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    document = {
        'metadata': {
            'generated_at': datetime.now().isoformat(),
            'system_info': get_system_info(),
        },
        'data': to_serializable(results)
    }

    with open(filepath, 'w') as f:
        json.dump(document, f, indent=2, default=str)

    summary_path = filepath.parent / f"{filepath.stem}_summary.txt"
    with open(summary_path, 'w') as f:
        f.write(create_results_summary(results))

    logger.info(f"Results saved to {filepath}")
    logger.info(f"Summary saved to {summary_path}")


def create_results_summary(results: Dict[str, Any]) -> str:
    summary = []
    summary.append("=" * 80)
    summary.append("ELECTION RESULTS SUMMARY")
    summary.append("=" * 80)
    summary.append(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    if 'election_id' in results:
        summary.append(f"Election: {results['election_id']}")
    summary.append("")

    ceremony = results.get('ceremony')
    if isinstance(ceremony, dict):
        summary.append("KEY CEREMONY:")
        for key, value in ceremony.items():
            summary.append(f"  {key}: {value}")
        summary.append("")

    ballots = results.get('ballots')
    if isinstance(ballots, dict):
        summary.append("BALLOTS:")
        for key, value in ballots.items():
            summary.append(f"  {key}: {value}")
        summary.append("")

    tally = results.get('tally')
    if isinstance(tally, dict):
        summary.append("ELECTION TALLY:")
        for contest_id, selections in tally.items():
            summary.append(f"  {contest_id}:")
            total = sum(selections.values())
            for selection_id, count in selections.items():
                percentage = count / total * 100 if total else 0.0
                summary.append(f"    {selection_id}: {count} votes ({percentage:.1f}%)")
        summary.append("")

    checks = results.get('verification')
    if isinstance(checks, dict):
        summary.append("VERIFICATION CHECKS:")
        for check, passed in checks.items():
            summary.append(f"  {check}: {'PASSED' if passed else 'FAILED'}")
        summary.append("")

    summary.append("=" * 80)
    return "\n".join(summary)


def create_performance_report(monitor: PerformanceMonitor) -> str:
    """Format the monitor's per-operation statistics"""
    summary = monitor.get_summary()

    report = []
    report.append("=" * 80)
    report.append("ELECTION PERFORMANCE REPORT")
    report.append("=" * 80)
    report.append(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    report.append(f"Total Operations: {summary['total_operations']}")
    report.append(f"Total Duration: {format_duration(summary['total_duration'])}")
    report.append("")

    if summary['operations']:
        report.append("OPERATION BREAKDOWN:")
        report.append("-" * 60)

        for op_name, op_data in summary['operations'].items():
            report.append(f"\n{op_name.upper()}:")
            report.append(f"  Executions: {op_data['count']}")
            report.append(f"  Total Time: {op_data['total_duration']:.3f}s")
            report.append(f"  Average Time: {op_data['avg_duration']:.4f}s")
            report.append(
                f"  Min/Max Time: {op_data['min_duration']:.4f}s / {op_data['max_duration']:.4f}s")
            report.append(f"  Std Deviation: {op_data['std_duration']:.4f}s")
            report.append(f"  Throughput: {op_data['throughput_ops_per_sec']:.2f} ops/sec")
            if op_data['avg_cpu_percent'] > 0:
                report.append(f"  Average CPU: {op_data['avg_cpu_percent']:.1f}%")
            if op_data['peak_memory_mb'] > 0:
                report.append(f"  Peak Memory: {op_data['peak_memory_mb']:.1f} MB")
    else:
        report.append("No performance data available.")

    report.append("")
    report.append("=" * 80)
    return "\n".join(report)
