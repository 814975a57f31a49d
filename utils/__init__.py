"""Utilities for the election engine."""

from .utils import (
    setup_logging,
    save_results,
    to_serializable,
    PerformanceMonitor,
    PerformanceMetrics,
    create_performance_report,
    create_results_summary,
    format_duration,
    get_system_info
)

__all__ = [
    'setup_logging',
    'save_results',
    'to_serializable',
    'PerformanceMonitor',
    'PerformanceMetrics',
    'create_performance_report',
    'create_results_summary',
    'format_duration',
    'get_system_info'
]
