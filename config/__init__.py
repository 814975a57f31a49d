"""Configuration management for the election engine."""

from .config import (
    SystemConfig,
    KeyCeremonyConfig,
    EncryptionConfig,
    TallyConfig,
    load_config,
    save_config,
)

__all__ = [
    'SystemConfig',
    'KeyCeremonyConfig',
    'EncryptionConfig',
    'TallyConfig',
    'load_config',
    'save_config',
]
