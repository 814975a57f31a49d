import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

MAX_GUARDIANS = 255


@dataclass
class KeyCeremonyConfig:
    number_of_guardians: int = 5
    quorum: int = 3
    auxiliary_key_size: int = 2048


@dataclass
class EncryptionConfig:
    device_uuid: int = field(default_factory=lambda: uuid.getnode())
    session_id: str = "polling-session"
    launch_code: int = 42
    location: str = "polling-place"
    should_verify_proofs: bool = True


@dataclass
class TallyConfig:
    max_workers: Optional[int] = None
    discrete_log_max: int = 1_000_000_000

    def __post_init__(self):
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {self.max_workers}")
        if self.discrete_log_max < 1:
            raise ValueError(f"discrete_log_max must be positive, got {self.discrete_log_max}")


@dataclass
class SystemConfig:
    election_id: str = "election"

    key_ceremony: KeyCeremonyConfig = field(default_factory=KeyCeremonyConfig)
    encryption: EncryptionConfig = field(default_factory=EncryptionConfig)
    tally: TallyConfig = field(default_factory=TallyConfig)

    log_dir: Path = field(default_factory=lambda: Path("logs"))
    results_dir: Path = field(default_factory=lambda: Path("results"))
    enable_benchmarking: bool = True
    enable_debug_mode: bool = False

    def __post_init__(self):
        n = self.key_ceremony.number_of_guardians
        k = self.key_ceremony.quorum
        if not 1 <= k <= n <= MAX_GUARDIANS:
            raise ValueError(
                f"Need 1 <= quorum <= guardians <= {MAX_GUARDIANS}, got quorum={k} guardians={n}")

        self.log_dir = Path(self.log_dir)
        self.results_dir = Path(self.results_dir)

        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.results_dir.mkdir(parents=True, exist_ok=True)


def load_config(config_path: Optional[Path] = None) -> SystemConfig:
    """Load configuration from a YAML file or return the defaults"""
    if config_path is None:
        config_path = Path("config.yaml")
    config_path = Path(config_path)

    if not config_path.exists():
        logger.warning(f"Config file {config_path} not found, using default configuration")
        return SystemConfig()

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}

        ceremony_data = config_data.get('key_ceremony', {})
        key_ceremony = KeyCeremonyConfig(
            number_of_guardians=ceremony_data.get('number_of_guardians', 5),
            quorum=ceremony_data.get('quorum', 3),
            auxiliary_key_size=ceremony_data.get('auxiliary_key_size', 2048),
        )

        encryption_data = config_data.get('encryption', {})
        defaults = EncryptionConfig()
        encryption = EncryptionConfig(
            device_uuid=encryption_data.get('device_uuid', defaults.device_uuid),
            session_id=encryption_data.get('session_id', defaults.session_id),
            launch_code=encryption_data.get('launch_code', defaults.launch_code),
            location=encryption_data.get('location', defaults.location),
            should_verify_proofs=encryption_data.get('should_verify_proofs', True),
        )

        tally_data = config_data.get('tally', {})
        tally = TallyConfig(
            max_workers=tally_data.get('max_workers'),
            discrete_log_max=tally_data.get('discrete_log_max', 1_000_000_000),
        )

        return SystemConfig(
            election_id=config_data.get('election_id', 'election'),
            key_ceremony=key_ceremony,
            encryption=encryption,
            tally=tally,
            log_dir=Path(config_data.get('log_dir', 'logs')),
            results_dir=Path(config_data.get('results_dir', 'results')),
            enable_benchmarking=config_data.get('enable_benchmarking', True),
            enable_debug_mode=config_data.get('enable_debug_mode', False),
        )
    except (OSError, yaml.YAMLError, AttributeError, TypeError, ValueError) as e:
        logger.warning(f"Could not load config file {config_path}: {e}")
        logger.warning("Using default configuration")

    return SystemConfig()


def save_config(config: SystemConfig, config_path: Optional[Path] = None):
    """Save configuration to a YAML file"""
    if config_path is None:
        config_path = Path("config.yaml")

    config_data = {
        'election_id': config.election_id,
        'key_ceremony': {
            'number_of_guardians': config.key_ceremony.number_of_guardians,
            'quorum': config.key_ceremony.quorum,
            'auxiliary_key_size': config.key_ceremony.auxiliary_key_size,
        },
        'encryption': {
            'device_uuid': config.encryption.device_uuid,
            'session_id': config.encryption.session_id,
            'launch_code': config.encryption.launch_code,
            'location': config.encryption.location,
            'should_verify_proofs': config.encryption.should_verify_proofs,
        },
        'tally': {
            'max_workers': config.tally.max_workers,
            'discrete_log_max': config.tally.discrete_log_max,
        },
        'log_dir': str(config.log_dir),
        'results_dir': str(config.results_dir),
        'enable_benchmarking': config.enable_benchmarking,
        'enable_debug_mode': config.enable_debug_mode,
    }

    try:
        with open(config_path, 'w') as f:
            yaml.dump(config_data, f, default_flow_style=False)
    except OSError as e:
        logger.warning(f"Could not save config file {config_path}: {e}")
