"""
Tracking hashes chain every ballot encrypted on a device to the one before it.
"""

import logging
from typing import List

from group import ElementModQ, hash_elems

logger = logging.getLogger(__name__)


def get_hash_for_device(uuid: int, session_id: str, launch_code: int, location: str) -> ElementModQ:
    """Starting hash of a device's chain"""
    return hash_elems(uuid, session_id, launch_code, location)


def get_rotating_tracker_hash(
    object_id: str,
    prev_hash: ElementModQ,
    contest_hashes: List[ElementModQ],
    timestamp: int,
) -> ElementModQ:
    """Next link: H(object_id, previous hash, contest hashes, timestamp)"""
    return hash_elems(object_id, prev_hash, contest_hashes, timestamp)


def tracker_hash_to_code(tracker_hash: ElementModQ, separator: str = "-") -> str:
    """Readable form for the voter: hex groups of four bytes"""
    digits = tracker_hash.to_hex()
    return separator.join(digits[i:i + 8] for i in range(0, len(digits), 8))
