"""
Interpreter records.

Each supported tag format is one ``TagInterpreter``: a format tag, a
display name and two plain functions. The factory keeps them in a lookup
table keyed by ``TagFormat``; there is no class hierarchy to extend.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from spooltag.rfid.scan_data import DecryptedScanData, FilamentInfo, ScanResult, TagFormat

logger = logging.getLogger(__name__)

Extractor = Callable[[DecryptedScanData], Optional[FilamentInfo]]


@dataclass(frozen=True)
class TagInterpreter:
    tag_format: TagFormat
    display_name: str
    can_interpret: Callable[[DecryptedScanData], bool]
    interpret: Extractor


def guarded(display_name: str, extract: Extractor) -> Extractor:
    """
    Wrap a format extractor with the common interpret() contract.

    Failed scans and empty block maps yield None, and so does any
    unexpected error inside the extractor (logged with its traceback).
    """
    def interpret(data: DecryptedScanData) -> Optional[FilamentInfo]:
        if data.scan_result != ScanResult.SUCCESS:
            logger.debug(f"{display_name}: skipping failed scan ({data.scan_result.value})")
            return None
        if not data.decrypted_blocks:
            logger.warning(f"{display_name}: no decrypted blocks for tag {data.tag_uid}")
            return None
        try:
            return extract(data)
        except Exception:
            logger.exception(f"{display_name}: error interpreting tag {data.tag_uid}")
            return None

    return interpret
