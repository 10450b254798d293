"""
Interpreter registry and dispatch.

Formats are tried in registration order (Bambu, Creality, OpenTag) unless
the scan already names its format and that interpreter accepts it.
"""

import logging
from typing import Optional

from spooltag.catalog.catalog import FilamentCatalog
from spooltag.config import COLOR_MATCH_THRESHOLD
from spooltag.rfid.scan_data import DecryptedScanData, FilamentInfo, TagFormat

from . import bambu, creality, opentag
from .base import TagInterpreter

logger = logging.getLogger(__name__)


class InterpreterFactory:
    """Holds one interpreter per supported tag format."""

    def __init__(
        self,
        catalog: Optional[FilamentCatalog] = None,
        color_match_threshold: float = COLOR_MATCH_THRESHOLD,
    ):
        self.catalog = catalog
        self.color_match_threshold = color_match_threshold
        self._interpreters: dict[TagFormat, TagInterpreter] = {}
        self._register(self._build_bambu())
        self._register(creality.make_interpreter(catalog))
        self._register(opentag.make_interpreter())

    def _register(self, interpreter: TagInterpreter):
        self._interpreters[interpreter.tag_format] = interpreter
        logger.debug(f"Registered interpreter for {interpreter.tag_format.value}")

    def _build_bambu(self) -> TagInterpreter:
        mappings = self.catalog.current_mappings() if self.catalog else None
        return bambu.make_interpreter(mappings, self.color_match_threshold)

    def interpret(self, data: DecryptedScanData) -> Optional[FilamentInfo]:
        """
        Interpret a scan with the first interpreter that accepts it.

        Returns:
            FilamentInfo, or None if no interpreter accepts the scan or the
            accepting one cannot extract it.
        """
        tagged = self._interpreters.get(data.tag_format)
        if tagged is not None and self._accepts(tagged, data):
            logger.debug(f"Tag {data.tag_uid}: using {tagged.display_name}")
            return tagged.interpret(data)

        for interpreter in self._interpreters.values():
            if self._accepts(interpreter, data):
                logger.debug(f"Tag {data.tag_uid}: detected {interpreter.display_name}")
                return interpreter.interpret(data)

        logger.warning(
            f"No interpreter for tag {data.tag_uid} "
            f"(format {data.tag_format.value}, {data.technology})"
        )
        return None

    @staticmethod
    def _accepts(interpreter: TagInterpreter, data: DecryptedScanData) -> bool:
        try:
            return interpreter.can_interpret(data)
        except Exception:
            logger.exception(f"{interpreter.display_name} failed to inspect tag {data.tag_uid}")
            return False

    def get_interpreter(self, tag_format: TagFormat) -> Optional[TagInterpreter]:
        return self._interpreters.get(tag_format)

    def refresh_mappings(self):
        """Rebuild the Bambu interpreter from the catalog's current snapshot."""
        self._interpreters[TagFormat.BAMBU_PROPRIETARY] = self._build_bambu()
        logger.info("Bambu interpreter refreshed with current catalog mappings")

    def get_supported_formats(self) -> list[TagFormat]:
        return list(self._interpreters)

    def get_supported_interpreter_names(self) -> list[str]:
        return [i.display_name for i in self._interpreters.values()]
