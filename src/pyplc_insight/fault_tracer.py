"""PlcFaultTracer: find OUT-driven L coils whose comment marks an error condition."""

import logging
import re
from typing import Any

from .analyzer import INSTRUCTION_COLUMN, instruction_of
from .store import PlcDataStore
from .types import ProgramLine

logger = logging.getLogger(__name__)

ERROR_KEYWORDS = ("異常", "エラー", "ｴﾗｰ", "ERR", "ERROR")

_COIL_PATTERN = re.compile(r"\bL[0-9a-f]+\b", re.IGNORECASE | re.ASCII)
_DEVICE_PATTERN = re.compile(r"\b([dmxyctl][0-9a-f]+)\b", re.IGNORECASE | re.ASCII)

# The coil line plus this many preceding lines feed the related-device scan
_LOOKBACK = 2


def _dedupe(items) -> list[str]:
    return list(dict.fromkeys(items))


class PlcFaultTracer:
    """Traces error coils back to the contacts that drive them."""

    def __init__(self, store: PlcDataStore) -> None:
        if store is None:
            raise ValueError("store is required")
        self._store = store

    def trace_error_coils(self) -> dict[str, Any]:
        """
        Scan every OUT instruction for L coils with an error-like comment.

        Returns {"status": "success", "candidates": [...]} in scan order, or
        {"status": "not_found", "message": ...} when nothing qualifies.
        """
        candidates: list[dict[str, Any]] = []
        for lines in self._store.programs.values():
            for i, line in enumerate(lines):
                instruction = instruction_of(line)
                if instruction is None or instruction.upper() != "OUT":
                    continue
                for coil in _dedupe(m.group(0).upper() for m in _COIL_PATTERN.finditer(line.raw)):
                    comment = self._store.try_get_comment(coil)
                    if not _is_error_comment(comment):
                        continue
                    candidates.append(
                        {
                            "device": coil,
                            "comment": comment,
                            "instruction": instruction,
                            "line": line.raw.strip(),
                            "relatedDevices": _related_devices(lines, i, coil),
                        }
                    )

        if not candidates:
            return {
                "status": "not_found",
                "message": "No L coil with an error comment was found",
            }
        logger.debug("Error coil candidates: %d", len(candidates))
        return {"status": "success", "candidates": candidates}


def _is_error_comment(comment: str | None) -> bool:
    if not comment or not comment.strip():
        return False
    text = comment.upper()
    return any(keyword.upper() in text for keyword in ERROR_KEYWORDS)


def _related_devices(lines: tuple[ProgramLine, ...], index: int, coil: str) -> list[str]:
    start = max(0, index - _LOOKBACK)
    found = (
        m.group(1).upper()
        for line in lines[start:index + 1]
        for text in _operands(line)
        for m in _DEVICE_PATTERN.finditer(text)
    )
    return [device for device in _dedupe(found) if device != coil]


def _operands(line: ProgramLine) -> list[str]:
    # mnemonics such as LD or DEC would otherwise read as hex devices
    if not line.columns:
        return [line.raw]
    return [column for i, column in enumerate(line.columns) if i != INSTRUCTION_COLUMN]
