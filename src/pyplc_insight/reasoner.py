"""PlcReasoner: pull device mentions out of free text, no guessing beyond the pattern."""

import re
from collections.abc import Iterable
from typing import Any

from .types import ProgramContext

# No word boundary: mentions are often glued to Japanese text ("M10が")
_DEVICE_PATTERN = re.compile(r"([dmlxyct][0-9][0-9a-f]*)", re.IGNORECASE)

MAX_CANDIDATES = 8
QUESTION_REASON = "extracted from device notation in the question"
NO_DEVICE_MESSAGE = "No device could be inferred. Mention it explicitly, e.g. D100 or M10."


def extract_devices(sources: Iterable[str], limit: int = MAX_CANDIDATES) -> list[str]:
    """Distinct upper-cased device tokens in order of first appearance, capped at limit."""
    found: list[str] = []
    for source in sources:
        for m in _DEVICE_PATTERN.finditer(source or ""):
            device = m.group(1).upper()
            if device in found:
                continue
            found.append(device)
            if len(found) >= limit:
                return found
    return found


class PlcReasoner:
    """Heuristic device inference for conversational questions."""

    def infer_single(self, query: str | None) -> dict[str, Any]:
        devices = extract_devices([query or ""])
        if not devices:
            return {"device": None, "message": NO_DEVICE_MESSAGE}
        return {"device": devices[0], "reason": QUESTION_REASON}

    def infer_multiple(self, query: str | None, programs: Iterable[ProgramContext] = ()) -> dict[str, Any]:
        """
        Rank candidates: mentions in the question first, then devices found in
        the given program contexts, at most MAX_CANDIDATES in total.
        """
        items: list[dict[str, Any]] = []
        seen: set[str] = set()

        def append(devices: list[str], reason: str) -> None:
            for device in devices:
                if device in seen or len(items) >= MAX_CANDIDATES:
                    continue
                seen.add(device)
                items.append({"device": device, "priority": len(items) + 1, "reason": reason})

        append(extract_devices([query or ""]), QUESTION_REASON)
        for program in programs:
            if len(items) >= MAX_CANDIDATES:
                break
            devices = extract_devices(program.lines)
            if not devices:
                continue
            reason = f"extracted from program {program.name}" if program.name else "extracted from program"
            append(devices, reason)

        if not items:
            return {"devices": [], "message": "no candidates"}
        return {"devices": items}
