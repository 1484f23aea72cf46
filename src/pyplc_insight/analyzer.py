"""PlcProgramAnalyzer: context blocks, related devices, comments and data-type inference."""

import logging
import re

from .address import WORD_DEVICES
from .store import PlcDataStore
from .types import DeviceDataType, ProgramLine

logger = logging.getLogger(__name__)

# ASCII word boundaries so a token directly followed by Japanese text still matches
_DEVICE_PATTERN = re.compile(r"\b([dwmxyct]\d+)\b", re.IGNORECASE | re.ASCII)

INSTRUCTION_COLUMN = 2


def render_line(line: ProgramLine) -> str:
    """Join non-blank, quote-stripped columns with one space; fall back to raw text."""
    parts = [c.strip().strip('"') for c in line.columns]
    parts = [p for p in parts if p]
    return " ".join(parts) if parts else line.raw


def instruction_of(line: ProgramLine) -> str | None:
    """Trimmed, unquoted mnemonic from the instruction column, or None when blank."""
    if len(line.columns) <= INSTRUCTION_COLUMN:
        return None
    value = line.columns[INSTRUCTION_COLUMN].strip().strip('"').strip()
    return value or None


def _contains_token(line: ProgramLine, token: str) -> bool:
    return bool(line.raw.strip()) and token.lower() in line.raw.lower()


def _classify_instruction(instruction: str) -> DeviceDataType:
    mnemonic = instruction.upper()
    if mnemonic.startswith("E") or "FLT" in mnemonic or "REAL" in mnemonic:
        return DeviceDataType.FLOAT
    if (mnemonic.startswith("D") and not mnemonic.startswith("DI")) or "DINT" in mnemonic or "DWORD" in mnemonic:
        return DeviceDataType.DOUBLE_WORD
    return DeviceDataType.UNKNOWN


def _classify_columns(columns: tuple[str, ...]) -> DeviceDataType:
    for column in columns:
        text = column.upper()
        if "REAL" in text or "FLOAT" in text:
            return DeviceDataType.FLOAT
        if "DWORD" in text or "DINT" in text:
            return DeviceDataType.DOUBLE_WORD
    return DeviceDataType.UNKNOWN


class PlcProgramAnalyzer:
    """Read-only queries over the programs and comments held by a PlcDataStore."""

    def __init__(self, store: PlcDataStore) -> None:
        if store is None:
            raise ValueError("store is required")
        self._store = store

    def get_program_blocks(self, device_class: str, address: int | str, context: int = 30) -> list[str]:
        """
        Return one text block per line mentioning the device, spanning
        `context` lines either side (clamped to the file).
        """
        token = f"{device_class}{address}"
        context = max(0, context)
        blocks: list[str] = []
        for lines in self._store.programs.values():
            for i, line in enumerate(lines):
                if not _contains_token(line, token):
                    continue
                start = max(0, i - context)
                end = min(len(lines) - 1, i + context)
                blocks.append("\n".join(render_line(ln) for ln in lines[start:end + 1]))
        return blocks

    def get_related_devices(self, device_class: str, address: int | str) -> list[str]:
        """Devices appearing on or next to the lines that mention the target, sorted."""
        target = f"{device_class}{address}".upper()
        found: set[str] = set()
        for lines in self._store.programs.values():
            for i, line in enumerate(lines):
                if not _contains_token(line, target):
                    continue
                start = max(0, i - 1)
                end = min(len(lines) - 1, i + 1)
                for neighbour in lines[start:end + 1]:
                    for m in _DEVICE_PATTERN.finditer(neighbour.raw):
                        value = m.group(1).upper()
                        if value != target:
                            found.add(value)
        return sorted(found)

    def get_comment(self, device_class: str, address: int | str) -> str:
        device_class = device_class.upper()
        comment = self._store.try_get_comment(f"{device_class}{address}")
        if comment is None and device_class == "TS":
            # exports often key timers with the bare T prefix
            comment = self._store.try_get_comment(f"T{address}")
        return comment or ""

    def infer_device_data_type(self, device_class: str, address: int | str) -> DeviceDataType:
        """
        Guess the width of a word device from the instructions that touch it.

        The first non-UNKNOWN classification in program/line order wins.
        """
        if device_class.upper() not in WORD_DEVICES:
            return DeviceDataType.UNKNOWN

        token = re.compile(rf"\b{re.escape(f'{device_class}{address}')}\b", re.IGNORECASE | re.ASCII)
        for name, lines in self._store.programs.items():
            current: str | None = None
            for line in lines:
                mnemonic = instruction_of(line)
                if mnemonic is not None:
                    current = mnemonic
                if not any(token.search(column) for column in line.columns):
                    continue
                result = _classify_instruction(current) if current else DeviceDataType.UNKNOWN
                if result is DeviceDataType.UNKNOWN:
                    result = _classify_columns(line.columns)
                if result is not DeviceDataType.UNKNOWN:
                    logger.debug("%s%s inferred as %s in %s", device_class, address, result.value, name)
                    return result
        return DeviceDataType.UNKNOWN
