"""Summaries and keyword search over function-block label/program CSV exports."""

import csv
from typing import Any

from .store import PlcDataStore
from .types import FunctionBlockData

MAX_LABELS = 10
MAX_INSTRUCTIONS = 20


def _rows(content: str | None) -> list[list[str]]:
    if not content or not content.strip():
        return []
    delimiter = "\t" if "\t" in content else ","
    return list(csv.reader(content.splitlines(), delimiter=delimiter))


def _usable(row: list[str]) -> bool:
    return len(row) >= 2 and any(cell.strip() for cell in row)


def summarize_labels(content: str | None) -> list[dict[str, str]]:
    """Label rows after the header as {name, type, description}, at most MAX_LABELS."""
    labels: list[dict[str, str]] = []
    for row in _rows(content)[1:]:
        if not _usable(row):
            continue
        labels.append(
            {
                "name": row[0].strip(),
                "type": row[1].strip(),
                "description": row[2].strip() if len(row) > 2 else "",
            }
        )
        if len(labels) >= MAX_LABELS:
            break
    return labels


def summarize_program(content: str | None) -> dict[str, Any]:
    """
    Program rows after the header: column 0 is the line number, the other
    non-blank columns joined by a space form the instruction text.
    lineCount counts every data row, including ones past the MAX_INSTRUCTIONS cap.
    """
    rows = _rows(content)
    if len(rows) <= 1:
        return {"lineCount": 0}

    instructions: list[dict[str, str]] = []
    for row in rows[1:]:
        if not _usable(row):
            continue
        instructions.append(
            {
                "line": row[0].strip(),
                "instruction": " ".join(cell.strip() for cell in row[1:] if cell.strip()),
            }
        )
        if len(instructions) >= MAX_INSTRUCTIONS:
            break
    return {"lineCount": len(rows) - 1, "instructions": instructions}


def _contains(text: str, keyword: str) -> bool:
    return bool(text and text.strip()) and keyword.casefold() in text.casefold()


def search_function_blocks(store: PlcDataStore, keyword: str | None) -> list[FunctionBlockData]:
    """Blocks whose name, label content or program content contains keyword (case-insensitive)."""
    if not keyword or not keyword.strip():
        return []
    keyword = keyword.strip()
    return [
        block
        for block in store.function_blocks
        if _contains(block.name, keyword)
        or _contains(block.label_content, keyword)
        or _contains(block.program_content, keyword)
    ]
