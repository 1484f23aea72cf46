"""Import comment CSVs, ladder program files and function-block JSON into a PlcDataStore."""

import asyncio
import csv
import json
import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from .errors import DataFileError
from .store import PlcDataStore
from .types import FunctionBlockData, ProgramFile

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "utf-8-sig"


def _split_row(line: str) -> list[str]:
    """Split a comment row on tab when present, else comma; honours quotes."""
    delimiter = "\t" if "\t" in line else ","
    return next(csv.reader([line], delimiter=delimiter), [])


def _is_header(line: str) -> bool:
    lowered = line.lower()
    return "device" in lowered and "comment" in lowered


def read_comment_file(path: str | Path, encoding: str = DEFAULT_ENCODING) -> dict[str, str]:
    """
    Load device -> comment from a CSV/TSV export. Column 0 is the device,
    column 1 the comment. A first row naming both 'device' and 'comment' is
    treated as a header. Short rows and blank devices are skipped.
    """
    p = Path(path)
    if not p.is_file():
        raise DataFileError(str(p), f"Comment file not found: {p}")

    comments: dict[str, str] = {}
    with open(p, newline="", encoding=encoding, errors="replace") as f:
        for index, raw in enumerate(f):
            line = raw.rstrip("\r\n")
            if index == 0 and _is_header(line):
                continue
            if not line.strip():
                continue
            row = _split_row(line)
            if len(row) < 2:
                continue
            device = row[0].strip().strip('"')
            if not device:
                continue
            comments[device] = row[1].strip().strip('"')
    logger.debug("Read %d comments from %s", len(comments), p)
    return comments


def read_program_file(path: str | Path, encoding: str = DEFAULT_ENCODING) -> ProgramFile:
    """Read one ladder export; the store key is the bare file name."""
    p = Path(path)
    with open(p, encoding=encoding, errors="replace") as f:
        lines = tuple(line.rstrip("\r\n") for line in f)
    return ProgramFile(name=p.name, lines=lines)


def read_program_files(paths: Iterable[str | Path], encoding: str = DEFAULT_ENCODING) -> list[ProgramFile]:
    """Read several program files; missing paths are logged and skipped."""
    programs: list[ProgramFile] = []
    for path in paths:
        p = Path(path)
        if not p.is_file():
            logger.info("Program file not found, skipping: %s", p)
            continue
        programs.append(read_program_file(p, encoding))
    return programs


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _parse_block(raw: dict[str, Any]) -> FunctionBlockData | None:
    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        return None
    name = name.strip()
    return FunctionBlockData(
        name=name,
        safe_name=str(raw.get("safeName") or name),
        label_content=str(raw.get("labelContent") or ""),
        program_content=str(raw.get("programContent") or ""),
        created_at=_parse_timestamp(raw.get("createdAt")),
        updated_at=_parse_timestamp(raw.get("updatedAt")),
    )


def read_function_block_file(path: str | Path) -> list[FunctionBlockData]:
    """Load function blocks from a JSON list (or {"functionBlocks": [...]})."""
    p = Path(path)
    try:
        with open(p, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise DataFileError(str(p), f"Function block file not found: {p}") from None
    except json.JSONDecodeError as e:
        raise DataFileError(str(p), f"Malformed function block JSON in {p}: {e}") from e

    if isinstance(data, dict):
        entries = data.get("functionBlocks", [])
    elif isinstance(data, list):
        entries = data
    else:
        entries = []

    blocks: list[FunctionBlockData] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        block = _parse_block(entry)
        if block is not None:
            blocks.append(block)
    logger.debug("Read %d function blocks from %s", len(blocks), p)
    return blocks


async def load_comments(store: PlcDataStore, path: str | Path, encoding: str = DEFAULT_ENCODING) -> int:
    """Read a comment file off the event loop and replace the store's comments."""
    comments = await asyncio.to_thread(read_comment_file, path, encoding)
    store.set_comments(comments)
    return len(comments)


async def load_programs(
    store: PlcDataStore,
    paths: Iterable[str | Path],
    encoding: str = DEFAULT_ENCODING,
) -> int:
    """Read program files one at a time (cancellable between files) and replace programs."""
    programs: list[ProgramFile] = []
    for path in paths:
        p = Path(path)
        if not p.is_file():
            logger.info("Program file not found, skipping: %s", p)
            continue
        programs.append(await asyncio.to_thread(read_program_file, p, encoding))
    store.set_programs(programs)
    return len(programs)


async def load_function_blocks(store: PlcDataStore, path: str | Path) -> int:
    blocks = await asyncio.to_thread(read_function_block_file, path)
    store.set_function_blocks(blocks)
    return len(blocks)
