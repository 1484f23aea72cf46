"""PlcDataStore: in-memory comments, parsed programs and function blocks."""

import logging
import threading
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from .parser import TabularProgramParser
from .types import FunctionBlockData, ProgramFile, ProgramLine

logger = logging.getLogger(__name__)

_EMPTY: Mapping = MappingProxyType({})


class PlcDataStore:
    """
    Process-wide store for one PLC project, owned by the caller and injected
    into the analyzers.

    Every set_* call builds a fresh mapping and publishes it with one reference
    swap, so readers always see a complete generation of each collection and
    never need a lock. Collections are swapped independently: a reader spanning
    comments and programs during a reload can see one new and one old.
    """

    def __init__(self, parser: TabularProgramParser | None = None) -> None:
        self._parser = parser if parser is not None else TabularProgramParser()
        self._write_lock = threading.Lock()
        self._comments: Mapping[str, str] = _EMPTY
        self._programs: Mapping[str, tuple[ProgramLine, ...]] = _EMPTY
        self._function_blocks: Mapping[str, FunctionBlockData] = _EMPTY

    @property
    def comments(self) -> Mapping[str, str]:
        return self._comments

    @property
    def programs(self) -> Mapping[str, tuple[ProgramLine, ...]]:
        return self._programs

    @property
    def function_blocks(self) -> tuple[FunctionBlockData, ...]:
        return tuple(self._function_blocks.values())

    def clear(self) -> None:
        """Empty every collection."""
        with self._write_lock:
            self._comments = _EMPTY
            self._programs = _EMPTY
            self._function_blocks = _EMPTY

    def set_comments(self, comments: Mapping[str, str]) -> None:
        """Replace all comments; keys and values are trimmed, blank keys dropped."""
        fresh: dict[str, str] = {}
        for key, value in comments.items():
            device = (key or "").strip()
            if not device:
                continue
            fresh[device] = (value or "").strip()
        with self._write_lock:
            self._comments = MappingProxyType(fresh)
        logger.debug("Comments loaded: %d entries", len(fresh))

    def set_programs(self, programs: Iterable[ProgramFile]) -> None:
        """Replace all programs, parsing every row; unnamed files are dropped."""
        fresh: dict[str, tuple[ProgramLine, ...]] = {}
        for program in programs:
            if not (program.name or "").strip():
                continue
            fresh[program.name] = self._parser.parse_lines(program.lines)
        with self._write_lock:
            self._programs = MappingProxyType(fresh)
        logger.debug("Programs loaded: %d files", len(fresh))

    def set_function_blocks(self, blocks: Iterable[FunctionBlockData]) -> None:
        """Replace all function blocks, keyed case-insensitively by name."""
        fresh: dict[str, FunctionBlockData] = {}
        for block in blocks:
            key = _block_key(block.name)
            if not key:
                continue
            fresh[key] = block
        with self._write_lock:
            self._function_blocks = MappingProxyType(fresh)
        logger.debug("Function blocks loaded: %d entries", len(fresh))

    def try_get_comment(self, device: str | None) -> str | None:
        """Return the comment for a device key, or None when there is none."""
        key = (device or "").strip()
        if not key:
            return None
        return self._comments.get(key)

    def try_get_function_block(self, name: str | None) -> FunctionBlockData | None:
        key = _block_key(name)
        if not key:
            return None
        return self._function_blocks.get(key)


def _block_key(name: str | None) -> str:
    return (name or "").strip().casefold()
