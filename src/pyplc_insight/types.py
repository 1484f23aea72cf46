"""Core data model: program rows, function blocks, gateway requests/results, search hits."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class DeviceDataType(str, Enum):
    """Best-effort classification of what a device holds."""

    UNKNOWN = "unknown"
    BIT = "bit"
    WORD = "word"
    DOUBLE_WORD = "double_word"
    FLOAT = "float"


@dataclass(frozen=True)
class ProgramLine:
    """One imported ladder row: the raw text and its tokenized columns."""

    raw: str
    columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProgramFile:
    """Raw import unit: a program file name and its text lines."""

    name: str
    lines: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProgramContext:
    """Program text handed to the reasoner as a secondary device source."""

    name: str
    lines: tuple[str, ...] = ()


@dataclass(frozen=True)
class FunctionBlockData:
    """Opaque function-block metadata; label/program contents are CSV text."""

    name: str
    safe_name: str = ""
    label_content: str = ""
    program_content: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "safeName": self.safe_name,
            "labelContent": self.label_content,
            "programContent": self.program_content,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class CommentSearchResult:
    """Ranked comment hit for a natural-language question."""

    device: str
    comment: str
    score: float
    matched_terms: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class GatewayOptions:
    """Where the live-value gateway lives and how long to wait for it."""

    base_url: str = "http://localhost:8000"
    timeout: float = 10.0


@dataclass(frozen=True)
class DeviceReadRequest:
    """Single-device read: one spec plus optional PLC endpoint overrides."""

    spec: str
    host: str | None = None
    port: int | None = None
    timeout: float | None = None
    base_url: str | None = None


@dataclass(frozen=True)
class BatchReadRequest:
    """Aggregate read of several specs in one gateway round-trip."""

    specs: tuple[str, ...]
    host: str | None = None
    port: int | None = None
    transport: str | None = None
    timeout: float | None = None
    base_url: str | None = None


@dataclass(frozen=True)
class DeviceReadResult:
    """Outcome of reading one device; failures are values, not exceptions."""

    device: str
    values: tuple[int, ...] = ()
    success: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "device": self.device,
            "values": list(self.values),
            "success": self.success,
        }
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass(frozen=True)
class BatchReadResult:
    """Per-device outcomes of a batch read, plus an aggregate error if any."""

    results: tuple[DeviceReadResult, ...] = ()
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None and all(r.success for r in self.results)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"results": [r.to_dict() for r in self.results]}
        if self.error is not None:
            out["error"] = self.error
        return out
