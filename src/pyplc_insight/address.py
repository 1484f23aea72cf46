"""Parse and encode PLC device specs (class + address + optional :length)."""

import re
from dataclasses import dataclass, replace

# Longest prefixes first so ZR/TS win over a single-letter fallback
_DEVICE_PREFIXES = ("ZR", "TS", "D", "W", "R", "X", "Y", "M", "L", "B")

_LENGTH_PATTERN = re.compile(r"^\s*\+?(\d+)\s*$")

# Word-class devices hold 16-bit data and may span two words
WORD_DEVICES = frozenset({"D", "W"})


@dataclass(frozen=True)
class DeviceAddress:
    """
    Immutable device reference such as M10, D100:5 or TS3.

    Build instances with DeviceAddress.parse; the class is always upper-case
    and the timer alias T is stored as TS.
    """

    device_class: str = "D"
    address: str = "0"
    length: int = 1

    def __post_init__(self) -> None:
        if self.length < 1:
            object.__setattr__(self, "length", 1)

    @property
    def display(self) -> str:
        return f"{self.device_class}{self.address}"

    def to_spec(self) -> str:
        """Canonical wire form sent to the gateway: display[:length]."""
        return f"{self.display}:{self.length}" if self.length > 1 else self.display

    def with_length(self, length: int) -> "DeviceAddress":
        return replace(self, length=length if length > 0 else 1)

    def __str__(self) -> str:
        return self.to_spec()

    @classmethod
    def parse(cls, spec: str | None) -> "DeviceAddress":
        """
        Parse a device spec leniently.

        - Optional ':N' suffix sets the read length when N is a positive integer.
        - Known class prefixes (ZR, TS, D, W, R, X, Y, M, L, B) match case-insensitively;
          otherwise the first character becomes the class.
        - Empty or unusable input yields D0; this never raises.
        """
        s = (spec or "").strip()
        if not s:
            return cls()

        length = 1
        head, sep, tail = s.partition(":")
        if sep:
            m = _LENGTH_PATTERN.match(tail)
            if m and int(m.group(1)) > 0:
                length = int(m.group(1))
                s = head

        if not s.strip():
            return cls(length=length)

        upper = s.upper()
        device = next((p for p in _DEVICE_PREFIXES if upper.startswith(p)), upper[0])
        address = s[len(device):] if len(s) > len(device) else "0"
        if not address.strip():
            address = "0"

        return cls(device_class=_normalize_class(device), address=address, length=length)


def _normalize_class(device: str) -> str:
    device = device.upper()
    return "TS" if device == "T" else device


def parse_device(spec: str | None) -> DeviceAddress:
    """Shorthand for DeviceAddress.parse."""
    return DeviceAddress.parse(spec)
