"""Tokenize exported ladder-program rows (tab or comma separated, quote-escaped)."""

from .types import ProgramLine


def split_columns(line: str) -> list[str]:
    """
    Split one row into columns in a single pass.

    A double quote toggles quoting; inside quotes '""' is a literal quote.
    Tab and comma end a column only outside quotes. CR/LF are dropped.
    The last column is always flushed, so 'a,' yields ['a', ''].
    """
    values: list[str] = []
    buf: list[str] = []
    in_quotes = False
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch == '"':
            if in_quotes and i + 1 < n and line[i + 1] == '"':
                buf.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
        elif not in_quotes and ch in ("\t", ","):
            values.append("".join(buf))
            buf = []
        elif ch not in ("\r", "\n"):
            buf.append(ch)
        i += 1
    values.append("".join(buf))
    return values


class TabularProgramParser:
    """Turns raw ladder rows into ProgramLine values; never raises."""

    def parse(self, line: str | None) -> ProgramLine:
        if line is None:
            return ProgramLine(raw="", columns=())
        return ProgramLine(raw=line, columns=tuple(split_columns(line)))

    def parse_lines(self, lines) -> tuple[ProgramLine, ...]:
        return tuple(self.parse(line) for line in lines)
