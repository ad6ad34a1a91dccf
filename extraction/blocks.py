"""Brace-depth block segmentation shared by the scanner, resolver and parser."""

from dataclasses import dataclass
from typing import Iterator, Pattern


@dataclass(frozen=True)
class TextBlock:
    """A slice of configuration text starting at a declaration match."""

    label: tuple[str, ...]
    start: int
    end: int
    text: str

    @property
    def body(self) -> str:
        """Text between the first ``{`` and the matching ``}`` (exclusive)."""
        open_index = self.text.find("{")
        if open_index < 0:
            return ""
        close = self.text.rfind("}")
        if close <= open_index:
            return self.text[open_index + 1:]
        return self.text[open_index + 1:close]


def find_block_end(content: str, start: int) -> int:
    """Return the index just past the brace closing the first block at ``start``.

    Braces are counted naively (string literals and heredocs are not
    special-cased). If the depth never returns to zero the block runs to
    the end of ``content``.
    """
    depth = 0
    opened = False
    for index in range(start, len(content)):
        char = content[index]
        if char == "{":
            depth += 1
            opened = True
        elif char == "}":
            depth -= 1
            if opened and depth == 0:
                return index + 1
    return len(content)


def iter_blocks(pattern: Pattern[str], content: str) -> Iterator[TextBlock]:
    """Yield one block per ``pattern`` match, in match order."""
    for match in pattern.finditer(content):
        start = match.start()
        end = find_block_end(content, start)
        if end > start:
            yield TextBlock(
                label=tuple(match.groups()),
                start=start,
                end=end,
                text=content[start:end],
            )


_OPENERS = "{[("
_CLOSERS = "}])"


def split_top_level_statements(body: str) -> list[str]:
    """Split a block body into depth-zero statements.

    A statement is one line, or several lines when brackets opened on the
    first line stay open. Blank lines and ``#``/``//`` comment lines are
    skipped.
    """
    statements: list[str] = []
    pending: list[str] = []
    depth = 0
    for line in body.splitlines():
        stripped = line.strip()
        if not pending and (not stripped or stripped.startswith(("#", "//"))):
            continue
        pending.append(line)
        for char in line:
            if char in _OPENERS:
                depth += 1
            elif char in _CLOSERS:
                depth -= 1
        if depth <= 0:
            statements.append("\n".join(pending).strip())
            pending = []
            depth = 0
    if pending:
        statements.append("\n".join(pending).strip())
    return statements
