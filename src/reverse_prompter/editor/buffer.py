"""Editor collaborator protocol and an in-memory buffer implementing it."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable


@dataclass(slots=True, frozen=True)
class Position:
    """Zero-based line/column pair."""

    line: int
    ch: int


@dataclass(slots=True, frozen=True)
class SelectionRange:
    """One selection expressed as two character offsets.

    ``anchor`` is where the selection started and ``head`` is where the cursor
    sits, so ``head`` may come before ``anchor``.
    """

    anchor: int
    head: int

    @property
    def start(self) -> int:
        return min(self.anchor, self.head)

    @property
    def end(self) -> int:
        return max(self.anchor, self.head)

    @property
    def is_empty(self) -> bool:
        return self.anchor == self.head


@runtime_checkable
class EditorProtocol(Protocol):
    """Operations the reverse prompt command needs from a host editor."""

    @property
    def source_path(self) -> str | None:
        ...

    def get_full_text(self) -> str:
        ...

    def get_cursor(self) -> Position:
        ...

    def set_cursor(self, pos: Position | int) -> None:
        ...

    def get_selection(self) -> str:
        ...

    def has_selection(self) -> bool:
        ...

    def list_selection_ranges(self) -> Sequence[SelectionRange]:
        ...

    def offset_to_position(self, offset: int) -> Position:
        ...

    def position_to_offset(self, pos: Position) -> int:
        ...

    def get_line_text(self, line: int) -> str:
        ...

    def insert_at_cursor(self, text: str) -> None:
        ...


class TextBufferEditor:
    """Plain-text editor buffer backing the CLI and the tests.

    Inserting replaces the primary selection when it is non-empty and leaves a
    single collapsed cursor after the inserted text.
    """

    def __init__(
        self,
        text: str = "",
        *,
        cursor: int | None = None,
        selections: Sequence[SelectionRange] | None = None,
        path: Path | str | None = None,
    ) -> None:
        self._text = text
        self._line_starts = _line_starts(text)
        self._path = Path(path) if path else None
        if selections:
            self._selections = [self._clamp_range(item) for item in selections]
        else:
            offset = len(text) if cursor is None else cursor
            offset = self._clamp(offset)
            self._selections = [SelectionRange(offset, offset)]

    # ------------------------------------------------------------------
    # EditorProtocol
    # ------------------------------------------------------------------

    @property
    def source_path(self) -> str | None:
        return str(self._path) if self._path else None

    def get_full_text(self) -> str:
        return self._text

    def get_cursor(self) -> Position:
        return self.offset_to_position(self._primary.head)

    def set_cursor(self, pos: Position | int) -> None:
        offset = pos if isinstance(pos, int) else self.position_to_offset(pos)
        offset = self._clamp(offset)
        self._selections = [SelectionRange(offset, offset)]

    def get_selection(self) -> str:
        if not self.has_selection():
            return ""
        return "\n".join(self._text[item.start : item.end] for item in self._selections)

    def has_selection(self) -> bool:
        return any(not item.is_empty for item in self._selections)

    def list_selection_ranges(self) -> tuple[SelectionRange, ...]:
        return tuple(self._selections)

    def offset_to_position(self, offset: int) -> Position:
        offset = self._clamp(offset)
        line = bisect_right(self._line_starts, offset) - 1
        return Position(line=line, ch=offset - self._line_starts[line])

    def position_to_offset(self, pos: Position) -> int:
        line = max(0, min(int(pos.line), len(self._line_starts) - 1))
        line_start = self._line_starts[line]
        line_length = len(self.get_line_text(line))
        return line_start + max(0, min(int(pos.ch), line_length))

    def get_line_text(self, line: int) -> str:
        if line < 0 or line >= len(self._line_starts):
            return ""
        start = self._line_starts[line]
        end = self._text.find("\n", start)
        return self._text[start:] if end == -1 else self._text[start:end]

    def insert_at_cursor(self, text: str) -> None:
        primary = self._primary
        start, end = primary.start, primary.end
        self._text = self._text[:start] + text + self._text[end:]
        self._line_starts = _line_starts(self._text)
        offset = start + len(text)
        self._selections = [SelectionRange(offset, offset)]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def cursor_offset(self) -> int:
        return self._primary.head

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def set_selection(self, anchor: int, head: int) -> None:
        self._selections = [self._clamp_range(SelectionRange(anchor, head))]

    @property
    def _primary(self) -> SelectionRange:
        return self._selections[0]

    def _clamp(self, offset: int) -> int:
        return max(0, min(int(offset), len(self._text)))

    def _clamp_range(self, item: SelectionRange) -> SelectionRange:
        return SelectionRange(self._clamp(item.anchor), self._clamp(item.head))


def _line_starts(text: str) -> list[int]:
    starts = [0]
    index = text.find("\n")
    while index != -1:
        starts.append(index + 1)
        index = text.find("\n", index + 1)
    return starts


__all__ = ["EditorProtocol", "Position", "SelectionRange", "TextBufferEditor"]
