"""Context extraction: choose the slice of the document sent to the model.

The slice runs from the nearest divider behind the cursor (a markdown heading
marker or a run of three or more dashes) up to the cursor. A divider only counts
when some non-whitespace text sits between it and the cursor, so a cursor placed
right under a fresh heading reaches back to the previous section instead.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from re import Pattern
from typing import TYPE_CHECKING, Iterator

from ..errors import ConfigurationError

if TYPE_CHECKING:  # pragma: no cover
    from ..editor.buffer import EditorProtocol
    from ..services.settings import Settings

LOGGER = logging.getLogger(__name__)

# Both branches anchor at line start: "a --- b" inside a sentence is prose.
DEFAULT_DIVIDER_PATTERN = r"^(?:#+|-{3,})"
DIVIDER_FLAGS = re.IGNORECASE | re.MULTILINE
SOURCE_PATH_TEMPLATE = "Source: {path}\n"


class NoDividerFallback(str, Enum):
    """What to send when no divider qualifies behind the cursor."""

    DOCUMENT_PREFIX = "document-prefix"
    EMPTY = "empty"


@dataclass(slots=True, frozen=True)
class DividerMatch:
    """Offset and length of one divider token found in the document."""

    index: int
    length: int
    token: str = ""

    @property
    def end(self) -> int:
        return self.index + self.length


def compile_divider_pattern(pattern: str | Pattern[str]) -> Pattern[str]:
    """Compile a user supplied divider pattern, failing with ``ConfigurationError``."""

    if isinstance(pattern, re.Pattern):
        return pattern
    if not pattern:
        raise ConfigurationError(
            message="Divider pattern must not be empty",
            field_name="divider_pattern",
        )
    try:
        return re.compile(pattern, DIVIDER_FLAGS)
    except re.error as exc:
        raise ConfigurationError(
            message=f"Divider pattern is not a valid regular expression: {exc}",
            details={"pattern": pattern},
            field_name="divider_pattern",
        ) from exc


def find_dividers(text: str, pattern: str | Pattern[str]) -> list[DividerMatch]:
    """Return every divider match in document order."""

    compiled = compile_divider_pattern(pattern)
    return [
        DividerMatch(index=match.start(), length=match.end() - match.start(), token=match.group(0))
        for match in compiled.finditer(text)
    ]


def extract(
    document_text: str,
    cursor_offset: int,
    selection: str | None = None,
    divider_pattern: str | Pattern[str] = DEFAULT_DIVIDER_PATTERN,
    include_path: bool = False,
    path_value: str | None = None,
    *,
    fallback: NoDividerFallback | str = NoDividerFallback.DOCUMENT_PREFIX,
) -> str:
    """Return the text to send to the model.

    Args:
        document_text: Full document contents.
        cursor_offset: Cursor position as a character offset. Clamped into the
            document.
        selection: Active selection text. When non-empty it is returned as-is.
        divider_pattern: Pattern recognising section dividers.
        include_path: Prepend a ``Source:`` line naming ``path_value``.
        path_value: Path of the source document.
        fallback: Policy applied when no divider qualifies.

    Raises:
        ConfigurationError: If the pattern or the fallback policy is invalid.
    """

    policy = _coerce_fallback(fallback)
    if selection:
        body = selection
    else:
        body = _slice_behind_cursor(document_text, cursor_offset, divider_pattern, policy)
    if include_path and path_value and body:
        return SOURCE_PATH_TEMPLATE.format(path=path_value) + body
    return body


def _slice_behind_cursor(
    text: str,
    cursor_offset: int,
    pattern: str | Pattern[str],
    policy: NoDividerFallback,
) -> str:
    cursor = max(0, min(int(cursor_offset), len(text)))
    for match in _reversed_matches(text, pattern):
        # strictly behind the cursor
        if match.index >= cursor:
            continue
        if text[match.end : cursor].strip():
            LOGGER.debug("Context starts at divider %r (offset %s)", match.token, match.index)
            return text[match.index : cursor]

    if policy is NoDividerFallback.EMPTY:
        return ""
    return text[:cursor]


def _reversed_matches(text: str, pattern: str | Pattern[str]) -> Iterator[DividerMatch]:
    return reversed(find_dividers(text, pattern))


def _coerce_fallback(value: NoDividerFallback | str) -> NoDividerFallback:
    try:
        return NoDividerFallback(value)
    except ValueError as exc:
        choices = ", ".join(item.value for item in NoDividerFallback)
        raise ConfigurationError(
            message=f"Unknown no-divider fallback '{value}'; expected one of: {choices}",
            field_name="no_divider_fallback",
        ) from exc


class ContextExtractor:
    """Extractor bound to the divider and path options from settings."""

    def __init__(
        self,
        divider_pattern: str | Pattern[str] = DEFAULT_DIVIDER_PATTERN,
        *,
        include_path: bool = False,
        fallback: NoDividerFallback | str = NoDividerFallback.DOCUMENT_PREFIX,
    ) -> None:
        self._pattern = compile_divider_pattern(divider_pattern)
        self._include_path = include_path
        self._fallback = _coerce_fallback(fallback)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContextExtractor":
        return cls(
            settings.divider_pattern,
            include_path=settings.include_source_path,
            fallback=settings.no_divider_fallback,
        )

    @property
    def pattern(self) -> Pattern[str]:
        return self._pattern

    def extract(
        self,
        document_text: str,
        cursor_offset: int,
        selection: str | None = None,
        path_value: str | None = None,
    ) -> str:
        return extract(
            document_text,
            cursor_offset,
            selection,
            self._pattern,
            self._include_path,
            path_value,
            fallback=self._fallback,
        )

    def extract_from_editor(self, editor: EditorProtocol) -> str:
        """Read the selection or the cursor slice from a live editor."""

        selection = editor.get_selection() if editor.has_selection() else None
        cursor_offset = editor.position_to_offset(editor.get_cursor())
        return self.extract(
            editor.get_full_text(),
            cursor_offset,
            selection,
            editor.source_path,
        )


__all__ = [
    "ContextExtractor",
    "DEFAULT_DIVIDER_PATTERN",
    "DividerMatch",
    "NoDividerFallback",
    "compile_divider_pattern",
    "extract",
    "find_dividers",
]
