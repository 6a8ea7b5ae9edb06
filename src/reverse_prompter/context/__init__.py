"""Context extraction for reverse prompts."""

from .extractor import (
    DEFAULT_DIVIDER_PATTERN,
    ContextExtractor,
    DividerMatch,
    NoDividerFallback,
    compile_divider_pattern,
    extract,
    find_dividers,
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
