"""Editor abstractions the reverse prompt command reads from and writes into."""

from .buffer import EditorProtocol, Position, SelectionRange, TextBufferEditor

__all__ = [
    "EditorProtocol",
    "Position",
    "SelectionRange",
    "TextBufferEditor",
]
