"""In-memory implementation of the :class:`~imagelink.host.Editor` protocol.

Useful for headless pipelines (e.g. processing a Markdown file outside
an editor) and as the document model in tests.
"""

from __future__ import annotations

from imagelink.host import EditorPosition


class MemoryEditor:
    """A text buffer with a cursor and an optional selection.

    Parameters
    ----------
    text:
        Initial document text.
    cursor:
        Initial cursor position.  Defaults to the end of the document.
    """

    def __init__(self, text: str = "", cursor: EditorPosition | None = None) -> None:
        self._text = text
        self._cursor = self._offset(cursor) if cursor is not None else len(text)
        self._anchor: int | None = None

    # -- position helpers --------------------------------------------------

    def _offset(self, pos: EditorPosition) -> int:
        lines = self._text.split("\n")
        line = min(max(pos.line, 0), len(lines) - 1)
        ch = min(max(pos.ch, 0), len(lines[line]))
        return sum(len(text) + 1 for text in lines[:line]) + ch

    def _position(self, offset: int) -> EditorPosition:
        before = self._text[:offset]
        line = before.count("\n")
        return EditorPosition(line=line, ch=offset - (before.rfind("\n") + 1))

    # -- Editor protocol ---------------------------------------------------

    def get_value(self) -> str:
        return self._text

    def set_value(self, text: str) -> None:
        """Replace the whole document, keeping the cursor in bounds."""
        self._text = text
        self._cursor = min(self._cursor, len(text))
        self._anchor = None

    def get_cursor(self) -> EditorPosition:
        return self._position(self._cursor)

    def set_cursor(self, pos: EditorPosition) -> None:
        self._cursor = self._offset(pos)
        self._anchor = None

    def set_selection(self, anchor: EditorPosition, head: EditorPosition) -> None:
        self._anchor = self._offset(anchor)
        self._cursor = self._offset(head)

    def replace_selection(self, text: str) -> None:
        start, end = self._cursor, self._cursor
        if self._anchor is not None:
            start, end = sorted((self._anchor, self._cursor))
        self._text = self._text[:start] + text + self._text[end:]
        self._cursor = start + len(text)
        self._anchor = None

    def replace_range(self, text: str, start: EditorPosition, end: EditorPosition) -> None:
        lo, hi = sorted((self._offset(start), self._offset(end)))
        self._text = self._text[:lo] + text + self._text[hi:]
        # Keep the cursor anchored to the text it was next to.
        if self._cursor >= hi:
            self._cursor += len(text) - (hi - lo)
        elif self._cursor > lo:
            self._cursor = lo + len(text)
        self._anchor = None

    def __repr__(self) -> str:
        return f"MemoryEditor(chars={len(self._text)}, cursor={self.get_cursor()!r})"
