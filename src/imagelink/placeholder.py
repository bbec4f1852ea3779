"""Placeholder insertion and resolution.

While an upload is in flight the document holds a marker such as
``![uploading...](3f9c0a51d2e7)``.  When the upload settles the marker is
found again by plain text search and replaced.

Resolution policy: the document is scanned line by line from the top
and the *first* occurrence (leftmost within its line) is replaced, then
scanning stops.  There is no structural tracking of the original
position; edits made while the upload runs are safe as long as the
token stays unique.  If the marker was deleted, nothing is inserted.
"""

from __future__ import annotations

import secrets

from imagelink.host import Editor, EditorPosition

TOKEN_BYTES = 6


def new_token() -> str:
    """Return a fresh random placeholder token (12 hex characters)."""
    return secrets.token_hex(TOKEN_BYTES)


def placeholder_text(token: str) -> str:
    """Markup inserted while the upload for *token* is pending."""
    return f"![uploading...]({token})\n"


def image_markup(caption: str, reference: str) -> str:
    """Final markup for an uploaded image."""
    return f"![{caption}]({reference})\n"


def insert_placeholder(editor: Editor, token: str) -> str:
    """Insert the placeholder for *token* at the cursor and return it."""
    text = placeholder_text(token)
    editor.replace_selection(text)
    return text


def resolve_placeholder(editor: Editor, target: str, replacement: str) -> bool:
    """Replace the first occurrence of *target* with *replacement*.

    *target* is stripped of surrounding whitespace before searching, so
    the trailing newline of a placeholder is left in the document.

    Returns
    -------
    bool
        ``True`` if an occurrence was replaced, ``False`` if *target* was
        not found (the document is left untouched).
    """
    target = target.strip()
    if not target:
        return False
    for line_no, line in enumerate(editor.get_value().split("\n")):
        ch = line.find(target)
        if ch == -1:
            continue
        start = EditorPosition(line=line_no, ch=ch)
        end = EditorPosition(line=line_no, ch=ch + len(target))
        editor.set_cursor(start)
        editor.replace_range(replacement, start, end)
        return True
    return False
