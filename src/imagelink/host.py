"""Interfaces the host editor provides to imagelink.

The pipeline never touches the editor directly; every collaborator is a
structural :class:`typing.Protocol` so any editor binding (or a test
double) can be passed in.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from imagelink.models import ClipboardFile


@dataclass(frozen=True)
class EditorPosition:
    """Zero-based ``(line, ch)`` position inside a document."""

    line: int
    ch: int


# ---------------------------------------------------------------------------
# Paste events
# ---------------------------------------------------------------------------

@runtime_checkable
class PasteEvent(Protocol):
    """A clipboard paste delivered by the host."""

    @property
    def default_prevented(self) -> bool:
        """``True`` when another handler already claimed the paste."""
        ...

    @property
    def files(self) -> Sequence[ClipboardFile]:
        """Files carried by the clipboard, in clipboard order."""
        ...

    def prevent_default(self) -> None:
        """Stop the host from running its own paste behaviour."""
        ...


@dataclass
class ClipboardEvent:
    """Plain :class:`PasteEvent` implementation."""

    files: list[ClipboardFile] = field(default_factory=list)
    default_prevented: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True


# ---------------------------------------------------------------------------
# Editor
# ---------------------------------------------------------------------------

@runtime_checkable
class Editor(Protocol):
    """Text-editing surface of the active document."""

    def get_value(self) -> str:
        """Return the whole document text."""
        ...

    def get_cursor(self) -> EditorPosition:
        ...

    def set_cursor(self, pos: EditorPosition) -> None:
        ...

    def replace_selection(self, text: str) -> None:
        """Replace the current selection (or insert at the cursor)."""
        ...

    def replace_range(self, text: str, start: EditorPosition, end: EditorPosition) -> None:
        """Replace the text between *start* and *end* with *text*."""
        ...


# ---------------------------------------------------------------------------
# UI collaborators
# ---------------------------------------------------------------------------

class Notifier(Protocol):
    """Shows short, non-blocking notices to the user."""

    def notify(self, message: str) -> None:
        ...


class ModalOpener(Protocol):
    """Opens the caption/slug dialog.

    The host calls ``on_submit(caption, slug)`` when the user confirms
    and ``on_close()`` whenever the dialog closes, confirmed or not.
    """

    def __call__(
        self,
        on_submit: Callable[[str, str], None],
        on_close: Callable[[], None],
    ) -> None:
        ...


class SettingsPanel(Protocol):
    """Container the settings tab renders its fields into."""

    def clear(self) -> None:
        ...

    def add_text(
        self,
        name: str,
        description: str,
        placeholder: str,
        value: str,
        on_change: Callable[[str], Awaitable[None]],
    ) -> None:
        """Render a labelled text field bound to *on_change*."""
        ...


class SettingsStore(Protocol):
    """Persists the plugin's single settings object."""

    async def load_data(self) -> dict[str, Any] | None:
        ...

    async def save_data(self, data: dict[str, Any]) -> None:
        ...


PasteCallback = Callable[[PasteEvent, Editor, "str | None"], Any]


class Workspace(Protocol):
    """Event source for editor paste events."""

    def on_paste(self, callback: PasteCallback) -> Callable[[], None]:
        """Subscribe *callback*; return a function that unsubscribes it."""
        ...
