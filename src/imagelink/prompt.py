"""Await the caption/slug dialog instead of passing it a callback.

The host's dialog is callback driven.  :class:`ModalPrompt` wraps it in a
future so the paste orchestrator can simply ``await prompt.ask()`` and
branch on :class:`~imagelink.models.Submitted` /
:class:`~imagelink.models.Cancelled`.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from imagelink.host import ModalOpener
from imagelink.models import Cancelled, Submitted, UserInput


class Prompt(Protocol):
    """Anything that can ask the user for a caption and a slug."""

    async def ask(self) -> UserInput:
        ...


class ModalPrompt:
    """:class:`Prompt` backed by a host :class:`~imagelink.host.ModalOpener`.

    The dialog callbacks must run on the event loop thread, as they do
    in a single-threaded editor.
    """

    def __init__(self, open_modal: ModalOpener) -> None:
        self._open_modal = open_modal

    async def ask(self) -> UserInput:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[UserInput] = loop.create_future()

        def on_submit(caption: str, slug: str) -> None:
            if not future.done():
                future.set_result(Submitted(caption=caption, slug=slug))

        def on_close() -> None:
            if not future.done():
                future.set_result(Cancelled())

        self._open_modal(on_submit, on_close)
        return await future
