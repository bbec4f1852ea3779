"""Editor plugin entry point.

:class:`ImageLinkPlugin` wires the pipeline to a host editor::

    plugin = ImageLinkPlugin(store, open_modal, notifier)
    await plugin.load()
    plugin.register(workspace)
    ...
    await plugin.unload()

On every paste the workspace calls the registered callback, which claims
the event and schedules the rest of the session on the running loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from imagelink.config import ImageLinkConfig, UploadConfig
from imagelink.host import (
    Editor,
    ModalOpener,
    Notifier,
    PasteEvent,
    SettingsStore,
    Workspace,
)
from imagelink.models import PasteSession
from imagelink.observability import get_logger
from imagelink.paste import PasteHandler, Uploader
from imagelink.prompt import ModalPrompt
from imagelink.settings import SettingsTab
from imagelink.upload import UploadClient

log = get_logger("imagelink")


class ImageLinkPlugin:
    """Lifecycle owner of the settings, the upload client and the paste handler.

    Parameters
    ----------
    store:
        Where the upload settings are persisted.
    open_modal:
        Host dialog asking for caption and slug.
    notifier:
        Host notice surface.
    config:
        Runtime options.
    uploader:
        Upload client.  Defaults to an :class:`UploadClient` built from
        *config* and closed on :meth:`unload`.
    """

    def __init__(
        self,
        store: SettingsStore,
        open_modal: ModalOpener,
        notifier: Notifier,
        config: ImageLinkConfig | None = None,
        uploader: Uploader | None = None,
    ) -> None:
        self._store = store
        self._config = config or ImageLinkConfig()
        self._client: UploadClient | None = None
        if uploader is None:
            self._client = UploadClient(self._config)
            uploader = self._client
        self.settings = UploadConfig()
        self.handler = PasteHandler(
            settings=lambda: self.settings,
            uploader=uploader,
            prompt=ModalPrompt(open_modal),
            notifier=notifier,
            config=self._config,
        )
        self._unsubscribe: Callable[[], None] | None = None
        self._tasks: set[asyncio.Task[PasteSession]] = set()

    # -- settings ----------------------------------------------------------

    async def load_settings(self) -> None:
        self.settings = UploadConfig.from_settings(await self._store.load_data())

    async def save_settings(self) -> None:
        await self._store.save_data(self.settings.to_settings())

    def settings_tab(self) -> SettingsTab:
        return SettingsTab(self)

    # -- lifecycle ---------------------------------------------------------

    async def load(self) -> None:
        """Load persisted settings.  Call before :meth:`register`."""
        await self.load_settings()
        log.info(
            "Plugin loaded",
            extra={"extra_fields": {"op": "load", "settings": repr(self.settings)}},
        )

    def register(self, workspace: Workspace) -> None:
        """Subscribe to paste events of *workspace*."""
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = workspace.on_paste(self.on_paste)

    def on_paste(
        self,
        event: PasteEvent,
        editor: Editor,
        document_path: str | None,
    ) -> asyncio.Task[PasteSession] | None:
        """Paste callback.

        Claims the event synchronously when it carries an image, then
        schedules the rest of the session without blocking the host.
        Returns ``None`` when the paste is left to the host.
        """
        session = self.handler.begin(event)
        if session is None:
            return None
        task = asyncio.get_running_loop().create_task(
            self.handler.process(session, editor, document_path)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def unload(self) -> None:
        """Unsubscribe, let every started upload settle, close the client.

        Sessions that have not inserted a placeholder yet are cancelled.
        """
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        # Sessions still transcoding or waiting on the dialog have not touched
        # the document yet; started uploads always run to completion.
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.handler.wait_idle()
        if self._client is not None:
            await self._client.close()
        log.info("Plugin unloaded", extra={"extra_fields": {"op": "unload"}})
