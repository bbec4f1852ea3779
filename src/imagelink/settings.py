"""Settings persistence and the settings tab.

The plugin keeps a single :class:`~imagelink.config.UploadConfig`.  It is
loaded through a :class:`~imagelink.host.SettingsStore` (defaults merged
under the stored values), edited through :class:`SettingsTab`, and saved
back after every change.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from imagelink.config import UploadConfig
from imagelink.errors import ImageLinkSettingsError
from imagelink.host import SettingsPanel
from imagelink.observability import get_logger

log = get_logger("imagelink.settings")


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class MemorySettingsStore:
    """Keeps the settings object in memory (tests, ephemeral sessions)."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self.data = dict(data) if data is not None else None

    async def load_data(self) -> dict[str, Any] | None:
        return dict(self.data) if self.data is not None else None

    async def save_data(self, data: dict[str, Any]) -> None:
        self.data = dict(data)


class JsonFileSettingsStore:
    """Persists the settings object as a JSON file.

    A missing file loads as ``None`` so the defaults apply.  File I/O runs
    in a worker thread.

    Parameters
    ----------
    path:
        Location of the JSON file.  Parent directories are created on save.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, Any] | None:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise ImageLinkSettingsError(
                message=f"Cannot read settings file {self.path}: {exc}",
                context={"path": str(self.path)},
                cause=exc,
            ) from exc
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise ImageLinkSettingsError(
                message=f"Settings file {self.path} is not valid JSON: {exc}",
                context={"path": str(self.path)},
                cause=exc,
            ) from exc
        if not isinstance(data, dict):
            raise ImageLinkSettingsError(
                message=f"Settings file {self.path} must contain a JSON object",
                context={"path": str(self.path)},
            )
        return data

    def _write(self, data: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as exc:
            raise ImageLinkSettingsError(
                message=f"Cannot write settings file {self.path}: {exc}",
                context={"path": str(self.path)},
                cause=exc,
            ) from exc

    async def load_data(self) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._read)

    async def save_data(self, data: dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, data)


# ---------------------------------------------------------------------------
# Settings tab
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SettingField:
    """One labelled text field of the settings tab."""

    attribute: str
    name: str
    description: str
    placeholder: str


SETTING_FIELDS: tuple[SettingField, ...] = (
    SettingField(
        attribute="api_url",
        name="Api URL",
        description="Remote API URL to upload image",
        placeholder="Enter your remote API URL",
    ),
    SettingField(
        attribute="headers",
        name="Headers",
        description="Headers for remote API",
        placeholder="Enter your headers",
    ),
    SettingField(
        attribute="body",
        name="Body",
        description="Body for remote API",
        placeholder="Enter your body",
    ),
    SettingField(
        attribute="target",
        name="Response URL Target",
        description="Response URL Target for remote API",
        placeholder="Enter your image url target in response",
    ),
)


class SettingsOwner(Protocol):
    """What the settings tab needs from the plugin."""

    settings: UploadConfig

    async def save_settings(self) -> None:
        ...


class SettingsTab:
    """Renders :data:`SETTING_FIELDS` and saves on every change."""

    def __init__(self, owner: SettingsOwner) -> None:
        self._owner = owner

    def display(self, panel: SettingsPanel) -> None:
        panel.clear()
        for setting in SETTING_FIELDS:
            panel.add_text(
                setting.name,
                setting.description,
                setting.placeholder,
                getattr(self._owner.settings, setting.attribute),
                self._on_change(setting.attribute),
            )

    def _on_change(self, attribute: str):
        async def on_change(value: str) -> None:
            setattr(self._owner.settings, attribute, value)
            log.debug(
                "Setting changed",
                extra={"extra_fields": {"op": "settings", "setting": attribute}},
            )
            await self._owner.save_settings()

        return on_change
