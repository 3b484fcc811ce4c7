"""Layout and theme preferences."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from common.models.preferences import LayoutSettings, ThemeMode
from common.utils import deep_merge
from controller.storage.key_value import KeyValueStore

logger = logging.getLogger(__name__)

LAYOUT_KEY = "layoutSettings"
THEME_KEY = "theme"


class PreferencesStore:
    """UI preferences sharing the history's key-value store.

    Layout and theme are persisted; panel visibility flags such as
    ``show_error_logs`` live for the session only.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self.layout = LayoutSettings()
        self.theme = ThemeMode.DARK
        self.show_error_logs = False

    async def load_from_storage(self) -> None:
        try:
            layout = await self.store.load(LAYOUT_KEY)
            if layout:
                self.layout = LayoutSettings.model_validate(layout)

            theme = await self.store.load(THEME_KEY)
            if theme:
                self.theme = ThemeMode(theme)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Ignoring invalid stored preferences: {e}")
        except Exception as e:
            logger.warning(f"Failed to load preferences: {e}")

    async def update_layout(self, **updates) -> LayoutSettings:
        """Merge partial layout updates and persist them."""
        merged = deep_merge(self.layout.model_dump(), updates)
        self.layout = LayoutSettings.model_validate(merged)
        await self._save(LAYOUT_KEY, self.layout.model_dump())
        return self.layout

    async def set_theme(self, theme: ThemeMode | str) -> ThemeMode:
        self.theme = ThemeMode(theme)
        await self._save(THEME_KEY, self.theme.value)
        return self.theme

    def set_show_error_logs(self, show: bool) -> None:
        self.show_error_logs = show

    def reveal_error_logs(self) -> None:
        self.set_show_error_logs(True)

    async def _save(self, key: str, value) -> None:
        try:
            await self.store.save(key, value)
        except Exception as e:
            logger.warning(f"Failed to save {key}: {e}")
